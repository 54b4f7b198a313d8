# backend/app/core/enums.py
"""
Core enums for the auto-école backend.

Values are persisted as plain strings, so renaming a member means a data
migration.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles a user can hold inside a school."""

    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class Transmission(str, Enum):
    """Gearbox of the vehicle used for a lesson."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class SlotView(str, Enum):
    """Filters for the "my lessons" listing."""

    COMPLETED = "completed"
    UPCOMING = "upcoming"
    PENDING = "pending"  # instructor's open slots nobody booked yet


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class LedgerReason(str, Enum):
    """Why a student's hours balance moved."""

    RESERVATION = "reservation"
    CANCELLATION_REFUND = "cancellation_refund"
    PURCHASE = "purchase"


class AppreciationLevel(str, Enum):
    """Rating scale of the learning booklet."""

    NOT_ACQUIRED = "non_acquis"
    TO_REVIEW = "a_revoir"
    ACQUIRED = "assimile"
