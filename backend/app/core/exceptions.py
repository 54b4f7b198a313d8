# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the auto-école backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedActionException(DomainException):
    """Raised when the actor's role or school does not allow the operation."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You are not allowed to perform this action", **details: Any):
        super().__init__(message=message, code="UNAUTHORIZED", details=details)


class ServiceException(DomainException):
    """Raised when a service operation fails."""


class StoreUnavailableException(ServiceException):
    """Transient failure of the ledger store; callers may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "The data store is temporarily unavailable"):
        super().__init__(message=message, code="STORE_UNAVAILABLE")


# Slot lifecycle


class InvalidScheduleException(ValidationException):
    """Raised when a slot time is in the past or malformed."""

    def __init__(self, message: str = "Slot must be scheduled in the future", **details: Any):
        super().__init__(message=message, code="INVALID_SCHEDULE", details=details)


class SlotAlreadyReservedException(ConflictException):
    """Raised when a student tries to book a slot someone already holds."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="This slot has already been reserved",
            code="SLOT_ALREADY_RESERVED",
            details={"slot_id": slot_id},
        )


class SlotAlreadyCompletedException(BusinessRuleException):
    """Raised when an operation targets a lesson that already took place."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="This lesson has already taken place",
            code="SLOT_ALREADY_COMPLETED",
            details={"slot_id": slot_id},
        )


class SlotNotCompletedException(BusinessRuleException):
    """Raised when commenting on a lesson that has not happened yet."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="Comments can only be added once the lesson has taken place",
            code="SLOT_NOT_COMPLETED",
            details={"slot_id": slot_id},
        )


class CommentAlreadyRecordedException(ConflictException):
    """Raised when an instructor comment already exists on the slot."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="A comment has already been recorded for this lesson",
            code="COMMENT_ALREADY_RECORDED",
            details={"slot_id": slot_id},
        )


# Hours ledger


class InsufficientHoursException(BusinessRuleException):
    """Raised when a student's balance cannot cover the requested hours."""

    def __init__(self, user_id: str, requested: int = 1):
        super().__init__(
            message="You have no remaining driving hours",
            code="INSUFFICIENT_HOURS",
            details={"user_id": user_id, "requested": requested},
        )


# Payment reconciliation


class UnknownCustomerException(NotFoundException):
    """Raised when a payment provider customer has no internal user."""

    def __init__(self, customer_reference: str | None):
        super().__init__(
            message="No user is linked to this payment customer",
            code="UNKNOWN_CUSTOMER",
            details={"customer_reference": customer_reference},
        )


class UnmappablePriceException(BusinessRuleException):
    """Raised when a paid amount matches no package of the school's price list."""

    def __init__(self, amount: int | None, currency: str | None):
        super().__init__(
            message="Paid amount does not match any package",
            code="UNMAPPABLE_PRICE",
            details={"amount": amount, "currency": currency},
        )


class DuplicatePaymentException(ConflictException):
    """Raised when a provider payment reference was already reconciled."""

    def __init__(self, payment_reference: str):
        super().__init__(
            message="Payment already processed",
            code="DUPLICATE_PAYMENT",
            details={"payment_reference": payment_reference},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations. The original SQLAlchemy error is kept
    as ``__cause__``.
    """
