# backend/app/services/slot_service.py
"""
Slot Service for the auto-école backend

Owns the lesson slot lifecycle:

    open --reserve--> reserved --(lesson ends)--> completed
    reserved --cancel--> open
    open --cancel (instructor/admin)--> deleted

Reservation and cancellation run as a single transaction that pairs the
slot transition with the matching hours ledger move, so a student never
holds a slot they did not pay an hour for and never loses an hour for a
slot they no longer hold. Every state change is published to the outbox
in the same transaction.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import MAX_SLOT_COMMENT_LENGTH, MAX_VEHICLE_LENGTH
from ..core.enums import LedgerReason, RoleName, SlotView, Transmission
from ..core.exceptions import (
    CommentAlreadyRecordedException,
    ConflictException,
    InvalidScheduleException,
    NotFoundException,
    SlotAlreadyCompletedException,
    SlotAlreadyReservedException,
    SlotNotCompletedException,
    UnauthorizedActionException,
    ValidationException,
)
from ..core.timezone_utils import ensure_aware, localize_slot_time, school_today
from ..events.publisher import EventPublisher
from ..events.slot_events import (
    SlotCancelled,
    SlotCommented,
    SlotCreated,
    SlotDeleted,
    SlotReserved,
    SlotSwept,
)
from ..models.school import School
from ..models.slot import Slot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .hours_ledger_service import HoursLedgerService

logger = logging.getLogger(__name__)


class SlotService(BaseService):
    """Service layer for lesson slots."""

    def __init__(
        self,
        db: Session,
        hours_service: Optional[HoursLedgerService] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        super().__init__(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.school_repository = RepositoryFactory.create_base_repository(db, School)
        self.hours_service = hours_service or HoursLedgerService(db)
        self.event_publisher = event_publisher or EventPublisher(
            RepositoryFactory.create_event_outbox_repository(db)
        )

    # ------------------------------------------------------------------ create
    @BaseService.measure_operation("create_slot")
    def create_slot(
        self,
        actor: Actor,
        *,
        date: date,
        start_time: time,
        vehicle: str,
        transmission: str,
        now: Optional[datetime] = None,
    ) -> Slot:
        """
        Open a new one-hour slot owned by the calling instructor.

        Raises:
            UnauthorizedActionException: caller is a student
            ValidationException: bad vehicle or transmission
            InvalidScheduleException: start not strictly in the future, or the
                lesson would run past midnight
        """
        actor.require_role(RoleName.INSTRUCTOR, RoleName.ADMIN)

        vehicle = (vehicle or "").strip()
        if not vehicle or len(vehicle) > MAX_VEHICLE_LENGTH:
            raise ValidationException(
                "Vehicle is required", code="INVALID_VEHICLE", details={"vehicle": vehicle}
            )
        try:
            gearbox = Transmission(transmission)
        except ValueError:
            raise ValidationException(
                "Unknown transmission type",
                code="INVALID_TRANSMISSION",
                details={"transmission": transmission},
            )

        tz_name = self._school_timezone(actor.school_id)
        starts_at = localize_slot_time(date, start_time, tz_name)
        if starts_at <= ensure_aware(now):
            raise InvalidScheduleException(date=date.isoformat(), start_time=str(start_time))

        naive_end = datetime.combine(date, start_time) + timedelta(
            minutes=settings.slot_duration_minutes
        )
        if naive_end.date() != date:
            raise InvalidScheduleException(
                "A lesson must end on the day it starts",
                date=date.isoformat(),
                start_time=str(start_time),
            )

        with self.transaction():
            slot = self.slot_repository.create(
                school_id=actor.school_id,
                instructor_id=actor.user_id,
                date=date,
                start_time=start_time,
                end_time=naive_end.time(),
                vehicle=vehicle,
                transmission=gearbox.value,
                reserved=False,
                passed=False,
            )
            self.event_publisher.publish(
                SlotCreated(
                    slot_id=slot.id,
                    school_id=slot.school_id,
                    instructor_id=slot.instructor_id,
                    date=slot.date,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                )
            )

        self.logger.info("Slot %s created by %s for %s %s", slot.id, actor.user_id, date, start_time)
        return slot

    # ----------------------------------------------------------------- reserve
    @BaseService.measure_operation("reserve_slot")
    def reserve_slot(self, actor: Actor, slot_id: str, now: Optional[datetime] = None) -> Slot:
        """
        Book an open slot for the calling student and debit one hour.

        Both changes commit together or not at all.
        """
        actor.require_role(RoleName.STUDENT)
        slot = self._get_slot(actor, slot_id)

        if slot.passed:
            raise SlotAlreadyCompletedException(slot.id)
        if slot.reserved:
            raise SlotAlreadyReservedException(slot.id)
        if self._has_started(slot, now):
            raise InvalidScheduleException("This lesson has already started", slot_id=slot.id)

        with self.transaction():
            claimed = self.slot_repository.claim_for_student(
                slot_id=slot.id, school_id=actor.school_id, student_id=actor.user_id
            )
            if claimed == 0:
                self.db.refresh(slot)
                if slot.passed:
                    raise SlotAlreadyCompletedException(slot.id)
                raise SlotAlreadyReservedException(slot.id)

            balance = self.hours_service.decrement(
                school_id=actor.school_id,
                user_id=actor.user_id,
                amount=1,
                reason=LedgerReason.RESERVATION,
                slot_id=slot.id,
                use_transaction=False,
            )
            self.event_publisher.publish(
                SlotReserved(
                    slot_id=slot.id,
                    school_id=slot.school_id,
                    student_id=actor.user_id,
                    hours_remaining=balance,
                )
            )

        self.logger.info("Slot %s reserved by %s (%s hours left)", slot.id, actor.user_id, balance)
        return slot

    # ------------------------------------------------------------------ cancel
    @BaseService.measure_operation("cancel_slot")
    def cancel_slot(self, actor: Actor, slot_id: str, now: Optional[datetime] = None) -> Optional[Slot]:
        """
        Cancel a slot.

        An open slot is deleted (instructor or admin only) and None is
        returned. A reserved slot goes back to open and the student gets
        their hour back; the reopened slot is returned.
        """
        slot = self._get_slot(actor, slot_id)
        if slot.passed:
            raise SlotAlreadyCompletedException(slot.id)

        if not slot.reserved:
            return self._delete_open_slot(actor, slot, now)

        self._require_participant(actor, slot)
        if self._has_started(slot, now):
            raise SlotAlreadyCompletedException(slot.id)

        student_id = slot.student_id
        if student_id is None:
            raise ConflictException(
                "This reservation has no student",
                code="SLOT_STATE_CHANGED",
                details={"slot_id": slot.id},
            )

        with self.transaction():
            released = self.slot_repository.release_reservation(
                slot_id=slot.id, school_id=actor.school_id, student_id=student_id
            )
            if released == 0:
                self.db.refresh(slot)
                if slot.passed:
                    raise SlotAlreadyCompletedException(slot.id)
                raise ConflictException(
                    "This reservation changed in the meantime",
                    code="SLOT_STATE_CHANGED",
                    details={"slot_id": slot.id},
                )

            balance = self.hours_service.increment(
                school_id=actor.school_id,
                user_id=student_id,
                amount=1,
                reason=LedgerReason.CANCELLATION_REFUND,
                slot_id=slot.id,
                use_transaction=False,
            )
            self.event_publisher.publish(
                SlotCancelled(
                    slot_id=slot.id,
                    school_id=slot.school_id,
                    student_id=student_id,
                    cancelled_by=actor.role.value,
                    hours_remaining=balance,
                )
            )

        self.logger.info(
            "Reservation of slot %s cancelled by %s, student %s refunded",
            slot.id,
            actor.user_id,
            student_id,
        )
        return slot

    def _delete_open_slot(self, actor: Actor, slot: Slot, now: Optional[datetime]) -> None:
        if actor.is_student:
            raise UnauthorizedActionException("Students can only cancel their own reservations")
        if actor.is_instructor and slot.instructor_id != actor.user_id:
            raise UnauthorizedActionException("This slot belongs to another instructor")
        if self._has_started(slot, now):
            raise InvalidScheduleException("This slot is already in the past", slot_id=slot.id)

        with self.transaction():
            deleted = self.slot_repository.delete_open(slot_id=slot.id, school_id=actor.school_id)
            if deleted == 0:
                raise SlotAlreadyReservedException(slot.id)
            self.event_publisher.publish(
                SlotDeleted(slot_id=slot.id, school_id=slot.school_id, deleted_by=actor.user_id)
            )

        self.logger.info("Open slot %s deleted by %s", slot.id, actor.user_id)
        return None

    # ----------------------------------------------------------------- comment
    @BaseService.measure_operation("record_instructor_comment")
    def record_instructor_comment(self, actor: Actor, slot_id: str, comment: str) -> Slot:
        """Attach the instructor's feedback to a lesson that took place (once)."""
        actor.require_role(RoleName.INSTRUCTOR, RoleName.ADMIN)
        slot = self._get_slot(actor, slot_id)
        if actor.is_instructor and slot.instructor_id != actor.user_id:
            raise UnauthorizedActionException("This slot belongs to another instructor")

        text = (comment or "").strip()
        if not text:
            raise ValidationException("Comment cannot be empty", code="EMPTY_COMMENT")
        if len(text) > MAX_SLOT_COMMENT_LENGTH:
            raise ValidationException(
                "Comment is too long",
                code="COMMENT_TOO_LONG",
                details={"max_length": MAX_SLOT_COMMENT_LENGTH},
            )
        if not slot.passed:
            raise SlotNotCompletedException(slot.id)
        if slot.instructor_comment is not None:
            raise CommentAlreadyRecordedException(slot.id)

        with self.transaction():
            written = self.slot_repository.set_comment_once(
                slot_id=slot.id,
                school_id=actor.school_id,
                comment=text,
                commented_at=ensure_aware(None),
            )
            if written == 0:
                raise CommentAlreadyRecordedException(slot.id)
            self.event_publisher.publish(
                SlotCommented(
                    slot_id=slot.id, school_id=slot.school_id, instructor_id=actor.user_id
                )
            )

        return slot

    # ------------------------------------------------------------------- sweep
    @BaseService.measure_operation("sweep_passed_slots")
    def sweep_passed_slots(
        self, now: Optional[datetime] = None, school_id: Optional[str] = None
    ) -> int:
        """
        Mark reserved slots whose lesson has ended as passed.

        A slot is due once its end time, in its school's timezone, is
        strictly before ``now``. Safe to run concurrently with itself and
        with bookings: the update only ever sets passed on rows that are
        still reserved and not yet passed. Never touches hours balances.

        Returns:
            Number of slots flipped by this run
        """
        current = ensure_aware(now)
        # No timezone is more than a day ahead of UTC
        candidates = self.slot_repository.find_sweep_candidates(
            up_to=(current + timedelta(days=1)).date(), school_id=school_id
        )
        due = [
            slot
            for slot, tz_name in candidates
            if localize_slot_time(slot.date, slot.end_time, tz_name) < current
        ]
        if not due:
            self.logger.debug("Sweep found nothing to update")
            return 0

        with self.transaction():
            updated = self.slot_repository.mark_passed([slot.id for slot in due])
            for slot in due:
                if not slot.passed:
                    continue
                self.event_publisher.publish(
                    SlotSwept(slot_id=slot.id, school_id=slot.school_id, student_id=slot.student_id)
                )

        prometheus_metrics.inc_slots_swept(updated)
        self.logger.info("Sweep marked %s of %s due slots as passed", updated, len(due))
        return updated

    # ------------------------------------------------------------ read models
    @BaseService.measure_operation("list_calendar")
    def list_calendar(self, actor: Actor, today: Optional[date] = None) -> List[Slot]:
        """Slots from today on; students see open slots and their own bookings."""
        start = today or school_today(self._school_timezone(actor.school_id))
        return self.slot_repository.list_calendar(
            school_id=actor.school_id,
            from_date=start,
            student_id=actor.user_id if actor.is_student else None,
        )

    @BaseService.measure_operation("list_my_slots")
    def list_my_slots(
        self, actor: Actor, view: SlotView | str, now: Optional[datetime] = None
    ) -> List[Slot]:
        try:
            view = SlotView(view)
        except ValueError:
            raise ValidationException("Unknown view", code="INVALID_VIEW", details={"view": view})

        owner = (
            {"student_id": actor.user_id}
            if actor.is_student
            else {"instructor_id": actor.user_id}
        )

        if view == SlotView.COMPLETED:
            return self.slot_repository.list_for_participant(
                school_id=actor.school_id, passed=True, **owner
            )

        if view == SlotView.PENDING and actor.is_student:
            raise ValidationException(
                "Only instructors have pending slots", code="INVALID_VIEW", details={"view": view}
            )

        slots = self.slot_repository.list_for_participant(
            school_id=actor.school_id,
            reserved=(view == SlotView.UPCOMING),
            passed=False,
            **owner,
        )
        return [slot for slot in slots if not self._has_started(slot, now)]

    # ----------------------------------------------------------------- helpers
    def _get_slot(self, actor: Actor, slot_id: str) -> Slot:
        # Rows of other schools look exactly like missing ones
        slot = self.slot_repository.get_for_school(slot_id, actor.school_id)
        if slot is None:
            raise NotFoundException(
                "Slot not found", code="SLOT_NOT_FOUND", details={"slot_id": slot_id}
            )
        return slot

    def _require_participant(self, actor: Actor, slot: Slot) -> None:
        if actor.is_admin:
            return
        if actor.is_instructor and slot.instructor_id == actor.user_id:
            return
        if actor.is_student and slot.student_id == actor.user_id:
            return
        raise UnauthorizedActionException("You are not part of this lesson")

    def _school_timezone(self, school_id: str) -> Optional[str]:
        school = self.school_repository.get_by_id(school_id)
        return school.timezone if school is not None else settings.default_school_timezone

    def _has_started(self, slot: Slot, now: Optional[datetime]) -> bool:
        starts_at = localize_slot_time(slot.date, slot.start_time, self._school_timezone(slot.school_id))
        return starts_at <= ensure_aware(now)
