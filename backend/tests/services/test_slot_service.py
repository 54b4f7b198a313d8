# backend/tests/services/test_slot_service.py
"""
Tests for SlotService: creation, reservation, cancellation, comments and
the passed-lesson sweep.
"""

from datetime import date, datetime, time, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.core.enums import RoleName, SlotView
from app.core.exceptions import (
    CommentAlreadyRecordedException,
    ConflictException,
    InsufficientHoursException,
    InvalidScheduleException,
    NotFoundException,
    SlotAlreadyCompletedException,
    SlotAlreadyReservedException,
    SlotNotCompletedException,
    UnauthorizedActionException,
    ValidationException,
)
from app.models.hours_ledger import HoursLedgerEntry
from app.models.slot import Slot
from app.models.user import User
from app.repositories.event_outbox_repository import EventOutboxRepository
from app.services.slot_service import SlotService
from support import (
    AFTER_LESSON,
    BEFORE_LESSON,
    DURING_LESSON,
    LESSON_DAY,
    LESSON_END_UTC,
    LESSON_START,
    actor_for,
)


@pytest.fixture
def slot_service(db: Session) -> SlotService:
    return SlotService(db)


def _events(db: Session, slot_id: str) -> list[str]:
    return [row.event_type for row in EventOutboxRepository(db).list_for_aggregate(slot_id)]


# ---------------------------------------------------------------- create


def test_instructor_creates_one_hour_slot(slot_service, db, instructor):
    slot = slot_service.create_slot(
        actor_for(instructor),
        date=LESSON_DAY,
        start_time=LESSON_START,
        vehicle="  Clio V ",
        transmission="automatic",
        now=BEFORE_LESSON,
    )

    assert slot.state == "open"
    assert slot.reserved is False and slot.student_id is None
    assert slot.end_time == time(11, 0)
    assert slot.vehicle == "Clio V"
    assert slot.instructor_id == instructor.id
    assert _events(db, slot.id) == ["SlotCreated"]


def test_student_cannot_create_slot(slot_service, student):
    with pytest.raises(UnauthorizedActionException):
        slot_service.create_slot(
            actor_for(student),
            date=LESSON_DAY,
            start_time=LESSON_START,
            vehicle="Clio",
            transmission="manual",
            now=BEFORE_LESSON,
        )


@pytest.mark.parametrize("now", [LESSON_END_UTC - timedelta(hours=1), AFTER_LESSON])
def test_slot_must_start_in_the_future(slot_service, instructor, now):
    # 10:00 Paris is 08:00 UTC: a slot starting exactly "now" is rejected
    with pytest.raises(InvalidScheduleException):
        slot_service.create_slot(
            actor_for(instructor),
            date=LESSON_DAY,
            start_time=LESSON_START,
            vehicle="Clio",
            transmission="manual",
            now=now,
        )


def test_slot_cannot_run_past_midnight(slot_service, instructor):
    with pytest.raises(InvalidScheduleException):
        slot_service.create_slot(
            actor_for(instructor),
            date=LESSON_DAY,
            start_time=time(23, 30),
            vehicle="Clio",
            transmission="manual",
            now=BEFORE_LESSON,
        )


@pytest.mark.parametrize(
    "vehicle,transmission,code",
    [("", "manual", "INVALID_VEHICLE"), ("Clio", "hover", "INVALID_TRANSMISSION")],
)
def test_create_slot_validates_input(slot_service, instructor, vehicle, transmission, code):
    with pytest.raises(ValidationException) as exc_info:
        slot_service.create_slot(
            actor_for(instructor),
            date=LESSON_DAY,
            start_time=LESSON_START,
            vehicle=vehicle,
            transmission=transmission,
            now=BEFORE_LESSON,
        )
    assert exc_info.value.code == code


# --------------------------------------------------------------- reserve


def test_reserve_debits_one_hour(slot_service, db, student, make_slot):
    slot = make_slot()

    reserved = slot_service.reserve_slot(actor_for(student), slot.id, now=BEFORE_LESSON)

    assert reserved.reserved is True
    assert reserved.student_id == student.id
    db.refresh(student)
    assert student.hours_remaining == 2
    entry = db.query(HoursLedgerEntry).filter_by(user_id=student.id).one()
    assert (entry.delta, entry.balance_after, entry.reason) == (-1, 2, "reservation")
    assert entry.slot_id == slot.id
    assert "SlotReserved" in _events(db, slot.id)


def test_reserve_already_reserved_slot_fails(slot_service, db, school, student, make_user, make_slot):
    other = make_user(school, RoleName.STUDENT, hours=5)
    slot = make_slot(student=other)

    with pytest.raises(SlotAlreadyReservedException):
        slot_service.reserve_slot(actor_for(student), slot.id, now=BEFORE_LESSON)

    db.refresh(student)
    assert student.hours_remaining == 3


def test_reserve_without_hours_leaves_slot_open(slot_service, db, school, make_user, make_slot):
    broke = make_user(school, RoleName.STUDENT, hours=0)
    slot = make_slot()

    with pytest.raises(InsufficientHoursException):
        slot_service.reserve_slot(actor_for(broke), slot.id, now=BEFORE_LESSON)

    db.expire_all()
    reloaded = db.get(Slot, slot.id)
    assert reloaded.reserved is False
    assert reloaded.student_id is None
    assert db.get(User, broke.id).hours_remaining == 0
    assert "SlotReserved" not in _events(db, slot.id)


def test_reserve_started_slot_is_rejected(slot_service, student, make_slot):
    slot = make_slot()
    with pytest.raises(InvalidScheduleException):
        slot_service.reserve_slot(actor_for(student), slot.id, now=DURING_LESSON)


def test_reserve_completed_slot_is_rejected(slot_service, school, student, make_user, make_slot):
    slot = make_slot(student=make_user(school, RoleName.STUDENT), passed=True)
    with pytest.raises(SlotAlreadyCompletedException):
        slot_service.reserve_slot(actor_for(student), slot.id, now=BEFORE_LESSON)


def test_only_students_reserve(slot_service, instructor, make_slot):
    slot = make_slot()
    with pytest.raises(UnauthorizedActionException):
        slot_service.reserve_slot(actor_for(instructor), slot.id, now=BEFORE_LESSON)


def test_slot_of_another_school_is_not_found(slot_service, other_school, make_user, make_slot):
    outsider = make_user(other_school, RoleName.STUDENT, hours=3)
    slot = make_slot()
    with pytest.raises(NotFoundException) as exc_info:
        slot_service.reserve_slot(actor_for(outsider), slot.id, now=BEFORE_LESSON)
    assert exc_info.value.code == "SLOT_NOT_FOUND"


# ---------------------------------------------------------------- cancel


def test_reserve_then_cancel_is_hours_neutral(slot_service, db, student, make_slot):
    slot = make_slot()
    actor = actor_for(student)

    slot_service.reserve_slot(actor, slot.id, now=BEFORE_LESSON)
    reopened = slot_service.cancel_slot(actor, slot.id, now=BEFORE_LESSON)

    assert reopened is not None
    assert reopened.state == "open"
    assert reopened.student_id is None
    db.refresh(student)
    assert student.hours_remaining == 3
    reasons = [
        e.reason
        for e in db.query(HoursLedgerEntry)
        .filter_by(user_id=student.id)
        .order_by(HoursLedgerEntry.created_at)
    ]
    assert sorted(reasons) == ["cancellation_refund", "reservation"]
    assert {"SlotReserved", "SlotCancelled"} <= set(_events(db, slot.id))


def test_instructor_cancels_reservation_and_student_is_refunded(
    slot_service, db, student, instructor, make_slot
):
    slot = make_slot(student=student)

    slot_service.cancel_slot(actor_for(instructor), slot.id, now=BEFORE_LESSON)

    db.refresh(student)
    assert student.hours_remaining == 4


def test_other_student_cannot_cancel(slot_service, school, student, make_user, make_slot):
    slot = make_slot(student=student)
    intruder = make_user(school, RoleName.STUDENT, hours=1)
    with pytest.raises(UnauthorizedActionException):
        slot_service.cancel_slot(actor_for(intruder), slot.id, now=BEFORE_LESSON)


def test_cancel_after_start_is_rejected(slot_service, db, student, make_slot):
    slot = make_slot(student=student)
    with pytest.raises(SlotAlreadyCompletedException):
        slot_service.cancel_slot(actor_for(student), slot.id, now=DURING_LESSON)
    db.refresh(student)
    assert student.hours_remaining == 3


def test_passed_slot_cannot_be_cancelled(slot_service, student, make_slot):
    slot = make_slot(student=student, passed=True)
    with pytest.raises(SlotAlreadyCompletedException):
        slot_service.cancel_slot(actor_for(student), slot.id, now=AFTER_LESSON)


def test_instructor_cancelling_open_slot_deletes_it(slot_service, db, instructor, make_slot):
    slot = make_slot()
    slot_id = slot.id

    result = slot_service.cancel_slot(actor_for(instructor), slot_id, now=BEFORE_LESSON)

    assert result is None
    db.expire_all()
    assert db.get(Slot, slot_id) is None
    assert _events(db, slot_id) == ["SlotDeleted"]


def test_student_cannot_delete_open_slot(slot_service, db, student, make_slot):
    slot = make_slot()
    with pytest.raises(UnauthorizedActionException):
        slot_service.cancel_slot(actor_for(student), slot.id, now=BEFORE_LESSON)
    assert db.get(Slot, slot.id) is not None


def test_instructor_cannot_delete_colleague_slot(slot_service, school, make_user, make_slot):
    slot = make_slot()
    colleague = make_user(school, RoleName.INSTRUCTOR)
    with pytest.raises(UnauthorizedActionException):
        slot_service.cancel_slot(actor_for(colleague), slot.id, now=BEFORE_LESSON)


def test_admin_deletes_any_open_slot(slot_service, admin, make_slot):
    slot = make_slot()
    assert slot_service.cancel_slot(actor_for(admin), slot.id, now=BEFORE_LESSON) is None


# --------------------------------------------------------------- comment


def test_comment_requires_passed_lesson(slot_service, instructor, student, make_slot):
    slot = make_slot(student=student)
    with pytest.raises(SlotNotCompletedException):
        slot_service.record_instructor_comment(actor_for(instructor), slot.id, "Bonne conduite")


def test_comment_is_first_write_wins(slot_service, db, instructor, student, make_slot):
    slot = make_slot(student=student, passed=True)
    actor = actor_for(instructor)

    commented = slot_service.record_instructor_comment(actor, slot.id, "  Bonne conduite ")
    assert commented.instructor_comment == "Bonne conduite"
    assert commented.commented_at is not None

    with pytest.raises(CommentAlreadyRecordedException):
        slot_service.record_instructor_comment(actor, slot.id, "Second avis")

    db.expire_all()
    assert db.get(Slot, slot.id).instructor_comment == "Bonne conduite"
    assert _events(db, slot.id) == ["SlotCommented"]


def test_empty_comment_is_rejected(slot_service, instructor, student, make_slot):
    slot = make_slot(student=student, passed=True)
    with pytest.raises(ValidationException):
        slot_service.record_instructor_comment(actor_for(instructor), slot.id, "   ")


def test_students_cannot_comment(slot_service, student, make_slot):
    slot = make_slot(student=student, passed=True)
    with pytest.raises(UnauthorizedActionException):
        slot_service.record_instructor_comment(actor_for(student), slot.id, "Super")


# ----------------------------------------------------------------- sweep


def test_sweep_uses_lesson_end_time(slot_service, db, student, make_slot):
    slot = make_slot(student=student)

    assert slot_service.sweep_passed_slots(now=DURING_LESSON) == 0
    assert slot_service.sweep_passed_slots(now=LESSON_END_UTC) == 0
    assert slot_service.sweep_passed_slots(now=AFTER_LESSON) == 1

    db.expire_all()
    assert db.get(Slot, slot.id).passed is True


def test_sweep_ignores_open_slots_and_leaves_hours_alone(slot_service, db, student, make_slot):
    reserved = make_slot(student=student)
    open_slot = make_slot()

    updated = slot_service.sweep_passed_slots(now=AFTER_LESSON)

    assert updated == 1
    db.expire_all()
    assert db.get(Slot, reserved.id).passed is True
    assert db.get(Slot, open_slot.id).passed is False
    assert db.get(User, student.id).hours_remaining == 3
    assert db.query(HoursLedgerEntry).count() == 0


def test_sweep_is_idempotent(slot_service, db, student, make_slot):
    slot = make_slot(student=student)

    assert slot_service.sweep_passed_slots(now=AFTER_LESSON) == 1
    assert slot_service.sweep_passed_slots(now=AFTER_LESSON + timedelta(days=1)) == 0

    assert _events(db, slot.id) == ["SlotSwept"]


def test_sweep_respects_school_timezone(slot_service, db, school, student, make_slot):
    slot = make_slot(student=student, day=date(2030, 1, 10), start=time(21, 0), end=time(22, 0))
    # 22:00 in Paris during winter is 21:00 UTC
    assert slot_service.sweep_passed_slots(now=datetime(2030, 1, 10, 20, 59, tzinfo=timezone.utc)) == 0
    assert slot_service.sweep_passed_slots(now=datetime(2030, 1, 10, 21, 0, 1, tzinfo=timezone.utc)) == 1
    db.expire_all()
    assert db.get(Slot, slot.id).passed is True


# ------------------------------------------------------------ read models


def test_calendar_hides_other_students_bookings(slot_service, school, student, make_user, make_slot):
    mine = make_slot(student=student)
    theirs = make_slot(student=make_user(school, RoleName.STUDENT), start=time(14, 0), end=time(15, 0))
    free = make_slot(start=time(16, 0), end=time(17, 0))

    ids = {s.id for s in slot_service.list_calendar(actor_for(student), today=LESSON_DAY)}

    assert ids == {mine.id, free.id}
    assert theirs.id not in ids


def test_my_slots_views(slot_service, instructor, student, make_slot):
    upcoming = make_slot(student=student)
    done = make_slot(student=student, day=date(2030, 5, 1), passed=True)
    pending = make_slot(start=time(14, 0), end=time(15, 0))

    assert [s.id for s in slot_service.list_my_slots(actor_for(student), SlotView.UPCOMING, BEFORE_LESSON)] == [
        upcoming.id
    ]
    assert [s.id for s in slot_service.list_my_slots(actor_for(student), "completed", BEFORE_LESSON)] == [done.id]
    assert [s.id for s in slot_service.list_my_slots(actor_for(instructor), "pending", BEFORE_LESSON)] == [
        pending.id
    ]

    with pytest.raises(ValidationException):
        slot_service.list_my_slots(actor_for(student), "pending", BEFORE_LESSON)
    with pytest.raises(ValidationException):
        slot_service.list_my_slots(actor_for(student), "someday", BEFORE_LESSON)


# ------------------------------------------------------ concurrent writers
#
# A second session commits between the service's read of the slot and its
# conditional UPDATE, so only the database guard can catch the conflict.


@pytest.fixture
def rival_session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def _run(work):
        with factory() as other:
            work(SlotService(other))

    return _run


def _interleave(monkeypatch, slot_service, rival_session, work):
    load_slot = slot_service._get_slot

    def _get_slot_then_race(actor, slot_id):
        slot = load_slot(actor, slot_id)
        rival_session(work)
        return slot

    monkeypatch.setattr(slot_service, "_get_slot", _get_slot_then_race)


def test_reserve_lost_race_leaves_loser_hours_untouched(
    monkeypatch, slot_service, rival_session, db, school, student, make_user, make_slot
):
    slot = make_slot()
    rival = make_user(school, RoleName.STUDENT, hours=2)
    _interleave(
        monkeypatch,
        slot_service,
        rival_session,
        lambda other: other.reserve_slot(actor_for(rival), slot.id, now=BEFORE_LESSON),
    )

    with pytest.raises(SlotAlreadyReservedException):
        slot_service.reserve_slot(actor_for(student), slot.id, now=BEFORE_LESSON)

    db.expire_all()
    assert db.get(Slot, slot.id).student_id == rival.id
    assert db.get(User, student.id).hours_remaining == 3
    assert db.get(User, rival.id).hours_remaining == 1
    assert db.query(HoursLedgerEntry).filter_by(user_id=student.id).count() == 0


def test_cancel_lost_race_refunds_once(
    monkeypatch, slot_service, rival_session, db, student, instructor, make_slot
):
    slot = make_slot(student=student)
    _interleave(
        monkeypatch,
        slot_service,
        rival_session,
        lambda other: other.cancel_slot(actor_for(instructor), slot.id, now=BEFORE_LESSON),
    )

    with pytest.raises(ConflictException) as exc_info:
        slot_service.cancel_slot(actor_for(student), slot.id, now=BEFORE_LESSON)
    assert exc_info.value.code == "SLOT_STATE_CHANGED"

    db.expire_all()
    assert db.get(User, student.id).hours_remaining == 4
    refunds = db.query(HoursLedgerEntry).filter_by(reason="cancellation_refund").count()
    assert refunds == 1


def test_cancel_racing_the_sweep_is_completed(
    monkeypatch, slot_service, rival_session, db, student, make_slot
):
    slot = make_slot(student=student)
    _interleave(
        monkeypatch,
        slot_service,
        rival_session,
        lambda other: other.sweep_passed_slots(now=AFTER_LESSON),
    )

    with pytest.raises(SlotAlreadyCompletedException):
        slot_service.cancel_slot(actor_for(student), slot.id, now=BEFORE_LESSON)

    db.expire_all()
    assert db.get(Slot, slot.id).passed is True
    assert db.get(User, student.id).hours_remaining == 3


def test_concurrent_sweeps_flip_and_announce_once(
    monkeypatch, slot_service, rival_session, db, student, make_slot
):
    slot = make_slot(student=student)
    load_candidates = slot_service.slot_repository.find_sweep_candidates

    def _candidates_then_race(**kwargs):
        candidates = load_candidates(**kwargs)
        rival_session(lambda other: other.sweep_passed_slots(now=AFTER_LESSON))
        return candidates

    monkeypatch.setattr(
        slot_service.slot_repository, "find_sweep_candidates", _candidates_then_race
    )

    assert slot_service.sweep_passed_slots(now=AFTER_LESSON) == 0

    db.expire_all()
    assert db.get(Slot, slot.id).passed is True
    assert _events(db, slot.id) == ["SlotSwept"]


def test_reserved_slot_without_student_is_a_conflict(slot_service, school, admin, instructor):
    broken = Slot(
        id="01JBROKENSLOT0000000000000",
        school_id=school.id,
        instructor_id=instructor.id,
        student_id=None,
        date=LESSON_DAY,
        start_time=LESSON_START,
        end_time=time(11, 0),
        vehicle="Peugeot 208",
        transmission="manual",
        reserved=True,
        passed=False,
    )
    slot_service.slot_repository = MagicMock()
    slot_service.slot_repository.get_for_school.return_value = broken

    with pytest.raises(ConflictException):
        slot_service.cancel_slot(actor_for(admin), broken.id, now=BEFORE_LESSON)
    slot_service.slot_repository.release_reservation.assert_not_called()
