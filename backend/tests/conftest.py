# backend/tests/conftest.py
"""
Pytest configuration.

Every test gets its own in-memory SQLite database (StaticPool, so the
session and the app share one connection) with the full schema created
from the models. Nothing here can reach a real database or Stripe.
"""

import os
import sys

# Set testing mode BEFORE any app imports
os.environ["is_testing"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["AUTH_JWT_SECRET"] = "test-auth-secret"
os.environ["SWEEP_TRIGGER_TOKEN"] = "test-sweep-token"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["METRICS_ENABLED"] = "false"

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from datetime import date, time
from typing import Callable, Iterator, Optional

import pytest
from sqlalchemy.orm import Session, sessionmaker
import ulid

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.core.enums import RoleName, Transmission
from app.database import Base, build_engine
from app.models.package import Package, PriceListEntry
from app.models.payment import StripeCustomer
from app.models.school import School
from app.models.slot import Slot
from app.models.user import User
from support import LESSON_DAY, LESSON_END, LESSON_START


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    """A fresh session per test."""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def school(db: Session) -> School:
    s = School(name="Auto-École du Centre", slug=f"centre-{ulid.ULID()}", timezone="Europe/Paris")
    db.add(s)
    db.commit()
    return s


@pytest.fixture
def other_school(db: Session) -> School:
    s = School(name="Auto-École du Port", slug=f"port-{ulid.ULID()}", timezone="Europe/Paris")
    db.add(s)
    db.commit()
    return s


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make(school: School, role: RoleName = RoleName.STUDENT, hours: int = 0, **kwargs) -> User:
        user = User(
            id=str(ulid.ULID()),
            school_id=school.id,
            email=f"{role.value}_{ulid.ULID()}@example.com",
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", role.value.title()),
            role=role.value,
            hours_remaining=hours,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def student(school: School, make_user) -> User:
    return make_user(school, RoleName.STUDENT, hours=3)


@pytest.fixture
def instructor(school: School, make_user) -> User:
    return make_user(school, RoleName.INSTRUCTOR)


@pytest.fixture
def admin(school: School, make_user) -> User:
    return make_user(school, RoleName.ADMIN)


@pytest.fixture
def make_slot(db: Session, instructor: User) -> Callable[..., Slot]:
    """Insert a slot row directly, bypassing the 'future only' check."""

    def _make(
        *,
        day: date = LESSON_DAY,
        start: time = LESSON_START,
        end: time = LESSON_END,
        student: Optional[User] = None,
        passed: bool = False,
        owner: Optional[User] = None,
    ) -> Slot:
        owner = owner or instructor
        slot = Slot(
            school_id=owner.school_id,
            instructor_id=owner.id,
            student_id=student.id if student else None,
            date=day,
            start_time=start,
            end_time=end,
            vehicle="Peugeot 208",
            transmission=Transmission.MANUAL.value,
            reserved=student is not None,
            passed=passed,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def package_5h(db: Session, school: School) -> Package:
    package = Package(school_id=school.id, name="Forfait 5h", price_cents=25000, hours=5)
    db.add(package)
    db.flush()
    db.add(PriceListEntry(school_id=school.id, amount_cents=25000, currency="EUR", package_id=package.id))
    db.commit()
    return package


@pytest.fixture
def stripe_customer(db: Session, student: User) -> StripeCustomer:
    customer = StripeCustomer(user_id=student.id, stripe_customer_id="cus_test_student")
    db.add(customer)
    db.commit()
    return customer
