from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from schedcore.core.business_calendar import BusinessCalendar
from schedcore.db import Base
from schedcore.models import (
    ROLE_CUSTOMER,
    ROLE_STAFF,
    Appointment,
    AppointmentSettings,
    BlackoutDate,
    TimeSlotCapacity,
    UnavailableDate,
    User,
)

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
WEDNESDAY = date(2026, 3, 4)
FRIDAY = date(2026, 3, 6)
SATURDAY = date(2026, 3, 7)


def make_session(tmp_path):
    db_path = tmp_path / "test_schedcore.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    testing_session_local = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    return testing_session_local


@pytest.fixture
def session_factory(tmp_path):
    return make_session(tmp_path)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def calendar():
    return BusinessCalendar(
        closed_weekdays=["saturday", "sunday"],
        holiday_country="",
        open_time=time(9, 0),
        close_time=time(17, 0),
        step_minutes=30,
    )


def hhmm(raw: str) -> time:
    return time.fromisoformat(raw)


def add_user(db, email, role=ROLE_CUSTOMER, first_name="", last_name="") -> User:
    user = User(email=email, role=role, first_name=first_name, last_name=last_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_staff(db, email, first_name="Staff", last_name="") -> User:
    return add_user(db, email, role=ROLE_STAFF, first_name=first_name, last_name=last_name)


def add_appointment(
    db,
    customer,
    day,
    at,
    status="pending",
    staff=None,
    service_type=None,
    created_at: datetime | None = None,
) -> Appointment:
    row = Appointment(
        user_id=customer.id,
        staff_id=staff.id if staff else None,
        appointment_date=day,
        appointment_time=hhmm(at),
        status=status,
        service_type=service_type,
    )
    if created_at is not None:
        row.created_at = created_at
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def add_bucket(db, start, end, max_per_slot=3, weekday=None, is_active=True) -> TimeSlotCapacity:
    row = TimeSlotCapacity(
        day_of_week=weekday,
        start_time=hhmm(start),
        end_time=hhmm(end),
        max_appointments_per_slot=max_per_slot,
        is_active=is_active,
    )
    db.add(row)
    db.commit()
    return row


def add_workday_buckets(db, max_per_slot=3):
    """Generic hourly buckets 09:00-17:00 for every weekday."""
    for hour in range(9, 17):
        add_bucket(db, f"{hour:02d}:00", f"{hour + 1:02d}:00", max_per_slot=max_per_slot)


def add_blackout(db, day, reason="Closed", start=None, end=None, recurring_days=None) -> BlackoutDate:
    row = BlackoutDate(
        date=day,
        reason=reason,
        start_time=hhmm(start) if start else None,
        end_time=hhmm(end) if end else None,
        is_recurring=recurring_days is not None,
        recurring_days=recurring_days,
    )
    db.add(row)
    db.commit()
    return row


def add_limit(db, limit, is_active=True) -> AppointmentSettings:
    row = AppointmentSettings(daily_booking_limit_per_user=limit, is_active=is_active)
    db.add(row)
    db.commit()
    return row


def add_unavailable(db, staff, day) -> UnavailableDate:
    row = UnavailableDate(user_id=staff.id, date=day, reason="Leave")
    db.add(row)
    db.commit()
    return row
