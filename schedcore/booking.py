from datetime import date, time

import structlog
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .alternatives import suggest_alternatives
from .availability import count_bucket_appointments, evaluate_slot, load_day_rules
from .booking_limits import BookingLimitPolicy, count_active_bookings, load_booking_limit_policy
from .config import settings
from .core.business_calendar import BusinessCalendar, default_calendar
from .models import STATUS_PENDING, Appointment, TimeSlotCapacity, User
from .schemas import (
    AvailabilityReason,
    BookingOutcome,
    InvalidSlotInput,
    format_hh_mm,
    parse_slot,
)

logger = structlog.get_logger("schedcore.booking")


class SlotConflict(Exception):
    """A concurrent booking won the last seat between check and insert."""


def _remaining(policy: BookingLimitPolicy, active: int) -> int | None:
    if policy.unlimited:
        return None
    return max(0, policy.daily_limit - active)


def _book_once(
    db: Session,
    customer_id: int,
    day: date,
    at: time,
    policy: BookingLimitPolicy,
    calendar: BusinessCalendar,
    fields: dict,
) -> BookingOutcome:
    # Row locks serialize bookings per customer and per bucket on databases
    # that support SELECT ... FOR UPDATE; SQLite relies on its write lock and
    # the re-count below.
    customer = db.execute(
        select(User).where(User.id == customer_id).with_for_update()
    ).scalar_one_or_none()
    if customer is None:
        db.rollback()
        raise ValueError("Unknown customer")

    if not policy.unlimited:
        active = count_active_bookings(db, customer_id, day)
        if active >= policy.daily_limit:
            logger.info(
                "booking_rejected",
                kind="daily_limit",
                customer_id=customer_id,
                email=customer.email,
                day=day.isoformat(),
            )
            db.rollback()
            return BookingOutcome(
                accepted=False,
                reason=AvailabilityReason(
                    kind="daily_limit",
                    message=(
                        "You have reached your daily booking limit of "
                        f"{policy.daily_limit} appointments for this day"
                    ),
                ),
                remaining_bookings=0,
            )

    rules = load_day_rules(db, day)
    bucket = rules.find_bucket(at)
    if bucket is not None:
        db.execute(
            select(TimeSlotCapacity.id).where(TimeSlotCapacity.id == bucket.id).with_for_update()
        )
    availability = evaluate_slot(db, rules, at, calendar)
    if not availability.bookable:
        db.rollback()
        logger.info(
            "booking_rejected",
            kind=availability.reason.kind,
            customer_id=customer_id,
            day=day.isoformat(),
            time=format_hh_mm(at),
        )
        return BookingOutcome(
            accepted=False,
            reason=availability.reason,
            alternatives=suggest_alternatives(db, day, at, calendar=calendar),
        )

    appointment = Appointment(
        user_id=customer_id,
        appointment_date=day,
        appointment_time=at,
        status=STATUS_PENDING,
        **fields,
    )
    db.add(appointment)
    db.flush()

    if count_bucket_appointments(db, day, bucket) > int(bucket.max_appointments_per_slot):
        raise SlotConflict("capacity")
    active = count_active_bookings(db, customer_id, day)
    if not policy.unlimited and active > policy.daily_limit:
        raise SlotConflict("daily_limit")

    db.commit()
    db.refresh(appointment)
    logger.info(
        "booking_created",
        appointment_id=appointment.id,
        customer_id=customer_id,
        day=day.isoformat(),
        time=format_hh_mm(at),
    )
    return BookingOutcome(
        accepted=True,
        appointment_id=appointment.id,
        remaining_bookings=_remaining(policy, active),
    )


def book_appointment(
    db: Session,
    customer_id: int,
    day,
    at,
    service_id: int | None = None,
    service_type: str | None = None,
    staff_id: int | None = None,
    notes: str | None = None,
    policy: BookingLimitPolicy | None = None,
    calendar: BusinessCalendar | None = None,
) -> BookingOutcome:
    """Creates a pending appointment if the customer and the slot allow it.

    The daily limit is checked first, then availability. Both checks are
    repeated after the insert inside the same transaction; a breach rolls
    back and the whole attempt is retried, which then rejects normally.
    """
    day, at = parse_slot(day, at)
    if at is None:
        raise InvalidSlotInput("time is required")
    policy = policy if policy is not None else load_booking_limit_policy(db)
    calendar = calendar or default_calendar()
    fields = {
        "service_id": service_id,
        "service_type": (service_type or "").strip() or None,
        "staff_id": staff_id,
        "notes": (notes or "").strip() or None,
    }

    attempts = max(1, int(settings.BOOKING_MAX_RETRIES))
    for attempt in range(1, attempts + 1):
        try:
            return _book_once(db, customer_id, day, at, policy, calendar, fields)
        except SlotConflict as exc:
            db.rollback()
            logger.warning(
                "booking_conflict", attempt=attempt, kind=str(exc), customer_id=customer_id
            )
        except OperationalError:
            db.rollback()
            if attempt == attempts:
                raise
            logger.warning("booking_lock_retry", attempt=attempt, customer_id=customer_id)

    return BookingOutcome(
        accepted=False,
        reason=AvailabilityReason(
            kind="capacity",
            message="This time slot is at full capacity. Please select another time",
        ),
        alternatives=suggest_alternatives(db, day, at, calendar=calendar),
    )
