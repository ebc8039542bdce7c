from dataclasses import dataclass
from datetime import date

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import ACTIVE_BOOKING_STATUSES, Appointment, AppointmentSettings
from .schemas import BookingAllowance, CustomerBooking, format_hh_mm, parse_slot

logger = structlog.get_logger("schedcore.booking_limits")


@dataclass(frozen=True)
class BookingLimitPolicy:
    """Daily booking limit, loaded once per request. None means unlimited."""

    daily_limit: int | None = None

    @property
    def unlimited(self) -> bool:
        return self.daily_limit is None


UNLIMITED = BookingLimitPolicy()


def load_booking_limit_policy(db: Session) -> BookingLimitPolicy:
    row = db.execute(
        select(AppointmentSettings)
        .where(AppointmentSettings.is_active.is_(True))
        .order_by(AppointmentSettings.updated_at.desc(), AppointmentSettings.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if row is None:
        return UNLIMITED
    limit = int(row.daily_booking_limit_per_user)
    if limit < 0:
        logger.warning("booking_limit_negative", settings_id=row.id, limit=limit)
        limit = 0
    return BookingLimitPolicy(daily_limit=limit)


def count_active_bookings(db: Session, customer_id: int, day: date) -> int:
    return int(
        db.execute(
            select(func.count(Appointment.id)).where(
                Appointment.user_id == customer_id,
                Appointment.appointment_date == day,
                Appointment.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        ).scalar_one()
    )


def _resolve(db: Session, day, policy: BookingLimitPolicy | None) -> tuple[date, BookingLimitPolicy]:
    day, _ = parse_slot(day)
    return day, policy if policy is not None else load_booking_limit_policy(db)


def has_reached_daily_limit(
    db: Session, customer_id: int, day, policy: BookingLimitPolicy | None = None
) -> bool:
    day, policy = _resolve(db, day, policy)
    if policy.unlimited:
        return False
    return count_active_bookings(db, customer_id, day) >= policy.daily_limit


def remaining_bookings(
    db: Session, customer_id: int, day, policy: BookingLimitPolicy | None = None
) -> int | None:
    """Bookings the customer may still make that day; None when unlimited."""
    day, policy = _resolve(db, day, policy)
    if policy.unlimited:
        return None
    return max(0, policy.daily_limit - count_active_bookings(db, customer_id, day))


def booking_allowance(
    db: Session, customer_id: int, day, policy: BookingLimitPolicy | None = None
) -> BookingAllowance:
    day, policy = _resolve(db, day, policy)
    used = count_active_bookings(db, customer_id, day)
    if policy.unlimited:
        return BookingAllowance(unlimited=True, used=used)
    return BookingAllowance(
        unlimited=False,
        limit=policy.daily_limit,
        used=used,
        remaining=max(0, policy.daily_limit - used),
    )


def list_customer_bookings(db: Session, customer_id: int, day) -> list[CustomerBooking]:
    day, _ = parse_slot(day)
    rows = (
        db.execute(
            select(Appointment)
            .where(
                Appointment.user_id == customer_id,
                Appointment.appointment_date == day,
                Appointment.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .order_by(Appointment.appointment_time.asc(), Appointment.id.asc())
        )
        .scalars()
        .all()
    )
    return [
        CustomerBooking(
            id=row.id,
            appointment_date=row.appointment_date,
            appointment_time=format_hh_mm(row.appointment_time),
            status=row.status,
            service_id=row.service_id,
        )
        for row in rows
    ]
