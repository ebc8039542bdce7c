from dataclasses import dataclass, field
from datetime import date, time

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .core.business_calendar import BusinessCalendar, default_calendar
from .core.weekdays import Weekday
from .models import STATUS_CANCELLED, Appointment, BlackoutDate, TimeSlotCapacity
from .schemas import (
    Availability,
    AvailabilityReason,
    AvailableSlot,
    InvalidSlotInput,
    format_hh_mm,
    parse_slot,
)

logger = structlog.get_logger("schedcore.availability")


@dataclass
class DayRules:
    """Constraint rows that apply to one calendar date."""

    day: date
    weekday: Weekday
    blackouts: list[BlackoutDate] = field(default_factory=list)
    weekday_buckets: list[TimeSlotCapacity] = field(default_factory=list)
    generic_buckets: list[TimeSlotCapacity] = field(default_factory=list)

    def find_bucket(self, at: time) -> TimeSlotCapacity | None:
        # An explicit weekday bucket wins over an all-weekdays bucket.
        for bucket in self.weekday_buckets + self.generic_buckets:
            if bucket.start_time <= at < bucket.end_time:
                return bucket
        return None


def _blackout_applies_to_day(rule: BlackoutDate, day: date, weekday: Weekday) -> bool:
    if not rule.is_recurring:
        return rule.date == day
    for raw in rule.recurring_days or []:
        parsed = Weekday.parse(raw)
        if parsed is None:
            logger.warning("blackout_rule_ignored", blackout_id=rule.id, weekday=raw)
            continue
        if parsed == weekday:
            return True
    return False


def _blackout_covers_time(rule: BlackoutDate, at: time | None) -> bool:
    if rule.start_time is None and rule.end_time is None:
        return True
    if at is None:
        return False
    start = rule.start_time or time.min
    if at < start:
        return False
    return rule.end_time is None or at < rule.end_time


def load_day_rules(db: Session, day: date) -> DayRules:
    weekday = Weekday.of(day)
    blackouts = (
        db.execute(
            select(BlackoutDate)
            .where(or_(BlackoutDate.date == day, BlackoutDate.is_recurring.is_(True)))
            .order_by(BlackoutDate.id.asc())
        )
        .scalars()
        .all()
    )
    rules = DayRules(
        day=day,
        weekday=weekday,
        blackouts=[b for b in blackouts if _blackout_applies_to_day(b, day, weekday)],
    )

    buckets = (
        db.execute(
            select(TimeSlotCapacity)
            .where(TimeSlotCapacity.is_active.is_(True))
            .order_by(TimeSlotCapacity.start_time.asc(), TimeSlotCapacity.id.asc())
        )
        .scalars()
        .all()
    )
    for bucket in buckets:
        if bucket.day_of_week is None or not bucket.day_of_week.strip():
            rules.generic_buckets.append(bucket)
            continue
        parsed = Weekday.parse(bucket.day_of_week)
        if parsed is None:
            logger.warning(
                "capacity_rule_ignored", capacity_id=bucket.id, weekday=bucket.day_of_week
            )
            continue
        if parsed == weekday:
            rules.weekday_buckets.append(bucket)
    return rules


def count_bucket_appointments(
    db: Session, day: date, bucket: TimeSlotCapacity, skip_appointment_id: int | None = None
) -> int:
    stmt = select(func.count(Appointment.id)).where(
        Appointment.appointment_date == day,
        Appointment.appointment_time >= bucket.start_time,
        Appointment.appointment_time < bucket.end_time,
        Appointment.status != STATUS_CANCELLED,
    )
    if skip_appointment_id is not None:
        stmt = stmt.where(Appointment.id != skip_appointment_id)
    return int(db.execute(stmt).scalar_one())


def _reason(kind: str, message: str) -> Availability:
    return Availability(bookable=False, reason=AvailabilityReason(kind=kind, message=message))


def check_closures(
    rules: DayRules, at: time | None, calendar: BusinessCalendar
) -> Availability | None:
    """Blackout and closed-day checks, in that order. None means open."""
    for rule in rules.blackouts:
        if not _blackout_covers_time(rule, at):
            continue
        reason_text = rule.reason or "Unavailable"
        if rule.start_time is None and rule.end_time is None:
            return _reason("blackout", f"All-day blackout: {reason_text}")
        return _reason("blackout", f"Time slot is blocked: {reason_text}")

    holiday = calendar.holiday_name(rules.day)
    if holiday:
        return _reason("closed", f"Closed for public holiday: {holiday}")

    if calendar.is_closed_weekday(rules.day) and not rules.weekday_buckets:
        if rules.weekday.is_weekend:
            return _reason("weekend", "Appointments cannot be booked on weekends")
        return _reason("closed", f"Closed on {rules.weekday.value.capitalize()}")
    return None


def evaluate_slot(
    db: Session,
    rules: DayRules,
    at: time,
    calendar: BusinessCalendar,
) -> Availability:
    closed = check_closures(rules, at, calendar)
    if closed is not None:
        return closed

    bucket = rules.find_bucket(at)
    if bucket is None:
        return _reason("default", "Outside business hours")

    booked = count_bucket_appointments(db, rules.day, bucket)
    capacity = int(bucket.max_appointments_per_slot)
    reason = None
    if booked >= capacity:
        reason = AvailabilityReason(
            kind="capacity",
            message="This time slot is at full capacity. Please select another time",
        )
    return Availability(
        bookable=reason is None,
        reason=reason,
        capacity_id=bucket.id,
        max_appointments=capacity,
        booked=booked,
    )


def is_bookable(
    db: Session,
    day,
    at,
    calendar: BusinessCalendar | None = None,
) -> Availability:
    """Decides whether ``day`` at ``at`` may take one more appointment.

    Checks run in order and stop at the first failure: blackout rules,
    closed days (configured weekdays without their own capacity bucket, and
    public holidays), then the matching capacity bucket and its current
    non-cancelled count. Malformed input raises ``InvalidSlotInput``.
    """
    day, at = parse_slot(day, at)
    if at is None:
        raise InvalidSlotInput("time is required")
    calendar = calendar or default_calendar()
    rules = load_day_rules(db, day)
    result = evaluate_slot(db, rules, at, calendar)
    if not result.bookable:
        logger.info(
            "slot_not_bookable",
            day=day.isoformat(),
            time=format_hh_mm(at),
            kind=result.reason.kind,
        )
    return result


def list_available_slots(
    db: Session, day, calendar: BusinessCalendar | None = None
) -> list[AvailableSlot]:
    day, _ = parse_slot(day)
    calendar = calendar or default_calendar()
    rules = load_day_rules(db, day)
    if check_closures(rules, None, calendar) is not None:
        return []

    out: list[AvailableSlot] = []
    for at in calendar.slot_grid():
        result = evaluate_slot(db, rules, at, calendar)
        if not result.bookable:
            continue
        out.append(
            AvailableSlot(
                time=format_hh_mm(at),
                display=at.strftime("%I:%M %p").lstrip("0"),
                capacity_remaining=result.remaining or 0,
            )
        )
    return out
