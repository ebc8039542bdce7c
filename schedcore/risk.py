from datetime import date

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .config import settings
from .core import scoring
from .core.weekdays import Weekday
from .models import STATUS_CANCELLED, STATUS_NO_SHOW, Appointment
from .schemas import (
    CancellationRiskNotice,
    InvalidSlotInput,
    RiskAssessment,
    RiskRecommendation,
    parse_slot,
)

logger = structlog.get_logger("schedcore.risk")

_HIGH_NO_SHOW_WEEKDAYS = (Weekday.MONDAY, Weekday.FRIDAY)


def _customer_status_counts(db: Session, customer_id: int) -> dict[str, int]:
    rows = db.execute(
        select(Appointment.status, func.count(Appointment.id))
        .where(Appointment.user_id == customer_id)
        .group_by(Appointment.status)
    ).all()
    return {status: int(count) for status, count in rows}


def risk_recommendations(level: str) -> list[RiskRecommendation]:
    return [
        RiskRecommendation(action=action, description=description, priority=priority)
        for action, description, priority in scoring.RISK_RECOMMENDATIONS[level]
    ]


def assess_appointment_risk(
    db: Session, appointment_id: int, today: date | None = None
) -> RiskAssessment | None:
    """Cancellation / no-show risk for one appointment, or None if unknown.

    The score is not clamped: a well-planned appointment from a customer
    with a clean history can go below zero.
    """
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        logger.info("risk_appointment_not_found", appointment_id=appointment_id)
        return None

    today = today or date.today()
    score = 0
    factors: list[str] = []

    counts = _customer_status_counts(db, appointment.user_id)
    total = sum(counts.values())
    if total > 0:
        no_show_rate = scoring.percentage(counts.get(STATUS_NO_SHOW, 0), total)
        cancellation_rate = scoring.percentage(counts.get(STATUS_CANCELLED, 0), total)

        no_show_points = scoring.step_above(no_show_rate, scoring.NO_SHOW_RATE_STEPS, 0)
        if no_show_points:
            score += no_show_points
            label = "High" if no_show_points == scoring.NO_SHOW_RATE_STEPS[0][1] else "Moderate"
            factors.append(f"{label} no-show history ({round(no_show_rate, 1)}%)")

        cancellation_points = scoring.step_above(
            cancellation_rate, scoring.CANCELLATION_RATE_STEPS, 0
        )
        if cancellation_points:
            score += cancellation_points
            factors.append(f"High cancellation rate ({round(cancellation_rate, 1)}%)")

    days_until = abs((appointment.appointment_date - today).days)
    if days_until <= scoring.LAST_MINUTE_DAYS:
        score += scoring.LAST_MINUTE_POINTS
        factors.append("Last-minute appointment")
    elif days_until > scoring.WELL_PLANNED_DAYS:
        score += scoring.WELL_PLANNED_POINTS
        factors.append("Well-planned appointment (low urgency)")

    hour = appointment.appointment_time.hour
    if settings.PEAK_WINDOW_START_HOUR <= hour <= settings.PEAK_WINDOW_END_HOUR:
        score += scoring.PEAK_HOURS_POINTS
        factors.append("During peak hours")

    if Weekday.of(appointment.appointment_date) in _HIGH_NO_SHOW_WEEKDAYS:
        score += scoring.HIGH_NO_SHOW_WEEKDAY_POINTS
        factors.append("Higher no-show day (Monday/Friday)")

    level = scoring.risk_level(score)
    logger.info(
        "risk_assessed",
        appointment_id=appointment_id,
        risk_level=level,
        risk_score=score,
    )
    return RiskAssessment(
        appointment_id=appointment_id,
        risk_level=level,
        risk_score=score,
        risk_factors=factors,
        recommendations=risk_recommendations(level),
    )


def cancellation_risk_notice(db: Session, day, at) -> CancellationRiskNotice:
    """Warns a customer that the exact time they picked is crowded."""
    day, at = parse_slot(day, at)
    if at is None:
        raise InvalidSlotInput("time is required")
    booked = int(
        db.execute(
            select(func.count(Appointment.id)).where(
                Appointment.appointment_date == day,
                Appointment.appointment_time == at,
                Appointment.status != STATUS_CANCELLED,
            )
        ).scalar_one()
    )
    capacity = max(1, int(settings.SLOT_NOTICE_CAPACITY))
    utilization = min(100, round(scoring.percentage(booked, capacity)))
    level = scoring.step_at_least(
        utilization, scoring.SLOT_NOTICE_STEPS, scoring.SLOT_NOTICE_FLOOR
    )
    messages = {
        "high": (
            "This time slot is very busy. If you need to cancel, it may be "
            "difficult to find another available slot."
        ),
        "medium": "This time slot is moderately busy. Cancellations may be limited.",
    }
    return CancellationRiskNotice(
        show_notice=level != "low",
        risk_level=level,
        utilization_rate=utilization,
        current_bookings=booked,
        message=messages.get(level),
    )
