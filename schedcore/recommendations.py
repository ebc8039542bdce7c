import calendar as _calendar
from datetime import date, datetime, time

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .config import settings
from .core import scoring
from .core.business_calendar import BusinessCalendar, default_calendar
from .models import (
    ROLE_STAFF,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    Appointment,
    UnavailableDate,
    User,
    utc_now_naive,
)
from .schemas import (
    DecisionDashboard,
    InvalidSlotInput,
    SlotScore,
    StaffScore,
    WorkloadEntry,
    format_hh_mm,
    parse_slot,
)

logger = structlog.get_logger("schedcore.recommendations")


def months_before(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, _calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def list_staff(db: Session) -> list[User]:
    return (
        db.execute(
            select(User)
            .where(User.role == ROLE_STAFF, User.is_active.is_(True))
            .order_by(User.id.asc())
        )
        .scalars()
        .all()
    )


def _count(db: Session, *conditions) -> int:
    return int(db.execute(select(func.count(Appointment.id)).where(*conditions)).scalar_one())


def is_staff_available(db: Session, staff_id: int, day: date, at: time) -> bool:
    unavailable = db.execute(
        select(UnavailableDate.id).where(
            UnavailableDate.user_id == staff_id, UnavailableDate.date == day
        )
    ).first()
    if unavailable is not None:
        return False
    conflicts = _count(
        db,
        Appointment.staff_id == staff_id,
        Appointment.appointment_date == day,
        Appointment.appointment_time == at,
        Appointment.status != STATUS_CANCELLED,
    )
    return conflicts == 0


def score_staff_member(
    db: Session,
    staff: User,
    day: date,
    at: time,
    service_type: str | None = None,
    customer_id: int | None = None,
    now: datetime | None = None,
) -> StaffScore:
    base = {"staff_id": staff.id, "name": staff.full_name, "email": staff.email}
    if not is_staff_available(db, staff.id, day, at):
        return StaffScore(
            **base,
            score=0,
            available=False,
            reasoning=["Not available on this date/time"],
        )

    details: dict[str, int] = {}
    reasoning: list[str] = []

    workload = scoring.workload_points(
        _count(
            db,
            Appointment.staff_id == staff.id,
            Appointment.appointment_date == day,
            Appointment.status != STATUS_CANCELLED,
        )
    )
    if workload > 0:
        details["workload"] = workload
        reasoning.append(
            "Workload: " + ("Light schedule" if workload >= 20 else "Moderate schedule")
        )

    if service_type:
        specialization = scoring.specialization_points(
            _count(
                db,
                Appointment.staff_id == staff.id,
                Appointment.service_type == service_type,
                Appointment.status == STATUS_COMPLETED,
            )
        )
        if specialization > 0:
            details["specialization"] = specialization
            reasoning.append(
                "Specialization match: " + ("Excellent" if specialization >= 15 else "Good")
            )

    if customer_id:
        history = scoring.customer_history_points(
            _count(
                db,
                Appointment.staff_id == staff.id,
                Appointment.user_id == customer_id,
                Appointment.status == STATUS_COMPLETED,
            )
        )
        if history > 0:
            details["customer_history"] = history
            reasoning.append("Customer history: Previous positive interactions")

    performance = scoring.performance_points(
        _count(db, Appointment.staff_id == staff.id, Appointment.status == STATUS_COMPLETED),
        _count(db, Appointment.staff_id == staff.id, Appointment.status != STATUS_CANCELLED),
    )
    if performance > 0:
        details["performance"] = performance
        reasoning.append("Performance: " + ("Excellent" if performance >= 15 else "Good"))

    since = months_before(now or utc_now_naive(), settings.RECENT_COMPLETION_MONTHS)
    completion = scoring.recent_completion_points(
        _count(
            db,
            Appointment.staff_id == staff.id,
            Appointment.created_at >= since,
            Appointment.status == STATUS_COMPLETED,
        ),
        _count(
            db,
            Appointment.staff_id == staff.id,
            Appointment.created_at >= since,
            Appointment.status != STATUS_CANCELLED,
        ),
    )
    if completion > 0:
        details["completion_rate"] = completion
        reasoning.append("Completion rate: High reliability")

    return StaffScore(
        **base,
        score=sum(details.values()),
        available=True,
        reasoning=reasoning or ["Suitable candidate"],
        details=details,
    )


def recommend_staff(
    db: Session,
    day,
    at,
    service_type: str | None = None,
    customer_id: int | None = None,
    now: datetime | None = None,
) -> list[StaffScore]:
    """Top staff candidates for an appointment, best first.

    Staff with a personal unavailable date or a clashing appointment are
    vetoed and never returned. Equal scores keep staff id order.
    """
    day, at = parse_slot(day, at)
    if at is None:
        raise InvalidSlotInput("time is required")

    scored = [
        score_staff_member(db, staff, day, at, service_type, customer_id, now=now)
        for staff in list_staff(db)
    ]
    ranked = sorted((s for s in scored if s.available), key=lambda s: s.score, reverse=True)
    logger.info(
        "staff_recommended",
        day=day.isoformat(),
        time=format_hh_mm(at),
        candidates=len(scored),
        available=len(ranked),
    )
    return ranked[: scoring.STAFF_TOP_N]


def score_time_slot(
    db: Session,
    day: date,
    at: time,
    staff: list[User],
    calendar: BusinessCalendar,
) -> SlotScore:
    label = format_hh_mm(at)
    free_staff = sum(1 for member in staff if is_staff_available(db, member.id, day, at))
    if free_staff == 0:
        return SlotScore(
            time=label,
            score=0,
            available=False,
            reasoning=["No staff available"],
            available_staff=0,
        )

    score = 0
    reasoning: list[str] = []
    if settings.PREFERRED_WINDOW_START_HOUR <= at.hour <= settings.PREFERRED_WINDOW_END_HOUR:
        score += scoring.PREFERRED_WINDOW_POINTS
        reasoning.append("Preferred time: Mid-day slot")
    elif calendar.within_business_hours(at):
        score += scoring.BUSINESS_HOURS_POINTS
        reasoning.append("Good time: Within business hours")

    booked = _count(
        db,
        Appointment.appointment_date == day,
        Appointment.appointment_time == at,
        Appointment.status != STATUS_CANCELLED,
    )
    if booked == 0:
        score += scoring.NO_BOOKINGS_POINTS
        reasoning.append("High availability: No conflicts")
    elif booked <= scoring.FEW_BOOKINGS_MAX:
        score += scoring.FEW_BOOKINGS_POINTS
        reasoning.append("Good availability: Few conflicts")

    if at.minute == 0:
        score += scoring.ON_THE_HOUR_POINTS
        reasoning.append("On the hour")

    return SlotScore(
        time=label,
        score=score,
        available=True,
        reasoning=reasoning or ["Available time slot"],
        available_staff=free_staff,
        booked=booked,
    )


def recommend_time_slots(
    db: Session, day, calendar: BusinessCalendar | None = None
) -> list[SlotScore]:
    day, _ = parse_slot(day)
    calendar = calendar or default_calendar()
    staff = list_staff(db)
    grid = calendar.slot_grid()
    if not staff or not grid:
        return []

    scored = [score_time_slot(db, day, at, staff, calendar) for at in grid]
    # Stable sort: available first, then score, then grid order.
    scored.sort(key=lambda s: (not s.available, -s.score))
    return scored[: scoring.TIME_SLOT_TOP_N]


def workload_overview(db: Session, day) -> list[WorkloadEntry]:
    day, _ = parse_slot(day)
    capacity = max(1, int(settings.STAFF_DAILY_CAPACITY))
    out: list[WorkloadEntry] = []
    for staff in list_staff(db):
        scheduled = _count(
            db,
            Appointment.staff_id == staff.id,
            Appointment.appointment_date == day,
            Appointment.status != STATUS_CANCELLED,
        )
        out.append(
            WorkloadEntry(
                staff_id=staff.id,
                staff_name=staff.full_name,
                appointments_scheduled=scheduled,
                capacity_percentage=round(scoring.percentage(scheduled, capacity), 2),
                available_slots=max(0, capacity - scheduled),
                status=scoring.workload_status(scheduled),
            )
        )
    out.sort(key=lambda entry: entry.available_slots, reverse=True)
    return out


def decision_dashboard(
    db: Session, day, calendar: BusinessCalendar | None = None
) -> DecisionDashboard:
    day, _ = parse_slot(day)
    return DecisionDashboard(
        date=day,
        workload_overview=workload_overview(db, day),
        time_slot_recommendations=recommend_time_slots(db, day, calendar=calendar),
        generated_at=utc_now_naive(),
    )
