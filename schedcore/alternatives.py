from datetime import timedelta

import structlog
from sqlalchemy.orm import Session

from .availability import evaluate_slot, load_day_rules
from .config import settings
from .core.business_calendar import BusinessCalendar, default_calendar
from .core.scoring import percentage
from .schemas import AlternativeSlot, InvalidSlotInput, format_hh_mm, parse_slot

logger = structlog.get_logger("schedcore.alternatives")


def _describe(offset: int) -> str:
    if offset == 0:
        return "Same day, different time"
    if offset == 1:
        return "Next day"
    return f"In {offset} days"


def suggest_alternatives(
    db: Session,
    preferred_date,
    preferred_time,
    days_ahead: int | None = None,
    calendar: BusinessCalendar | None = None,
    limit: int | None = None,
) -> list[AlternativeSlot]:
    """Nearby bookable slots, freest first.

    The preferred date is searched first (skipping the preferred time); each
    following day up to ``days_ahead`` is searched only while nothing has been
    found. A slot qualifies when its capacity bucket is below the
    utilization ceiling.
    """
    day, at = parse_slot(preferred_date, preferred_time)
    if at is None:
        raise InvalidSlotInput("time is required")
    calendar = calendar or default_calendar()
    horizon = settings.ALTERNATIVE_DAYS_AHEAD if days_ahead is None else int(days_ahead)
    horizon = max(0, horizon)
    max_results = max(1, int(limit or settings.ALTERNATIVE_MAX_RESULTS))
    ceiling = float(settings.ALTERNATIVE_MAX_UTILIZATION_PCT)

    for offset in range(horizon + 1):
        check_day = day + timedelta(days=offset)
        rules = load_day_rules(db, check_day)
        candidates: list[AlternativeSlot] = []
        for slot_time in calendar.slot_grid():
            if offset == 0 and slot_time == at:
                continue
            result = evaluate_slot(db, rules, slot_time, calendar)
            if not result.bookable or not result.max_appointments:
                continue
            utilization = percentage(result.booked, result.max_appointments)
            if utilization >= ceiling:
                continue
            candidates.append(
                AlternativeSlot(
                    date=check_day,
                    time=format_hh_mm(slot_time),
                    available_capacity=result.remaining,
                    utilization=round(utilization, 2),
                    description=_describe(offset),
                )
            )
        if candidates:
            # Grid order is chronological, so a stable sort keeps earliest-first ties.
            candidates.sort(key=lambda c: c.utilization)
            logger.info(
                "alternatives_found",
                preferred_date=day.isoformat(),
                day=check_day.isoformat(),
                count=len(candidates),
            )
            return candidates[:max_results]

    logger.info("alternatives_exhausted", preferred_date=day.isoformat(), days_ahead=horizon)
    return []
