from datetime import date, datetime, time, timedelta

import holidays
import structlog

from ..config import settings
from .weekdays import Weekday

logger = structlog.get_logger("schedcore.calendar")


class BusinessCalendar:
    def __init__(
        self,
        closed_weekdays: list[str] | None = None,
        holiday_country: str | None = None,
        open_time: time | None = None,
        close_time: time | None = None,
        step_minutes: int | None = None,
    ):
        names = settings.CLOSED_WEEKDAYS if closed_weekdays is None else closed_weekdays
        self.closed_weekdays: set[Weekday] = set()
        for name in names:
            weekday = Weekday.parse(name)
            if weekday is None:
                logger.warning("closed_weekday_ignored", value=name)
                continue
            self.closed_weekdays.add(weekday)

        country = settings.HOLIDAY_COUNTRY if holiday_country is None else holiday_country
        self.public_holidays = holidays.country_holidays(country) if country else None

        self.open_time = open_time or settings.BUSINESS_OPEN_TIME
        self.close_time = close_time or settings.BUSINESS_CLOSE_TIME
        self.step_minutes = max(5, int(step_minutes or settings.SLOT_STEP_MINUTES))

    def is_closed_weekday(self, check_date: date) -> bool:
        return Weekday.of(check_date) in self.closed_weekdays

    def holiday_name(self, check_date: date) -> str | None:
        if self.public_holidays is None:
            return None
        return self.public_holidays.get(check_date)

    def slot_grid(self) -> list[time]:
        """Start times from opening (inclusive) to closing (exclusive)."""
        anchor = date(2000, 1, 3)
        cursor = datetime.combine(anchor, self.open_time)
        end_at = datetime.combine(anchor, self.close_time)
        step = timedelta(minutes=self.step_minutes)
        out: list[time] = []
        while cursor < end_at:
            out.append(cursor.time())
            cursor += step
        return out

    def within_business_hours(self, at: time) -> bool:
        return self.open_time <= at < self.close_time


def default_calendar() -> BusinessCalendar:
    return BusinessCalendar()
