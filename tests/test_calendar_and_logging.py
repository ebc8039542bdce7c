import json
import logging
from datetime import date, time

import structlog

from schedcore.config import settings
from schedcore.core.business_calendar import BusinessCalendar, default_calendar
from schedcore.core.logging_config import masking_processor, setup_logging
from schedcore.core.weekdays import Weekday


def test_weekday_parse_is_exact():
    assert Weekday.parse(" Saturday ") is Weekday.SATURDAY
    assert Weekday.parse("sat") is None
    assert Weekday.parse("saturdays") is None
    assert Weekday.parse(None) is None
    assert Weekday.of(date(2026, 3, 2)) is Weekday.MONDAY
    assert Weekday.SUNDAY.is_weekend and not Weekday.FRIDAY.is_weekend


def test_calendar_grid_and_closures():
    calendar = BusinessCalendar(
        closed_weekdays=["sunday", "someday"],
        holiday_country="PL",
        open_time=time(9, 0),
        close_time=time(11, 0),
        step_minutes=45,
    )
    assert calendar.closed_weekdays == {Weekday.SUNDAY}
    assert calendar.slot_grid() == [time(9, 0), time(9, 45), time(10, 30)]
    assert calendar.within_business_hours(time(10, 59))
    assert not calendar.within_business_hours(time(11, 0))
    assert calendar.is_closed_weekday(date(2026, 3, 8))
    assert calendar.holiday_name(date(2026, 5, 3)) is not None
    assert calendar.holiday_name(date(2026, 5, 4)) is None


def test_default_calendar_follows_settings():
    previous_closed = list(settings.CLOSED_WEEKDAYS)
    previous_step = int(settings.SLOT_STEP_MINUTES)
    try:
        settings.CLOSED_WEEKDAYS = ["monday"]
        settings.SLOT_STEP_MINUTES = 60
        calendar = default_calendar()
        assert calendar.closed_weekdays == {Weekday.MONDAY}
        assert calendar.slot_grid()[:2] == [time(9, 0), time(10, 0)]
    finally:
        settings.CLOSED_WEEKDAYS = previous_closed
        settings.SLOT_STEP_MINUTES = previous_step


def test_masking_processor_hides_addresses():
    event = masking_processor(
        None, "info", {"event": "booking_rejected", "email": "anna@example.com", "staff_email": ""}
    )
    assert event["email"] == "an***@example.com"
    assert event["staff_email"] == ""
    assert masking_processor(None, "info", {"customer_email": "broken"})["customer_email"] == "***"


def test_setup_logging_renders_json(caplog):
    caplog.set_level(logging.INFO)
    try:
        setup_logging(level="INFO", json_output=True)
        structlog.get_logger("schedcore.test").info("probe", email="jan@example.com")
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "probe"
        assert payload["email"] == "ja***@example.com"
        assert payload["level"] == "info"
    finally:
        structlog.reset_defaults()
