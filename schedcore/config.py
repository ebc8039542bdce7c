import os
from datetime import time

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except Exception:
        return int(default)


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "1" if default else "0").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return bool(default)


def _get_time(name: str, default: str) -> time:
    raw = os.getenv(name, default).strip()
    try:
        return time.fromisoformat(raw)
    except Exception:
        return time.fromisoformat(default)


def _get_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./schedcore.db")
    DB_AUTO_CREATE_ALL = _get_bool("DB_AUTO_CREATE_ALL", False)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    LOG_JSON = _get_bool("LOG_JSON", True)

    BUSINESS_OPEN_TIME = _get_time("BUSINESS_OPEN_TIME", "09:00")
    BUSINESS_CLOSE_TIME = _get_time("BUSINESS_CLOSE_TIME", "17:00")
    SLOT_STEP_MINUTES = _get_int("SLOT_STEP_MINUTES", 30)
    CLOSED_WEEKDAYS = _get_list("CLOSED_WEEKDAYS", "saturday,sunday")
    HOLIDAY_COUNTRY = os.getenv("HOLIDAY_COUNTRY", "").strip().upper()

    PREFERRED_WINDOW_START_HOUR = _get_int("PREFERRED_WINDOW_START_HOUR", 10)
    PREFERRED_WINDOW_END_HOUR = _get_int("PREFERRED_WINDOW_END_HOUR", 14)
    PEAK_WINDOW_START_HOUR = _get_int("PEAK_WINDOW_START_HOUR", 12)
    PEAK_WINDOW_END_HOUR = _get_int("PEAK_WINDOW_END_HOUR", 14)

    ALTERNATIVE_MAX_UTILIZATION_PCT = _get_int("ALTERNATIVE_MAX_UTILIZATION_PCT", 60)
    ALTERNATIVE_MAX_RESULTS = _get_int("ALTERNATIVE_MAX_RESULTS", 5)
    ALTERNATIVE_DAYS_AHEAD = _get_int("ALTERNATIVE_DAYS_AHEAD", 1)

    RECENT_COMPLETION_MONTHS = _get_int("RECENT_COMPLETION_MONTHS", 3)
    STAFF_DAILY_CAPACITY = _get_int("STAFF_DAILY_CAPACITY", 10)
    SLOT_NOTICE_CAPACITY = _get_int("SLOT_NOTICE_CAPACITY", 10)

    BOOKING_MAX_RETRIES = _get_int("BOOKING_MAX_RETRIES", 3)


settings = Settings()
