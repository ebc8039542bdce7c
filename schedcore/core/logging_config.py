import logging
import sys

import structlog

from ..config import settings

_MASKED_KEYS = ("email", "customer_email", "staff_email")


def masking_processor(logger, method_name, event_dict):
    """Masks e-mail addresses in log events."""
    for key in _MASKED_KEYS:
        if key in event_dict and event_dict[key]:
            val = str(event_dict[key])
            local, _, domain = val.partition("@")
            event_dict[key] = f"{local[:2]}***@{domain}" if domain else "***"
    return event_dict


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    resolved_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    use_json = settings.LOG_JSON if json_output is None else json_output

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=resolved_level,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            masking_processor,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    log = structlog.get_logger("schedcore")
    log.info("logging_initialized", app="schedcore", level=logging.getLevelName(resolved_level))
