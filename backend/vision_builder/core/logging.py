"""structlog over the stdlib logging module.

One handler on the root logger renders both structlog events and records from
third-party stdlib loggers (uvicorn, httpx, SQLAlchemy), so every line has the
same shape: JSON in production, ConsoleRenderer when debugging. Each entry
carries the request's correlation id when there is one.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

from vision_builder.core.config import Settings

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS: dict[str, str] = {
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "aiosqlite": "WARNING",
    "sqlalchemy.engine": "WARNING",
}


def add_correlation_id(logger, method, event_dict):
    """structlog processor: copy the asgi-correlation-id context value into the event."""
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_structlog(
    log_level: str = "INFO",
    json_logs: bool = True,
    quiet_loggers: dict[str, str] | None = None,
) -> None:
    """Install the shared processor chain and the root handler.

    Must run before the first ``structlog.get_logger`` call binds, since
    loggers are cached on first use.

    Args:
        log_level: Root log level ("DEBUG", "INFO", "WARNING", "ERROR")
        json_logs: JSON lines when True, ConsoleRenderer when False
        quiet_loggers: Per-logger level overrides (defaults to QUIET_LOGGERS)
    """
    pre_chain = _pre_chain()

    if json_logs:
        final = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        final = [structlog.dev.ConsoleRenderer()]

    levels = QUIET_LOGGERS if quiet_loggers is None else quiet_loggers

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "rendered": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "rendered",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["stdout"], "level": log_level},
            "loggers": {name: {"level": level} for name, level in levels.items()},
        }
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: Settings) -> None:
    """Debug mode forces DEBUG level and console output."""
    if settings.debug:
        configure_structlog(log_level="DEBUG", json_logs=False)
    else:
        configure_structlog(log_level=settings.log_level.upper(), json_logs=settings.json_logs)
