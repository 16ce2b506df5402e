"""Root logging with Rich on the console and structlog for service events."""

import logging
from pathlib import Path
from typing import Any, Final

import structlog
from opentelemetry import trace
from rich.logging import RichHandler

from .config import settings

LOG_FORMAT: Final = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FILE: Final = Path("logs") / "coldstock.log"

# Markers of keys whose values never reach the logs
SENSITIVE_FIELDS: Final = frozenset(
    {"password", "secret", "token", "credential", "authorization", "cookie"}
)

_LIBRARY_LEVELS: Final = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.dialects": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "uvicorn": logging.INFO,
}


def is_sensitive_field(field: str) -> bool:
    field = field.lower()
    return any(marker in field for marker in SENSITIVE_FIELDS)


def _handlers(formatter: logging.Formatter) -> list[logging.Handler]:
    console = RichHandler(
        rich_tracebacks=True, show_path=settings.debug, show_time=False
    )
    handlers: list[logging.Handler] = [console]

    if settings.log_to_file or not settings.debug:
        LOG_FILE.parent.mkdir(exist_ok=True)
        handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(log_level: str | None = None) -> None:
    """Install the console and file handlers and configure structlog.

    Debug mode logs to the console only, unless ``log_to_file`` is set.
    """
    default = logging.DEBUG if settings.debug else logging.INFO
    level = getattr(logging, log_level.upper(), default) if log_level else default

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in _handlers(formatter):
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    _configure_structlog(level)
    get_logger(__name__).info("Logging configured", level=logging.getLevelName(level))


def redact_sensitive(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask passwords and tokens passed as event keys."""
    for key in event_dict:
        if is_sensitive_field(key):
            event_dict[key] = "[REDACTED]"
    return event_dict


def add_trace_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    span = trace.get_current_span()
    if span.is_recording():
        context = span.get_span_context()
        if context.is_valid:
            event_dict["trace_id"] = f"0x{context.trace_id:032x}"
            event_dict["span_id"] = f"0x{context.span_id:016x}"
    return event_dict


def _configure_structlog(level: int) -> None:
    # Rendered by structlog itself, not through the Rich handler
    renderer: Any = (
        structlog.dev.ConsoleRenderer(colors=False)
        if settings.debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_sensitive,
            add_trace_context,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.WriteLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(max(level, logging.INFO)),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)
