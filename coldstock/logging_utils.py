"""Structured log events shared by the services and the HTTP layer.

Every helper emits one structlog event with a fixed set of keys so the JSON
logs of production can be filtered by ``event_type``.
"""

from typing import Any, Final

from fastapi import Request

from .logging_config import get_logger, is_sensitive_field
from .request_utils import get_client_ip

MAX_LOGGED_VALUE_LENGTH: Final = 100

_audit_logger: Final = get_logger("coldstock.audit")
_api_logger: Final = get_logger("coldstock.api")
_db_logger: Final = get_logger("coldstock.database")
_system_logger: Final = get_logger("coldstock.system")


def _safe_value(field: str, value: Any) -> str:
    if is_sensitive_field(field):
        return "[REDACTED]"
    return str(value)[:MAX_LOGGED_VALUE_LENGTH]


def log_user_action(action: str, user: str, **context: Any) -> None:
    """Audit entry for an action performed by a user.

    Args:
        action: What was done, e.g. ``locate_product`` or ``confirm_withdrawal``
        user: Email of the acting user
        **context: Ids and values describing the action
    """
    _audit_logger.info(
        f"{action} by {user}",
        event_type="user_action",
        action=action,
        user=user,
        **context,
    )


def log_api_request(
    request: Request, response_status: int, process_time_ms: float | None = None
) -> None:
    """Access log line for one request, with the level following the status."""
    fields: dict[str, Any] = {
        "event_type": "api_request",
        "method": request.method,
        "path": request.url.path,
        "status_code": response_status,
        "client_ip": get_client_ip(request),
        "user_agent": request.headers.get("user-agent", "unknown")[:100],
    }
    message = f"{request.method} {request.url.path} - {response_status}"
    if process_time_ms is not None:
        fields["process_time_ms"] = round(process_time_ms, 2)
        message += f" ({process_time_ms:.1f}ms)"

    if response_status >= 500:
        _api_logger.error(message, **fields)
    elif response_status >= 400:
        _api_logger.warning(message, **fields)
    else:
        _api_logger.info(message, **fields)


def log_database_operation(
    operation: str, table: str, success: bool = True, **context: Any
) -> None:
    """Record a write on a table (create, update, delete, transition...)."""
    outcome = "succeeded" if success else "failed"
    log = _db_logger.info if success else _db_logger.error
    log(
        f"{operation} on {table} {outcome}",
        event_type="database_operation",
        operation=operation,
        table=table,
        success=success,
        **context,
    )


def log_validation_error(field: str, value: Any, error_message: str) -> None:
    _audit_logger.warning(
        f"Validation failed for '{field}': {error_message}",
        event_type="validation_error",
        field=field,
        value=_safe_value(field, value),
        error=error_message,
    )


def log_system_info(
    hostname: str, ip_address: str, debug_mode: bool, database: str
) -> None:
    """Startup banner: host, mode and database backend."""
    _system_logger.info(
        "Application startup",
        event_type="startup",
        hostname=hostname,
        ip_address=ip_address,
        debug_mode=debug_mode,
        database=database,
    )
