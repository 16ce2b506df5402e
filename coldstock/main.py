import socket
from contextlib import asynccontextmanager
from typing import Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .application.user_service import ensure_initial_admin
from .config import settings
from .domain.exceptions import DomainError
from .infrastructure.database.database import (
    get_async_engine,
    get_main_engine,
    init_async_db,
    init_db,
)
from .logging_config import get_logger, setup_logging
from .logging_utils import log_system_info
from .middleware import log_requests_middleware
from .presentation.api_routes import api_router, health_router
from .presentation.error_handlers import (
    handle_database_error,
    handle_domain_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from .rate_limiting import rate_limit_middleware
from .telemetry import setup_telemetry

logger: Final = get_logger(__name__)


async def _create_schema() -> None:
    try:
        await init_async_db(get_async_engine())
        logger.info("Async database initialized successfully")
    except Exception as e:
        logger.warning(f"Async database init failed, falling back to sync: {e}")
        init_db(get_main_engine())
        logger.info("Sync database initialized successfully")


def _bootstrap_admin() -> None:
    """Create the configured admin account on a database without users."""
    if not (settings.admin_email and settings.admin_password):
        return
    with Session(get_main_engine()) as session:
        ensure_initial_admin(session, settings.admin_email, settings.admin_password)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    await _create_schema()
    _bootstrap_admin()

    hostname = socket.gethostname()
    database = settings.effective_database_url.split(":", 1)[0]
    log_system_info(
        hostname, socket.gethostbyname(hostname), settings.debug, database
    )

    yield

    logger.info("Application shutdown completed")


app: Final = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
    description="""
**Coldstock** - inventory backend for cold storage chambers holding seed lots.

## Core Features

- **Product lifecycle** - CADASTRADO, AGUARDANDO_LOCACAO, LOCADO,
  AGUARDANDO_RETIRADA, then RETIRADO, REMOVIDO or CANCELADO
- **Location capacity checks** - one product per location and a weight ceiling
  per location, with alternative suggestions when a location does not fit
- **Movement history** - every placement, transfer, stock change and
  withdrawal writes a movement in the same transaction
- **Withdrawal workflow** - administrators request, operators confirm
- **Optimistic locking** - send the product `version` you read; stale writes
  get `409 Conflict`

## Authentication

`POST /api/v1/auth/login` returns a bearer access token and a refresh token.
Send `Authorization: Bearer <token>` on every other API request.

## Rate Limiting

API endpoints are rate limited per IP:
- **General endpoints**: 100 requests per minute
- **Write operations**: 30 requests per minute
- **Login and token refresh**: 10 requests per minute

Rate limit headers (`X-RateLimit-*`) are included in all API responses.

## Errors

Errors are returned as RFC 7807 problem details (`application/problem+json`).
    """.strip(),
    openapi_tags=[
        {"name": "auth", "description": "Login, token refresh, password change"},
        {"name": "users", "description": "User accounts and roles"},
        {"name": "chambers", "description": "Cold chambers and their conditions"},
        {"name": "locations", "description": "Storage slots and capacity checks"},
        {"name": "seed types", "description": "Seed catalogue"},
        {"name": "clients", "description": "Owners of stored products"},
        {"name": "products", "description": "Stored seed lots and their lifecycle"},
        {"name": "withdrawals", "description": "Withdrawal request workflow"},
        {"name": "movements", "description": "Movement history and audits"},
        {"name": "reports", "description": "Aggregated warehouse reports"},
        {"name": "health", "description": "Service health"},
    ],
)


setup_telemetry(app)

# Rate limiting runs before request logging
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(log_requests_middleware)


def _request_context(request: Request) -> dict[str, str]:
    return {"path": request.url.path, "method": request.method}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.warning(
        "Domain error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        **_request_context(request),
    )
    return handle_domain_error(exc, request)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "Request validation failed",
        errors=exc.errors(),
        **_request_context(request),
    )
    return handle_request_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Database error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=True,
        **_request_context(request),
    )
    return handle_database_error(exc, request)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unexpected error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        exc_info=True,
        **_request_context(request),
    )
    return handle_unexpected_error(request)


app.include_router(api_router)
app.include_router(health_router)
