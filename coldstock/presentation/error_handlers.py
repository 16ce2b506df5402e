"""Centralized error handling for the presentation layer."""

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain.exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    CapacityExceededError,
    ChamberInactiveError,
    ConcurrentModificationError,
    DomainError,
    DuplicateMovementError,
    InvalidTransitionError,
    LocationOccupiedError,
    NotFoundError,
    PermissionDeniedError,
    ResourceInUseError,
    ValidationError,
)
from .problem_details import ErrorCodes, ProblemDetail, ProblemDetailFactory


def problem_response(
    problem: ProblemDetail, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(mode="json", exclude_none=True),
        headers=headers,
        media_type="application/problem+json",
    )


def _field_error_code(message: str) -> str:
    message = message.lower()
    if "required" in message:
        return ErrorCodes.FIELD_REQUIRED
    if "longer" in message or "too long" in message:
        return ErrorCodes.FIELD_TOO_LONG
    if "control characters" in message or "invalid" in message:
        return ErrorCodes.FIELD_INVALID_FORMAT
    return ErrorCodes.FIELD_INVALID_VALUE


def _extract_field_errors(error: ValidationError) -> list[dict[str, str]]:
    """Field-specific errors carried by a domain ValidationError."""
    if error.field is None:
        return []
    return [
        {
            "field": error.field,
            "code": _field_error_code(str(error)),
            "message": str(error),
        }
    ]


def _conflict(error: DomainError, instance: str) -> ProblemDetail:
    """Problem details for the business rule violations reported as 409."""
    detail = str(error)
    if isinstance(error, InvalidTransitionError):
        return ProblemDetailFactory.conflict(
            ErrorCodes.INVALID_STATUS_TRANSITION,
            detail,
            instance,
            extra={"current": error.current, "target": error.target},
        )
    if isinstance(error, LocationOccupiedError):
        return ProblemDetailFactory.conflict(
            ErrorCodes.LOCATION_OCCUPIED,
            detail,
            instance,
            extra={"location_code": error.location_code},
        )
    if isinstance(error, CapacityExceededError):
        return ProblemDetailFactory.conflict(
            ErrorCodes.CAPACITY_EXCEEDED,
            detail,
            instance,
            extra={
                "location_code": error.location_code,
                "required_kg": error.required_kg,
                "available_kg": error.available_kg,
                "deficit_kg": error.deficit_kg,
            },
        )
    if isinstance(error, ConcurrentModificationError):
        return ProblemDetailFactory.conflict(
            ErrorCodes.CONCURRENT_MODIFICATION,
            detail,
            instance,
            extra={
                "resource_type": error.resource_type,
                "expected_version": error.expected_version,
            },
        )
    if isinstance(error, ChamberInactiveError):
        return ProblemDetailFactory.conflict(
            ErrorCodes.CHAMBER_INACTIVE, detail, instance
        )
    if isinstance(error, DuplicateMovementError):
        return ProblemDetailFactory.conflict(
            ErrorCodes.DUPLICATE_MOVEMENT, detail, instance
        )
    return ProblemDetailFactory.conflict(ErrorCodes.RESOURCE_IN_USE, detail, instance)


_CONFLICT_ERRORS: tuple[type[DomainError], ...] = (
    InvalidTransitionError,
    LocationOccupiedError,
    CapacityExceededError,
    ConcurrentModificationError,
    ChamberInactiveError,
    DuplicateMovementError,
    ResourceInUseError,
)


def handle_domain_error(error: DomainError, request: Request) -> JSONResponse:
    """Convert domain errors to RFC 7807 responses."""
    instance = str(request.url.path)

    if isinstance(error, ValidationError):
        return problem_response(
            ProblemDetailFactory.validation_failed(
                detail=str(error),
                instance=instance,
                field_errors=_extract_field_errors(error),
            )
        )
    if isinstance(error, NotFoundError):
        return problem_response(
            ProblemDetailFactory.not_found(error.resource_type, str(error), instance)
        )
    if isinstance(error, AlreadyExistsError):
        return problem_response(
            ProblemDetailFactory.resource_already_exists(
                resource_type=error.resource_type,
                detail=str(error),
                instance=instance,
                conflicting_field=error.field,
            )
        )
    if isinstance(error, AuthenticationError):
        return problem_response(
            ProblemDetailFactory.unauthorized(str(error), instance),
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(error, PermissionDeniedError):
        return problem_response(ProblemDetailFactory.forbidden(str(error), instance))
    if isinstance(error, _CONFLICT_ERRORS):
        return problem_response(_conflict(error, instance))

    return handle_unexpected_error(request)


def _request_field(location: tuple[Any, ...]) -> str:
    """Dotted field path of a pydantic error without its body/query/path prefix."""
    parts = [str(part) for part in location if part not in ("body", "query", "path")]
    return ".".join(parts) or "unknown"


def handle_request_validation_error(
    error: RequestValidationError, request: Request
) -> JSONResponse:
    """Schema violations of a request body, query or path become a 400."""
    field_errors = [
        {
            "field": _request_field(item["loc"]),
            "code": item["type"],
            "message": item["msg"],
        }
        for item in error.errors()
    ]
    return problem_response(
        ProblemDetailFactory.validation_failed(
            detail="Request validation failed",
            instance=str(request.url.path),
            field_errors=field_errors,
        )
    )


def handle_database_error(error: SQLAlchemyError, request: Request) -> JSONResponse:
    instance = str(request.url.path)
    if isinstance(error, IntegrityError):
        # A unique constraint the services did not check beforehand
        return problem_response(
            ProblemDetailFactory.resource_already_exists(
                resource_type="resource",
                detail="A resource with these values already exists",
                instance=instance,
            )
        )
    return problem_response(
        ProblemDetailFactory.internal_server_error(
            detail="A database error occurred. Please try again.", instance=instance
        )
    )


def handle_unexpected_error(request: Request) -> JSONResponse:
    return problem_response(
        ProblemDetailFactory.internal_server_error(
            detail="An unexpected error occurred. Please try again.",
            instance=str(request.url.path),
        )
    )
