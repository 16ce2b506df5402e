"""RFC 7807 Problem Details for HTTP APIs."""

from typing import Any, Final

from pydantic import BaseModel, Field

PROBLEM_TYPE_BASE: Final = "https://coldstock.dev/problems"


class ErrorCodes:
    """Machine-readable error codes carried in problem details."""

    VALIDATION_FAILED: Final = "validation_failed"
    FIELD_REQUIRED: Final = "field_required"
    FIELD_TOO_LONG: Final = "field_too_long"
    FIELD_INVALID_FORMAT: Final = "field_invalid_format"
    FIELD_INVALID_VALUE: Final = "field_invalid_value"
    RESOURCE_NOT_FOUND: Final = "resource_not_found"
    RESOURCE_ALREADY_EXISTS: Final = "resource_already_exists"
    RESOURCE_IN_USE: Final = "resource_in_use"
    INVALID_STATUS_TRANSITION: Final = "invalid_status_transition"
    LOCATION_OCCUPIED: Final = "location_occupied"
    CAPACITY_EXCEEDED: Final = "capacity_exceeded"
    CHAMBER_INACTIVE: Final = "chamber_inactive"
    CONCURRENT_MODIFICATION: Final = "concurrent_modification"
    DUPLICATE_MOVEMENT: Final = "duplicate_movement"
    AUTHENTICATION_FAILED: Final = "authentication_failed"
    PERMISSION_DENIED: Final = "permission_denied"
    RATE_LIMIT_EXCEEDED: Final = "rate_limit_exceeded"
    INTERNAL_ERROR: Final = "internal_error"


class ProblemDetail(BaseModel):
    """Problem details object as described by RFC 7807."""

    type: str = Field(description="URI reference identifying the problem type")
    title: str = Field(description="Short, human-readable summary of the problem")
    status: int = Field(description="HTTP status code")
    detail: str | None = Field(
        None, description="Human-readable explanation of this occurrence"
    )
    instance: str | None = Field(
        None, description="URI reference of the request that caused the problem"
    )
    code: str | None = Field(None, description="Machine-readable error code")
    extra: dict[str, Any] | None = Field(
        None, description="Additional problem-specific data"
    )


class ValidationProblemDetail(ProblemDetail):
    errors: list[dict[str, str]] | None = Field(
        None, description="Field-level validation errors"
    )


class ConflictProblemDetail(ProblemDetail):
    resource_type: str | None = Field(
        None, description="Type of the conflicting resource"
    )
    conflicting_field: str | None = Field(
        None, description="Field whose value caused the conflict"
    )


def _problem_type(slug: str) -> str:
    return f"{PROBLEM_TYPE_BASE}/{slug}"


class ProblemDetailFactory:
    """Builds the problem details returned by the exception handlers."""

    @staticmethod
    def validation_failed(
        detail: str,
        instance: str | None = None,
        field_errors: list[dict[str, str]] | None = None,
    ) -> ValidationProblemDetail:
        return ValidationProblemDetail(
            type=_problem_type("validation-failed"),
            title="Validation Failed",
            status=400,
            detail=detail,
            instance=instance,
            code=ErrorCodes.VALIDATION_FAILED,
            errors=field_errors or [],
        )

    @staticmethod
    def unauthorized(detail: str, instance: str | None = None) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("unauthorized"),
            title="Unauthorized",
            status=401,
            detail=detail,
            instance=instance,
            code=ErrorCodes.AUTHENTICATION_FAILED,
        )

    @staticmethod
    def forbidden(detail: str, instance: str | None = None) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("forbidden"),
            title="Forbidden",
            status=403,
            detail=detail,
            instance=instance,
            code=ErrorCodes.PERMISSION_DENIED,
        )

    @staticmethod
    def not_found(
        resource_type: str, detail: str, instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("resource-not-found"),
            title="Resource Not Found",
            status=404,
            detail=detail,
            instance=instance,
            code=ErrorCodes.RESOURCE_NOT_FOUND,
            extra={"resource_type": resource_type},
        )

    @staticmethod
    def resource_already_exists(
        resource_type: str,
        detail: str,
        instance: str | None = None,
        conflicting_field: str | None = None,
    ) -> ConflictProblemDetail:
        return ConflictProblemDetail(
            type=_problem_type("resource-already-exists"),
            title="Resource Already Exists",
            status=409,
            detail=detail,
            instance=instance,
            code=ErrorCodes.RESOURCE_ALREADY_EXISTS,
            resource_type=resource_type,
            conflicting_field=conflicting_field,
        )

    @staticmethod
    def conflict(
        code: str,
        detail: str,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> ProblemDetail:
        """A business rule conflict, e.g. an occupied location or stale version."""
        return ProblemDetail(
            type=_problem_type(code.replace("_", "-")),
            title=code.replace("_", " ").title(),
            status=409,
            detail=detail,
            instance=instance,
            code=code,
            extra=extra,
        )

    @staticmethod
    def too_many_requests(detail: str, instance: str | None = None) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("rate-limit-exceeded"),
            title="Too Many Requests",
            status=429,
            detail=detail,
            instance=instance,
            code=ErrorCodes.RATE_LIMIT_EXCEEDED,
        )

    @staticmethod
    def internal_server_error(
        detail: str, instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("internal-server-error"),
            title="Internal Server Error",
            status=500,
            detail=detail,
            instance=instance,
            code=ErrorCodes.INTERNAL_ERROR,
        )
