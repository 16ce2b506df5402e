"""Shared validation utilities for the application layer.

Service modules call these before persisting so that every rejected value is
logged the same way and surfaces as a domain ValidationError.
"""

from ..domain.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NOTES_LENGTH,
    MIN_NAME_LENGTH,
)
from ..domain.exceptions import ValidationError
from ..logging_utils import log_validation_error


def validate_text(
    value: str | None,
    field: str,
    *,
    min_length: int = MIN_NAME_LENGTH,
    max_length: int,
    required: bool = True,
) -> str | None:
    """Trim a text value and check its length.

    Args:
        value: Raw text
        field: Field name used in error messages
        min_length: Minimum length after trimming
        max_length: Maximum length after trimming
        required: Whether an empty value is rejected

    Returns:
        The trimmed value, or None for an empty optional value

    Raises:
        ValidationError: If the value is missing, too short, too long or
            contains control characters
    """
    trimmed = value.strip() if value is not None else ""

    if not trimmed:
        if required:
            log_validation_error(field, value, "required")
            raise ValidationError(f"{field} is required", field=field)
        return None

    if any(ord(char) < 32 or ord(char) == 127 for char in trimmed):
        log_validation_error(field, value, "control characters")
        raise ValidationError(
            f"{field} cannot contain newlines, tabs, or other control characters",
            field=field,
        )

    if len(trimmed) < min_length:
        log_validation_error(field, value, "too short")
        raise ValidationError(
            f"{field} must have at least {min_length} characters", field=field
        )

    if len(trimmed) > max_length:
        log_validation_error(field, value, "too long")
        raise ValidationError(
            f"{field} cannot be longer than {max_length} characters", field=field
        )

    return trimmed


def validate_notes(value: str | None, field: str = "notes") -> str | None:
    return validate_text(
        value, field, min_length=1, max_length=MAX_NOTES_LENGTH, required=False
    )


def validate_description(value: str | None, field: str = "description") -> str | None:
    return validate_text(
        value, field, min_length=1, max_length=MAX_DESCRIPTION_LENGTH, required=False
    )


def validate_range(
    value: float | None,
    field: str,
    minimum: float | None = None,
    maximum: float | None = None,
) -> None:
    """Check that an optional number lies within [minimum, maximum]."""
    if value is None:
        return
    if minimum is not None and value < minimum:
        log_validation_error(field, value, f"below {minimum}")
        raise ValidationError(f"{field} cannot be less than {minimum}", field=field)
    if maximum is not None and value > maximum:
        log_validation_error(field, value, f"above {maximum}")
        raise ValidationError(f"{field} cannot be greater than {maximum}", field=field)


def validate_positive_int(value: int, field: str) -> None:
    if value < 1:
        log_validation_error(field, value, "not positive")
        raise ValidationError(f"{field} must be at least 1", field=field)
