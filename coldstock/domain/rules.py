"""Business rules of the product lifecycle, weights, expiration and roles.

Everything here is pure: no database access, no logging. Services call these
functions and decide what to persist.
"""

import math
import re
from datetime import UTC, datetime, timedelta
from typing import Final

from .constants import (
    EXPIRATION_CRITICAL_DAYS,
    EXPIRATION_WARNING_DAYS,
    OCCUPYING_STATUSES,
    VALID_TRANSITIONS,
    WEIGHT_DECIMALS,
    WITHDRAWAL_OVERDUE_DAYS,
    WITHDRAWAL_URGENT_DAYS,
    DocumentType,
    ExpirationStatus,
    ProductStatus,
    UserRole,
    WithdrawalUrgency,
)
from .exceptions import InvalidTransitionError, PermissionDeniedError, ValidationError


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


# Product lifecycle


def can_transition(current: ProductStatus | str, target: ProductStatus | str) -> bool:
    return ProductStatus(target) in VALID_TRANSITIONS[ProductStatus(current)]


def ensure_transition(
    current: ProductStatus | str, target: ProductStatus | str
) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(str(current), str(target))


def is_final_status(status: ProductStatus | str) -> bool:
    return not VALID_TRANSITIONS[ProductStatus(status)]


def occupies_location(status: ProductStatus | str) -> bool:
    return ProductStatus(status) in OCCUPYING_STATUSES


def initial_status(location_id: int | None) -> ProductStatus:
    """Status of a freshly registered product."""
    return ProductStatus.LOCADO if location_id else ProductStatus.AGUARDANDO_LOCACAO


# Weights


def round_weight(value: float) -> float:
    return round(value, WEIGHT_DECIMALS)


def calculate_total_weight(quantity: int, weight_per_unit: float) -> float:
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative", field="quantity")
    if weight_per_unit <= 0:
        raise ValidationError(
            "Weight per unit must be positive", field="weight_per_unit"
        )
    return round_weight(quantity * weight_per_unit)


# Expiration


def calculate_expiration_date(
    entry_date: datetime, max_storage_time_days: int | None
) -> datetime | None:
    if not max_storage_time_days:
        return None
    return entry_date + timedelta(days=max_storage_time_days)


def days_until(target: datetime, now: datetime | None = None) -> int:
    """Whole days until target, rounding partial days up."""
    now = now or utcnow()
    return math.ceil((target - now).total_seconds() / 86400)


def expiration_status(
    expiration_date: datetime | None, now: datetime | None = None
) -> ExpirationStatus:
    if expiration_date is None:
        return ExpirationStatus.NO_EXPIRATION

    remaining = days_until(expiration_date, now)
    if remaining < 0:
        return ExpirationStatus.EXPIRED
    if remaining <= EXPIRATION_CRITICAL_DAYS:
        return ExpirationStatus.CRITICAL
    if remaining <= EXPIRATION_WARNING_DAYS:
        return ExpirationStatus.WARNING
    return ExpirationStatus.GOOD


def withdrawal_urgency(
    requested_at: datetime, now: datetime | None = None
) -> WithdrawalUrgency:
    now = now or utcnow()
    age_days = (now - requested_at).total_seconds() / 86400
    if age_days > WITHDRAWAL_OVERDUE_DAYS:
        return WithdrawalUrgency.OVERDUE
    if age_days > WITHDRAWAL_URGENT_DAYS:
        return WithdrawalUrgency.URGENT
    return WithdrawalUrgency.NORMAL


# Client documents

_NON_DIGITS: Final = re.compile(r"\D")
_CNPJ_WEIGHTS: Final = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def normalize_document(value: str) -> str:
    """Strip punctuation from a CPF/CNPJ."""
    return _NON_DIGITS.sub("", value)


def validate_cpf(digits: str) -> bool:
    if len(digits) != 11 or not digits.isdigit() or len(set(digits)) == 1:
        return False

    numbers = [int(d) for d in digits]
    for position in (9, 10):
        total = sum(
            numbers[i] * (position + 1 - i) for i in range(position)
        )
        check = total * 10 % 11 % 10
        if check != numbers[position]:
            return False
    return True


def validate_cnpj(digits: str) -> bool:
    if len(digits) != 14 or not digits.isdigit() or len(set(digits)) == 1:
        return False

    numbers = [int(d) for d in digits]
    for position, weights in ((12, _CNPJ_WEIGHTS), (13, (6, *_CNPJ_WEIGHTS))):
        remainder = sum(n * w for n, w in zip(numbers[:position], weights)) % 11
        check = 0 if remainder < 2 else 11 - remainder
        if check != numbers[position]:
            return False
    return True


def document_type(digits: str) -> DocumentType:
    if len(digits) == 11:
        return DocumentType.CPF
    if len(digits) == 14:
        return DocumentType.CNPJ
    return DocumentType.OUTROS


def validate_document(value: str) -> tuple[str, DocumentType]:
    """Normalize a CPF/CNPJ and check its verification digits.

    Returns:
        The digits-only document and its detected type

    Raises:
        ValidationError: If a CPF or CNPJ has wrong check digits
    """
    digits = normalize_document(value)
    kind = document_type(digits)
    if kind is DocumentType.CPF and not validate_cpf(digits):
        raise ValidationError("Invalid CPF", field="cnpj_cpf")
    if kind is DocumentType.CNPJ and not validate_cnpj(digits):
        raise ValidationError("Invalid CNPJ", field="cnpj_cpf")
    if not digits:
        raise ValidationError("Document must contain digits", field="cnpj_cpf")
    return digits, kind


def format_document(digits: str) -> str:
    kind = document_type(digits)
    if kind is DocumentType.CPF:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    if kind is DocumentType.CNPJ:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return digits


def title_case(name: str) -> str:
    """Normalize seed type and client names: trimmed, single-spaced, titled."""
    return " ".join(word.capitalize() for word in name.split())


# Roles

ADMIN_ONLY: Final = frozenset({UserRole.ADMIN})
OPERATOR_ONLY: Final = frozenset({UserRole.OPERATOR})
ANY_ROLE: Final = frozenset({UserRole.ADMIN, UserRole.OPERATOR})

PERMISSIONS: Final[dict[str, frozenset[UserRole]]] = {
    "create_product": ADMIN_ONLY,
    "update_product": ANY_ROLE,
    "locate_product": ANY_ROLE,
    "move_product": ANY_ROLE,
    "partial_move": ANY_ROLE,
    "partial_exit": ADMIN_ONLY,
    "add_stock": ADMIN_ONLY,
    "remove_product": ADMIN_ONLY,
    "cancel_product": ADMIN_ONLY,
    "request_withdrawal": ADMIN_ONLY,
    "update_withdrawal": ADMIN_ONLY,
    "cancel_withdrawal": ADMIN_ONLY,
    "confirm_withdrawal": OPERATOR_ONLY,
    "record_movement": ANY_ROLE,
    "verify_movement": ADMIN_ONLY,
    "manage_users": ADMIN_ONLY,
    "manage_chambers": ADMIN_ONLY,
    "manage_locations": ADMIN_ONLY,
    "manage_seed_types": ADMIN_ONLY,
    "manage_clients": ADMIN_ONLY,
}


def has_permission(role: UserRole | str, action: str) -> bool:
    return UserRole(role) in PERMISSIONS[action]


def ensure_permission(role: UserRole | str, action: str) -> None:
    """Raise PermissionDeniedError unless the role may perform the action."""
    if not has_permission(role, action):
        allowed = ", ".join(sorted(PERMISSIONS[action]))
        raise PermissionDeniedError(
            f"Role {role} cannot perform {action} (requires {allowed})"
        )
