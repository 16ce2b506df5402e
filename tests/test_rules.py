"""Tests for the pure business rules and value objects."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from coldstock.domain.constants import (
    AccessLevel,
    CapacityStatus,
    DocumentType,
    ExpirationStatus,
    ProductStatus,
    UserRole,
    WithdrawalUrgency,
)
from coldstock.domain.entities import Capacity, Coordinates, Dimensions
from coldstock.domain.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from coldstock.domain.rules import (
    calculate_expiration_date,
    calculate_total_weight,
    can_transition,
    ensure_permission,
    ensure_transition,
    expiration_status,
    format_document,
    has_permission,
    initial_status,
    is_final_status,
    occupies_location,
    title_case,
    to_naive_utc,
    validate_cnpj,
    validate_cpf,
    validate_document,
    withdrawal_urgency,
)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (ProductStatus.CADASTRADO, ProductStatus.AGUARDANDO_LOCACAO),
        (ProductStatus.CADASTRADO, ProductStatus.LOCADO),
        (ProductStatus.AGUARDANDO_LOCACAO, ProductStatus.LOCADO),
        (ProductStatus.AGUARDANDO_LOCACAO, ProductStatus.REMOVIDO),
        (ProductStatus.LOCADO, ProductStatus.AGUARDANDO_RETIRADA),
        (ProductStatus.LOCADO, ProductStatus.REMOVIDO),
        (ProductStatus.AGUARDANDO_RETIRADA, ProductStatus.RETIRADO),
        (ProductStatus.AGUARDANDO_RETIRADA, ProductStatus.LOCADO),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (ProductStatus.LOCADO, ProductStatus.RETIRADO),
        (ProductStatus.AGUARDANDO_LOCACAO, ProductStatus.AGUARDANDO_RETIRADA),
        (ProductStatus.RETIRADO, ProductStatus.LOCADO),
        (ProductStatus.REMOVIDO, ProductStatus.LOCADO),
        (ProductStatus.CANCELADO, ProductStatus.AGUARDANDO_LOCACAO),
    ],
)
def test_forbidden_transitions_raise(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError) as exc_info:
        ensure_transition(current, target)
    assert exc_info.value.current == current
    assert exc_info.value.target == target


def test_final_and_occupying_statuses():
    assert is_final_status(ProductStatus.RETIRADO)
    assert is_final_status(ProductStatus.REMOVIDO)
    assert is_final_status(ProductStatus.CANCELADO)
    assert not is_final_status(ProductStatus.LOCADO)

    assert occupies_location(ProductStatus.LOCADO)
    assert occupies_location(ProductStatus.AGUARDANDO_RETIRADA)
    assert not occupies_location(ProductStatus.AGUARDANDO_LOCACAO)


def test_initial_status_depends_on_location():
    assert initial_status(None) == ProductStatus.AGUARDANDO_LOCACAO
    assert initial_status(3) == ProductStatus.LOCADO


def test_total_weight_is_rounded():
    assert calculate_total_weight(3, 0.1) == 0.3
    assert calculate_total_weight(0, 25.0) == 0.0
    with pytest.raises(ValidationError):
        calculate_total_weight(-1, 25.0)
    with pytest.raises(ValidationError):
        calculate_total_weight(1, 0)


def test_expiration_date_and_status():
    entry = datetime(2024, 1, 1)
    assert calculate_expiration_date(entry, 30) == datetime(2024, 1, 31)
    assert calculate_expiration_date(entry, None) is None

    now = datetime(2024, 6, 1)
    assert expiration_status(None, now) == ExpirationStatus.NO_EXPIRATION
    assert expiration_status(now - timedelta(days=1), now) == ExpirationStatus.EXPIRED
    assert expiration_status(now + timedelta(days=5), now) == ExpirationStatus.CRITICAL
    assert expiration_status(now + timedelta(days=20), now) == ExpirationStatus.WARNING
    assert expiration_status(now + timedelta(days=90), now) == ExpirationStatus.GOOD


def test_withdrawal_urgency_by_age():
    now = datetime(2024, 6, 10)
    assert withdrawal_urgency(now - timedelta(days=1), now) == WithdrawalUrgency.NORMAL
    assert withdrawal_urgency(now - timedelta(days=4), now) == WithdrawalUrgency.URGENT
    assert withdrawal_urgency(now - timedelta(days=8), now) == WithdrawalUrgency.OVERDUE


def test_to_naive_utc():
    aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=-3)))
    assert to_naive_utc(aware) == datetime(2024, 1, 1, 15, 0)
    naive = datetime(2024, 1, 1, 12, 0)
    assert to_naive_utc(naive) is naive
    assert to_naive_utc(None) is None
    assert to_naive_utc(datetime(2024, 1, 1, tzinfo=UTC)).tzinfo is None


def test_documents():
    assert validate_cpf("52998224725")
    assert not validate_cpf("52998224726")
    assert not validate_cpf("11111111111")
    assert validate_cnpj("11222333000181")
    assert not validate_cnpj("11222333000182")

    assert validate_document("529.982.247-25") == ("52998224725", DocumentType.CPF)
    assert validate_document("11.222.333/0001-81") == (
        "11222333000181",
        DocumentType.CNPJ,
    )
    assert validate_document("12345") == ("12345", DocumentType.OUTROS)
    with pytest.raises(ValidationError):
        validate_document("529.982.247-26")

    assert format_document("52998224725") == "529.982.247-25"
    assert format_document("11222333000181") == "11.222.333/0001-81"


def test_title_case():
    assert title_case("  fazenda   boa vista ") == "Fazenda Boa Vista"


def test_permissions():
    assert has_permission(UserRole.ADMIN, "create_product")
    assert not has_permission(UserRole.OPERATOR, "create_product")
    assert has_permission(UserRole.OPERATOR, "confirm_withdrawal")
    assert not has_permission(UserRole.ADMIN, "confirm_withdrawal")
    assert has_permission(UserRole.OPERATOR, "move_product")

    with pytest.raises(PermissionDeniedError):
        ensure_permission(UserRole.OPERATOR, "request_withdrawal")


def test_dimensions_limits():
    assert Dimensions(2, 2, 3, 4).total_locations == 48
    with pytest.raises(ValidationError):
        Dimensions(0, 1, 1, 1)
    with pytest.raises(ValidationError):
        Dimensions(1, 1, 1, 21)
    with pytest.raises(ValidationError):
        # 100 * 100 * 100 * 1 is above the per-chamber limit
        Dimensions(100, 100, 100, 1)


def test_coordinates():
    coordinates = Coordinates(1, 2, 3, 4)
    assert coordinates.code == "Q1-L2-F3-A4"
    assert coordinates.access_level == AccessLevel.ELEVATED
    assert Coordinates(1, 1, 1, 1).access_level == AccessLevel.GROUND
    assert Coordinates(1, 1, 1, 6).access_level == AccessLevel.HIGH

    with pytest.raises(ValidationError) as exc_info:
        Coordinates(3, 1, 1, 1).validate_within(Dimensions(2, 2, 2, 2))
    assert exc_info.value.field == "quadra"


def test_capacity():
    capacity = Capacity(max_kg=1000.0, current_kg=600.0)
    assert capacity.available_kg == 400.0
    assert capacity.occupancy_percentage == 60
    assert capacity.status == CapacityStatus.MEDIUM
    assert capacity.can_accommodate(400.0)
    assert not capacity.can_accommodate(400.5)
    assert capacity.within_safety_margin(350.0)
    assert not capacity.within_safety_margin(360.0)

    assert Capacity(1000.0, 0.0).status == CapacityStatus.EMPTY
    assert Capacity(1000.0, 1000.0).status == CapacityStatus.FULL
