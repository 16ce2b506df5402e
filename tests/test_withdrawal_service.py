from datetime import timedelta

import pytest
from sqlmodel import Session, col, select

from coldstock.application.product_service import update_product
from coldstock.application.withdrawal_service import (
    cancel_request,
    confirm_request,
    create_request,
    get_request_stats,
    list_by_product,
    list_pending,
    pending_weight_kg,
    update_request,
)
from coldstock.domain.constants import (
    MovementType,
    ProductStatus,
    WithdrawalStatus,
    WithdrawalType,
)
from coldstock.domain.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from coldstock.domain.rules import utcnow
from coldstock.infrastructure.database.models import Movement, Product


def _movement_types(session: Session, product_id: int) -> list[MovementType]:
    statement = (
        select(Movement.type)
        .where(Movement.product_id == product_id)
        .order_by(col(Movement.id))
    )
    return list(session.exec(statement).all())


@pytest.fixture(name="stored")
def stored_fixture(make_product, locations) -> Product:
    return make_product(locations[0], quantity=10)


def test_request_reserves_product(session, stored, admin):
    request = create_request(session, stored.id, admin, reason="Sold to client")

    assert request.status == WithdrawalStatus.PENDENTE
    assert request.type == WithdrawalType.TOTAL
    assert request.requested_by == admin.id
    assert request.product_snapshot["quantity"] == 10
    assert request.urgency == "normal"

    product = session.get(Product, stored.id)
    assert product.status == ProductStatus.AGUARDANDO_RETIRADA
    # Still physically in its location
    assert product.location_id is not None
    assert _movement_types(session, stored.id)[-1] == MovementType.ADJUSTMENT
    assert pending_weight_kg(session) == 250.0


def test_request_needs_stored_product(session, make_product, admin):
    waiting = make_product()
    with pytest.raises(InvalidTransitionError):
        create_request(session, waiting.id, admin)


def test_request_twice_is_refused(session, stored, admin):
    create_request(session, stored.id, admin)
    with pytest.raises(InvalidTransitionError):
        create_request(session, stored.id, admin)


def test_operator_cannot_request(session, stored, operator):
    with pytest.raises(PermissionDeniedError):
        create_request(session, stored.id, operator)


def test_partial_request_needs_valid_quantity(session, stored, admin):
    with pytest.raises(ValidationError):
        create_request(session, stored.id, admin, WithdrawalType.PARCIAL)
    with pytest.raises(ValidationError):
        create_request(session, stored.id, admin, WithdrawalType.PARCIAL, 10)


def test_request_with_stale_version(session, stored, admin):
    with pytest.raises(ConcurrentModificationError):
        create_request(session, stored.id, admin, expected_version=7)
    assert session.get(Product, stored.id).status == ProductStatus.LOCADO


def test_confirm_total_withdrawal(session, stored, admin, operator, locations):
    request = create_request(session, stored.id, admin)

    confirmed = confirm_request(session, request.id, operator, notes="Truck ABC")

    assert confirmed.status == WithdrawalStatus.CONFIRMADO
    assert confirmed.confirmed_by == operator.id
    assert confirmed.confirmed_at is not None
    assert confirmed.urgency is None

    product = session.get(Product, stored.id)
    assert product.status == ProductStatus.RETIRADO
    assert product.location_id is None
    session.refresh(locations[0])
    assert not locations[0].is_occupied
    assert locations[0].current_weight_kg == 0.0
    assert _movement_types(session, stored.id)[-1] == MovementType.EXIT


def test_confirm_partial_withdrawal(session, stored, admin, operator, locations):
    request = create_request(session, stored.id, admin, WithdrawalType.PARCIAL, 4)

    confirm_request(session, request.id, operator)

    product = session.get(Product, stored.id)
    assert product.status == ProductStatus.LOCADO
    assert product.quantity == 6
    assert product.total_weight == 150.0
    session.refresh(locations[0])
    assert locations[0].current_weight_kg == 150.0
    assert locations[0].is_occupied


def test_reserved_quantity_cannot_be_edited(session, stored, admin, operator):
    request = create_request(session, stored.id, admin, WithdrawalType.PARCIAL, 5)

    with pytest.raises(InvalidTransitionError):
        update_product(session, stored.id, {"quantity": 3}, operator)
    renamed = update_product(session, stored.id, {"notes": "Pallet 4"}, operator)
    assert renamed.quantity == 10

    confirm_request(session, request.id, operator)
    product = session.get(Product, stored.id)
    assert product.quantity == 5
    assert product.status == ProductStatus.LOCADO


def test_admin_cannot_confirm(session, stored, admin):
    request = create_request(session, stored.id, admin)
    with pytest.raises(PermissionDeniedError):
        confirm_request(session, request.id, admin)


def test_confirm_twice_is_refused(session, stored, admin, operator):
    request = create_request(session, stored.id, admin)
    confirm_request(session, request.id, operator)
    with pytest.raises(InvalidTransitionError):
        confirm_request(session, request.id, operator)


def test_cancel_request_restores_product(session, stored, admin):
    request = create_request(session, stored.id, admin)

    cancelled = cancel_request(session, request.id, admin, "Client gave up")

    assert cancelled.status == WithdrawalStatus.CANCELADO
    assert cancelled.canceled_by == admin.id
    assert "Client gave up" in (cancelled.notes or "")
    product = session.get(Product, stored.id)
    assert product.status == ProductStatus.LOCADO
    assert _movement_types(session, stored.id)[-2:] == [
        MovementType.ADJUSTMENT,
        MovementType.ADJUSTMENT,
    ]
    assert list_pending(session) == []


def test_list_requests_of_product(session, stored, make_product, locations, admin):
    other = make_product(locations[1], lot="OTHER")
    first = create_request(session, stored.id, admin)
    cancel_request(session, first.id, admin)
    second = create_request(session, stored.id, admin)
    first.requested_at = utcnow() - timedelta(hours=1)
    session.add(first)
    session.commit()
    create_request(session, other.id, admin)

    requests = list_by_product(session, stored.id)

    assert [request.id for request in requests] == [second.id, first.id]
    with pytest.raises(NotFoundError):
        list_by_product(session, 9999)


def test_update_pending_request(session, stored, admin):
    request = create_request(session, stored.id, admin, WithdrawalType.PARCIAL, 2)

    updated = update_request(session, request.id, admin, reason="More", quantity=5)

    assert updated.quantity_requested == 5
    assert updated.reason == "More"


def test_stats_and_urgency(session, make_product, locations, admin):
    first = make_product(locations[0], lot="A")
    second = make_product(locations[1], lot="B")
    old = create_request(session, first.id, admin)
    create_request(session, second.id, admin, WithdrawalType.PARCIAL, 1)

    old.requested_at = utcnow() - timedelta(days=5)
    session.add(old)
    session.commit()

    pending = list_pending(session)
    assert [request.id for request in pending][0] == old.id

    stats = get_request_stats(session)
    assert stats["total"] == 2
    assert stats["by_status"]["PENDENTE"] == 2
    assert stats["by_type"] == {"TOTAL": 1, "PARCIAL": 1}
    assert stats["pending_by_urgency"]["urgent"] == 1
    assert stats["pending_by_urgency"]["normal"] == 1
