"""Movement history, manual audit entries and reports."""

import pytest

from coldstock.application.movement_service import (
    get_movement_stats,
    get_product_history,
    list_movements,
    register_manual_movement,
    verify_movement,
)
from coldstock.application.product_service import move_product
from coldstock.application.report_service import (
    capacity_report,
    dashboard,
    expiration_report,
    inventory_report,
    movement_report,
)
from coldstock.application.withdrawal_service import create_request
from coldstock.domain.constants import MovementType
from coldstock.domain.exceptions import (
    DuplicateMovementError,
    PermissionDeniedError,
    ValidationError,
)


def test_history_follows_product(session, make_product, locations, admin):
    product = make_product(locations[0])
    move_product(session, product.id, locations[1].id, admin)

    history = get_product_history(session, product.id)

    assert [m.type for m in history] == [MovementType.ENTRY, MovementType.TRANSFER]
    assert all(m.is_automatic for m in history)

    transfers, total = list_movements(session, movement_type=MovementType.TRANSFER)
    assert total == 1
    assert transfers[0].id == history[1].id

    by_location, total = list_movements(session, location_id=locations[0].id)
    assert total == 2


def test_manual_movement_is_audit_only(session, make_product, locations, operator):
    product = make_product(locations[0], quantity=10)

    movement = register_manual_movement(
        session,
        operator,
        product.id,
        MovementType.ADJUSTMENT,
        2,
        50.0,
        "Recount after inventory",
        to_location_id=locations[0].id,
    )

    assert movement.is_automatic is False
    assert movement.user_id == operator.id
    session.refresh(product)
    assert product.quantity == 10


def test_manual_movement_weight_must_match(session, make_product, locations, admin):
    product = make_product(locations[0])
    with pytest.raises(ValidationError) as exc_info:
        register_manual_movement(
            session,
            admin,
            product.id,
            MovementType.ADJUSTMENT,
            2,
            80.0,
            "Recount",
            to_location_id=locations[0].id,
        )
    assert exc_info.value.field == "weight"


def test_manual_movement_requires_destination(session, make_product, admin):
    product = make_product()
    with pytest.raises(ValidationError):
        register_manual_movement(
            session, admin, product.id, MovementType.TRANSFER, 1, 25.0, "Shift"
        )


def test_duplicate_manual_movement_rejected(session, make_product, locations, admin):
    product = make_product(locations[0])
    arguments = (product.id, MovementType.EXIT, 1, 25.0, "Sample taken")

    register_manual_movement(session, admin, *arguments)
    with pytest.raises(DuplicateMovementError):
        register_manual_movement(session, admin, *arguments)


def test_verify_movement(session, make_product, locations, admin, operator):
    make_product(locations[0])
    movement = list_movements(session)[0][0]

    with pytest.raises(PermissionDeniedError):
        verify_movement(session, movement.id, operator)

    verified = verify_movement(session, movement.id, admin, "Checked on site")
    assert verified.is_verified
    assert verified.verified_by == admin.id

    with pytest.raises(ValidationError):
        verify_movement(session, movement.id, admin)


def test_movement_stats(session, make_product, locations, admin):
    product = make_product(locations[0])
    move_product(session, product.id, locations[1].id, admin)

    stats = get_movement_stats(session, days=7)

    assert stats["total"] == 2
    assert stats["automatic"] == 2
    assert stats["manual"] == 0
    assert stats["by_type"]["entry"]["count"] == 1
    assert stats["by_type"]["transfer"]["weight_kg"] == 250.0


def test_reports(session, chamber, locations, make_product, admin):
    stored = make_product(locations[0])
    make_product(lot="L-WAIT")
    create_request(session, stored.id, admin)

    overview = dashboard(session)
    assert overview["products"]["total"] == 2
    assert overview["withdrawals_pending"] == 1

    inventory = inventory_report(session)
    assert inventory["by_status"]["AGUARDANDO_RETIRADA"] == 1
    assert inventory["by_status"]["AGUARDANDO_LOCACAO"] == 1

    expiring = expiration_report(session, 400)
    assert len(expiring["products"]) == 2

    capacity = capacity_report(session)
    assert capacity["chambers"][0]["occupied"] == 1

    movements = movement_report(session, 7)
    assert sum(day["total"] for day in movements["days"]) >= 2
