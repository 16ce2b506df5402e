from datetime import timedelta

import pytest
from sqlmodel import Session, col, select

from coldstock.application.chamber_service import update_chamber
from coldstock.application.client_service import set_client_active
from coldstock.application.product_service import (
    add_stock,
    cancel_product,
    create_product,
    create_products_batch,
    list_batch,
    list_pending_location,
    list_products,
    locate_product,
    move_product,
    partial_exit,
    partial_move,
    remove_product,
    update_product,
)
from coldstock.application.seed_type_service import delete_seed_type
from coldstock.application.withdrawal_service import create_request
from coldstock.domain.constants import (
    ChamberStatus,
    MovementType,
    ProductStatus,
    WithdrawalStatus,
)
from coldstock.domain.exceptions import (
    CapacityExceededError,
    ChamberInactiveError,
    ConcurrentModificationError,
    InvalidTransitionError,
    LocationOccupiedError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from coldstock.domain.rules import utcnow
from coldstock.infrastructure.database.models import Movement, Product


def _movements(session: Session, product_id: int) -> list[Movement]:
    statement = (
        select(Movement)
        .where(Movement.product_id == product_id)
        .order_by(col(Movement.id))
    )
    return list(session.exec(statement).all())


def test_create_product_without_location_waits(session, make_product):
    product = make_product()

    assert product.id is not None
    assert product.status == ProductStatus.AGUARDANDO_LOCACAO
    assert product.total_weight == 250.0
    assert product.version == 0
    assert product.location_id is None
    assert _movements(session, product.id) == []
    assert product in list_pending_location(session)


def test_create_product_at_location(session, make_product, locations):
    location = locations[0]
    product = make_product(location)

    assert product.status == ProductStatus.LOCADO
    session.refresh(location)
    assert location.is_occupied
    assert location.current_weight_kg == 250.0

    movements = _movements(session, product.id)
    assert len(movements) == 1
    assert movements[0].type == MovementType.ENTRY
    assert movements[0].to_location_id == location.id
    assert movements[0].is_automatic


def test_create_product_defaults_expiration_from_seed_type(make_product):
    product = make_product()

    assert product.expiration_date is not None
    assert (product.expiration_date - product.entry_date).days == 365


def test_create_product_rejects_expiration_before_entry(make_product):
    with pytest.raises(ValidationError) as exc_info:
        make_product(expiration_date=utcnow() - timedelta(days=1))
    assert exc_info.value.field == "expiration_date"


def test_create_product_rejects_too_heavy_load(make_product, locations):
    # 50 x 25 kg = 1250 kg does not fit a 1000 kg location
    with pytest.raises(CapacityExceededError) as exc_info:
        make_product(locations[0], quantity=50)
    assert exc_info.value.deficit_kg == 250.0


def test_create_product_rejects_occupied_location(make_product, locations):
    make_product(locations[0])
    with pytest.raises(LocationOccupiedError):
        make_product(locations[0], lot="L-002")


def test_create_product_rejects_inactive_chamber(
    session, make_product, chamber, locations
):
    update_chamber(session, chamber.id, {"status": ChamberStatus.MAINTENANCE})
    with pytest.raises(ChamberInactiveError):
        make_product(locations[0])


def test_create_product_rejects_inactive_seed_type(session, make_product, seed_type):
    delete_seed_type(session, seed_type.id)
    with pytest.raises(ValidationError) as exc_info:
        make_product()
    assert exc_info.value.field == "seed_type_id"


def test_create_product_rejects_inactive_client(
    session, make_product, client_record
):
    set_client_active(session, client_record.id, False)
    with pytest.raises(ValidationError):
        make_product(client_id=client_record.id)


def _product(seed_type_id: int, lot: str = "M-1", **values) -> Product:
    values.setdefault("quantity", 4)
    values.setdefault("weight_per_unit", 20.0)
    return Product(name="Milho", lot=lot, seed_type_id=seed_type_id, **values)


def test_create_product_unknown_seed_type(session, admin):
    with pytest.raises(NotFoundError):
        create_product(session, _product(999), admin)


def test_operator_cannot_create_product(session, operator, seed_type):
    with pytest.raises(PermissionDeniedError):
        create_product(session, _product(seed_type.id), operator)


def test_batch_creation_shares_batch_id(
    session, admin, seed_type, client_record, locations
):
    products = [
        _product(seed_type.id, f"B-{index}", location_id=locations[index].id)
        for index in range(3)
    ]
    batch_id, created = create_products_batch(
        session, products, admin, client_record.id
    )

    assert batch_id.startswith("BATCH-")
    assert len(created) == 3
    assert all(product.batch_id == batch_id for product in created)
    assert all(product.client_id == client_record.id for product in created)
    assert [p.id for p in list_batch(session, batch_id)] == [p.id for p in created]


def test_batch_creation_is_all_or_nothing(session, admin, seed_type, locations):
    products = [
        _product(seed_type.id, "B-1", location_id=locations[0].id),
        # Same location again: must fail and roll back the first product
        _product(seed_type.id, "B-2", location_id=locations[0].id),
    ]
    with pytest.raises(LocationOccupiedError):
        create_products_batch(session, products, admin)

    assert session.exec(select(Product)).all() == []
    session.refresh(locations[0])
    assert not locations[0].is_occupied


def test_locate_product(session, make_product, locations, operator):
    product = make_product()
    location = locations[1]

    located = locate_product(session, product.id, location.id, operator)

    assert located.status == ProductStatus.LOCADO
    assert located.location_id == location.id
    assert located.version == 1
    session.refresh(location)
    assert location.current_weight_kg == 250.0

    movements = _movements(session, product.id)
    assert [m.type for m in movements] == [MovementType.ENTRY]
    assert movements[0].user_id == operator.id


def test_locate_stored_product_is_invalid(session, make_product, locations, admin):
    product = make_product(locations[0])
    with pytest.raises(InvalidTransitionError):
        locate_product(session, product.id, locations[1].id, admin)


def test_reserved_product_cannot_be_relocated(
    session, make_product, locations, admin, operator
):
    product = make_product(locations[0], quantity=10)
    request = create_request(session, product.id, admin)

    with pytest.raises(InvalidTransitionError):
        locate_product(session, product.id, locations[1].id, operator)
    with pytest.raises(InvalidTransitionError):
        move_product(session, product.id, locations[1].id, operator)
    with pytest.raises(InvalidTransitionError):
        partial_move(session, product.id, locations[1].id, 2, operator)

    reserved = session.get(Product, product.id)
    assert reserved.status == ProductStatus.AGUARDANDO_RETIRADA
    assert reserved.location_id == locations[0].id
    session.refresh(locations[1])
    assert not locations[1].is_occupied
    assert request.status == WithdrawalStatus.PENDENTE


def test_stale_version_is_rejected(session, make_product, locations, admin):
    product = make_product()
    locate_product(session, product.id, locations[0].id, admin, expected_version=0)

    with pytest.raises(ConcurrentModificationError) as exc_info:
        move_product(session, product.id, locations[1].id, admin, expected_version=0)
    assert exc_info.value.expected_version == 0

    # Nothing of the rejected move was written
    session.refresh(locations[1])
    assert not locations[1].is_occupied
    stored = session.get(Product, product.id)
    assert stored.location_id == locations[0].id
    assert stored.version == 1


def test_move_product(session, make_product, locations, operator):
    origin, destination = locations[0], locations[1]
    product = make_product(origin)

    moved = move_product(session, product.id, destination.id, operator, "Reorganize")

    assert moved.location_id == destination.id
    assert moved.status == ProductStatus.LOCADO
    session.refresh(origin)
    session.refresh(destination)
    assert not origin.is_occupied
    assert origin.current_weight_kg == 0.0
    assert destination.current_weight_kg == 250.0

    transfer = _movements(session, product.id)[-1]
    assert transfer.type == MovementType.TRANSFER
    assert transfer.from_location_id == origin.id
    assert transfer.to_location_id == destination.id
    assert transfer.reason == "Reorganize"


def test_move_to_same_location_is_invalid(session, make_product, locations, admin):
    product = make_product(locations[0])
    with pytest.raises(ValidationError):
        move_product(session, product.id, locations[0].id, admin)


def test_move_to_occupied_location(session, make_product, locations, admin):
    product = make_product(locations[0])
    make_product(locations[1], lot="L-002")
    with pytest.raises(LocationOccupiedError):
        move_product(session, product.id, locations[1].id, admin)


def test_partial_move_splits_product(session, make_product, locations, operator):
    origin, destination = locations[0], locations[1]
    product = make_product(origin, quantity=10)

    reduced, split = partial_move(
        session, product.id, destination.id, 4, operator
    )

    assert reduced.quantity == 6
    assert reduced.total_weight == 150.0
    assert split.quantity == 4
    assert split.total_weight == 100.0
    assert split.location_id == destination.id
    assert split.lot == product.lot
    assert split.status == ProductStatus.LOCADO

    session.refresh(origin)
    session.refresh(destination)
    assert origin.current_weight_kg == 150.0
    assert destination.current_weight_kg == 100.0

    assert _movements(session, product.id)[-1].type == MovementType.TRANSFER
    assert [m.type for m in _movements(session, split.id)] == [MovementType.ENTRY]


@pytest.mark.parametrize("quantity", [0, 10, 11])
def test_partial_move_quantity_must_leave_something(
    session, make_product, locations, admin, quantity
):
    product = make_product(locations[0], quantity=10)
    with pytest.raises(ValidationError):
        partial_move(session, product.id, locations[1].id, quantity, admin)


def test_partial_exit(session, make_product, locations, admin):
    location = locations[0]
    product = make_product(location, quantity=10)

    product = partial_exit(session, product.id, 3, admin, "Sample sent")

    assert product.quantity == 7
    assert product.total_weight == 175.0
    assert product.status == ProductStatus.LOCADO
    session.refresh(location)
    assert location.current_weight_kg == 175.0

    exit_movement = _movements(session, product.id)[-1]
    assert exit_movement.type == MovementType.EXIT
    assert exit_movement.weight == 75.0
    assert exit_movement.previous_values == {"quantity": 10, "total_weight": 250.0}


def test_partial_exit_of_everything_removes(session, make_product, locations, admin):
    location = locations[0]
    product = make_product(location, quantity=2)

    product = partial_exit(session, product.id, 2, admin)

    assert product.status == ProductStatus.REMOVIDO
    assert product.quantity == 0
    assert product.location_id is None
    session.refresh(location)
    assert not location.is_occupied


def test_operator_cannot_partial_exit(session, make_product, locations, operator):
    product = make_product(locations[0])
    with pytest.raises(PermissionDeniedError):
        partial_exit(session, product.id, 1, operator)


def test_add_stock(session, make_product, locations, admin):
    location = locations[0]
    product = make_product(location, quantity=10)

    product = add_stock(session, product.id, 4, admin)

    assert product.quantity == 14
    assert product.total_weight == 350.0
    session.refresh(location)
    assert location.current_weight_kg == 350.0
    assert _movements(session, product.id)[-1].type == MovementType.ADJUSTMENT


def test_add_stock_respects_capacity(session, make_product, locations, admin):
    product = make_product(locations[0], quantity=30)
    with pytest.raises(CapacityExceededError):
        add_stock(session, product.id, 20, admin)


def test_update_product_descriptive_fields(session, make_product, operator):
    product = make_product()

    updated = update_product(
        session, product.id, {"name": "Soja Safra 2025", "supplier": "Coop"}, operator
    )

    assert updated.name == "Soja Safra 2025"
    assert updated.supplier == "Coop"
    assert updated.version == 1


def test_update_product_quantity_adjusts_location(
    session, make_product, locations, admin
):
    location = locations[0]
    product = make_product(location, quantity=10)

    updated = update_product(session, product.id, {"quantity": 12}, admin)

    assert updated.total_weight == 300.0
    session.refresh(location)
    assert location.current_weight_kg == 300.0
    assert _movements(session, product.id)[-1].type == MovementType.ADJUSTMENT


def test_update_final_product_is_refused(session, make_product, admin):
    product = make_product()
    cancel_product(session, product.id, admin)
    with pytest.raises(InvalidTransitionError):
        update_product(session, product.id, {"name": "Other"}, admin)


def test_remove_product(session, make_product, locations, admin):
    location = locations[0]
    product = make_product(location)

    removed = remove_product(session, product.id, admin, "Damaged")

    assert removed.status == ProductStatus.REMOVIDO
    assert removed.location_id is None
    session.refresh(location)
    assert not location.is_occupied
    assert location.current_weight_kg == 0.0
    assert _movements(session, product.id)[-1].type == MovementType.EXIT


def test_cancel_only_before_storage(session, make_product, locations, admin):
    waiting = make_product()
    cancelled = cancel_product(session, waiting.id, admin, "Wrong lot")
    assert cancelled.status == ProductStatus.CANCELADO
    assert "Wrong lot" in (cancelled.notes or "")

    stored = make_product(locations[0], lot="L-002")
    with pytest.raises(InvalidTransitionError):
        cancel_product(session, stored.id, admin)


def test_list_products_filters(session, make_product, locations, chamber):
    make_product(locations[0], lot="A-1")
    make_product(lot="B-1", name="Milho Branco")

    stored, total = list_products(session, status=ProductStatus.LOCADO)
    assert total == 1
    assert stored[0].lot == "A-1"

    in_chamber, total = list_products(session, chamber_id=chamber.id)
    assert total == 1

    found, total = list_products(session, search="milho")
    assert total == 1
    assert found[0].lot == "B-1"

    expiring, total = list_products(session, expiring_within_days=400)
    assert total == 2
