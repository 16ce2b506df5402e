"""Product registration and every stock operation of the product lifecycle.

All product writes go through ``update_product_versioned`` which issues an
``UPDATE ... WHERE id = :id AND version = :version`` so that two concurrent
operations on the same product cannot both succeed. Location weight changes and
the movement documenting them are written in the same transaction.
"""

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any, Final

from sqlalchemy import or_, update
from sqlmodel import Session, col, select

from ..domain.constants import (
    MAX_LOT_LENGTH,
    MAX_PRODUCT_NAME_LENGTH,
    MAX_REASON_LENGTH,
    MAX_WEIGHT_PER_UNIT_KG,
    MIN_WEIGHT_PER_UNIT_KG,
    MovementType,
    ProductStatus,
)
from ..domain.exceptions import (
    ConcurrentModificationError,
    InvalidTransitionError,
    ValidationError,
)
from ..domain.rules import (
    calculate_expiration_date,
    calculate_total_weight,
    ensure_permission,
    ensure_transition,
    initial_status,
    is_final_status,
    round_weight,
    to_naive_utc,
    utcnow,
)
from ..infrastructure.database.models import Location, Product, User
from ..logging_config import get_logger
from ..logging_utils import log_database_operation, log_user_action
from ..metrics import record_product_registered, record_product_transition
from .client_service import get_client
from .location_service import (
    adjust_weight,
    ensure_capacity,
    get_location,
    occupy,
    release,
)
from .movement_service import record_movement
from .queries import get_or_raise, paginate
from .seed_type_service import get_seed_type
from .validation import (
    validate_notes,
    validate_positive_int,
    validate_range,
    validate_text,
)

logger: Final = get_logger(__name__)

_DESCRIPTIVE_FIELDS: Final = {
    "name",
    "lot",
    "notes",
    "expiration_date",
    "client_id",
    "storage_type",
    "batch_number",
    "origin",
    "supplier",
    "quality_grade",
}
_WEIGHT_FIELDS: Final = {"quantity", "weight_per_unit"}
# A pending withdrawal request holds the stock of AGUARDANDO_RETIRADA products
_RESIZABLE: Final = {
    ProductStatus.CADASTRADO,
    ProductStatus.AGUARDANDO_LOCACAO,
    ProductStatus.LOCADO,
}


def _ensure_status(
    product: Product, allowed: set[ProductStatus], operation: str
) -> None:
    if product.status not in allowed:
        raise InvalidTransitionError(
            str(product.status),
            operation,
            f"Cannot {operation.replace('_', ' ')} a product in status "
            f"{product.status}",
        )


def _current_location(session: Session, product: Product) -> Location:
    if product.location_id is None:
        raise InvalidTransitionError(
            str(product.status),
            "stored",
            f"Product #{product.id} is {product.status} without a location",
        )
    return get_location(session, product.location_id)


def _validate_reason(reason: str | None) -> str | None:
    return validate_text(
        reason, "reason", min_length=1, max_length=MAX_REASON_LENGTH, required=False
    )


def _validate_product_fields(product: Product) -> None:
    product.name = validate_text(
        product.name, "name", max_length=MAX_PRODUCT_NAME_LENGTH
    )
    product.lot = validate_text(
        product.lot, "lot", min_length=1, max_length=MAX_LOT_LENGTH
    )
    validate_positive_int(product.quantity, "quantity")
    validate_range(
        product.weight_per_unit,
        "weight_per_unit",
        MIN_WEIGHT_PER_UNIT_KG,
        MAX_WEIGHT_PER_UNIT_KG,
    )
    product.notes = validate_notes(product.notes)


def _require_id(user: User) -> int:
    assert user.id is not None
    return user.id


def snapshot(product: Product) -> dict[str, Any]:
    """Compact copy of a product's stock data, stored with withdrawal requests."""
    return {
        "name": product.name,
        "lot": product.lot,
        "quantity": product.quantity,
        "weight_per_unit": product.weight_per_unit,
        "total_weight": product.total_weight,
        "location_id": product.location_id,
        "status": str(product.status),
        "version": product.version,
    }


def update_product_versioned(
    session: Session,
    product: Product,
    expected_version: int | None = None,
    **values: Any,
) -> Product:
    """Write product columns guarded by the optimistic lock.

    Args:
        session: Database session, not committed here
        product: Product being changed
        expected_version: Version the caller read; defaults to the loaded one
        **values: Columns to set

    Raises:
        ConcurrentModificationError: If the stored version differs
    """
    version = product.version if expected_version is None else expected_version
    values["version"] = version + 1
    values["updated_at"] = utcnow()

    statement = (
        update(Product)
        .where(col(Product.id) == product.id, col(Product.version) == version)
        .values(**values)
    )
    result = session.connection().execute(statement)
    if result.rowcount == 0:
        session.rollback()
        logger.warning(
            "Optimistic lock failed", product_id=product.id, expected_version=version
        )
        raise ConcurrentModificationError("product", product.id, version)

    session.refresh(product)
    return product


def transition_product(
    session: Session,
    product: Product,
    target: ProductStatus,
    actor: User,
    expected_version: int | None = None,
    **values: Any,
) -> Product:
    """Move a product to another lifecycle status, checking the transition table."""
    previous = ProductStatus(product.status)
    ensure_transition(previous, target)

    update_product_versioned(
        session,
        product,
        expected_version,
        status=target,
        last_modified_by=actor.id,
        **values,
    )
    record_product_transition(previous.value, target.value)
    logger.info(
        "Product status changed",
        product_id=product.id,
        from_status=previous.value,
        to_status=target.value,
    )
    return product


def get_product(session: Session, product_id: int) -> Product:
    return get_or_raise(session, Product, product_id, "product")


def list_products(
    session: Session,
    status: ProductStatus | None = None,
    seed_type_id: int | None = None,
    client_id: int | None = None,
    location_id: int | None = None,
    chamber_id: int | None = None,
    lot: str | None = None,
    batch_id: str | None = None,
    search: str | None = None,
    expiring_within_days: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[Product], int]:
    statement = select(Product)
    if status is not None:
        statement = statement.where(Product.status == status)
    if seed_type_id is not None:
        statement = statement.where(Product.seed_type_id == seed_type_id)
    if client_id is not None:
        statement = statement.where(Product.client_id == client_id)
    if location_id is not None:
        statement = statement.where(Product.location_id == location_id)
    if chamber_id is not None:
        statement = statement.join(
            Location, col(Location.id) == col(Product.location_id)
        ).where(Location.chamber_id == chamber_id)
    if lot:
        statement = statement.where(Product.lot == lot)
    if batch_id:
        statement = statement.where(Product.batch_id == batch_id)
    if search:
        pattern = f"%{search}%"
        statement = statement.where(
            or_(col(Product.name).ilike(pattern), col(Product.lot).ilike(pattern))
        )
    if expiring_within_days is not None:
        statement = statement.where(
            col(Product.expiration_date).is_not(None),
            col(Product.expiration_date)
            <= utcnow() + timedelta(days=expiring_within_days),
        )

    statement = statement.order_by(
        col(Product.created_at).desc(), col(Product.id).desc()
    )
    return paginate(session, statement, page, limit)


def list_products_by_status(
    session: Session, *statuses: ProductStatus
) -> Sequence[Product]:
    statement = (
        select(Product)
        .where(col(Product.status).in_(list(statuses)))
        .order_by(col(Product.updated_at))
    )
    return session.exec(statement).all()


def list_pending_location(session: Session) -> Sequence[Product]:
    return list_products_by_status(
        session, ProductStatus.CADASTRADO, ProductStatus.AGUARDANDO_LOCACAO
    )


def list_pending_withdrawal(session: Session) -> Sequence[Product]:
    return list_products_by_status(session, ProductStatus.AGUARDANDO_RETIRADA)


def list_batch(session: Session, batch_id: str) -> Sequence[Product]:
    statement = (
        select(Product).where(Product.batch_id == batch_id).order_by(col(Product.id))
    )
    return session.exec(statement).all()


def _register_product(
    session: Session, product: Product, actor: User, batch_id: str | None = None
) -> Product:
    """Validate and stage a new product without committing."""
    _validate_product_fields(product)

    seed_type = get_seed_type(session, product.seed_type_id)
    if not seed_type.is_active:
        raise ValidationError(
            f"Seed type '{seed_type.name}' is inactive", field="seed_type_id"
        )

    if product.client_id is not None:
        client = get_client(session, product.client_id)
        if not client.is_active:
            raise ValidationError(
                f"Client '{client.name}' is inactive", field="client_id"
            )

    product.entry_date = to_naive_utc(product.entry_date) or utcnow()
    product.expiration_date = to_naive_utc(product.expiration_date)
    if product.expiration_date is None:
        product.expiration_date = calculate_expiration_date(
            product.entry_date, seed_type.max_storage_time_days
        )
    elif product.expiration_date <= product.entry_date:
        raise ValidationError(
            "Expiration date must be after the entry date", field="expiration_date"
        )

    product.total_weight = calculate_total_weight(
        product.quantity, product.weight_per_unit
    )

    location: Location | None = None
    if product.location_id is not None:
        location = get_location(session, product.location_id)
        ensure_capacity(session, location, product.total_weight)

    product.status = initial_status(product.location_id)
    ensure_transition(ProductStatus.CADASTRADO, product.status)
    product.version = 0
    product.created_by = actor.id
    product.last_modified_by = actor.id
    product.batch_id = batch_id or product.batch_id
    session.add(product)
    session.flush()

    if location is not None:
        assert product.id is not None
        occupy(session, location, product.total_weight)
        record_movement(
            session,
            product_id=product.id,
            movement_type=MovementType.ENTRY,
            quantity=product.quantity,
            weight=product.total_weight,
            user_id=_require_id(actor),
            to_location_id=location.id,
            reason="Product registered",
            batch_id=product.batch_id,
        )
        product.last_movement_date = utcnow()

    return product


def create_product(session: Session, product: Product, actor: User) -> Product:
    """Register a product, placing it immediately when a location is given."""
    ensure_permission(actor.role, "create_product")
    logger.debug("Creating product", name=product.name, lot=product.lot)

    _register_product(session, product, actor)
    session.commit()
    session.refresh(product)

    log_database_operation(
        operation="create",
        table="Product",
        product_id=product.id,
        status=product.status,
    )
    log_user_action("create_product", actor.email, product_id=product.id)
    record_product_registered(str(product.status), str(product.storage_type))
    logger.info(
        "Product created",
        product_id=product.id,
        status=str(product.status),
        total_weight=product.total_weight,
    )
    return product


def create_products_batch(
    session: Session,
    products: list[Product],
    actor: User,
    client_id: int | None = None,
) -> tuple[str, list[Product]]:
    """Register several products for one client in a single transaction.

    Either every product is created or none is.

    Returns:
        The generated batch id and the created products
    """
    ensure_permission(actor.role, "create_product")
    if not products:
        raise ValidationError("A batch needs at least one product", field="products")

    batch_id = f"BATCH-{uuid.uuid4().hex[:12].upper()}"
    try:
        for product in products:
            if client_id is not None:
                product.client_id = client_id
            _register_product(session, product, actor, batch_id)
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("Batch creation rolled back", batch_id=batch_id)
        raise

    for product in products:
        session.refresh(product)
        record_product_registered(str(product.status), str(product.storage_type))

    log_database_operation(
        operation="create_batch",
        table="Product",
        batch_id=batch_id,
        count=len(products),
    )
    log_user_action("create_batch", actor.email, batch_id=batch_id)
    return batch_id, products


def locate_product(
    session: Session,
    product_id: int,
    location_id: int,
    actor: User,
    expected_version: int | None = None,
) -> Product:
    """Place a product that is waiting for a location."""
    ensure_permission(actor.role, "locate_product")
    product = get_product(session, product_id)
    _ensure_status(
        product,
        {ProductStatus.CADASTRADO, ProductStatus.AGUARDANDO_LOCACAO},
        "locate",
    )
    ensure_transition(product.status, ProductStatus.LOCADO)

    location = get_location(session, location_id)
    ensure_capacity(session, location, product.total_weight)

    now = utcnow()
    transition_product(
        session,
        product,
        ProductStatus.LOCADO,
        actor,
        expected_version,
        location_id=location.id,
        last_movement_date=now,
    )
    occupy(session, location, product.total_weight)
    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.ENTRY,
        quantity=product.quantity,
        weight=product.total_weight,
        user_id=_require_id(actor),
        to_location_id=location.id,
        reason="Product located",
    )
    session.commit()
    session.refresh(product)

    log_user_action(
        "locate_product", actor.email, product_id=product.id, location_id=location.id
    )
    return product


def move_product(
    session: Session,
    product_id: int,
    new_location_id: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Product:
    """Transfer a stored product to another free location."""
    ensure_permission(actor.role, "move_product")
    product = get_product(session, product_id)
    _ensure_status(product, {ProductStatus.LOCADO}, "move")
    reason = _validate_reason(reason)

    if product.location_id == new_location_id:
        raise ValidationError(
            "Product is already at this location", field="new_location_id"
        )

    new_location = get_location(session, new_location_id)
    ensure_capacity(session, new_location, product.total_weight)

    old_location_id = product.location_id
    update_product_versioned(
        session,
        product,
        expected_version,
        location_id=new_location.id,
        last_modified_by=actor.id,
        last_movement_date=utcnow(),
    )
    if old_location_id is not None:
        release(session, get_location(session, old_location_id))
    occupy(session, new_location, product.total_weight)
    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.TRANSFER,
        quantity=product.quantity,
        weight=product.total_weight,
        user_id=_require_id(actor),
        from_location_id=old_location_id,
        to_location_id=new_location.id,
        reason=reason or "Product moved",
    )
    session.commit()
    session.refresh(product)

    log_user_action(
        "move_product",
        actor.email,
        product_id=product.id,
        from_location_id=old_location_id,
        to_location_id=new_location.id,
    )
    return product


def partial_move(
    session: Session,
    product_id: int,
    new_location_id: int,
    quantity: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> tuple[Product, Product]:
    """Split part of a stored product into a new product at another location.

    Returns:
        The reduced origin product and the newly created product
    """
    ensure_permission(actor.role, "partial_move")
    product = get_product(session, product_id)
    _ensure_status(product, {ProductStatus.LOCADO}, "partially move")
    reason = _validate_reason(reason)

    if quantity <= 0 or quantity >= product.quantity:
        raise ValidationError(
            f"Partial move quantity must be between 1 and {product.quantity - 1}",
            field="quantity",
        )
    if product.location_id == new_location_id:
        raise ValidationError(
            "Destination must differ from the current location",
            field="new_location_id",
        )

    moved_weight = calculate_total_weight(quantity, product.weight_per_unit)
    new_location = get_location(session, new_location_id)
    ensure_capacity(session, new_location, moved_weight)

    old_total = product.total_weight
    remaining = product.quantity - quantity
    remaining_weight = calculate_total_weight(remaining, product.weight_per_unit)
    origin_location_id = product.location_id
    now = utcnow()

    update_product_versioned(
        session,
        product,
        expected_version,
        quantity=remaining,
        total_weight=remaining_weight,
        last_modified_by=actor.id,
        last_movement_date=now,
    )
    if origin_location_id is not None:
        adjust_weight(
            session,
            get_location(session, origin_location_id),
            round_weight(remaining_weight - old_total),
        )

    new_product = Product(
        name=product.name,
        lot=product.lot,
        seed_type_id=product.seed_type_id,
        client_id=product.client_id,
        quantity=quantity,
        storage_type=product.storage_type,
        weight_per_unit=product.weight_per_unit,
        total_weight=moved_weight,
        location_id=new_location.id,
        entry_date=product.entry_date,
        expiration_date=product.expiration_date,
        status=ProductStatus.LOCADO,
        notes=product.notes,
        batch_number=product.batch_number,
        origin=product.origin,
        supplier=product.supplier,
        quality_grade=product.quality_grade,
        batch_id=product.batch_id,
        created_by=actor.id,
        last_modified_by=actor.id,
        last_movement_date=now,
    )
    session.add(new_product)
    session.flush()
    assert new_product.id is not None

    occupy(session, new_location, moved_weight)
    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.TRANSFER,
        quantity=quantity,
        weight=moved_weight,
        user_id=_require_id(actor),
        from_location_id=origin_location_id,
        to_location_id=new_location.id,
        reason=reason or "Partial move",
        notes=f"Split into product #{new_product.id}",
    )
    record_movement(
        session,
        product_id=new_product.id,
        movement_type=MovementType.ENTRY,
        quantity=quantity,
        weight=moved_weight,
        user_id=_require_id(actor),
        to_location_id=new_location.id,
        reason=reason or "Partial move",
        notes=f"Split from product #{product_id}",
    )
    session.commit()
    session.refresh(product)
    session.refresh(new_product)

    log_user_action(
        "partial_move",
        actor.email,
        product_id=product_id,
        new_product_id=new_product.id,
        quantity=quantity,
    )
    return product, new_product


def partial_exit(
    session: Session,
    product_id: int,
    quantity: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Product:
    """Take units out of a stored product; taking all of them removes it."""
    ensure_permission(actor.role, "partial_exit")
    product = get_product(session, product_id)
    _ensure_status(product, {ProductStatus.LOCADO}, "partial exit")
    reason = _validate_reason(reason)

    if quantity <= 0 or quantity > product.quantity:
        raise ValidationError(
            f"Exit quantity must be between 1 and {product.quantity}",
            field="quantity",
        )

    location_id = product.location_id
    old_total = product.total_weight
    remaining = product.quantity - quantity
    exit_weight = calculate_total_weight(quantity, product.weight_per_unit)
    now = utcnow()

    if remaining == 0:
        transition_product(
            session,
            product,
            ProductStatus.REMOVIDO,
            actor,
            expected_version,
            quantity=0,
            total_weight=0.0,
            location_id=None,
            last_movement_date=now,
        )
        if location_id is not None:
            release(session, get_location(session, location_id))
    else:
        remaining_weight = calculate_total_weight(remaining, product.weight_per_unit)
        update_product_versioned(
            session,
            product,
            expected_version,
            quantity=remaining,
            total_weight=remaining_weight,
            last_modified_by=actor.id,
            last_movement_date=now,
        )
        if location_id is not None:
            adjust_weight(
                session,
                get_location(session, location_id),
                round_weight(remaining_weight - old_total),
            )

    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.EXIT,
        quantity=quantity,
        weight=exit_weight,
        user_id=_require_id(actor),
        from_location_id=location_id,
        reason=reason or "Partial exit",
        previous_values={"quantity": remaining + quantity, "total_weight": old_total},
    )
    session.commit()
    session.refresh(product)

    log_user_action(
        "partial_exit", actor.email, product_id=product_id, quantity=quantity
    )
    return product


def add_stock(
    session: Session,
    product_id: int,
    quantity: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Product:
    """Increase the quantity of a stored product in place."""
    ensure_permission(actor.role, "add_stock")
    product = get_product(session, product_id)
    _ensure_status(product, {ProductStatus.LOCADO}, "add stock to")
    reason = _validate_reason(reason)
    validate_positive_int(quantity, "quantity")

    old_quantity = product.quantity
    old_total = product.total_weight
    new_total = calculate_total_weight(old_quantity + quantity, product.weight_per_unit)
    added_weight = round_weight(new_total - old_total)

    location = _current_location(session, product)
    ensure_capacity(session, location, added_weight, allow_occupied_by=product.id)

    update_product_versioned(
        session,
        product,
        expected_version,
        quantity=old_quantity + quantity,
        total_weight=new_total,
        last_modified_by=actor.id,
        last_movement_date=utcnow(),
    )
    adjust_weight(session, location, added_weight)
    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.ADJUSTMENT,
        quantity=quantity,
        weight=added_weight,
        user_id=_require_id(actor),
        to_location_id=location.id,
        reason=reason or "Stock added",
        previous_values={"quantity": old_quantity, "total_weight": old_total},
    )
    session.commit()
    session.refresh(product)

    log_user_action("add_stock", actor.email, product_id=product_id, quantity=quantity)
    return product


def update_product(
    session: Session,
    product_id: int,
    changes: dict[str, Any],
    actor: User,
    expected_version: int | None = None,
) -> Product:
    """Edit descriptive data; quantity or unit weight changes adjust the location."""
    ensure_permission(actor.role, "update_product")
    product = get_product(session, product_id)
    if is_final_status(product.status):
        raise InvalidTransitionError(
            str(product.status),
            "update",
            f"Products in status {product.status} cannot be edited",
        )
    if _WEIGHT_FIELDS & changes.keys() and product.status not in _RESIZABLE:
        raise InvalidTransitionError(
            str(product.status),
            "update",
            f"Quantity and unit weight cannot change in status {product.status}",
        )

    values: dict[str, Any] = {
        field: value
        for field, value in changes.items()
        if field in _DESCRIPTIVE_FIELDS | _WEIGHT_FIELDS
    }

    if "name" in values:
        values["name"] = validate_text(
            values["name"], "name", max_length=MAX_PRODUCT_NAME_LENGTH
        )
    if "lot" in values:
        values["lot"] = validate_text(
            values["lot"], "lot", min_length=1, max_length=MAX_LOT_LENGTH
        )
    if "notes" in values:
        values["notes"] = validate_notes(values["notes"])
    if values.get("client_id") is not None:
        get_client(session, values["client_id"])
    if "expiration_date" in values:
        values["expiration_date"] = to_naive_utc(values["expiration_date"])
    expiration = values.get("expiration_date")
    if isinstance(expiration, datetime) and expiration <= product.entry_date:
        raise ValidationError(
            "Expiration date must be after the entry date", field="expiration_date"
        )

    quantity = values.get("quantity", product.quantity)
    weight_per_unit = values.get("weight_per_unit", product.weight_per_unit)
    validate_positive_int(quantity, "quantity")
    validate_range(
        weight_per_unit,
        "weight_per_unit",
        MIN_WEIGHT_PER_UNIT_KG,
        MAX_WEIGHT_PER_UNIT_KG,
    )
    new_total = calculate_total_weight(quantity, weight_per_unit)
    weight_delta = round_weight(new_total - product.total_weight)
    old_values = {"quantity": product.quantity, "total_weight": product.total_weight}

    location: Location | None = None
    if weight_delta and product.location_id is not None:
        location = get_location(session, product.location_id)
        if weight_delta > 0:
            ensure_capacity(
                session, location, weight_delta, allow_occupied_by=product.id
            )

    if not values:
        return product

    values["total_weight"] = new_total
    update_product_versioned(
        session, product, expected_version, last_modified_by=actor.id, **values
    )

    if location is not None:
        adjust_weight(session, location, weight_delta)
        record_movement(
            session,
            product_id=product_id,
            movement_type=MovementType.ADJUSTMENT,
            quantity=product.quantity,
            weight=abs(weight_delta),
            user_id=_require_id(actor),
            to_location_id=location.id,
            reason="Product data updated",
            previous_values=old_values,
        )

    session.commit()
    session.refresh(product)

    log_database_operation(
        operation="update",
        table="Product",
        product_id=product_id,
        fields=sorted(values),
    )
    return product


def remove_product(
    session: Session,
    product_id: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Product:
    """Take a product out of stock for good (REMOVIDO)."""
    ensure_permission(actor.role, "remove_product")
    product = get_product(session, product_id)
    ensure_transition(product.status, ProductStatus.REMOVIDO)
    reason = _validate_reason(reason)

    location_id = product.location_id
    transition_product(
        session,
        product,
        ProductStatus.REMOVIDO,
        actor,
        expected_version,
        location_id=None,
        last_movement_date=utcnow(),
    )
    if location_id is not None:
        release(session, get_location(session, location_id))
    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.EXIT,
        quantity=product.quantity,
        weight=product.total_weight,
        user_id=_require_id(actor),
        from_location_id=location_id,
        reason=reason or "Product removed",
    )
    session.commit()
    session.refresh(product)

    log_user_action("remove_product", actor.email, product_id=product_id)
    return product


def cancel_product(
    session: Session,
    product_id: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Product:
    """Cancel the registration of a product that was never stored."""
    ensure_permission(actor.role, "cancel_product")
    product = get_product(session, product_id)
    reason = _validate_reason(reason)

    values: dict[str, Any] = {}
    if reason:
        values["notes"] = validate_notes(
            f"{product.notes}\nCancelled: {reason}" if product.notes else reason
        )
    transition_product(
        session, product, ProductStatus.CANCELADO, actor, expected_version, **values
    )
    session.commit()
    session.refresh(product)

    log_user_action("cancel_product", actor.email, product_id=product_id)
    return product
