from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any, Final

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from ..domain.constants import (
    DUPLICATE_MOVEMENT_WINDOW_MINUTES,
    MAX_REASON_LENGTH,
    MIN_REASON_LENGTH,
    MovementStatus,
    MovementType,
)
from ..domain.exceptions import (
    CapacityExceededError,
    DuplicateMovementError,
    InvalidTransitionError,
    ValidationError,
)
from ..domain.rules import ensure_permission, is_final_status, round_weight, utcnow
from ..infrastructure.database.models import Location, Movement, Product, User
from ..logging_config import get_logger
from ..logging_utils import log_database_operation, log_user_action
from ..metrics import record_movement as record_movement_metric
from .queries import get_or_raise, paginate
from .validation import validate_notes, validate_text

logger: Final = get_logger(__name__)

# Manual movements must match quantity x weight per unit within this ratio
WEIGHT_TOLERANCE: Final = 0.05

_NEEDS_DESTINATION: Final = frozenset(
    {MovementType.ENTRY, MovementType.TRANSFER, MovementType.ADJUSTMENT}
)


def _validate_movement(
    movement_type: MovementType,
    quantity: int,
    weight: float,
    from_location_id: int | None,
    to_location_id: int | None,
) -> None:
    if quantity < 0:
        raise ValidationError("Movement quantity cannot be negative", field="quantity")
    if weight < 0:
        raise ValidationError("Movement weight cannot be negative", field="weight")
    if movement_type == MovementType.TRANSFER and from_location_id is None:
        raise ValidationError(
            "Transfers require an origin location", field="from_location_id"
        )
    if movement_type in _NEEDS_DESTINATION and to_location_id is None:
        raise ValidationError(
            f"{movement_type.value} movements require a destination location",
            field="to_location_id",
        )
    if movement_type == MovementType.EXIT and to_location_id is not None:
        raise ValidationError(
            "Exit movements cannot have a destination", field="to_location_id"
        )


def find_duplicate(
    session: Session,
    product_id: int,
    movement_type: MovementType,
    quantity: int,
    weight: float,
    user_id: int,
    now: datetime | None = None,
) -> Movement | None:
    """Identical non-cancelled movement by the same user in the recent window."""
    since = (now or utcnow()) - timedelta(minutes=DUPLICATE_MOVEMENT_WINDOW_MINUTES)
    statement = select(Movement).where(
        Movement.product_id == product_id,
        Movement.type == movement_type,
        Movement.quantity == quantity,
        Movement.weight == weight,
        Movement.user_id == user_id,
        Movement.timestamp >= since,
        Movement.status != MovementStatus.CANCELLED,
    )
    return session.exec(statement).first()


def record_movement(
    session: Session,
    *,
    product_id: int,
    movement_type: MovementType,
    quantity: int,
    weight: float,
    user_id: int,
    from_location_id: int | None = None,
    to_location_id: int | None = None,
    reason: str | None = None,
    notes: str | None = None,
    is_automatic: bool = True,
    previous_values: dict[str, Any] | None = None,
    batch_id: str | None = None,
) -> Movement:
    """Add a movement to the session without committing.

    Services call this inside the same transaction as the stock change it
    documents. Manual (non-automatic) movements are checked for duplicates.
    """
    weight = round_weight(weight)
    _validate_movement(
        movement_type, quantity, weight, from_location_id, to_location_id
    )

    if not is_automatic:
        duplicate = find_duplicate(
            session, product_id, movement_type, quantity, weight, user_id
        )
        if duplicate is not None:
            logger.warning(
                "Duplicate movement rejected",
                product_id=product_id,
                duplicate_of=duplicate.id,
            )
            raise DuplicateMovementError(
                f"An identical movement was recorded less than "
                f"{DUPLICATE_MOVEMENT_WINDOW_MINUTES} minutes ago (#{duplicate.id})"
            )

    movement = Movement(
        product_id=product_id,
        type=movement_type,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        quantity=quantity,
        weight=weight,
        user_id=user_id,
        reason=reason,
        notes=notes,
        is_automatic=is_automatic,
        previous_values=previous_values,
        batch_id=batch_id,
    )
    session.add(movement)

    record_movement_metric(movement_type.value, is_automatic)
    logger.debug(
        "Movement recorded",
        product_id=product_id,
        type=movement_type.value,
        quantity=quantity,
        weight=weight,
    )
    return movement


def register_manual_movement(
    session: Session,
    actor: User,
    product_id: int,
    movement_type: MovementType,
    quantity: int,
    weight: float,
    reason: str,
    from_location_id: int | None = None,
    to_location_id: int | None = None,
    notes: str | None = None,
) -> Movement:
    """Record a movement typed in by a user (audit entry, stock is untouched)."""
    ensure_permission(actor.role, "record_movement")
    assert actor.id is not None

    product = get_or_raise(session, Product, product_id, "product")
    reason = validate_text(
        reason, "reason", min_length=MIN_REASON_LENGTH, max_length=MAX_REASON_LENGTH
    )

    if is_final_status(product.status) and movement_type != MovementType.ENTRY:
        raise InvalidTransitionError(str(product.status), movement_type.value)

    expected = product.weight_per_unit * quantity
    if abs(weight - expected) > expected * WEIGHT_TOLERANCE:
        raise ValidationError(
            f"Weight {weight}kg does not match quantity x weight per unit "
            f"({round_weight(expected)}kg)",
            field="weight",
        )

    if to_location_id is not None:
        destination = get_or_raise(session, Location, to_location_id, "location")
        if not destination.capacity.can_accommodate(weight):
            raise CapacityExceededError(
                destination.code, weight, destination.capacity.available_kg
            )

    movement = record_movement(
        session,
        product_id=product_id,
        movement_type=movement_type,
        quantity=quantity,
        weight=weight,
        user_id=actor.id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        reason=reason,
        notes=validate_notes(notes),
        is_automatic=False,
    )
    session.commit()
    session.refresh(movement)

    log_database_operation(
        operation="create", table="Movement", movement_id=movement.id
    )
    log_user_action(
        "register_movement", actor.email, movement_id=movement.id, product_id=product_id
    )
    return movement


def verify_movement(
    session: Session, movement_id: int, actor: User, notes: str | None = None
) -> Movement:
    ensure_permission(actor.role, "verify_movement")
    movement = get_movement(session, movement_id)

    if movement.is_verified:
        raise ValidationError(f"Movement #{movement.id} is already verified")

    movement.is_verified = True
    movement.verified_by = actor.id
    movement.verified_at = utcnow()
    movement.verification_notes = notes
    session.add(movement)
    session.commit()
    session.refresh(movement)

    log_user_action("verify_movement", actor.email, movement_id=movement.id)
    return movement


def get_movement(session: Session, movement_id: int) -> Movement:
    return get_or_raise(session, Movement, movement_id, "movement")


def list_movements(
    session: Session,
    movement_type: MovementType | None = None,
    product_id: int | None = None,
    location_id: int | None = None,
    user_id: int | None = None,
    is_automatic: bool | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[Movement], int]:
    statement = select(Movement)
    if movement_type is not None:
        statement = statement.where(Movement.type == movement_type)
    if product_id is not None:
        statement = statement.where(Movement.product_id == product_id)
    if location_id is not None:
        statement = statement.where(
            or_(
                Movement.from_location_id == location_id,
                Movement.to_location_id == location_id,
            )
        )
    if user_id is not None:
        statement = statement.where(Movement.user_id == user_id)
    if is_automatic is not None:
        statement = statement.where(Movement.is_automatic == is_automatic)
    if start_date is not None:
        statement = statement.where(Movement.timestamp >= start_date)
    if end_date is not None:
        statement = statement.where(Movement.timestamp <= end_date)

    statement = statement.order_by(
        col(Movement.timestamp).desc(), col(Movement.id).desc()
    )
    return paginate(session, statement, page, limit)


def get_product_history(session: Session, product_id: int) -> Sequence[Movement]:
    """All movements of a product, oldest first."""
    get_or_raise(session, Product, product_id, "product")
    statement = (
        select(Movement)
        .where(Movement.product_id == product_id)
        .order_by(col(Movement.timestamp), col(Movement.id))
    )
    return session.exec(statement).all()


def get_movement_stats(session: Session, days: int = 30) -> dict[str, Any]:
    since = utcnow() - timedelta(days=days)
    rows = session.exec(
        select(
            Movement.type,
            Movement.is_automatic,
            func.count(),
            func.coalesce(func.sum(Movement.weight), 0.0),
        )
        .where(
            Movement.timestamp >= since,
            Movement.status != MovementStatus.CANCELLED,
        )
        .group_by(Movement.type, Movement.is_automatic)
    ).all()

    by_type: dict[str, dict[str, float]] = {
        movement_type.value: {"count": 0, "weight_kg": 0.0}
        for movement_type in MovementType
    }
    totals = {"total": 0, "automatic": 0, "manual": 0}
    for movement_type, is_automatic, amount, weight in rows:
        entry = by_type[MovementType(movement_type).value]
        entry["count"] += amount
        entry["weight_kg"] = round_weight(entry["weight_kg"] + weight)
        totals["total"] += amount
        totals["automatic" if is_automatic else "manual"] += amount

    unverified = session.exec(
        select(func.count(col(Movement.id))).where(
            Movement.timestamp >= since,
            Movement.is_verified == False,  # noqa: E712
        )
    ).one()

    return {
        "period_days": days,
        **totals,
        "unverified": unverified,
        "by_type": by_type,
    }

