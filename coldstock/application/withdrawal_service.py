"""Withdrawal requests: an administrator asks, an operator confirms.

While a request is pending its product sits in AGUARDANDO_RETIRADA and keeps
holding its location. Confirming hands the goods out; cancelling puts the
product back in LOCADO.
"""

from collections.abc import Sequence
from typing import Any, Final

from sqlalchemy import func
from sqlmodel import Session, col, select

from ..domain.constants import (
    MAX_DESCRIPTION_LENGTH,
    MovementType,
    ProductStatus,
    WithdrawalStatus,
    WithdrawalType,
    WithdrawalUrgency,
)
from ..domain.exceptions import InvalidTransitionError, ValidationError
from ..domain.rules import (
    calculate_total_weight,
    ensure_permission,
    round_weight,
    utcnow,
    withdrawal_urgency,
)
from ..infrastructure.database.models import Product, User, WithdrawalRequest
from ..logging_config import get_logger
from ..logging_utils import log_database_operation, log_user_action
from ..metrics import record_withdrawal
from .location_service import adjust_weight, get_location, release
from .movement_service import record_movement
from .product_service import (
    get_product,
    snapshot,
    transition_product,
)
from .queries import get_or_raise, paginate
from .validation import validate_notes, validate_text

logger: Final = get_logger(__name__)


def _validate_reason(reason: str | None) -> str | None:
    return validate_text(
        reason,
        "reason",
        min_length=1,
        max_length=MAX_DESCRIPTION_LENGTH,
        required=False,
    )


def _validate_quantity(
    withdrawal_type: WithdrawalType, quantity: int | None, available: int
) -> int | None:
    """Return the quantity to store on the request (None for TOTAL)."""
    if withdrawal_type == WithdrawalType.TOTAL:
        return None
    if quantity is None or quantity <= 0 or quantity >= available:
        raise ValidationError(
            f"Partial withdrawal quantity must be between 1 and {available - 1}",
            field="quantity_requested",
        )
    return quantity


def _ensure_pending(request: WithdrawalRequest, operation: str) -> None:
    if request.status != WithdrawalStatus.PENDENTE:
        raise InvalidTransitionError(
            str(request.status),
            operation,
            f"Cannot {operation} a withdrawal request that is {request.status}",
        )


def _actor_id(actor: User) -> int:
    assert actor.id is not None
    return actor.id


def get_request(session: Session, request_id: int) -> WithdrawalRequest:
    return get_or_raise(session, WithdrawalRequest, request_id, "withdrawal request")


def list_requests(
    session: Session,
    status: WithdrawalStatus | None = None,
    withdrawal_type: WithdrawalType | None = None,
    product_id: int | None = None,
    requested_by: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[WithdrawalRequest], int]:
    statement = select(WithdrawalRequest)
    if status is not None:
        statement = statement.where(WithdrawalRequest.status == status)
    if withdrawal_type is not None:
        statement = statement.where(WithdrawalRequest.type == withdrawal_type)
    if product_id is not None:
        statement = statement.where(WithdrawalRequest.product_id == product_id)
    if requested_by is not None:
        statement = statement.where(WithdrawalRequest.requested_by == requested_by)

    statement = statement.order_by(
        col(WithdrawalRequest.requested_at).desc(), col(WithdrawalRequest.id).desc()
    )
    return paginate(session, statement, page, limit)


def list_pending(session: Session) -> Sequence[WithdrawalRequest]:
    """Pending requests, oldest first, as operators work through them."""
    statement = (
        select(WithdrawalRequest)
        .where(WithdrawalRequest.status == WithdrawalStatus.PENDENTE)
        .order_by(col(WithdrawalRequest.requested_at), col(WithdrawalRequest.id))
    )
    return session.exec(statement).all()


def list_by_product(session: Session, product_id: int) -> Sequence[WithdrawalRequest]:
    get_product(session, product_id)
    statement = (
        select(WithdrawalRequest)
        .where(WithdrawalRequest.product_id == product_id)
        .order_by(col(WithdrawalRequest.requested_at).desc())
    )
    return session.exec(statement).all()


def create_request(
    session: Session,
    product_id: int,
    actor: User,
    withdrawal_type: WithdrawalType = WithdrawalType.TOTAL,
    quantity: int | None = None,
    reason: str | None = None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> WithdrawalRequest:
    """Open a withdrawal request and reserve the product for it.

    Args:
        session: Database session
        product_id: Stored product to withdraw
        actor: Administrator asking for the withdrawal
        withdrawal_type: TOTAL or PARCIAL
        quantity: Units to withdraw, required for PARCIAL
        reason: Free text reason
        notes: Additional notes
        expected_version: Product version the caller read

    Raises:
        InvalidTransitionError: If the product is not LOCADO
        ConcurrentModificationError: If the product changed meanwhile
    """
    ensure_permission(actor.role, "request_withdrawal")
    product = get_product(session, product_id)
    if product.status != ProductStatus.LOCADO:
        raise InvalidTransitionError(
            str(product.status),
            ProductStatus.AGUARDANDO_RETIRADA.value,
            f"Only stored products can be withdrawn (product is {product.status})",
        )

    withdrawal_type = WithdrawalType(withdrawal_type)
    quantity = _validate_quantity(withdrawal_type, quantity, product.quantity)
    reason = _validate_reason(reason)
    notes = validate_notes(notes)
    product_data = snapshot(product)

    transition_product(
        session,
        product,
        ProductStatus.AGUARDANDO_RETIRADA,
        actor,
        expected_version,
    )

    request = WithdrawalRequest(
        product_id=product_id,
        requested_by=_actor_id(actor),
        type=withdrawal_type,
        quantity_requested=quantity,
        reason=reason,
        notes=notes,
        product_snapshot=product_data,
    )
    session.add(request)
    record_movement(
        session,
        product_id=product_id,
        movement_type=MovementType.ADJUSTMENT,
        quantity=quantity or product.quantity,
        weight=(
            calculate_total_weight(quantity, product.weight_per_unit)
            if quantity
            else product.total_weight
        ),
        user_id=_actor_id(actor),
        to_location_id=product.location_id,
        reason="Withdrawal requested",
        notes=reason,
        previous_values={"status": ProductStatus.LOCADO.value},
    )
    session.commit()
    session.refresh(request)

    record_withdrawal("requested", withdrawal_type.value)
    log_database_operation(
        operation="create",
        table="WithdrawalRequest",
        request_id=request.id,
        product_id=product_id,
    )
    log_user_action(
        "request_withdrawal",
        actor.email,
        request_id=request.id,
        product_id=product_id,
        type=withdrawal_type.value,
    )
    return request


def update_request(
    session: Session,
    request_id: int,
    actor: User,
    reason: str | None = None,
    notes: str | None = None,
    quantity: int | None = None,
) -> WithdrawalRequest:
    ensure_permission(actor.role, "update_withdrawal")
    request = get_request(session, request_id)
    _ensure_pending(request, "update")

    if quantity is not None:
        product = get_product(session, request.product_id)
        request.quantity_requested = _validate_quantity(
            WithdrawalType(request.type), quantity, product.quantity
        )
    if reason is not None:
        request.reason = _validate_reason(reason)
    if notes is not None:
        request.notes = validate_notes(notes)

    request.updated_at = utcnow()
    session.add(request)
    session.commit()
    session.refresh(request)

    log_database_operation(
        operation="update", table="WithdrawalRequest", request_id=request.id
    )
    return request


def confirm_request(
    session: Session,
    request_id: int,
    actor: User,
    notes: str | None = None,
    expected_version: int | None = None,
) -> WithdrawalRequest:
    """Hand out the goods of a pending request.

    A TOTAL withdrawal ends the product (RETIRADO) and frees its location; a
    PARCIAL one reduces the stored quantity and returns the product to LOCADO.
    """
    ensure_permission(actor.role, "confirm_withdrawal")
    request = get_request(session, request_id)
    _ensure_pending(request, "confirm")

    product = get_product(session, request.product_id)
    if product.status != ProductStatus.AGUARDANDO_RETIRADA:
        raise InvalidTransitionError(
            str(product.status),
            ProductStatus.RETIRADO.value,
            f"Product #{product.id} is not awaiting withdrawal",
        )

    location_id = product.location_id
    now = utcnow()
    old_values = {"quantity": product.quantity, "total_weight": product.total_weight}

    if request.type == WithdrawalType.PARCIAL:
        withdrawn = request.quantity_requested or 0
        if not 0 < withdrawn < product.quantity:
            raise ValidationError(
                f"Product #{product.id} only has {product.quantity} units left",
                field="quantity_requested",
            )
        remaining_weight = calculate_total_weight(
            product.quantity - withdrawn, product.weight_per_unit
        )
        withdrawn_weight = round_weight(product.total_weight - remaining_weight)
        transition_product(
            session,
            product,
            ProductStatus.LOCADO,
            actor,
            expected_version,
            quantity=product.quantity - withdrawn,
            total_weight=remaining_weight,
            last_movement_date=now,
        )
        if location_id is not None:
            location = get_location(session, location_id)
            adjust_weight(session, location, -withdrawn_weight)
    else:
        withdrawn = product.quantity
        withdrawn_weight = product.total_weight
        transition_product(
            session,
            product,
            ProductStatus.RETIRADO,
            actor,
            expected_version,
            location_id=None,
            last_movement_date=now,
        )
        if location_id is not None:
            release(session, get_location(session, location_id))

    request.status = WithdrawalStatus.CONFIRMADO
    request.confirmed_at = now
    request.confirmed_by = actor.id
    if notes:
        request.notes = validate_notes(
            f"{request.notes}\n{notes}" if request.notes else notes
        )
    request.updated_at = now
    session.add(request)

    record_movement(
        session,
        product_id=product.id or request.product_id,
        movement_type=MovementType.EXIT,
        quantity=withdrawn,
        weight=withdrawn_weight,
        user_id=_actor_id(actor),
        from_location_id=location_id,
        reason="Withdrawal confirmed",
        notes=f"Withdrawal request #{request.id}",
        previous_values=old_values,
    )
    session.commit()
    session.refresh(request)

    record_withdrawal("confirmed", str(request.type))
    log_user_action(
        "confirm_withdrawal",
        actor.email,
        request_id=request.id,
        product_id=request.product_id,
        quantity=withdrawn,
    )
    logger.info(
        "Withdrawal confirmed",
        request_id=request.id,
        type=str(request.type),
        quantity=withdrawn,
    )
    return request


def cancel_request(
    session: Session,
    request_id: int,
    actor: User,
    reason: str | None = None,
    expected_version: int | None = None,
) -> WithdrawalRequest:
    ensure_permission(actor.role, "cancel_withdrawal")
    request = get_request(session, request_id)
    _ensure_pending(request, "cancel")
    reason = _validate_reason(reason)

    product = get_product(session, request.product_id)
    now = utcnow()
    if product.status == ProductStatus.AGUARDANDO_RETIRADA:
        transition_product(
            session, product, ProductStatus.LOCADO, actor, expected_version
        )
        record_movement(
            session,
            product_id=request.product_id,
            movement_type=MovementType.ADJUSTMENT,
            quantity=product.quantity,
            weight=product.total_weight,
            user_id=_actor_id(actor),
            to_location_id=product.location_id,
            reason="Withdrawal cancelled",
            notes=reason,
            previous_values={"status": ProductStatus.AGUARDANDO_RETIRADA.value},
        )
    else:
        logger.warning(
            "Cancelling withdrawal of product not awaiting withdrawal",
            request_id=request.id,
            product_status=str(product.status),
        )

    request.status = WithdrawalStatus.CANCELADO
    request.canceled_at = now
    request.canceled_by = actor.id
    if reason:
        request.notes = validate_notes(
            f"{request.notes}\nCancelled: {reason}" if request.notes else reason
        )
    request.updated_at = now
    session.add(request)
    session.commit()
    session.refresh(request)

    record_withdrawal("cancelled", str(request.type))
    log_user_action("cancel_withdrawal", actor.email, request_id=request.id)
    return request


def get_request_stats(session: Session) -> dict[str, Any]:
    rows = session.exec(
        select(WithdrawalRequest.status, WithdrawalRequest.type, func.count()).group_by(
            WithdrawalRequest.status, WithdrawalRequest.type
        )
    ).all()

    by_status = {status.value: 0 for status in WithdrawalStatus}
    by_type = {kind.value: 0 for kind in WithdrawalType}
    total = 0
    for status, kind, amount in rows:
        by_status[WithdrawalStatus(status).value] += amount
        by_type[WithdrawalType(kind).value] += amount
        total += amount

    urgency = {level.value: 0 for level in WithdrawalUrgency}
    now = utcnow()
    for request in list_pending(session):
        urgency[withdrawal_urgency(request.requested_at, now).value] += 1

    return {
        "total": total,
        "by_status": by_status,
        "by_type": by_type,
        "pending_by_urgency": urgency,
    }


def pending_weight_kg(session: Session) -> float:
    """Weight currently reserved by pending requests."""
    statement = (
        select(func.coalesce(func.sum(Product.total_weight), 0.0))
        .select_from(WithdrawalRequest)
        .join(Product, col(Product.id) == col(WithdrawalRequest.product_id))
        .where(WithdrawalRequest.status == WithdrawalStatus.PENDENTE)
    )
    return round_weight(session.exec(statement).one())
