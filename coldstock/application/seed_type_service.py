from collections.abc import Sequence
from typing import Any, Final

from sqlmodel import Session, col, select

from ..domain.constants import (
    MAX_NAME_LENGTH,
    MAX_STORAGE_TIME_DAYS,
    MAX_TEMPERATURE_C,
    MIN_TEMPERATURE_C,
    OCCUPYING_STATUSES,
    ProductStatus,
)
from ..domain.exceptions import AlreadyExistsError, ResourceInUseError
from ..domain.rules import title_case, utcnow
from ..infrastructure.database.models import Product, SeedType
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .queries import count, get_or_raise, paginate
from .validation import validate_description, validate_range, validate_text

logger: Final = get_logger(__name__)

_UPDATABLE_FIELDS: Final = {
    "name",
    "description",
    "optimal_temperature",
    "optimal_humidity",
    "max_storage_time_days",
    "is_active",
}

# Products in these states still depend on their seed type
_ACTIVE_PRODUCT_STATUSES: Final = OCCUPYING_STATUSES | {
    ProductStatus.CADASTRADO,
    ProductStatus.AGUARDANDO_LOCACAO,
}


def _clean_name(name: str) -> str:
    return title_case(validate_text(name, "name", max_length=MAX_NAME_LENGTH) or "")


def _validate_storage_values(values: dict[str, Any]) -> None:
    validate_range(
        values.get("optimal_temperature"),
        "optimal_temperature",
        MIN_TEMPERATURE_C,
        MAX_TEMPERATURE_C,
    )
    validate_range(values.get("optimal_humidity"), "optimal_humidity", 0, 100)
    validate_range(
        values.get("max_storage_time_days"),
        "max_storage_time_days",
        1,
        MAX_STORAGE_TIME_DAYS,
    )


def get_seed_type(session: Session, seed_type_id: int) -> SeedType:
    return get_or_raise(session, SeedType, seed_type_id, "seed type")


def get_seed_type_by_name(session: Session, name: str) -> SeedType | None:
    statement = select(SeedType).where(col(SeedType.name).ilike(name))
    return session.exec(statement).first()


def list_seed_types(
    session: Session,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[SeedType], int]:
    statement = select(SeedType)
    if is_active is not None:
        statement = statement.where(SeedType.is_active == is_active)
    if search:
        statement = statement.where(col(SeedType.name).ilike(f"%{search}%"))
    return paginate(session, statement.order_by(col(SeedType.name)), page, limit)


def create_seed_type(
    session: Session, seed_type: SeedType, created_by: int | None = None
) -> SeedType:
    seed_type.name = _clean_name(seed_type.name)
    seed_type.description = validate_description(seed_type.description)
    _validate_storage_values(seed_type.model_dump())

    if get_seed_type_by_name(session, seed_type.name):
        logger.warning(
            "Seed type creation failed - already exists", name=seed_type.name
        )
        raise AlreadyExistsError("seed type", "name", seed_type.name)

    seed_type.created_by = created_by
    session.add(seed_type)
    session.commit()
    session.refresh(seed_type)

    log_database_operation(
        operation="create", table="SeedType", seed_type_id=seed_type.id
    )
    logger.info("Seed type created", seed_type_id=seed_type.id, name=seed_type.name)
    return seed_type


def update_seed_type(
    session: Session, seed_type_id: int, changes: dict[str, Any]
) -> SeedType:
    seed_type = get_seed_type(session, seed_type_id)
    _validate_storage_values(changes)

    if changes.get("name") is not None:
        name = _clean_name(changes["name"])
        existing = get_seed_type_by_name(session, name)
        if existing and existing.id != seed_type.id:
            raise AlreadyExistsError("seed type", "name", name)
        changes["name"] = name
    if "description" in changes:
        changes["description"] = validate_description(changes["description"])

    for field, value in changes.items():
        if field in _UPDATABLE_FIELDS:
            setattr(seed_type, field, value)

    seed_type.updated_at = utcnow()
    session.add(seed_type)
    session.commit()
    session.refresh(seed_type)

    log_database_operation(
        operation="update", table="SeedType", seed_type_id=seed_type.id
    )
    return seed_type


def count_active_products(session: Session, seed_type_id: int) -> int:
    statement = select(Product.id).where(
        Product.seed_type_id == seed_type_id,
        col(Product.status).in_(list(_ACTIVE_PRODUCT_STATUSES)),
    )
    return count(session, statement)


def delete_seed_type(session: Session, seed_type_id: int) -> SeedType:
    """Deactivate a seed type; refused while products in stock use it."""
    seed_type = get_seed_type(session, seed_type_id)

    in_use = count_active_products(session, seed_type_id)
    if in_use:
        raise ResourceInUseError(
            f"Seed type '{seed_type.name}' is used by {in_use} active products"
        )

    seed_type.is_active = False
    seed_type.updated_at = utcnow()
    session.add(seed_type)
    session.commit()
    session.refresh(seed_type)

    log_database_operation(
        operation="deactivate", table="SeedType", seed_type_id=seed_type.id
    )
    logger.info("Seed type deactivated", seed_type_id=seed_type.id)
    return seed_type
