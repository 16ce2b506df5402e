from collections.abc import Sequence
from typing import Any, Final

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from ..config import settings
from ..domain.constants import (
    MAX_LOCATION_CAPACITY_KG,
    MAX_NAME_LENGTH,
    MAX_TEMPERATURE_C,
    MIN_LOCATION_CAPACITY_KG,
    MIN_TEMPERATURE_C,
    ChamberStatus,
)
from ..domain.entities import Dimensions
from ..domain.exceptions import AlreadyExistsError, ResourceInUseError
from ..domain.rules import utcnow
from ..infrastructure.database.models import Chamber, Location, Movement, Product
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from .location_service import build_location, get_location_stats
from .queries import get_or_raise, paginate
from .validation import validate_description, validate_range, validate_text

logger: Final = get_logger(__name__)

_UPDATABLE_FIELDS: Final = {
    "name",
    "description",
    "status",
    "target_temperature",
    "target_humidity",
    "temperature_min",
    "temperature_max",
    "humidity_min",
    "humidity_max",
    "last_maintenance_date",
    "next_maintenance_date",
}


def _validate_conditions(
    temperature: float | None, humidity: float | None, prefix: str = "current"
) -> None:
    validate_range(
        temperature, f"{prefix}_temperature", MIN_TEMPERATURE_C, MAX_TEMPERATURE_C
    )
    validate_range(humidity, f"{prefix}_humidity", 0, 100)


def get_chamber(session: Session, chamber_id: int) -> Chamber:
    return get_or_raise(session, Chamber, chamber_id, "chamber")


def get_chamber_by_name(session: Session, name: str) -> Chamber | None:
    return session.exec(select(Chamber).where(Chamber.name == name)).first()


def list_chambers(
    session: Session,
    status: ChamberStatus | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[Chamber], int]:
    statement = select(Chamber)
    if status is not None:
        statement = statement.where(Chamber.status == status)
    if search:
        statement = statement.where(col(Chamber.name).ilike(f"%{search}%"))
    return paginate(session, statement.order_by(col(Chamber.name)), page, limit)


def create_chamber(
    session: Session,
    chamber: Chamber,
    generate: bool = False,
    default_capacity_kg: float | None = None,
) -> Chamber:
    """Create a chamber, optionally generating every location of its grid."""
    logger.debug("Creating chamber", chamber_name=chamber.name)

    chamber.name = validate_text(chamber.name, "name", max_length=MAX_NAME_LENGTH)
    chamber.description = validate_description(chamber.description)
    # Raises ValidationError on out of range or oversized grids
    Dimensions(chamber.quadras, chamber.lados, chamber.filas, chamber.andares)
    _validate_conditions(chamber.current_temperature, chamber.current_humidity)
    _validate_conditions(chamber.target_temperature, chamber.target_humidity, "target")

    if get_chamber_by_name(session, chamber.name):
        logger.warning("Chamber creation failed - already exists", name=chamber.name)
        raise AlreadyExistsError("chamber", "name", chamber.name)

    session.add(chamber)
    session.commit()
    session.refresh(chamber)

    log_database_operation(
        operation="create", table="Chamber", chamber_id=chamber.id, name=chamber.name
    )
    logger.info("Chamber created", chamber_id=chamber.id, name=chamber.name)

    if generate:
        generate_locations(session, chamber.id, default_capacity_kg)
        session.refresh(chamber)

    return chamber


def update_chamber(
    session: Session, chamber_id: int, changes: dict[str, Any]
) -> Chamber:
    chamber = get_chamber(session, chamber_id)

    if "name" in changes and changes["name"] is not None:
        name = validate_text(changes["name"], "name", max_length=MAX_NAME_LENGTH)
        existing = get_chamber_by_name(session, name)
        if existing and existing.id != chamber.id:
            raise AlreadyExistsError("chamber", "name", name)
        changes["name"] = name
    if "description" in changes:
        changes["description"] = validate_description(changes["description"])
    _validate_conditions(
        changes.get("target_temperature"), changes.get("target_humidity"), "target"
    )

    for field, value in changes.items():
        if field in _UPDATABLE_FIELDS:
            setattr(chamber, field, value)

    chamber.updated_at = utcnow()
    session.add(chamber)
    session.commit()
    session.refresh(chamber)

    log_database_operation(operation="update", table="Chamber", chamber_id=chamber.id)
    return chamber


def update_conditions(
    session: Session,
    chamber_id: int,
    temperature: float | None = None,
    humidity: float | None = None,
) -> Chamber:
    """Record a new temperature/humidity reading."""
    chamber = get_chamber(session, chamber_id)
    _validate_conditions(temperature, humidity)

    if temperature is not None:
        chamber.current_temperature = temperature
    if humidity is not None:
        chamber.current_humidity = humidity
    chamber.updated_at = utcnow()
    session.add(chamber)
    session.commit()
    session.refresh(chamber)

    if chamber.conditions_status == "alert":
        logger.warning(
            "Chamber conditions out of range",
            chamber_id=chamber.id,
            temperature=chamber.current_temperature,
            humidity=chamber.current_humidity,
        )
    return chamber


def _count_occupied(session: Session, chamber_id: int) -> int:
    return session.exec(
        select(func.count(col(Location.id))).where(
            Location.chamber_id == chamber_id,
            Location.is_occupied == True,  # noqa: E712
        )
    ).one()


def _has_product_history(session: Session, chamber_id: int) -> bool:
    location_ids = select(Location.id).where(Location.chamber_id == chamber_id)
    stored = select(Product.id).where(col(Product.location_id).in_(location_ids))
    if session.exec(stored.limit(1)).first() is not None:
        return True

    moved = select(Movement.id).where(
        or_(
            col(Movement.from_location_id).in_(location_ids),
            col(Movement.to_location_id).in_(location_ids),
        )
    )
    return session.exec(moved.limit(1)).first() is not None


def _delete_locations(session: Session, chamber_id: int) -> None:
    statement = select(Location).where(Location.chamber_id == chamber_id)
    for location in session.exec(statement).all():
        session.delete(location)


def delete_chamber(session: Session, chamber_id: int) -> Chamber | None:
    """Delete a chamber and its locations.

    Refused while anything is stored. Chambers that products have passed
    through keep their locations for the movement history and are set
    inactive instead; the deactivated chamber is returned in that case.
    """
    chamber = get_chamber(session, chamber_id)

    occupied = _count_occupied(session, chamber_id)
    if occupied:
        raise ResourceInUseError(
            f"Chamber '{chamber.name}' still has {occupied} occupied locations"
        )
    if _has_product_history(session, chamber_id):
        chamber.status = ChamberStatus.INACTIVE
        chamber.updated_at = utcnow()
        session.add(chamber)
        session.commit()
        session.refresh(chamber)
        log_database_operation(
            operation="deactivate", table="Chamber", chamber_id=chamber_id
        )
        logger.info("Chamber with history deactivated", chamber_id=chamber_id)
        return chamber

    _delete_locations(session, chamber_id)
    session.delete(chamber)
    session.commit()

    log_database_operation(operation="delete", table="Chamber", chamber_id=chamber_id)
    logger.info("Chamber deleted", chamber_id=chamber_id)
    return None


def generate_locations(
    session: Session,
    chamber_id: int,
    default_capacity_kg: float | None = None,
    overwrite: bool = False,
) -> dict[str, int]:
    """Create the locations of a chamber's grid that do not exist yet.

    Args:
        session: Database session
        chamber_id: Chamber to fill
        default_capacity_kg: Capacity of each new location
        overwrite: Delete the existing locations first

    Returns:
        Counts of created and skipped locations
    """
    chamber = get_chamber(session, chamber_id)
    capacity = default_capacity_kg or settings.default_location_capacity_kg
    validate_range(
        capacity,
        "default_capacity_kg",
        MIN_LOCATION_CAPACITY_KG,
        MAX_LOCATION_CAPACITY_KG,
    )

    if overwrite:
        if _count_occupied(session, chamber_id) or _has_product_history(
            session, chamber_id
        ):
            raise ResourceInUseError(
                "Cannot regenerate locations of a chamber that has stored products"
            )
        _delete_locations(session, chamber_id)
        session.flush()

    existing = set(
        session.exec(select(Location.code).where(Location.chamber_id == chamber_id))
    )

    created = 0
    for coordinates in chamber.dimensions.iter_coordinates():
        if coordinates.code in existing:
            continue
        session.add(build_location(chamber_id, coordinates, capacity))
        created += 1

    session.commit()

    log_database_operation(
        operation="generate_locations",
        table="Location",
        chamber_id=chamber_id,
        created=created,
    )
    logger.info(
        "Locations generated",
        chamber_id=chamber_id,
        created=created,
        skipped=len(existing),
    )
    return {
        "created": created,
        "skipped": len(existing),
        "total": chamber.total_locations,
    }


def get_chamber_capacity(session: Session, chamber_id: int) -> dict[str, Any]:
    chamber = get_chamber(session, chamber_id)
    stats = get_location_stats(session, chamber_id)
    return {
        "chamber_id": chamber.id,
        "name": chamber.name,
        "status": chamber.status,
        "total_locations": chamber.total_locations,
        "generated_locations": stats["total"],
        **{key: value for key, value in stats.items() if key != "total"},
    }
