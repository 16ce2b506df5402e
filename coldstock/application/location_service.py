from collections.abc import Sequence
from typing import Any, Final

from sqlalchemy import func
from sqlmodel import Session, col, select

from ..domain.constants import (
    MAX_CAPACITY_SUGGESTIONS,
    MAX_LOCATION_CAPACITY_KG,
    MIN_LOCATION_CAPACITY_KG,
    OCCUPYING_STATUSES,
    AccessLevel,
    ChamberStatus,
)
from ..domain.entities import CapacityCheck, Coordinates
from ..domain.exceptions import (
    AlreadyExistsError,
    CapacityExceededError,
    ChamberInactiveError,
    LocationOccupiedError,
    ValidationError,
)
from ..domain.rules import round_weight, utcnow
from ..infrastructure.database.models import Chamber, Location, Product
from ..logging_config import get_logger
from ..logging_utils import log_database_operation
from ..metrics import record_stored_weight_change
from .queries import get_or_raise, paginate
from .validation import validate_description, validate_range

logger: Final = get_logger(__name__)

# Reason codes reported by validate_capacity
CHAMBER_INACTIVE: Final = "CHAMBER_INACTIVE"
LOCATION_OCCUPIED: Final = "LOCATION_OCCUPIED"
INSUFFICIENT_CAPACITY: Final = "INSUFFICIENT_CAPACITY"
INVALID_WEIGHT: Final = "INVALID_WEIGHT"


def get_location(session: Session, location_id: int) -> Location:
    return get_or_raise(session, Location, location_id, "location")


def list_locations(
    session: Session,
    chamber_id: int | None = None,
    is_occupied: bool | None = None,
    min_capacity_kg: float | None = None,
    access_level: AccessLevel | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[Location], int]:
    statement = select(Location)
    if chamber_id is not None:
        statement = statement.where(Location.chamber_id == chamber_id)
    if is_occupied is not None:
        statement = statement.where(Location.is_occupied == is_occupied)
    if min_capacity_kg is not None:
        statement = statement.where(
            Location.max_capacity_kg - Location.current_weight_kg >= min_capacity_kg
        )
    if access_level is not None:
        statement = statement.where(Location.access_level == access_level)

    statement = statement.order_by(
        col(Location.chamber_id),
        col(Location.quadra),
        col(Location.lado),
        col(Location.fila),
        col(Location.andar),
    )
    return paginate(session, statement, page, limit)


def list_available_locations(
    session: Session,
    min_capacity_kg: float = 0.0,
    chamber_id: int | None = None,
    exclude_location_id: int | None = None,
    limit: int | None = None,
) -> Sequence[Location]:
    """Free locations in active chambers with at least min_capacity_kg available."""
    statement = (
        select(Location)
        .join(Chamber)
        .where(
            Location.is_occupied == False,  # noqa: E712
            Chamber.status == ChamberStatus.ACTIVE,
            Location.max_capacity_kg - Location.current_weight_kg >= min_capacity_kg,
        )
        .order_by(col(Location.max_capacity_kg), col(Location.id))
    )
    if chamber_id is not None:
        statement = statement.where(Location.chamber_id == chamber_id)
    if exclude_location_id is not None:
        statement = statement.where(Location.id != exclude_location_id)
    if limit is not None:
        statement = statement.limit(limit)
    return session.exec(statement).all()


def build_location(
    chamber_id: int,
    coordinates: Coordinates,
    max_capacity_kg: float,
    notes: str | None = None,
) -> Location:
    """Build an unsaved location; coordinates must already be validated."""
    return Location(
        chamber_id=chamber_id,
        quadra=coordinates.quadra,
        lado=coordinates.lado,
        fila=coordinates.fila,
        andar=coordinates.andar,
        code=coordinates.code,
        max_capacity_kg=max_capacity_kg,
        access_level=coordinates.access_level,
        notes=notes,
    )


def create_location(
    session: Session,
    chamber: Chamber,
    coordinates: Coordinates,
    max_capacity_kg: float,
    notes: str | None = None,
) -> Location:
    coordinates.validate_within(chamber.dimensions)
    validate_range(
        max_capacity_kg,
        "max_capacity_kg",
        MIN_LOCATION_CAPACITY_KG,
        MAX_LOCATION_CAPACITY_KG,
    )

    duplicate = session.exec(
        select(Location).where(
            Location.chamber_id == chamber.id, Location.code == coordinates.code
        )
    ).first()
    if duplicate:
        raise AlreadyExistsError("location", "code", coordinates.code)

    assert chamber.id is not None
    location = build_location(
        chamber.id, coordinates, max_capacity_kg, validate_description(notes, "notes")
    )
    session.add(location)
    session.commit()
    session.refresh(location)

    log_database_operation(
        operation="create", table="Location", location_id=location.id
    )
    return location


def update_location(
    session: Session,
    location_id: int,
    max_capacity_kg: float | None = None,
    notes: str | None = None,
) -> Location:
    location = get_location(session, location_id)

    if max_capacity_kg is not None:
        validate_range(
            max_capacity_kg,
            "max_capacity_kg",
            MIN_LOCATION_CAPACITY_KG,
            MAX_LOCATION_CAPACITY_KG,
        )
        if max_capacity_kg < location.current_weight_kg:
            raise ValidationError(
                f"New capacity {max_capacity_kg}kg is below the stored weight "
                f"{location.current_weight_kg}kg",
                field="max_capacity_kg",
            )
        location.max_capacity_kg = max_capacity_kg

    if notes is not None:
        location.notes = validate_description(notes, "notes")

    location.updated_at = utcnow()
    session.add(location)
    session.commit()
    session.refresh(location)

    log_database_operation(
        operation="update", table="Location", location_id=location.id
    )
    return location


def _occupant_id(session: Session, location_id: int) -> int | None:
    statement = select(Product.id).where(
        Product.location_id == location_id,
        col(Product.status).in_(list(OCCUPYING_STATUSES)),
    )
    return session.exec(statement).first()


def suggest_locations(
    session: Session, weight_kg: float, exclude_location_id: int | None = None
) -> list[dict[str, Any]]:
    candidates = list_available_locations(
        session,
        min_capacity_kg=weight_kg,
        exclude_location_id=exclude_location_id,
        limit=MAX_CAPACITY_SUGGESTIONS,
    )
    return [
        {
            "id": candidate.id,
            "code": candidate.code,
            "chamber_id": candidate.chamber_id,
            "available_capacity_kg": candidate.capacity.available_kg,
        }
        for candidate in candidates
    ]


def validate_capacity(
    session: Session,
    location: Location,
    weight_kg: float,
    *,
    allow_occupied_by: int | None = None,
    with_suggestions: bool = True,
) -> CapacityCheck:
    """Check whether a location can receive weight_kg.

    Args:
        session: Database session
        location: Target location
        weight_kg: Weight to be added
        allow_occupied_by: Product id that may already occupy the location
            (used when adding stock to a product in place)
        with_suggestions: Look up alternative locations on failure

    Returns:
        The check result; never raises for business failures
    """
    check = CapacityCheck(
        valid=True,
        location_code=location.code,
        requested_kg=round_weight(weight_kg),
        capacity=location.capacity,
    )

    if weight_kg < 0:
        check.valid = False
        check.reason = INVALID_WEIGHT
        check.message = "Weight cannot be negative"
        return check

    chamber = location.chamber
    if chamber is None or chamber.status != ChamberStatus.ACTIVE:
        check.valid = False
        check.reason = CHAMBER_INACTIVE
        check.message = f"Chamber of location {location.code} is not active"
    else:
        occupant = _occupant_id(session, location.id) if location.id else None
        occupied = location.is_occupied or occupant is not None
        if occupied and (allow_occupied_by is None or occupant != allow_occupied_by):
            check.valid = False
            check.reason = LOCATION_OCCUPIED
            check.message = f"Location {location.code} is already occupied"
        elif not location.capacity.can_accommodate(weight_kg):
            check.valid = False
            check.reason = INSUFFICIENT_CAPACITY
            check.message = (
                f"Insufficient capacity: {check.deficit_kg}kg over the limit of "
                f"{location.code}"
            )

    if check.valid and not location.capacity.within_safety_margin(weight_kg):
        check.warnings.append(
            f"Location {location.code} will be above 95% of its capacity"
        )

    if not check.valid and with_suggestions:
        check.suggestions = suggest_locations(session, weight_kg, location.id)

    return check


def ensure_capacity(
    session: Session,
    location: Location,
    weight_kg: float,
    *,
    allow_occupied_by: int | None = None,
) -> CapacityCheck:
    """Like validate_capacity but raise the matching domain error on failure."""
    check = validate_capacity(
        session,
        location,
        weight_kg,
        allow_occupied_by=allow_occupied_by,
        with_suggestions=False,
    )
    if check.valid:
        return check

    logger.warning(
        "Capacity check failed",
        location_id=location.id,
        reason=check.reason,
        weight_kg=weight_kg,
    )
    if check.reason == CHAMBER_INACTIVE:
        raise ChamberInactiveError(check.message or "Chamber is not active")
    if check.reason == LOCATION_OCCUPIED:
        raise LocationOccupiedError(location.code)
    if check.reason == INSUFFICIENT_CAPACITY:
        raise CapacityExceededError(
            location.code, check.requested_kg, location.capacity.available_kg
        )
    raise ValidationError(check.message or "Invalid weight", field="weight")


def adjust_weight(session: Session, location: Location, delta_kg: float) -> Location:
    """Add (or remove, with a negative delta) weight from a location.

    Keeps is_occupied in step with the stored weight. Does not commit.
    """
    new_weight = round_weight(location.current_weight_kg + delta_kg)
    if new_weight < 0:
        new_weight = 0.0
    if new_weight > location.max_capacity_kg:
        raise CapacityExceededError(
            location.code, round_weight(delta_kg), location.capacity.available_kg
        )

    location.current_weight_kg = new_weight
    location.is_occupied = new_weight > 0
    location.updated_at = utcnow()
    session.add(location)
    record_stored_weight_change(delta_kg)
    return location


def occupy(session: Session, location: Location, weight_kg: float) -> Location:
    logger.debug("Occupying location", location_id=location.id, weight_kg=weight_kg)
    return adjust_weight(session, location, weight_kg)


def release(session: Session, location: Location) -> Location:
    """Empty a location completely."""
    logger.debug("Releasing location", location_id=location.id)
    location = adjust_weight(session, location, -location.current_weight_kg)
    location.is_occupied = False
    return location


def get_location_stats(session: Session, chamber_id: int | None = None) -> dict:
    statement = select(
        func.count(col(Location.id)),
        func.coalesce(func.sum(Location.max_capacity_kg), 0.0),
        func.coalesce(func.sum(Location.current_weight_kg), 0.0),
    )
    occupied_statement = select(func.count(col(Location.id))).where(
        Location.is_occupied == True  # noqa: E712
    )
    if chamber_id is not None:
        statement = statement.where(Location.chamber_id == chamber_id)
        occupied_statement = occupied_statement.where(
            Location.chamber_id == chamber_id
        )

    total, total_capacity, used_weight = session.exec(statement).one()
    occupied = session.exec(occupied_statement).one()

    by_access = {level.value: 0 for level in AccessLevel}
    access_statement = select(Location.access_level, func.count()).group_by(
        Location.access_level
    )
    if chamber_id is not None:
        access_statement = access_statement.where(Location.chamber_id == chamber_id)
    for level, amount in session.exec(access_statement).all():
        by_access[AccessLevel(level).value] = amount

    return {
        "total": total,
        "occupied": occupied,
        "available": total - occupied,
        "occupancy_rate": round(occupied / total * 100, 1) if total else 0.0,
        "total_capacity_kg": round_weight(total_capacity),
        "used_weight_kg": round_weight(used_weight),
        "utilization_rate": (
            round(used_weight / total_capacity * 100, 1) if total_capacity else 0.0
        ),
        "by_access_level": by_access,
    }
