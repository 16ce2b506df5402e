from typing import Any, Final

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ..application.chamber_service import get_chamber
from ..application.location_service import (
    create_location,
    get_location,
    get_location_stats,
    list_available_locations,
    list_locations,
    update_location,
    validate_capacity,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import AccessLevel
from ..domain.entities import Coordinates
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import Location, User
from .dependencies import get_current_user, require_permission
from .schemas import (
    CapacityValidationRequest,
    CapacityValidationResponse,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
    Page,
    page_of,
)

router: Final = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=Page[LocationResponse], summary="List locations")
async def api_list_locations(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    chamber_id: int | None = None,
    is_occupied: bool | None = None,
    min_capacity_kg: float | None = Query(None, ge=0),
    access_level: AccessLevel | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[LocationResponse]:
    locations, total = list_locations(
        session, chamber_id, is_occupied, min_capacity_kg, access_level, page, limit
    )
    return page_of(LocationResponse, locations, total, page, limit)


@router.get(
    "/available",
    response_model=list[LocationResponse],
    summary="Free locations of active chambers",
)
async def api_available_locations(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    min_capacity_kg: float = Query(0.0, ge=0),
    chamber_id: int | None = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> list[Location]:
    return list(
        list_available_locations(session, min_capacity_kg, chamber_id, limit=limit)
    )


@router.get("/stats", summary="Occupancy and weight statistics")
async def api_location_stats(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    chamber_id: int | None = None,
) -> dict[str, Any]:
    return get_location_stats(session, chamber_id)


@router.post(
    "/validate-capacity",
    response_model=CapacityValidationResponse,
    summary="Check whether a location can take a weight",
    description="""
    Never fails for business reasons: the result tells whether the weight
    fits, why not (`CHAMBER_INACTIVE`, `LOCATION_OCCUPIED`,
    `INSUFFICIENT_CAPACITY`), warnings above 95% occupancy and up to five
    alternative locations.
    """,
)
async def api_validate_capacity(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    body: CapacityValidationRequest,
) -> CapacityValidationResponse:
    location = get_location(session, body.location_id)
    check = validate_capacity(
        session, location, body.weight_kg, allow_occupied_by=body.product_id
    )
    return CapacityValidationResponse(
        valid=check.valid,
        location_code=check.location_code,
        requested_kg=check.requested_kg,
        reason=check.reason,
        message=check.message,
        warnings=check.warnings,
        suggestions=check.suggestions,
        analysis=check.analysis(),
    )


@router.get(
    "/{location_id}", response_model=LocationResponse, summary="Get a location"
)
async def api_get_location(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    location_id: int,
) -> Location:
    return get_location(session, location_id)


@router.post(
    "",
    response_model=LocationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a single location",
)
async def api_create_location(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_locations")),
    body: LocationCreate,
) -> Location:
    chamber = get_chamber(session, body.chamber_id)
    coordinates = Coordinates(body.quadra, body.lado, body.fila, body.andar)
    return create_location(
        session, chamber, coordinates, body.max_capacity_kg, body.notes
    )


@router.put(
    "/{location_id}",
    response_model=LocationResponse,
    summary="Update capacity or notes of a location",
)
async def api_update_location(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_locations")),
    location_id: int,
    body: LocationUpdate,
) -> Location:
    return update_location(session, location_id, body.max_capacity_kg, body.notes)
