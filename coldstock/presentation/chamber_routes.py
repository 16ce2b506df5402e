from typing import Any, Final

from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel import Session

from ..application.chamber_service import (
    create_chamber,
    delete_chamber,
    generate_locations,
    get_chamber,
    get_chamber_capacity,
    list_chambers,
    update_chamber,
    update_conditions,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import ChamberStatus
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import Chamber, User
from .dependencies import get_current_user, require_permission
from .schemas import (
    ChamberCreate,
    ChamberResponse,
    ChamberUpdate,
    ConditionsUpdate,
    GenerateLocationsRequest,
    GenerateLocationsResponse,
    Page,
    page_of,
)

router: Final = APIRouter(prefix="/chambers", tags=["chambers"])


@router.get("", response_model=Page[ChamberResponse], summary="List chambers")
async def api_list_chambers(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    status_filter: ChamberStatus | None = Query(None, alias="status"),
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[ChamberResponse]:
    chambers, total = list_chambers(session, status_filter, search, page, limit)
    return page_of(ChamberResponse, chambers, total, page, limit)


@router.get("/{chamber_id}", response_model=ChamberResponse, summary="Get a chamber")
async def api_get_chamber(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    chamber_id: int,
) -> Chamber:
    return get_chamber(session, chamber_id)


@router.post(
    "",
    response_model=ChamberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a chamber",
    description="""
    Create a refrigerated chamber with its quadra/lado/fila/andar grid.

    With `generate_locations` every location of the grid is created at once,
    each with `default_capacity_kg` (or the configured default). Grids above
    100000 locations are rejected.
    """,
    responses={409: {"description": "Chamber name already taken"}},
)
async def api_create_chamber(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_chambers")),
    body: ChamberCreate,
) -> Chamber:
    chamber = Chamber(
        **body.model_dump(exclude={"generate_locations", "default_capacity_kg"})
    )
    return create_chamber(
        session, chamber, body.generate_locations, body.default_capacity_kg
    )


@router.put(
    "/{chamber_id}", response_model=ChamberResponse, summary="Update a chamber"
)
async def api_update_chamber(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_chambers")),
    chamber_id: int,
    body: ChamberUpdate,
) -> Chamber:
    return update_chamber(session, chamber_id, body.model_dump(exclude_unset=True))


@router.delete(
    "/{chamber_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a chamber, or set it inactive when products passed through it",
    responses={409: {"description": "Chamber still stores products"}},
)
async def api_delete_chamber(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_chambers")),
    chamber_id: int,
) -> Response:
    delete_chamber(session, chamber_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{chamber_id}/generate-locations",
    response_model=GenerateLocationsResponse,
    summary="Create the missing locations of a chamber",
)
async def api_generate_locations(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_locations")),
    chamber_id: int,
    body: GenerateLocationsRequest,
) -> dict[str, int]:
    return generate_locations(
        session, chamber_id, body.default_capacity_kg, body.overwrite
    )


@router.put(
    "/{chamber_id}/conditions",
    response_model=ChamberResponse,
    summary="Record temperature and humidity",
)
async def api_update_conditions(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    chamber_id: int,
    body: ConditionsUpdate,
) -> Chamber:
    return update_conditions(session, chamber_id, body.temperature, body.humidity)


@router.get("/{chamber_id}/capacity", summary="Capacity summary of a chamber")
async def api_chamber_capacity(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    chamber_id: int,
) -> dict[str, Any]:
    return get_chamber_capacity(session, chamber_id)
