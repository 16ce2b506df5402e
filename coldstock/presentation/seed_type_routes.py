from typing import Final

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ..application.seed_type_service import (
    create_seed_type,
    delete_seed_type,
    get_seed_type,
    list_seed_types,
    update_seed_type,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import SeedType, User
from .dependencies import get_current_user, require_permission
from .schemas import (
    Page,
    SeedTypeCreate,
    SeedTypeResponse,
    SeedTypeUpdate,
    page_of,
)

router: Final = APIRouter(prefix="/seed-types", tags=["seed types"])


@router.get("", response_model=Page[SeedTypeResponse], summary="List seed types")
async def api_list_seed_types(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    is_active: bool | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[SeedTypeResponse]:
    seed_types, total = list_seed_types(session, is_active, search, page, limit)
    return page_of(SeedTypeResponse, seed_types, total, page, limit)


@router.get(
    "/{seed_type_id}", response_model=SeedTypeResponse, summary="Get a seed type"
)
async def api_get_seed_type(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    seed_type_id: int,
) -> SeedType:
    return get_seed_type(session, seed_type_id)


@router.post(
    "",
    response_model=SeedTypeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a seed type",
    responses={409: {"description": "Seed type name already taken"}},
)
async def api_create_seed_type(
    *,
    session: Session = Depends(get_session),
    admin: User = Depends(require_permission("manage_seed_types")),
    body: SeedTypeCreate,
) -> SeedType:
    return create_seed_type(session, SeedType(**body.model_dump()), admin.id)


@router.put(
    "/{seed_type_id}", response_model=SeedTypeResponse, summary="Update a seed type"
)
async def api_update_seed_type(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_seed_types")),
    seed_type_id: int,
    body: SeedTypeUpdate,
) -> SeedType:
    return update_seed_type(
        session, seed_type_id, body.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{seed_type_id}",
    response_model=SeedTypeResponse,
    summary="Deactivate a seed type",
    responses={409: {"description": "Seed type used by products in stock"}},
)
async def api_delete_seed_type(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_seed_types")),
    seed_type_id: int,
) -> SeedType:
    return delete_seed_type(session, seed_type_id)
