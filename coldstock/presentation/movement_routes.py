from datetime import datetime
from typing import Any, Final

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ..application.movement_service import (
    get_movement,
    get_movement_stats,
    list_movements,
    register_manual_movement,
    verify_movement,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import MovementType
from ..domain.rules import to_naive_utc
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import Movement, User
from .dependencies import get_current_user
from .schemas import (
    MovementCreate,
    MovementResponse,
    MovementVerify,
    Page,
    page_of,
)

router: Final = APIRouter(prefix="/movements", tags=["movements"])


@router.get("", response_model=Page[MovementResponse], summary="List movements")
async def api_list_movements(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    movement_type: MovementType | None = Query(None, alias="type"),
    product_id: int | None = None,
    location_id: int | None = Query(
        None, description="Matches origin or destination"
    ),
    user_id: int | None = None,
    is_automatic: bool | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[MovementResponse]:
    movements, total = list_movements(
        session,
        movement_type,
        product_id,
        location_id,
        user_id,
        is_automatic,
        to_naive_utc(start_date),
        to_naive_utc(end_date),
        page,
        limit,
    )
    return page_of(MovementResponse, movements, total, page, limit)


@router.get("/stats", summary="Movement counts and weights of the last days")
async def api_movement_stats(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    days: int = Query(30, ge=1, le=365),
) -> dict[str, Any]:
    return get_movement_stats(session, days)


@router.get(
    "/{movement_id}", response_model=MovementResponse, summary="Get a movement"
)
async def api_get_movement(
    *,
    session: Session = Depends(get_session),
    _user: User = Depends(get_current_user),
    movement_id: int,
) -> Movement:
    return get_movement(session, movement_id)


@router.post(
    "",
    response_model=MovementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a manual movement",
    description="""
    Record a movement by hand, e.g. to document a correction. Stock and
    location weights are not changed. The weight must match quantity times the
    product's unit weight within 5%, and an identical movement by the same
    user within 5 minutes is rejected as a duplicate.
    """,
    responses={409: {"description": "Duplicate movement"}},
)
async def api_create_movement(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    body: MovementCreate,
) -> Movement:
    return register_manual_movement(
        session,
        user,
        body.product_id,
        body.type,
        body.quantity,
        body.weight,
        body.reason,
        body.from_location_id,
        body.to_location_id,
        body.notes,
    )


@router.post(
    "/{movement_id}/verify",
    response_model=MovementResponse,
    summary="Mark a movement as verified",
)
async def api_verify_movement(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    movement_id: int,
    body: MovementVerify,
) -> Movement:
    return verify_movement(session, movement_id, user, body.notes)
