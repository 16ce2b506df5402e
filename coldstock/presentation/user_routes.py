from typing import Any, Final

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from ..application.user_service import (
    create_user,
    deactivate_user,
    get_user,
    get_user_stats,
    list_users,
    update_user,
)
from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.constants import UserRole
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import get_current_user, require_permission
from .schemas import Page, UserCreate, UserResponse, UserUpdate, page_of

router: Final = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=Page[UserResponse], summary="List users")
async def api_list_users(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_users")),
    role: UserRole | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Page[UserResponse]:
    users, total = list_users(session, role, is_active, search, page, limit)
    return page_of(UserResponse, users, total, page, limit)


@router.get("/stats", summary="User counts by role and status")
async def api_user_stats(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_users")),
) -> dict[str, Any]:
    return get_user_stats(session)


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def api_get_user(
    *,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_permission("manage_users")),
    user_id: int,
) -> User:
    return get_user(session, user_id)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    responses={409: {"description": "Email already registered"}},
)
async def api_create_user(
    *,
    session: Session = Depends(get_session),
    admin: User = Depends(require_permission("manage_users")),
    body: UserCreate,
) -> User:
    return create_user(
        session, body.name, body.email, body.password, body.role, actor=admin
    )


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    description="""
    Users may edit their own name and email. Administrators may edit anyone,
    including role and active flag.
    """,
)
async def api_update_user(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    user_id: int,
    body: UserUpdate,
) -> User:
    return update_user(session, user_id, body.model_dump(exclude_unset=True), user)


@router.delete(
    "/{user_id}", response_model=UserResponse, summary="Deactivate a user"
)
async def api_deactivate_user(
    *,
    session: Session = Depends(get_session),
    admin: User = Depends(require_permission("manage_users")),
    user_id: int,
) -> User:
    return deactivate_user(session, user_id, admin)
