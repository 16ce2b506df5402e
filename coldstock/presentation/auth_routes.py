from typing import Final

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ..application.auth_service import (
    authenticate,
    change_password,
    issue_tokens,
    refresh_access_token,
)
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User
from .dependencies import get_current_user
from .schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)

router: Final = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Log in with email and password",
    responses={401: {"description": "Invalid credentials or inactive account"}},
)
async def api_login(
    *, session: Session = Depends(get_session), credentials: LoginRequest
) -> TokenResponse:
    user = authenticate(session, credentials.email, credentials.password)
    return TokenResponse(
        **issue_tokens(user), user=UserResponse.model_validate(user)
    )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Exchange a refresh token for new tokens",
)
async def api_refresh(
    *, session: Session = Depends(get_session), body: RefreshRequest
) -> TokenResponse:
    return TokenResponse(**refresh_access_token(session, body.refresh_token))


@router.get("/me", response_model=UserResponse, summary="Current user")
async def api_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change the password of the current user",
    description="""
    Changing the password invalidates every token issued before the change.
    """,
)
async def api_change_password(
    *,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
    body: ChangePasswordRequest,
) -> MessageResponse:
    change_password(session, user, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")
