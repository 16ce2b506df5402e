"""FastAPI dependencies for authentication and role checks."""

from collections.abc import Callable
from typing import Final

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from ..application.auth_service import resolve_user
from ..domain.exceptions import AuthenticationError
from ..domain.rules import ensure_permission
from ..infrastructure.database.database import get_session
from ..infrastructure.database.models import User

bearer_scheme: Final = HTTPBearer(auto_error=False)


def get_current_user(
    session: Session = Depends(get_session),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User:
    """Resolve the bearer token of the request to an active user."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    return resolve_user(session, credentials.credentials)


def require_permission(action: str) -> Callable[..., User]:
    """Dependency factory rejecting users whose role may not perform action."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        ensure_permission(user.role, action)
        return user

    return dependency

