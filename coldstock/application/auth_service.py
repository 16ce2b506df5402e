from datetime import UTC
from typing import Final

from sqlmodel import Session

from ..domain.exceptions import AuthenticationError
from ..domain.rules import utcnow
from ..infrastructure.database.models import User
from ..logging_config import get_logger
from ..logging_utils import log_user_action
from ..security import (
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from .user_service import get_user_by_email, set_password

logger: Final = get_logger(__name__)


def issue_tokens(user: User) -> dict[str, str]:
    assert user.id is not None
    return {
        "access_token": create_access_token(user.id, user.role),
        "refresh_token": create_refresh_token(user.id),
        "token_type": "bearer",
    }


def authenticate(session: Session, email: str, password: str) -> User:
    """Check credentials and record the login.

    Raises:
        AuthenticationError: On unknown email, wrong password or inactive account
    """
    user = get_user_by_email(session, email)

    # Same message for unknown email and wrong password
    if user is None or not verify_password(user.password_hash, password):
        logger.warning("Login failed - invalid credentials", email=email.lower())
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        logger.warning("Login failed - inactive account", user_id=user.id)
        raise AuthenticationError("Account is deactivated")

    user.last_login_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)

    log_user_action("login", user.email, user_id=user.id)
    return user


def _load_active_user(session: Session, payload: dict) -> User:
    try:
        user_id = int(payload["sub"])
    except (KeyError, ValueError) as e:
        raise AuthenticationError("Invalid token subject") from e

    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    if user.password_changed_at is not None:
        changed_at = int(user.password_changed_at.replace(tzinfo=UTC).timestamp())
        if int(payload["iat"]) < changed_at:
            raise AuthenticationError("Token issued before the last password change")

    return user


def resolve_user(session: Session, access_token: str) -> User:
    """Return the active user an access token belongs to."""
    return _load_active_user(session, decode_token(access_token))


def refresh_access_token(session: Session, refresh_token: str) -> dict[str, str]:
    user = _load_active_user(session, decode_token(refresh_token, REFRESH_TOKEN))
    logger.debug("Access token refreshed", user_id=user.id)
    return issue_tokens(user)


def change_password(
    session: Session, user: User, current_password: str, new_password: str
) -> User:
    if not verify_password(user.password_hash, current_password):
        raise AuthenticationError("Current password is incorrect")

    user = set_password(session, user, new_password)
    log_user_action("change_password", user.email, user_id=user.id)
    return user
