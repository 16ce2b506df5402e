"""Password hashing and JWT handling."""

from datetime import UTC, datetime, timedelta
from typing import Any, Final

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .config import settings
from .domain.exceptions import AuthenticationError

ACCESS_TOKEN: Final = "access"
REFRESH_TOKEN: Final = "refresh"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def _create_token(
    user_id: int, token_type: str, lifetime: timedelta, **claims: Any
) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        **claims,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: str) -> str:
    return _create_token(
        user_id,
        ACCESS_TOKEN,
        timedelta(minutes=settings.access_token_expire_minutes),
        role=role,
    )


def create_refresh_token(user_id: int) -> str:
    return _create_token(
        user_id, REFRESH_TOKEN, timedelta(days=settings.refresh_token_expire_days)
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict[str, Any]:
    """Decode and verify a token.

    Raises:
        AuthenticationError: If the token is expired, malformed or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

    if payload.get("type") != expected_type:
        raise AuthenticationError(f"Expected {expected_type} token")
    return payload
