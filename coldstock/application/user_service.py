from collections.abc import Sequence
from typing import Any, Final

from sqlalchemy import func
from sqlmodel import Session, col, select

from ..domain.constants import MAX_NAME_LENGTH, MIN_PASSWORD_LENGTH, UserRole
from ..domain.exceptions import (
    AlreadyExistsError,
    PermissionDeniedError,
    ValidationError,
)
from ..domain.rules import ensure_permission, utcnow
from ..infrastructure.database.models import User
from ..logging_config import get_logger
from ..logging_utils import log_database_operation, log_user_action
from ..security import hash_password
from .queries import get_or_raise, paginate
from .validation import validate_text

logger: Final = get_logger(__name__)

_UPDATABLE_FIELDS: Final = {"name", "email", "role", "is_active"}
_ADMIN_ONLY_FIELDS: Final = {"role", "is_active"}


def _validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must have at least {MIN_PASSWORD_LENGTH} characters",
            field="password",
        )


def _normalize_email(email: str) -> str:
    normalized = email.strip().lower()
    if "@" not in normalized or normalized.startswith("@"):
        raise ValidationError("Invalid email address", field="email")
    return normalized


def get_user_by_email(session: Session, email: str) -> User | None:
    statement: Final = select(User).where(User.email == email.strip().lower())
    return session.exec(statement).first()


def get_user(session: Session, user_id: int) -> User:
    return get_or_raise(session, User, user_id, "user")


def list_users(
    session: Session,
    role: UserRole | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[Sequence[User], int]:
    statement = select(User)
    if role is not None:
        statement = statement.where(User.role == role)
    if is_active is not None:
        statement = statement.where(User.is_active == is_active)
    if search:
        pattern = f"%{search.lower()}%"
        statement = statement.where(
            col(User.name).ilike(pattern) | col(User.email).ilike(pattern)
        )
    return paginate(session, statement.order_by(col(User.name)), page, limit)


def create_user(
    session: Session,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.OPERATOR,
    actor: User | None = None,
) -> User:
    """Create a user account.

    Args:
        session: Database session
        name: Display name
        email: Login email, stored lower-cased
        password: Plain password, only its hash is stored
        role: Role of the new account
        actor: Administrator creating the account, None for system bootstrap

    Raises:
        PermissionDeniedError: If actor is not an administrator
        AlreadyExistsError: If the email is taken
    """
    if actor is not None:
        ensure_permission(actor.role, "manage_users")

    clean_name = validate_text(name, "name", max_length=MAX_NAME_LENGTH)
    normalized_email = _normalize_email(email)
    _validate_password(password)

    if get_user_by_email(session, normalized_email):
        logger.warning("User creation failed - email taken", email=normalized_email)
        raise AlreadyExistsError("user", "email", normalized_email)

    user = User(
        name=clean_name,
        email=normalized_email,
        password_hash=hash_password(password),
        role=UserRole(role),
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    log_database_operation(
        operation="create", table="User", user_id=user.id, role=user.role
    )
    if actor is not None:
        log_user_action("create_user", actor.email, created_user_id=user.id)
    logger.info("User created", user_id=user.id, role=user.role)
    return user


def update_user(
    session: Session, user_id: int, changes: dict[str, Any], actor: User
) -> User:
    """Update profile fields. Only administrators may edit others, roles or status."""
    user = get_user(session, user_id)
    is_admin = actor.role == UserRole.ADMIN

    if actor.id != user.id and not is_admin:
        raise PermissionDeniedError("Users can only update their own profile")

    restricted = _ADMIN_ONLY_FIELDS & changes.keys()
    if restricted and not is_admin:
        raise PermissionDeniedError(
            f"Only administrators can change {', '.join(sorted(restricted))}"
        )

    if actor.id == user.id and changes.get("is_active") is False:
        raise ValidationError("You cannot deactivate your own account")

    for field, value in changes.items():
        if field not in _UPDATABLE_FIELDS or value is None:
            continue
        if field == "name":
            value = validate_text(value, "name", max_length=MAX_NAME_LENGTH)
        elif field == "email":
            value = _normalize_email(value)
            existing = get_user_by_email(session, value)
            if existing and existing.id != user.id:
                raise AlreadyExistsError("user", "email", value)
        elif field == "role":
            value = UserRole(value)
        setattr(user, field, value)

    user.updated_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)

    log_database_operation(operation="update", table="User", user_id=user.id)
    log_user_action("update_user", actor.email, target_user_id=user.id)
    return user


def deactivate_user(session: Session, user_id: int, actor: User) -> User:
    ensure_permission(actor.role, "manage_users")
    if actor.id == user_id:
        raise ValidationError("You cannot deactivate your own account")

    user = get_user(session, user_id)
    user.is_active = False
    user.updated_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)

    log_database_operation(operation="deactivate", table="User", user_id=user.id)
    log_user_action("deactivate_user", actor.email, target_user_id=user.id)
    logger.info("User deactivated", user_id=user.id)
    return user


def set_password(session: Session, user: User, new_password: str) -> User:
    _validate_password(new_password)
    user.password_hash = hash_password(new_password)
    user.password_changed_at = utcnow()
    user.updated_at = user.password_changed_at
    session.add(user)
    session.commit()
    session.refresh(user)
    log_database_operation(operation="set_password", table="User", user_id=user.id)
    return user


def get_user_stats(session: Session) -> dict[str, Any]:
    rows = session.exec(
        select(User.role, User.is_active, func.count()).group_by(
            User.role, User.is_active
        )
    ).all()

    stats: dict[str, Any] = {
        "total": 0,
        "active": 0,
        "inactive": 0,
        "by_role": {role.value: 0 for role in UserRole},
    }
    for role, is_active, amount in rows:
        stats["total"] += amount
        stats["active" if is_active else "inactive"] += amount
        stats["by_role"][UserRole(role).value] += amount
    return stats


def ensure_initial_admin(session: Session, email: str, password: str) -> User | None:
    """Create the first administrator when the user table is empty."""
    if session.exec(select(User).limit(1)).first() is not None:
        return None

    logger.info("Creating initial administrator", email=email)
    return create_user(
        session,
        name="Administrator",
        email=email,
        password=password,
        role=UserRole.ADMIN,
    )
