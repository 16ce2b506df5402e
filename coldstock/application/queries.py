"""Query helpers shared by the service modules."""

from collections.abc import Sequence
from typing import Any, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select
from sqlmodel.sql.expression import SelectOfScalar

from ..constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..domain.exceptions import NotFoundError

ModelT = TypeVar("ModelT", bound=SQLModel)


def get_or_raise(
    session: Session, model: type[ModelT], identifier: Any, resource_type: str
) -> ModelT:
    """Load a row by primary key or raise NotFoundError."""
    instance = session.get(model, identifier)
    if instance is None:
        raise NotFoundError(resource_type, identifier)
    return instance


def count(session: Session, statement: SelectOfScalar[Any]) -> int:
    count_statement = select(func.count()).select_from(statement.subquery())
    return int(session.exec(count_statement).one())


def paginate(
    session: Session,
    statement: SelectOfScalar[ModelT],
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> tuple[Sequence[ModelT], int]:
    """Run a select one page at a time.

    Returns:
        The rows of the requested page and the total row count
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    total = count(session, statement)
    rows = session.exec(statement.offset((page - 1) * limit).limit(limit)).all()
    return rows, total
