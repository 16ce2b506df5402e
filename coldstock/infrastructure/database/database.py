from collections.abc import Generator
from typing import Any, Final

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.future import Engine
from sqlmodel import Session, SQLModel, create_engine

from ...config import settings

# Drivers of the async engine, which is only used to create the schema
_ASYNC_DRIVERS: Final = {
    "sqlite:///": "sqlite+aiosqlite:///",
    "postgresql://": "postgresql+asyncpg://",
}


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _async_url(url: str) -> str:
    for prefix, async_prefix in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url.removeprefix(prefix)
    raise ValueError(f"Unsupported database URL: {url}")


def _create_main_engine(url: str) -> Engine:
    if _is_sqlite(url):
        # Requests are served from a threadpool
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, pool_size=10, max_overflow=20)


def _create_async_engine(url: str) -> AsyncEngine:
    options: dict[str, Any] = {"echo": False}
    if not _is_sqlite(url):
        options.update(
            pool_size=5, max_overflow=5, pool_recycle=3600, pool_pre_ping=True
        )
    return create_async_engine(_async_url(url), **options)


_engine: Engine | None = None
_async_engine: AsyncEngine | None = None


def get_main_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = _create_main_engine(settings.effective_database_url)
    return _engine


def get_async_engine() -> AsyncEngine:
    global _async_engine
    if _async_engine is None:
        _async_engine = _create_async_engine(settings.effective_database_url)
    return _async_engine


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


async def init_async_db(engine: AsyncEngine) -> None:
    """Create every table through the async engine."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def get_session() -> Generator[Session, None, None]:
    """Request scoped session, overridden in tests."""
    with Session(get_main_engine()) as session:
        yield session
