"""Async database setup used at application startup."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from coldstock.infrastructure.database.database import init_async_db
from coldstock.infrastructure.database.models import Chamber, SeedType


@pytest.mark.asyncio
async def test_init_async_db_creates_tables():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        await init_async_db(engine)
        # Running it again on an existing schema is harmless
        await init_async_db(engine)

        async with AsyncSession(engine) as session:
            result = await session.execute(select(Chamber))
            assert result.scalars().all() == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_async_session_round_trip(async_session: AsyncSession):
    async_session.add(SeedType(name="Feijao", max_storage_time_days=240))
    async_session.add(
        Chamber(name="Camara Async", quadras=1, lados=1, filas=1, andares=1)
    )
    await async_session.commit()

    seed_types = (await async_session.execute(select(SeedType))).scalars().all()
    chambers = (await async_session.execute(select(Chamber))).scalars().all()

    assert [seed_type.name for seed_type in seed_types] == ["Feijao"]
    assert chambers[0].total_locations == 1
