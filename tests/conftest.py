"""Shared fixtures: a throwaway SQLite database and an in-memory ledger."""

import pytest

from nuke_league.config import Settings
from nuke_league.db.engine import build_engine, build_session_factory, create_all
from tests.helpers import FakeLedger, add_trader


@pytest.fixture
async def session_factory(tmp_path):
    config = Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'league.db'}", DEBUG=False)
    engine = build_engine(config)
    await create_all(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
async def three_traders(session_factory):
    """A: +500, B: +200, C: +50 in the test season."""
    async with session_factory() as session:
        traders = [
            await add_trader(session, "A", 500),
            await add_trader(session, "B", 200),
            await add_trader(session, "C", 50),
        ]
        await session.commit()
    return traders
