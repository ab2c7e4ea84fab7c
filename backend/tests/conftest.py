"""Shared fixtures: a throwaway SQLite database per test and a fresh cache."""

import os

# Point the module-level engine at an in-memory database before any app import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime
from uuid import UUID

import pytest
import pytest_asyncio

from core.cache import KeyedCache
from core.database import init_models, make_engine, make_sessionmaker
from engines.vocabulary import VocabularyManager
from models.schemas import WordCreate

USER_ID = UUID("11111111-1111-1111-1111-111111111111")
OTHER_USER_ID = UUID("22222222-2222-2222-2222-222222222222")
NOW = datetime(2024, 3, 1, 12, 0, 0)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'wordbank-test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_sessionmaker(db_engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def cache():
    return KeyedCache(ttl_seconds=300)


@pytest.fixture
def manager(session, cache):
    return VocabularyManager(session, cache)


@pytest_asyncio.fixture
async def word(manager):
    """A freshly added word owned by USER_ID."""
    result = await manager.add_word(
        USER_ID,
        WordCreate(word="Ephemeral", definition="lasting a very short time", part_of_speech="adjective"),
        now=NOW,
    )
    return result.unwrap()
