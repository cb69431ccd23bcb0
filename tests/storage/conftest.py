"""
SQL storage fixtures: a fresh SQLite database per test.
"""

import pytest_asyncio

from core.config import DatabaseConfig
from storage.database import Database
from storage.sql_store import SqlOffchainStore


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'escrow.db'}"))
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def sql_store(database):
    return SqlOffchainStore(database)
