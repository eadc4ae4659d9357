"""
Unit tests for conflict_engine/database.py
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from conflict_engine.database import (
    _get_async_database_url,
    check_connection,
    drop_all_tables,
    init_db,
)


class TestAsyncDatabaseUrl:
    """Test sync to async URL conversion."""

    def test_sqlite(self):
        assert _get_async_database_url("sqlite:///./data/x.db") == "sqlite+aiosqlite:///./data/x.db"

    def test_sqlite_already_async(self):
        url = "sqlite+aiosqlite:///:memory:"
        assert _get_async_database_url(url) == url

    def test_postgresql(self):
        assert (
            _get_async_database_url("postgresql://u:p@localhost/crm")
            == "postgresql+asyncpg://u:p@localhost/crm"
        )


@pytest.mark.asyncio
class TestDatabaseLifecycle:
    """Test table creation and connection checks against in-memory SQLite."""

    async def test_init_and_drop(self):
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        try:
            await init_db(engine)
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            assert "conflict_resolutions" in tables

            await drop_all_tables(engine)
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            assert tables == []
        finally:
            await engine.dispose()

    async def test_check_connection(self, db_engine):
        assert await check_connection(db_engine) is True
