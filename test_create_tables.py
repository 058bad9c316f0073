"""
Tests for the schema bootstrap script
"""

from unittest.mock import AsyncMock

from create_tables import create_tables
from database import DatabaseManager


async def test_create_tables_on_fresh_database():
    manager = DatabaseManager("sqlite+aiosqlite://")
    try:
        assert await create_tables(manager) is True
        # Running it again is harmless
        assert await create_tables(manager) is True
    finally:
        await manager.dispose()


async def test_create_tables_stops_when_database_unreachable():
    manager = DatabaseManager("sqlite+aiosqlite://")
    manager.test_connection = AsyncMock(return_value=False)
    manager.create_tables = AsyncMock()
    try:
        assert await create_tables(manager) is False
        manager.create_tables.assert_not_called()
    finally:
        await manager.dispose()
