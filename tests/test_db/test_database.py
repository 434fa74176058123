"""Tests for the database engine setup."""

import pytest
from sqlalchemy import text

from planner.db import database


class TestGetEngine:
    """Test suite for get_engine."""

    @pytest.mark.asyncio
    async def test_sqlite_engine_enforces_foreign_keys(self, monkeypatch):
        """ON DELETE rules only work when SQLite foreign keys are on."""
        monkeypatch.setattr(database, "_engine", None)

        engine = database.get_engine()
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("PRAGMA foreign_keys"))
                assert result.scalar() == 1
        finally:
            await engine.dispose()
