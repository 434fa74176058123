"""Pytest configuration and fixtures for Outcome Planner tests."""

import os
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["APP_ENV"] = "test"
os.environ["DEBUG"] = "false"
os.environ["GEMINI_API_KEY"] = "test_gemini_key"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORE_RETRY_ATTEMPTS"] = "2"

from planner.db.database import Base, enable_sqlite_foreign_keys, make_session_factory  # noqa: E402
from planner.db import models  # noqa: E402,F401
from planner.domain.entities import ConversionRequest, Owner  # noqa: E402
from planner.domain.services import (  # noqa: E402
    ChunkService,
    ConversionService,
    ItemService,
    PreferenceService,
)
from planner.utils.locks import KeyedLock  # noqa: E402


# ==================== DATABASE ====================


@pytest.fixture
async def engine():
    """In-memory SQLite database, fresh for every test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def locks():
    return KeyedLock()


# ==================== SERVICES ====================


@pytest.fixture
def item_service(session_factory, locks):
    return ItemService(session_factory, locks)


@pytest.fixture
def chunk_service(session_factory, locks):
    return ChunkService(session_factory, locks)


@pytest.fixture
def conversion_service(session_factory, locks):
    return ConversionService(session_factory, locks)


@pytest.fixture
def preference_service(session_factory):
    return PreferenceService(session_factory)


# ==================== SAMPLE DATA ====================


@pytest.fixture
def owner():
    """Owner for the test user."""
    return Owner(user_id=uuid4(), organization_id=uuid4())


@pytest.fixture
def area_id():
    return uuid4()


@pytest.fixture
def capture_items(item_service, owner):
    """Capture several notes for the test owner, in order."""
    async def _capture(*contents):
        return [await item_service.capture(owner, content) for content in contents]
    return _capture


@pytest.fixture
def chunk_with_items(chunk_service, owner, capture_items):
    """Create a chunk holding one item per content string."""
    async def _create(name="Launch prep", contents=("Write docs", "Ship beta", "Email users")):
        items = await capture_items(*contents)
        chunk = await chunk_service.create(owner, name, item_ids=[i.id for i in items])
        return chunk, items
    return _create


@pytest.fixture
def convert_request(area_id):
    """Build a valid ConversionRequest."""
    def _build(**overrides):
        fields = {
            "title": "Launch beta",
            "purpose": "Get real users on the product",
            "area_id": area_id,
        }
        fields.update(overrides)
        return ConversionRequest(**fields)
    return _build
