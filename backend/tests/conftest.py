"""
Health Metrics Tracker Backend — Test Configuration (conftest.py)
===================================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite) with the
       schema created from Base.metadata. API tests talk to a fresh app
       instance over httpx's ASGITransport with get_db_session overridden to
       use that database.

Fixture Hierarchy (all function-scoped):
    db_engine ─┬─ db_session ─┬─ make_facility / make_indicator / make_data_value
               │              └─ (service tests)
               └─ make_client ─── test_client (API tests)
    mock_db_session: AsyncMock session for error-path tests
"""

import os

# Settings are read at import time; point them at SQLite before importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SEED_DEMO_DATA"] = "false"

from datetime import date
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db_session
from app.middleware.rate_limit import SlidingWindowRateLimiter
from app.models import DataType, DataValue, Facility, HealthIndicator, PeriodType
from app.services.indicator_service import indicator_service


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine holding the full schema.

    StaticPool keeps a single connection, so every session in the test sees
    the same in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture(autouse=True)
def clear_indicator_cache():
    """The indicator list cache is process-wide; never let it leak between tests."""
    indicator_service.clear_cache()
    yield
    indicator_service.clear_cache()


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.get.side_effect = OperationalError(...)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Data Factories
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_facility(db_session):
    """Insert and commit a facility. Codes are generated unless given."""
    counter = {"n": 0}

    async def _make(
        name: str = "Athens General Hospital",
        region: Optional[str] = "Attica",
        active: bool = True,
        **overrides,
    ) -> Facility:
        counter["n"] += 1
        facility = Facility(
            code=overrides.pop("code", f"FAC{counter['n']:03d}"),
            name=name,
            type=overrides.pop("type", "Hospital"),
            region=region,
            district=overrides.pop("district", None),
            active=active,
            **overrides,
        )
        db_session.add(facility)
        await db_session.commit()
        return facility

    return _make


@pytest.fixture
def make_indicator(db_session):
    counter = {"n": 0}

    async def _make(
        name: str = "Malaria Cases",
        data_type: DataType = DataType.NUMBER,
        active: bool = True,
        **overrides,
    ) -> HealthIndicator:
        counter["n"] += 1
        indicator = HealthIndicator(
            code=overrides.pop("code", f"IND{counter['n']:03d}"),
            name=name,
            category=overrides.pop("category", "Disease Surveillance"),
            data_type=data_type,
            unit=overrides.pop("unit", "cases"),
            active=active,
            **overrides,
        )
        db_session.add(indicator)
        await db_session.commit()
        return indicator

    return _make


@pytest.fixture
def make_data_value(db_session):
    """Insert a data value directly, bypassing submission rules."""

    async def _make(
        facility: Facility,
        indicator: HealthIndicator,
        value: str = "10",
        period_start: date = date(2024, 1, 1),
        period_end: date = date(2024, 1, 31),
    ) -> DataValue:
        data_value = DataValue(
            facility=facility,
            indicator=indicator,
            period_start=period_start,
            period_end=period_end,
            period_type=PeriodType.MONTHLY,
            value=Decimal(value),
            created_by="test",
        )
        db_session.add(data_value)
        await db_session.commit()
        return data_value

    return _make


# ══════════════════════════════════════════════════════════════════════════
# API Client Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_client(db_engine):
    """
    Build an AsyncClient around a fresh app bound to the test database.

    Usage:
        async with make_client(limiter=SlidingWindowRateLimiter(2, 60)) as client:
            ...
    """
    from app.main import create_app

    factory = async_sessionmaker(db_engine, expire_on_commit=False)

    async def override_get_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _make(limiter: Optional[SlidingWindowRateLimiter] = None) -> AsyncClient:
        app = create_app(limiter=limiter)
        app.dependency_overrides[get_db_session] = override_get_db_session
        transport = ASGITransport(app=app)
        return AsyncClient(transport=transport, base_url="http://test")

    return _make


@pytest_asyncio.fixture
async def test_client(make_client):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    async with make_client() as client:
        yield client
