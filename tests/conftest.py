"""
Test Suite Configuration
"""
from datetime import date
from typing import AsyncGenerator, Dict, List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agrimarket.analytics.window import DateWindow
from agrimarket.config import Settings
from agrimarket.config.settings import AnalyticsSettings, PostHogSettings
from agrimarket.database.models import Base


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(APP_ENV="testing", DEBUG=True)


@pytest.fixture
def analytics_config() -> AnalyticsSettings:
    return AnalyticsSettings()


@pytest.fixture
def posthog_config() -> PostHogSettings:
    """Configured event API settings pointing at a fake host"""
    return PostHogSettings(
        host="https://events.example.test",
        project_id="4242",
        personal_api_key="phx_test_key",
        event_limit=500,
    )


@pytest.fixture
def unconfigured_posthog() -> PostHogSettings:
    return PostHogSettings(project_id=None, personal_api_key=None)


@pytest.fixture
def january_window() -> DateWindow:
    return DateWindow(start=date(2024, 1, 1), end=date(2024, 1, 3))


@pytest.fixture
def raw_events() -> List[Dict]:
    """Upstream event objects as returned by the events API"""
    return [
        {
            "event": "$pageview",
            "distinct_id": "visitor-1",
            "timestamp": "2024-01-01T09:30:00Z",
            "properties": {"$pathname": "/products", "$browser": "Chrome"},
        },
        {
            "event": "$pageview",
            "distinct_id": "visitor-2",
            "time": "2024-01-02T14:00:00+00:00",
            "properties": {"$current_url": "https://market.example/search?q=maize"},
        },
        {
            "event": "$pageview",
            "distinct_id": "visitor-3",
            "timestamp": "2023-12-20T08:00:00Z",
            "properties": {},
        },
    ]


@pytest.fixture
async def test_engine():
    """In-memory database with the marketplace schema"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()
