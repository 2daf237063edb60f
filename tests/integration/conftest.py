"""
Integration test fixtures for the FitCoach notification API.

Provides:
- A scheduler wired to temporary sqlite stores and an in-memory device
- FastAPI test clients (sync with lifespan, async over ASGI)
"""

from collections.abc import AsyncGenerator, Generator
from datetime import timedelta

import pytest
import pytest_asyncio

from fitcoach.api.main import create_app
from fitcoach.notifications.delivery import InMemoryDeliveryPort
from fitcoach.notifications.models import Preferences
from fitcoach.notifications.preferences.store import PreferenceStore
from fitcoach.notifications.scheduler import NotificationScheduler
from fitcoach.notifications.scheduling.committed import CommittedScheduleStore


# ─────────────────────────────────────────────────────────────────────────────
# Scheduler Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def device() -> InMemoryDeliveryPort:
    """In-memory stand-in for the OS notification primitive."""
    return InMemoryDeliveryPort()


@pytest.fixture
def api_scheduler(mock_user_id, device, temp_db, clock) -> NotificationScheduler:
    """Scheduler with every category enabled at its default time (UTC)."""
    return NotificationScheduler(
        mock_user_id,
        device,
        preference_store=PreferenceStore(
            mock_user_id,
            db_path=temp_db,
            defaults=Preferences.defaults(mock_user_id),
        ),
        committed_store=CommittedScheduleStore(mock_user_id, db_path=temp_db),
        clock=clock,
    )


# ─────────────────────────────────────────────────────────────────────────────
# API Client Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def test_client(api_scheduler) -> Generator:
    """TestClient with the app lifespan (scheduler initialized on startup)."""
    from fastapi.testclient import TestClient

    app = create_app(api_scheduler, reevaluate_interval=timedelta(hours=1))
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_test_client(api_scheduler) -> AsyncGenerator:
    """httpx client over ASGI; the scheduler is initialized by hand."""
    from httpx import ASGITransport, AsyncClient

    app = create_app(api_scheduler)
    app.state.scheduler = api_scheduler
    await api_scheduler.initialize()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
