"""Shared test fixtures for FitCoach notification tests.

This module provides common fixtures used across all test modules:
- Database isolation with temporary files
- A controllable clock
- A recording delivery port standing in for the device
- Standard preference snapshots

Usage:
    def test_something(temp_db, clock, port):
        # temp_db is a fresh sqlite file under tmp_path
        ...
"""

import asyncio
from datetime import datetime, time, timedelta, timezone
from pathlib import Path

import pytest

from fitcoach.notifications.delivery import InMemoryDeliveryPort
from fitcoach.notifications.errors import PermissionDenied
from fitcoach.notifications.models import NotificationCategory, Preferences, Trigger


# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

# Monday 19 October 2026, 07:00 UTC
REFERENCE_NOW = datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc)


# ─────────────────────────────────────────────────────────────────────────────
# Database Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Path to a not-yet-created sqlite file, removed with tmp_path."""
    return tmp_path / "notifications.db"


@pytest.fixture
def broken_db_path(tmp_path: Path) -> Path:
    """A path sqlite cannot open as a database (it is a directory)."""
    path = tmp_path / "not-a-database"
    path.mkdir()
    return path


# ─────────────────────────────────────────────────────────────────────────────
# User Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_user_id() -> str:
    """Standard test user ID."""
    return "test_user_123"


@pytest.fixture
def meal_only_prefs(mock_user_id: str) -> Preferences:
    """Meal reminders at 08:00 UTC, nothing else, no quiet hours."""
    return Preferences(
        user_id=mock_user_id,
        enabled_categories=frozenset({NotificationCategory.MEAL}),
        preferred_times={NotificationCategory.MEAL: time(8, 0)},
        timezone="UTC",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Clock Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(REFERENCE_NOW)


# ─────────────────────────────────────────────────────────────────────────────
# Delivery Port Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class RecordingPort(InMemoryDeliveryPort):
    """
    In-memory port that records every call.

    Args:
        delay: Seconds each call takes (to expose interleaving)
        deny_schedule: Raise PermissionDenied from schedule() while
            has_permission() still reports True
        block_after: Hang forever once this many schedules have succeeded
    """

    def __init__(
        self,
        permission: bool = True,
        reject_ids: set[str] | None = None,
        delay: float = 0.0,
        deny_schedule: bool = False,
        block_after: int | None = None,
    ):
        super().__init__(permission=permission, reject_ids=reject_ids)
        self.delay = delay
        self.deny_schedule = deny_schedule
        self.block_after = block_after
        self.calls: list[tuple[str, str]] = []
        self.permission_checks = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.delay:
            await asyncio.sleep(self.delay)

    async def schedule(self, trigger: Trigger) -> None:
        await self._enter()
        try:
            if self.block_after is not None and len(self.outstanding) >= self.block_after:
                await asyncio.Event().wait()
            self.calls.append(("schedule", trigger.sequence_id))
            if self.deny_schedule:
                raise PermissionDenied("revoked")
            await super().schedule(trigger)
        finally:
            self.in_flight -= 1

    async def cancel(self, sequence_id: str) -> None:
        await self._enter()
        try:
            self.calls.append(("cancel", sequence_id))
            await super().cancel(sequence_id)
        finally:
            self.in_flight -= 1

    async def has_permission(self) -> bool:
        self.permission_checks += 1
        return await super().has_permission()

    def scheduled_ids(self) -> list[str]:
        return [sid for op, sid in self.calls if op == "schedule"]

    def cancelled_ids(self) -> list[str]:
        return [sid for op, sid in self.calls if op == "cancel"]


@pytest.fixture
def port() -> RecordingPort:
    return RecordingPort()


@pytest.fixture
def make_port():
    """Factory for ports with custom behaviour."""
    return RecordingPort
