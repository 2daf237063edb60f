"""
Tool: Notification Scheduler Models
Purpose: Data structures for preferences, triggers and category defaults

Usage:
    from fitcoach.notifications.models import (
        NotificationCategory,
        Preferences,
        QuietHours,
        Trigger,
        TriggerState,
    )
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


SCHEMA_VERSION = 1

ALL_WEEKDAYS = frozenset(range(7))  # 0 = Monday ... 6 = Sunday


class NotificationCategory(StrEnum):
    """Reminder categories the scheduler manages."""

    MEAL = "meal"
    WORKOUT = "workout"
    HYDRATION = "hydration"
    PROGRESS_REPORT = "progress_report"


class Cadence(StrEnum):
    """How often a category's preferred time recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"


class TriggerState(StrEnum):
    """
    Lifecycle of one category occurrence.

    computed -> scheduled -> fired | canceled. pending_permission replaces
    scheduled while the OS has not granted notification permission.
    """

    COMPUTED = "computed"
    SCHEDULED = "scheduled"
    PENDING_PERMISSION = "pending_permission"
    FIRED = "fired"
    CANCELED = "canceled"


class ReevaluationReason(StrEnum):
    """Why the scheduler is running a reconciliation pass."""

    STARTUP = "startup"
    PREFERENCES_CHANGED = "preferences_changed"
    FOREGROUND = "foreground"
    PERIODIC = "periodic"
    PERMISSION_CHANGED = "permission_changed"
    ACTIVITY_LOGGED = "activity_logged"
    LOGOUT = "logout"


@dataclass(frozen=True)
class CategoryDefaults:
    """Default behaviour of a category."""

    category: NotificationCategory
    cadence: Cadence
    preferred_time: time
    anchor_weekday: int | None = None  # weekly cadence only
    screen: str = "Home"  # deep link target in the mobile client


CATEGORY_DEFAULTS: dict[NotificationCategory, CategoryDefaults] = {
    NotificationCategory.MEAL: CategoryDefaults(
        category=NotificationCategory.MEAL,
        cadence=Cadence.DAILY,
        preferred_time=time(8, 0),
        screen="FoodLog",
    ),
    NotificationCategory.WORKOUT: CategoryDefaults(
        category=NotificationCategory.WORKOUT,
        cadence=Cadence.DAILY,
        preferred_time=time(18, 0),
        screen="Workout",
    ),
    NotificationCategory.HYDRATION: CategoryDefaults(
        category=NotificationCategory.HYDRATION,
        cadence=Cadence.DAILY,
        preferred_time=time(14, 0),
        screen="Water",
    ),
    NotificationCategory.PROGRESS_REPORT: CategoryDefaults(
        category=NotificationCategory.PROGRESS_REPORT,
        cadence=Cadence.WEEKLY,
        preferred_time=time(19, 0),
        anchor_weekday=6,  # Sunday
        screen="Progress",
    ),
}


def parse_time_of_day(value: time | str) -> time:
    """
    Parse an "HH:MM" string into a time.

    Raises:
        ValueError: if the value is not a valid time of day
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    try:
        parts = value.split(":")
        if len(parts) != 2:
            raise ValueError()
        hour, minute = int(parts[0]), int(parts[1])
        return time(hour, minute)
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time format: {value!r}. Use HH:MM") from None


def format_time_of_day(value: time) -> str:
    return value.strftime("%H:%M")


_OFFSET_RE = re.compile(r"^(?:UTC|GMT)?([+-])(\d{1,2}):?(\d{2})?$")


def resolve_timezone(name: str) -> tzinfo:
    """
    Resolve an IANA identifier ("Europe/Berlin") or UTC offset ("+05:30").

    Raises:
        ValueError: if the name cannot be resolved
    """
    if not name:
        raise ValueError("Empty timezone")

    match = _OFFSET_RE.match(name.strip())
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
        if offset >= timedelta(hours=24):
            raise ValueError(f"Offset out of range: {name}")
        return timezone(-offset if sign == "-" else offset)

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ValueError(f"Unknown timezone: {name}") from None


def make_sequence_id(category: NotificationCategory, nominal_date: date) -> str:
    """
    Stable identifier for one logical occurrence.

    Derived only from category and calendar date so recomputation always
    maps the same occurrence to the same id.
    """
    return f"{category.value}-{nominal_date.isoformat()}"


def parse_sequence_id(sequence_id: str) -> tuple[NotificationCategory, date]:
    """
    Split a sequence id back into category and nominal date.

    Raises:
        ValueError: if the id was not produced by make_sequence_id()
    """
    category, _, day = sequence_id.partition("-")
    return NotificationCategory(category), date.fromisoformat(day)


@dataclass(frozen=True)
class QuietHours:
    """
    Daily do-not-disturb window, possibly wrapping midnight.

    Inclusive of start, exclusive of end.
    """

    start: time
    end: time

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end

    @property
    def is_degenerate(self) -> bool:
        return self.start == self.end

    def contains(self, moment: time) -> bool:
        """Check whether a local time of day falls inside the window."""
        moment = moment.replace(tzinfo=None)
        if self.wraps_midnight:
            return moment >= self.start or moment < self.end
        return self.start <= moment < self.end

    def to_dict(self) -> dict[str, str]:
        return {
            "start": format_time_of_day(self.start),
            "end": format_time_of_day(self.end),
        }

    @classmethod
    def from_strings(cls, start: str, end: str) -> "QuietHours":
        return cls(start=parse_time_of_day(start), end=parse_time_of_day(end))


@dataclass(frozen=True)
class Preferences:
    """
    A user's notification configuration.

    Treated as an immutable snapshot; use with_updates() to derive a new one.
    """

    user_id: str
    enabled: bool = True
    enabled_categories: frozenset[NotificationCategory] = field(default_factory=frozenset)
    preferred_times: dict[NotificationCategory, time] = field(default_factory=dict)
    quiet_hours: QuietHours | None = None
    timezone: str = "UTC"

    # Weekdays on which workout reminders fire
    workout_days: frozenset[int] = ALL_WEEKDAYS

    # Daily cap across all categories (None = no cap)
    max_per_day: int | None = None

    updated_at: datetime | None = None

    @classmethod
    def defaults(
        cls,
        user_id: str,
        timezone: str = "UTC",
        quiet_hours: QuietHours | None = None,
    ) -> "Preferences":
        """Category defaults used on first-ever run."""
        return cls(
            user_id=user_id,
            enabled_categories=frozenset(NotificationCategory),
            preferred_times={
                category: default.preferred_time
                for category, default in CATEGORY_DEFAULTS.items()
            },
            quiet_hours=quiet_hours,
            timezone=timezone,
        )

    def with_updates(self, **updates: Any) -> "Preferences":
        return replace(self, **updates)

    def is_enabled(self, category: NotificationCategory) -> bool:
        return self.enabled and category in self.enabled_categories

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        category_settings = {
            category.value: {
                "enabled": category in self.enabled_categories,
                "preferred_time": (
                    format_time_of_day(self.preferred_times[category])
                    if category in self.preferred_times
                    else None
                ),
            }
            for category in NotificationCategory
        }
        return {
            "user_id": self.user_id,
            "schema_version": SCHEMA_VERSION,
            "enabled": self.enabled,
            "quiet_hours_start": (
                format_time_of_day(self.quiet_hours.start) if self.quiet_hours else None
            ),
            "quiet_hours_end": (
                format_time_of_day(self.quiet_hours.end) if self.quiet_hours else None
            ),
            "timezone": self.timezone,
            "category_settings": json.dumps(category_settings),
            "workout_days": json.dumps(sorted(self.workout_days)),
            "max_per_day": self.max_per_day,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Preferences":
        """Create from a database row dict."""
        data = data.copy()
        data.pop("schema_version", None)

        settings = data.pop("category_settings", None) or {}
        if isinstance(settings, str):
            settings = json.loads(settings) if settings else {}

        enabled_categories = set()
        preferred_times = {}
        for key, value in settings.items():
            category = NotificationCategory(key)
            if value.get("enabled"):
                enabled_categories.add(category)
            if value.get("preferred_time"):
                preferred_times[category] = parse_time_of_day(value["preferred_time"])

        start = data.pop("quiet_hours_start", None)
        end = data.pop("quiet_hours_end", None)
        quiet_hours = QuietHours.from_strings(start, end) if start and end else None

        workout_days = data.pop("workout_days", None)
        if isinstance(workout_days, str):
            workout_days = json.loads(workout_days)

        updated_at = data.pop("updated_at", None)
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)

        return cls(
            user_id=data["user_id"],
            enabled=bool(data.get("enabled", True)),
            enabled_categories=frozenset(enabled_categories),
            preferred_times=preferred_times,
            quiet_hours=quiet_hours,
            timezone=data.get("timezone") or "UTC",
            workout_days=(
                frozenset(workout_days) if workout_days is not None else ALL_WEEKDAYS
            ),
            max_per_day=data.get("max_per_day"),
            updated_at=updated_at,
        )


@dataclass(frozen=True)
class Trigger:
    """One concrete, time-stamped occurrence of a category."""

    category: NotificationCategory
    scheduled_at: datetime  # UTC-aware
    sequence_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "category": self.category.value,
            "scheduled_at": self.scheduled_at.isoformat(),
            "sequence_id": self.sequence_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trigger":
        scheduled_at = datetime.fromisoformat(data["scheduled_at"])
        if scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
        return cls(
            category=NotificationCategory(data["category"]),
            scheduled_at=scheduled_at.astimezone(timezone.utc),
            sequence_id=data["sequence_id"],
        )
