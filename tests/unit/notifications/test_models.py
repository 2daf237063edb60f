"""Tests for fitcoach/notifications/models.py"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from fitcoach.notifications.models import (
    ALL_WEEKDAYS,
    CATEGORY_DEFAULTS,
    Cadence,
    NotificationCategory,
    Preferences,
    QuietHours,
    Trigger,
    make_sequence_id,
    parse_sequence_id,
    parse_time_of_day,
    resolve_timezone,
)


class TestTimeOfDay:
    def test_parse_valid(self):
        assert parse_time_of_day("07:30") == time(7, 30)
        assert parse_time_of_day("0:05") == time(0, 5)

    def test_parse_passes_time_through(self):
        assert parse_time_of_day(time(8, 0, 30)) == time(8, 0)

    @pytest.mark.parametrize("value", ["25:00", "08:60", "0800", "eight", "8:00:00", ""])
    def test_parse_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid time format"):
            parse_time_of_day(value)


class TestResolveTimezone:
    def test_iana_name(self):
        tz = resolve_timezone("Europe/Berlin")
        assert datetime(2026, 1, 1, tzinfo=tz).utcoffset() == timedelta(hours=1)

    @pytest.mark.parametrize(
        "name,offset",
        [
            ("+05:30", timedelta(hours=5, minutes=30)),
            ("-08:00", timedelta(hours=-8)),
            ("UTC+2", timedelta(hours=2)),
            ("GMT-0330", timedelta(hours=-3, minutes=-30)),
        ],
    )
    def test_fixed_offsets(self, name, offset):
        tz = resolve_timezone(name)
        assert datetime(2026, 1, 1, tzinfo=tz).utcoffset() == offset

    @pytest.mark.parametrize("name", ["", "Not/AZone", "+24:00"])
    def test_unknown(self, name):
        with pytest.raises(ValueError):
            resolve_timezone(name)


class TestSequenceId:
    def test_format(self):
        sid = make_sequence_id(NotificationCategory.PROGRESS_REPORT, date(2026, 10, 25))
        assert sid == "progress_report-2026-10-25"

    def test_parse_back(self):
        category, day = parse_sequence_id("hydration-2026-10-19")
        assert category == NotificationCategory.HYDRATION
        assert day == date(2026, 10, 19)

    def test_parse_rejects_foreign_ids(self):
        with pytest.raises(ValueError):
            parse_sequence_id("sleep-2026-10-19")


class TestQuietHours:
    def test_wrapping_window(self):
        quiet = QuietHours(time(22, 0), time(7, 0))

        assert quiet.wraps_midnight
        assert quiet.contains(time(22, 0))
        assert quiet.contains(time(23, 59))
        assert quiet.contains(time(3, 0))
        assert not quiet.contains(time(7, 0))
        assert not quiet.contains(time(12, 0))

    def test_same_day_window(self):
        quiet = QuietHours(time(13, 0), time(15, 0))

        assert not quiet.wraps_midnight
        assert quiet.contains(time(13, 0))
        assert not quiet.contains(time(15, 0))
        assert not quiet.contains(time(12, 59))

    def test_degenerate(self):
        assert QuietHours(time(9, 0), time(9, 0)).is_degenerate
        assert not QuietHours(time(9, 0), time(10, 0)).is_degenerate

    def test_from_strings(self):
        quiet = QuietHours.from_strings("22:00", "07:00")
        assert quiet.to_dict() == {"start": "22:00", "end": "07:00"}


class TestCategoryDefaults:
    def test_every_category_has_defaults(self):
        assert set(CATEGORY_DEFAULTS) == set(NotificationCategory)

    def test_progress_report_is_weekly_on_sunday(self):
        progress = CATEGORY_DEFAULTS[NotificationCategory.PROGRESS_REPORT]
        assert progress.cadence == Cadence.WEEKLY
        assert progress.anchor_weekday == 6


class TestPreferences:
    def test_defaults_enable_everything(self):
        prefs = Preferences.defaults("u1", timezone="Europe/Berlin")

        assert prefs.enabled
        assert prefs.enabled_categories == frozenset(NotificationCategory)
        assert prefs.preferred_times[NotificationCategory.WORKOUT] == time(18, 0)
        assert prefs.timezone == "Europe/Berlin"
        assert prefs.workout_days == ALL_WEEKDAYS
        assert prefs.max_per_day is None

    def test_with_updates_returns_new_snapshot(self):
        prefs = Preferences.defaults("u1")
        updated = prefs.with_updates(timezone="Asia/Tokyo")

        assert updated.timezone == "Asia/Tokyo"
        assert prefs.timezone == "UTC"

    def test_is_enabled_respects_master_switch(self):
        prefs = Preferences.defaults("u1")
        assert prefs.is_enabled(NotificationCategory.MEAL)
        assert not prefs.with_updates(enabled=False).is_enabled(NotificationCategory.MEAL)

    def test_database_row_round_trip(self):
        prefs = Preferences(
            user_id="u1",
            enabled_categories=frozenset({NotificationCategory.MEAL}),
            preferred_times={
                NotificationCategory.MEAL: time(9, 15),
                NotificationCategory.WORKOUT: time(17, 0),
            },
            quiet_hours=QuietHours(time(22, 0), time(7, 0)),
            timezone="+05:30",
            workout_days=frozenset({1, 3}),
            max_per_day=3,
            updated_at=datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc),
        )

        assert Preferences.from_dict(prefs.to_dict()) == prefs

    def test_from_dict_without_optional_columns(self):
        prefs = Preferences.from_dict({"user_id": "u1"})

        assert prefs.enabled_categories == frozenset()
        assert prefs.quiet_hours is None
        assert prefs.workout_days == ALL_WEEKDAYS


class TestTrigger:
    def test_from_dict_normalises_to_utc(self):
        trigger = Trigger.from_dict({
            "category": "meal",
            "scheduled_at": "2026-10-19T10:00:00+02:00",
            "sequence_id": "meal-2026-10-19",
        })

        assert trigger.scheduled_at == datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
        assert trigger.scheduled_at.tzinfo == timezone.utc

    def test_equality_is_by_value(self):
        at = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
        a = Trigger(NotificationCategory.MEAL, at, "meal-2026-10-19")
        b = Trigger(NotificationCategory.MEAL, at, "meal-2026-10-19")
        assert a == b
        assert len({a, b}) == 1
