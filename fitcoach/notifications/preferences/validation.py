"""
Invariant checks for notification preferences.

The store persists whatever it is given; the scheduler calls
validate_preferences() before any state is touched.
"""

from fitcoach.notifications.errors import InvalidPreferences, InvalidQuietHours
from fitcoach.notifications.models import (
    NotificationCategory,
    Preferences,
    resolve_timezone,
)


def check_preferences(prefs: Preferences) -> list[str]:
    """
    List every invariant the preferences break.

    Returns:
        Human-readable violations (empty when valid)
    """
    violations = []

    for category in sorted(prefs.enabled_categories):
        if category not in prefs.preferred_times:
            violations.append(f"enabled category '{category}' has no preferred time")

    if prefs.quiet_hours is not None and prefs.quiet_hours.is_degenerate:
        violations.append("quiet hours start and end must differ")

    try:
        resolve_timezone(prefs.timezone)
    except ValueError:
        violations.append(f"unknown timezone '{prefs.timezone}'")

    invalid_days = sorted(d for d in prefs.workout_days if not 0 <= d <= 6)
    if invalid_days:
        violations.append(f"workout days out of range: {invalid_days}")
    elif NotificationCategory.WORKOUT in prefs.enabled_categories and not prefs.workout_days:
        violations.append("workout reminders enabled with no workout days")

    if prefs.max_per_day is not None and prefs.max_per_day < 1:
        violations.append("max_per_day must be at least 1")

    return violations


def validate_preferences(prefs: Preferences) -> None:
    """
    Raise if the preferences break an invariant.

    Raises:
        InvalidQuietHours: if the quiet-hours window is degenerate
        InvalidPreferences: for any other violation
    """
    violations = check_preferences(prefs)
    if not violations:
        return

    if prefs.quiet_hours is not None and prefs.quiet_hours.is_degenerate:
        raise InvalidQuietHours(violations)
    raise InvalidPreferences(violations)
