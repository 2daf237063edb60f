"""
Tool: Trigger Calculator
Purpose: Map a preference snapshot and a reference instant to the
occurrences that should be registered with the device

Usage:
    from fitcoach.notifications.scheduling.triggers import compute_targets

    targets = compute_targets(prefs, now=datetime.now(timezone.utc))

Pure functions only: no I/O, no clock reads, no randomness. The same
inputs always produce the same triggers and sequence ids.

Quiet hours:
    - Inclusive of start, exclusive of end
    - An occurrence inside quiet hours moves to the end of that window
      (next morning when the window wraps midnight)
    - A moved occurrence that would reach the category's next occurrence
      is dropped instead of firing twice
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from fitcoach.notifications.errors import InvalidQuietHours
from fitcoach.notifications.models import (
    CATEGORY_DEFAULTS,
    Cadence,
    NotificationCategory,
    Preferences,
    QuietHours,
    Trigger,
    make_sequence_id,
    resolve_timezone,
)


DEFAULT_HORIZON = timedelta(hours=48)


def compute_targets(
    prefs: Preferences,
    now: datetime,
    horizon: timedelta = DEFAULT_HORIZON,
    suppressed: frozenset[str] = frozenset(),
) -> frozenset[Trigger]:
    """
    Compute the target trigger set for [now, now + horizon).

    Args:
        prefs: Preference snapshot
        now: Reference instant (timezone-aware)
        horizon: Look-ahead window
        suppressed: Sequence ids to leave out (occurrences already completed)

    Returns:
        Frozen set of triggers with UTC instants

    Raises:
        InvalidQuietHours: if the quiet-hours window covers the whole day
        ValueError: if now is naive or the timezone cannot be resolved
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    if not prefs.enabled or not prefs.enabled_categories or horizon <= timedelta(0):
        return frozenset()

    quiet = prefs.quiet_hours
    if quiet is not None and quiet.is_degenerate:
        raise InvalidQuietHours(["quiet hours start and end must differ"])

    tz = resolve_timezone(prefs.timezone)
    end = now + horizon

    # A quiet window is shorter than a day, so shifted occurrences come
    # from at most one day before now
    first_date = now.astimezone(tz).date() - timedelta(days=1)
    last_date = end.astimezone(tz).date()

    triggers = []
    for category in sorted(prefs.enabled_categories):
        preferred = prefs.preferred_times.get(category)
        if preferred is None:
            continue

        for nominal_date in _occurrence_dates(prefs, category, first_date, last_date):
            instant = _effective_instant(prefs, category, nominal_date, preferred, tz)
            if instant is None or instant >= end:
                continue

            sequence_id = make_sequence_id(category, nominal_date)
            if sequence_id in suppressed:
                continue

            triggers.append(Trigger(category, instant, sequence_id))

    # The daily cap counts the whole local day, including reminders that
    # already fired before now
    if prefs.max_per_day is not None:
        triggers = _apply_daily_cap(triggers, prefs.max_per_day, tz)

    return frozenset(t for t in triggers if t.scheduled_at >= now)


def in_quiet_hours(prefs: Preferences, instant: datetime) -> bool:
    """Check whether an absolute instant falls in the user's quiet hours."""
    if prefs.quiet_hours is None:
        return False
    tz = resolve_timezone(prefs.timezone)
    return prefs.quiet_hours.contains(instant.astimezone(tz).time())


def matches_cadence(prefs: Preferences, category: NotificationCategory, day: date) -> bool:
    """Check whether a category has a nominal occurrence on a local date."""
    category_spec = CATEGORY_DEFAULTS[category]

    if category_spec.cadence == Cadence.WEEKLY:
        return day.weekday() == category_spec.anchor_weekday

    if category == NotificationCategory.WORKOUT:
        return day.weekday() in prefs.workout_days

    return True


def _occurrence_dates(
    prefs: Preferences,
    category: NotificationCategory,
    first: date,
    last: date,
):
    day = first
    while day <= last:
        if matches_cadence(prefs, category, day):
            yield day
        day += timedelta(days=1)


def _next_occurrence_date(
    prefs: Preferences,
    category: NotificationCategory,
    after: date,
) -> date | None:
    for offset in range(1, 8):
        candidate = after + timedelta(days=offset)
        if matches_cadence(prefs, category, candidate):
            return candidate
    return None


def _localize(day: date, moment: time, tz: tzinfo) -> datetime:
    """Wall-clock date + time in tz, normalised through UTC (handles DST gaps)."""
    naive_local = datetime.combine(day, moment.replace(tzinfo=None))
    return naive_local.replace(tzinfo=tz).astimezone(timezone.utc)


def _quiet_window_end(quiet: QuietHours, local: datetime, tz: tzinfo) -> datetime:
    """End of the quiet window containing a local instant."""
    end_date = local.date()
    if quiet.wraps_midnight and local.time() >= quiet.start:
        end_date += timedelta(days=1)
    return _localize(end_date, quiet.end, tz)


def _effective_instant(
    prefs: Preferences,
    category: NotificationCategory,
    nominal_date: date,
    preferred: time,
    tz: tzinfo,
) -> datetime | None:
    nominal = _localize(nominal_date, preferred, tz)
    quiet = prefs.quiet_hours

    local = nominal.astimezone(tz)
    if quiet is None or not quiet.contains(local.time()):
        return nominal

    shifted = _quiet_window_end(quiet, local, tz)

    next_date = _next_occurrence_date(prefs, category, nominal_date)
    if next_date is not None and shifted >= _localize(next_date, preferred, tz):
        return None

    return shifted


def _apply_daily_cap(triggers: list[Trigger], cap: int, tz: tzinfo) -> list[Trigger]:
    """Keep the earliest `cap` triggers of each local calendar day."""
    ordered = sorted(triggers, key=lambda t: (t.scheduled_at, t.category.value))
    per_day: dict[date, int] = {}
    kept = []

    for trigger in ordered:
        day = trigger.scheduled_at.astimezone(tz).date()
        if per_day.get(day, 0) >= cap:
            continue
        per_day[day] = per_day.get(day, 0) + 1
        kept.append(trigger)

    return kept
