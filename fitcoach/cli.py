#!/usr/bin/env python3
"""
FitCoach Notifications Command Line Interface

Usage:
    fitcoach-notify prefs --user-id alice                   # Show preferences
    fitcoach-notify quiet-hours -u alice -s 22:00 -e 07:00  # Set quiet hours
    fitcoach-notify preview --user-id alice --hours 48      # Upcoming reminders
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone

from fitcoach.api.routes import serialize_preferences
from fitcoach.logging_config import setup_logging
from fitcoach.notifications.config import load_config
from fitcoach.notifications.errors import InvalidPreferences, StorageUnavailable
from fitcoach.notifications.models import QuietHours
from fitcoach.notifications.preferences.store import PreferenceStore
from fitcoach.notifications.preferences.validation import validate_preferences
from fitcoach.notifications.scheduling.messages import compose
from fitcoach.notifications.scheduling.triggers import compute_targets


def _store(user_id: str) -> PreferenceStore:
    config = load_config()
    return PreferenceStore(
        user_id,
        db_path=config.storage.resolved_path(),
        defaults=config.default_preferences(user_id),
    )


def cmd_prefs(args) -> int:
    prefs = asyncio.run(_store(args.user_id).load())
    print(json.dumps(serialize_preferences(prefs), indent=2))
    return 0


def cmd_quiet_hours(args) -> int:
    store = _store(args.user_id)

    try:
        quiet = QuietHours.from_strings(args.start, args.end)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    async def _update():
        prefs = await store.load()
        updated = prefs.with_updates(quiet_hours=quiet)
        validate_preferences(updated)
        await store.save(updated)

    try:
        asyncio.run(_update())
    except InvalidPreferences as e:
        print(f"Error: {'; '.join(e.violations)}")
        return 1

    print(f"Quiet hours set: {args.start} - {args.end}")
    return 0


def cmd_preview(args) -> int:
    prefs = asyncio.run(_store(args.user_id).load())
    now = datetime.now(timezone.utc)

    try:
        targets = compute_targets(prefs, now, timedelta(hours=args.hours))
    except InvalidPreferences as e:
        print(f"Error: {'; '.join(e.violations)}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    rows = []
    for trigger in sorted(targets, key=lambda t: t.scheduled_at):
        content = compose(trigger)
        rows.append({**trigger.to_dict(), "title": content["title"]})

    print(json.dumps(rows, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fitcoach-notify",
        description="FitCoach smart notification scheduler",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    prefs_parser = subparsers.add_parser("prefs", help="Show user preferences")
    prefs_parser.add_argument("--user-id", "-u", required=True, help="User ID")
    prefs_parser.set_defaults(func=cmd_prefs)

    quiet_parser = subparsers.add_parser("quiet-hours", help="Set quiet hours")
    quiet_parser.add_argument("--user-id", "-u", required=True, help="User ID")
    quiet_parser.add_argument("--start", "-s", required=True, help="Start time (HH:MM)")
    quiet_parser.add_argument("--end", "-e", required=True, help="End time (HH:MM)")
    quiet_parser.set_defaults(func=cmd_quiet_hours)

    preview_parser = subparsers.add_parser("preview", help="Preview upcoming reminders")
    preview_parser.add_argument("--user-id", "-u", required=True, help="User ID")
    preview_parser.add_argument("--hours", type=int, default=48, help="Look-ahead hours")
    preview_parser.set_defaults(func=cmd_preview)

    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except StorageUnavailable as e:
        print(f"Error: storage unavailable ({e})")
        return 1


if __name__ == "__main__":
    sys.exit(main())
