"""
Tool: Notification Preference Store
Purpose: Durable, per-user record of notification preferences

Usage:
    from fitcoach.notifications.preferences.store import PreferenceStore

    store = PreferenceStore("user-1")
    prefs = await store.load()
    await store.save(prefs.with_updates(timezone="Europe/Berlin"))
    snapshot = store.current()

Stored as one versioned row per user. A missing row is not an error:
category defaults apply.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from fitcoach.notifications import get_connection
from fitcoach.notifications.errors import StorageUnavailable
from fitcoach.notifications.models import SCHEMA_VERSION, Preferences

logger = logging.getLogger(__name__)


class PreferenceStore:
    """
    Preference persistence for a single user.

    load() and save() do blocking sqlite work in a worker thread so the
    event loop keeps serving unrelated work. current() never blocks.
    """

    def __init__(
        self,
        user_id: str,
        db_path: Path | None = None,
        defaults: Preferences | None = None,
    ):
        self.user_id = user_id
        self.db_path = db_path
        self._defaults = defaults or Preferences.defaults(user_id)
        self._current = self._defaults

    def current(self) -> Preferences:
        """Last successfully loaded or saved snapshot."""
        return self._current

    async def load(self) -> Preferences:
        """
        Load preferences from storage.

        Returns:
            Stored preferences, or category defaults on first run

        Raises:
            StorageUnavailable: if the database cannot be read
        """
        prefs = await asyncio.to_thread(self._read)
        self._current = prefs
        return prefs

    async def save(self, prefs: Preferences) -> Preferences:
        """
        Persist preferences atomically.

        Returns:
            The saved snapshot (with updated_at stamped)

        Raises:
            StorageUnavailable: if the write fails
        """
        prefs = prefs.with_updates(updated_at=datetime.now(timezone.utc))
        await asyncio.to_thread(self._write, prefs)
        self._current = prefs
        return prefs

    def _read(self) -> Preferences:
        try:
            conn = get_connection(self.db_path)
            try:
                row = conn.execute(
                    "SELECT * FROM notification_preferences WHERE user_id = ?",
                    (self.user_id,),
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Could not read preferences: {e}") from e

        if row is None:
            logger.debug(f"No stored preferences for {self.user_id}, using defaults")
            return self._defaults

        data = dict(row)
        version = data.get("schema_version")
        if version != SCHEMA_VERSION:
            raise StorageUnavailable(
                f"Unsupported preferences schema version {version} for {self.user_id}"
            )

        try:
            return Preferences.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageUnavailable(f"Corrupt preferences record: {e}") from e

    def _write(self, prefs: Preferences) -> None:
        row = prefs.to_dict()
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" * len(row))
        set_clauses = ", ".join(f"{k} = excluded.{k}" for k in row if k != "user_id")

        try:
            conn = get_connection(self.db_path)
            try:
                # Single transaction: a concurrent reader sees old or new, never partial
                with conn:
                    conn.execute(
                        f"INSERT INTO notification_preferences ({columns}) "
                        f"VALUES ({placeholders}) "
                        f"ON CONFLICT(user_id) DO UPDATE SET {set_clauses}",
                        list(row.values()),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Could not save preferences: {e}") from e
