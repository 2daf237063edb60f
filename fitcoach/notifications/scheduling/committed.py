"""
Tool: Committed Schedule Store
Purpose: Persist the triggers believed registered with the device

Usage:
    from fitcoach.notifications.scheduling.committed import CommittedScheduleStore

    store = CommittedScheduleStore("user-1")
    snapshot = await store.load()
    await store.save(snapshot.triggers, snapshot.suppressed)
    await store.clear()

Persisting this lets a restarted app reconcile against what it actually
registered instead of re-scheduling everything.
"""

import asyncio
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from fitcoach.notifications import get_connection
from fitcoach.notifications.errors import StorageUnavailable
from fitcoach.notifications.models import SCHEMA_VERSION, Trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommittedSnapshot:
    """Committed triggers plus the occurrences the user already completed."""

    triggers: dict[str, Trigger] = field(default_factory=dict)
    suppressed: frozenset[str] = field(default_factory=frozenset)


class CommittedScheduleStore:
    """Versioned committed-schedule record for a single user."""

    def __init__(self, user_id: str, db_path: Path | None = None):
        self.user_id = user_id
        self.db_path = db_path

    async def load(self) -> CommittedSnapshot:
        """
        Load the committed schedule.

        Returns:
            Snapshot (empty when nothing is stored)

        Raises:
            StorageUnavailable: if the record cannot be read
        """
        return await asyncio.to_thread(self._read)

    async def save(self, triggers: dict[str, Trigger], suppressed: frozenset[str]) -> None:
        """
        Replace the stored record atomically.

        Raises:
            StorageUnavailable: if the write fails
        """
        await asyncio.to_thread(self._write, triggers, suppressed)

    async def clear(self) -> None:
        """Delete the stored record (logout)."""
        await asyncio.to_thread(self._delete)

    def _read(self) -> CommittedSnapshot:
        try:
            conn = get_connection(self.db_path)
            try:
                row = conn.execute(
                    "SELECT * FROM committed_schedule WHERE user_id = ?",
                    (self.user_id,),
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Could not read committed schedule: {e}") from e

        if row is None:
            return CommittedSnapshot()

        if row["schema_version"] != SCHEMA_VERSION:
            raise StorageUnavailable(
                f"Unsupported committed schedule schema version {row['schema_version']}"
            )

        try:
            triggers = [Trigger.from_dict(item) for item in json.loads(row["triggers"])]
            suppressed = json.loads(row["suppressed"]) if row["suppressed"] else []
        except (KeyError, TypeError, ValueError) as e:
            raise StorageUnavailable(f"Corrupt committed schedule record: {e}") from e

        return CommittedSnapshot(
            triggers={t.sequence_id: t for t in triggers},
            suppressed=frozenset(suppressed),
        )

    def _write(self, triggers: dict[str, Trigger], suppressed: frozenset[str]) -> None:
        payload = json.dumps(
            [t.to_dict() for t in sorted(triggers.values(), key=lambda t: t.sequence_id)]
        )
        try:
            conn = get_connection(self.db_path)
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO committed_schedule
                        (user_id, schema_version, triggers, suppressed, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                        ON CONFLICT(user_id) DO UPDATE SET
                            schema_version = excluded.schema_version,
                            triggers = excluded.triggers,
                            suppressed = excluded.suppressed,
                            updated_at = excluded.updated_at
                        """,
                        (
                            self.user_id,
                            SCHEMA_VERSION,
                            payload,
                            json.dumps(sorted(suppressed)),
                            datetime.now(timezone.utc).isoformat(),
                        ),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Could not save committed schedule: {e}") from e

    def _delete(self) -> None:
        try:
            conn = get_connection(self.db_path)
            try:
                with conn:
                    conn.execute(
                        "DELETE FROM committed_schedule WHERE user_id = ?",
                        (self.user_id,),
                    )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Could not clear committed schedule: {e}") from e
