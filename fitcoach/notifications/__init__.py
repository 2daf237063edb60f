"""Smart Notification Scheduler for FitCoach

Decides when local reminders fire (meal, workout, hydration, progress
report), honours quiet hours and per-category toggles, and keeps the
device's outstanding notifications converged on the latest preferences.

Components:
    preferences/: Durable per-user notification preferences
    scheduling/: Trigger calculation, reconciliation, committed schedule
    delivery.py: Port to the OS notification primitive
    scheduler.py: Single-writer orchestrator

Database: data/notifications.db
    - notification_preferences: one versioned row per user
    - committed_schedule: triggers believed registered with the device
"""

import sqlite3
from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
DATA_PATH = PROJECT_ROOT / "data"
DB_PATH = DATA_PATH / "notifications.db"


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """
    Get database connection, creating tables if needed.

    Args:
        db_path: Database file (defaults to DB_PATH)

    Returns:
        SQLite connection with row_factory set
    """
    path = Path(db_path or DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row

    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notification_preferences (
            user_id TEXT PRIMARY KEY,
            schema_version INTEGER NOT NULL,
            enabled BOOLEAN DEFAULT TRUE,
            quiet_hours_start TEXT,
            quiet_hours_end TEXT,
            timezone TEXT DEFAULT 'UTC',
            category_settings TEXT,
            workout_days TEXT,
            max_per_day INTEGER,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS committed_schedule (
            user_id TEXT PRIMARY KEY,
            schema_version INTEGER NOT NULL,
            triggers TEXT NOT NULL,
            suppressed TEXT,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """)

    conn.commit()
    return conn
