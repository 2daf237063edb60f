from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fitcoach.notifications import ARGS_DIR, PROJECT_ROOT, DB_PATH
from fitcoach.notifications.models import Preferences, QuietHours, parse_time_of_day

logger = logging.getLogger(__name__)

CONFIG_PATH = ARGS_DIR / "notifications.yaml"


# =============================================================================
# NotificationsConfig (args/notifications.yaml)
# =============================================================================

class SchedulerSettingsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    horizon_hours: int = Field(default=48, ge=1, le=24 * 14)
    reevaluate_interval_minutes: int = Field(default=60, ge=1)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    db_path: Optional[str] = None

    def resolved_path(self) -> Path:
        if not self.db_path:
            return DB_PATH
        path = Path(self.db_path)
        return path if path.is_absolute() else PROJECT_ROOT / path


class DefaultsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    timezone: str = Field(default="UTC")
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_time_of_day(value)
        return value

    def quiet_hours(self) -> QuietHours | None:
        if not self.quiet_hours_start or not self.quiet_hours_end:
            return None
        quiet = QuietHours.from_strings(self.quiet_hours_start, self.quiet_hours_end)
        return None if quiet.is_degenerate else quiet


class NotificationsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    scheduler: SchedulerSettingsConfig = Field(default_factory=SchedulerSettingsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)

    @property
    def horizon(self) -> timedelta:
        return timedelta(hours=self.scheduler.horizon_hours)

    @property
    def reevaluate_interval(self) -> timedelta:
        return timedelta(minutes=self.scheduler.reevaluate_interval_minutes)

    def default_preferences(self, user_id: str) -> Preferences:
        return Preferences.defaults(
            user_id,
            timezone=self.defaults.timezone,
            quiet_hours=self.defaults.quiet_hours(),
        )


def load_config(path: Path | None = None) -> NotificationsConfig:
    yaml_path = Path(path) if path else CONFIG_PATH

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return NotificationsConfig.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path.name}: {e}, using defaults")
        return NotificationsConfig()
