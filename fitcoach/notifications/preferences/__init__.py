"""User notification preferences: durable store and invariant checks."""

from fitcoach.notifications.preferences.store import PreferenceStore
from fitcoach.notifications.preferences.validation import (
    check_preferences,
    validate_preferences,
)

__all__ = [
    "PreferenceStore",
    "check_preferences",
    "validate_preferences",
]
