"""
Notification scheduler errors.

None of these are fatal to the host app. Every failure degrades to
"preferences recorded but not yet reflected in scheduled notifications"
and heals on the next reevaluation pass.
"""


class NotificationError(Exception):
    """Base class for scheduler errors."""


class StorageUnavailable(NotificationError):
    """Persistence layer could not be read or written."""


class InvalidPreferences(NotificationError):
    """Preferences broke one or more invariants. Nothing was mutated."""

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations) or "invalid preferences")


class InvalidQuietHours(InvalidPreferences):
    """Quiet-hours window is degenerate (start == end covers the whole day)."""


class PermissionDenied(NotificationError):
    """The OS refused notification permission."""


class DeliveryRejected(NotificationError):
    """The delivery port refused a single schedule or cancel call."""

    def __init__(self, sequence_id: str, reason: str | None = None):
        self.sequence_id = sequence_id
        self.reason = reason
        message = f"Delivery rejected for {sequence_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
