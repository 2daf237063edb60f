"""
Notification Delivery Port

The scheduler only decides what should be registered and when. Presenting
and cancelling device notifications is the job of a DeliveryPort, which
wraps the OS primitive (expo-notifications on the mobile client).

Contract:
    schedule(trigger)       -> raises DeliveryRejected | PermissionDenied
    cancel(sequence_id)     -> raises DeliveryRejected; unknown ids are not an error
    has_permission()        -> bool
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from fitcoach.notifications.errors import DeliveryRejected, PermissionDenied
from fitcoach.notifications.models import Trigger
from fitcoach.notifications.scheduling.messages import compose

logger = logging.getLogger(__name__)


class DeliveryPort(ABC):
    """Boundary to the device's local notification primitive."""

    @abstractmethod
    async def schedule(self, trigger: Trigger) -> None:
        """Register a notification to fire at trigger.scheduled_at."""

    @abstractmethod
    async def cancel(self, sequence_id: str) -> None:
        """Cancel an outstanding notification. Idempotent."""

    @abstractmethod
    async def has_permission(self) -> bool:
        """Whether the OS currently allows local notifications."""


@dataclass
class OutstandingNotification:
    trigger: Trigger
    content: dict[str, Any]


class InMemoryDeliveryPort(DeliveryPort):
    """
    Delivery port that keeps outstanding notifications in memory.

    Used when no device bridge is attached (CLI previews, the settings API
    in development). reject_ids lets callers simulate a refusing device.
    """

    def __init__(self, permission: bool = True, reject_ids: set[str] | None = None):
        self.permission = permission
        self.reject_ids = set(reject_ids or ())
        self.outstanding: dict[str, OutstandingNotification] = {}

    async def schedule(self, trigger: Trigger) -> None:
        if not self.permission:
            raise PermissionDenied("Notification permission not granted")
        if trigger.sequence_id in self.reject_ids:
            raise DeliveryRejected(trigger.sequence_id, "rejected by device")

        self.outstanding[trigger.sequence_id] = OutstandingNotification(
            trigger=trigger,
            content=compose(trigger),
        )
        logger.debug(f"Scheduled {trigger.sequence_id} at {trigger.scheduled_at.isoformat()}")

    async def cancel(self, sequence_id: str) -> None:
        if sequence_id in self.reject_ids:
            raise DeliveryRejected(sequence_id, "rejected by device")
        self.outstanding.pop(sequence_id, None)
        logger.debug(f"Cancelled {sequence_id}")

    async def has_permission(self) -> bool:
        return self.permission
