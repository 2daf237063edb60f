"""Trigger calculation, reconciliation and committed-schedule persistence."""

from fitcoach.notifications.scheduling.committed import (
    CommittedScheduleStore,
    CommittedSnapshot,
)
from fitcoach.notifications.scheduling.messages import compose
from fitcoach.notifications.scheduling.reconciler import (
    ReconcilePlan,
    prune_fired,
    reconcile,
)
from fitcoach.notifications.scheduling.triggers import (
    DEFAULT_HORIZON,
    compute_targets,
    in_quiet_hours,
)

__all__ = [
    "CommittedScheduleStore",
    "CommittedSnapshot",
    "compose",
    "ReconcilePlan",
    "prune_fired",
    "reconcile",
    "DEFAULT_HORIZON",
    "compute_targets",
    "in_quiet_hours",
]
