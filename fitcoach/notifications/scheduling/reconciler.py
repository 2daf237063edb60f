"""
Tool: Schedule Reconciler
Purpose: Diff the committed trigger set against a newly computed target
set and emit the minimal cancel/schedule operations

Usage:
    from fitcoach.notifications.scheduling.reconciler import reconcile

    plan = reconcile(committed, target)
    for trigger in plan.to_cancel: ...
    for trigger in plan.to_schedule: ...

Triggers are matched by sequence_id. An entry whose instant moved appears
in both sets; an identical entry appears in neither.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from fitcoach.notifications.models import Trigger


@dataclass(frozen=True)
class ReconcilePlan:
    """Operations needed to converge committed onto target."""

    to_cancel: frozenset[Trigger] = field(default_factory=frozenset)
    to_schedule: frozenset[Trigger] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.to_cancel and not self.to_schedule

    @property
    def moved_ids(self) -> frozenset[str]:
        """Sequence ids being cancelled and rescheduled at a new instant."""
        cancel_ids = {t.sequence_id for t in self.to_cancel}
        return frozenset(t.sequence_id for t in self.to_schedule if t.sequence_id in cancel_ids)


def _by_sequence_id(triggers: Iterable[Trigger]) -> dict[str, Trigger]:
    return {t.sequence_id: t for t in triggers}


def reconcile(committed: Iterable[Trigger], target: Iterable[Trigger]) -> ReconcilePlan:
    """
    Compute the minimal diff between committed and target.

    Args:
        committed: Triggers believed registered with the delivery port
        target: Triggers that should be registered

    Returns:
        ReconcilePlan with to_cancel and to_schedule sets
    """
    current = _by_sequence_id(committed)
    wanted = _by_sequence_id(target)

    to_cancel = frozenset(
        trigger
        for sequence_id, trigger in current.items()
        if sequence_id not in wanted
        or wanted[sequence_id].scheduled_at != trigger.scheduled_at
    )
    to_schedule = frozenset(
        trigger
        for sequence_id, trigger in wanted.items()
        if sequence_id not in current
        or current[sequence_id].scheduled_at != trigger.scheduled_at
    )

    return ReconcilePlan(to_cancel=to_cancel, to_schedule=to_schedule)


def prune_fired(
    committed: Iterable[Trigger],
    now: datetime,
) -> tuple[dict[str, Trigger], dict[str, Trigger]]:
    """
    Split committed triggers into live and already-fired.

    Fired triggers have left the device on their own, so they drop out of
    the committed schedule without a cancel call.

    Returns:
        (live, fired) keyed by sequence_id
    """
    live = {}
    fired = {}
    for trigger in committed:
        if trigger.scheduled_at < now:
            fired[trigger.sequence_id] = trigger
        else:
            live[trigger.sequence_id] = trigger
    return live, fired
