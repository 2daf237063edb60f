"""
Tool: Smart Notification Scheduler
Purpose: Keep the device's outstanding reminders converged on the user's
latest preferences

Usage:
    from fitcoach.notifications.scheduler import build_scheduler

    scheduler = build_scheduler("user-1", port)
    await scheduler.initialize()
    await scheduler.update_preferences(prefs)
    await scheduler.on_app_foreground()
    await scheduler.cancel_all()  # logout

Every entry point funnels into one reconciliation pass:
    prune fired -> compute targets -> reconcile -> cancel -> schedule -> commit

Passes are serialised by an asyncio.Lock (FIFO), so a settings change and a
foreground refresh never interleave their read-modify-write of state. The
committed schedule only ever reflects delivery-port calls that completed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone

from fitcoach.logging_config import get_logger, pass_context
from fitcoach.notifications.config import NotificationsConfig, load_config
from fitcoach.notifications.delivery import DeliveryPort
from fitcoach.notifications.errors import (
    DeliveryRejected,
    InvalidPreferences,
    PermissionDenied,
    StorageUnavailable,
)
from fitcoach.notifications.models import (
    NotificationCategory,
    Preferences,
    ReevaluationReason,
    Trigger,
    TriggerState,
    make_sequence_id,
    parse_sequence_id,
    resolve_timezone,
)
from fitcoach.notifications.preferences.store import PreferenceStore
from fitcoach.notifications.preferences.validation import validate_preferences
from fitcoach.notifications.scheduling.committed import CommittedScheduleStore
from fitcoach.notifications.scheduling.reconciler import (
    ReconcilePlan,
    prune_fired,
    reconcile,
)
from fitcoach.notifications.scheduling.triggers import DEFAULT_HORIZON, compute_targets

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _delivery_order(trigger: Trigger) -> tuple[datetime, str]:
    return trigger.scheduled_at, trigger.sequence_id


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass."""

    reason: ReevaluationReason
    scheduled: list[str] = field(default_factory=list)
    canceled: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    pending_permission: list[str] = field(default_factory=list)
    fired: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    persisted: bool = True

    @property
    def converged(self) -> bool:
        """True when the device now matches the target set."""
        return not self.rejected and not self.pending_permission and not self.errors

    def to_dict(self) -> dict:
        data = asdict(self)
        data["reason"] = self.reason.value
        data["converged"] = self.converged
        return data


class NotificationScheduler:
    """
    Single-writer orchestrator for one user's reminders.

    Owns the preference store and the committed schedule. The trigger
    calculator and reconciler it drives are pure.
    """

    def __init__(
        self,
        user_id: str,
        port: DeliveryPort,
        preference_store: PreferenceStore | None = None,
        committed_store: CommittedScheduleStore | None = None,
        horizon: timedelta = DEFAULT_HORIZON,
        clock: Callable[[], datetime] | None = None,
    ):
        self.user_id = user_id
        self.port = port
        self.preferences = preference_store or PreferenceStore(user_id)
        self.committed_store = committed_store or CommittedScheduleStore(user_id)
        self.horizon = horizon
        self._clock = clock or _utcnow
        self._lock = asyncio.Lock()

        self._committed: dict[str, Trigger] = {}
        self._pending: dict[str, Trigger] = {}
        self._suppressed: frozenset[str] = frozenset()

        # Storage work to retry on the next foreground
        self._unsaved_preferences: Preferences | None = None
        self._preferences_load_failed = False
        self._committed_load_failed = False

        self.initialized = False

    # =========================================================================
    # Settings surface
    # =========================================================================

    def get_preferences(self) -> Preferences:
        """Effective preferences, including a change not yet persisted."""
        return self._unsaved_preferences or self.preferences.current()

    def committed(self) -> dict[str, Trigger]:
        return dict(self._committed)

    def pending_permission(self) -> dict[str, Trigger]:
        return dict(self._pending)

    def trigger_states(self) -> dict[str, TriggerState]:
        states = {sid: TriggerState.SCHEDULED for sid in self._committed}
        states.update({sid: TriggerState.PENDING_PERMISSION for sid in self._pending})
        return states

    # =========================================================================
    # Entry points
    # =========================================================================

    async def initialize(self) -> ReconcileReport:
        """Load stored state and run the first pass."""
        async with self._lock:
            await self._load_state()
            self.initialized = True
            return await self._run_pass(ReevaluationReason.STARTUP)

    async def update_preferences(self, new_prefs: Preferences) -> ReconcileReport:
        """
        Validate, persist and apply new preferences.

        Raises:
            InvalidQuietHours: if the quiet-hours window is degenerate
            InvalidPreferences: for any other invariant violation
        """
        if new_prefs.user_id != self.user_id:
            raise InvalidPreferences([f"preferences belong to '{new_prefs.user_id}'"])
        validate_preferences(new_prefs)

        async with self._lock:
            persisted = True
            try:
                await self.preferences.save(new_prefs)
                self._unsaved_preferences = None
            except StorageUnavailable as e:
                logger.warning("preferences_save_failed", user_id=self.user_id, error=str(e))
                self._unsaved_preferences = new_prefs
                persisted = False

            report = await self._run_pass(ReevaluationReason.PREFERENCES_CHANGED)
            report.persisted = report.persisted and persisted
            return report

    async def on_app_foreground(self) -> ReconcileReport:
        """Retry pending storage work, then re-evaluate against the current instant."""
        async with self._lock:
            persisted = await self._retry_storage()
            report = await self._run_pass(ReevaluationReason.FOREGROUND)
            report.persisted = report.persisted and persisted
            return report

    async def on_permission_granted(self) -> ReconcileReport:
        return await self.reevaluate(ReevaluationReason.PERMISSION_CHANGED)

    async def mark_completed(
        self,
        category: NotificationCategory,
        on_date: date | None = None,
    ) -> ReconcileReport:
        """
        Record that the user already did today's activity.

        That day's occurrence is suppressed and cancelled if registered.
        """
        async with self._lock:
            if on_date is None:
                tz = resolve_timezone(self.get_preferences().timezone)
                on_date = self._clock().astimezone(tz).date()

            self._suppressed = self._suppressed | {make_sequence_id(category, on_date)}
            return await self._run_pass(ReevaluationReason.ACTIVITY_LOGGED)

    async def reevaluate(self, reason: ReevaluationReason) -> ReconcileReport:
        async with self._lock:
            return await self._run_pass(reason)

    async def cancel_all(self) -> ReconcileReport:
        """
        Cancel every committed reminder and clear scheduler state (logout).

        Individual cancel failures are logged, not retried.
        """
        async with self._lock:
            report = ReconcileReport(reason=ReevaluationReason.LOGOUT)

            for sequence_id in sorted(self._committed):
                try:
                    await self.port.cancel(sequence_id)
                    report.canceled.append(sequence_id)
                except DeliveryRejected as e:
                    logger.warning("cancel_failed", user_id=self.user_id, sequence_id=sequence_id, error=str(e))
                    report.rejected.append(sequence_id)

            self._committed = {}
            self._pending = {}
            self._suppressed = frozenset()

            try:
                await self.committed_store.clear()
            except StorageUnavailable as e:
                logger.warning("committed_clear_failed", user_id=self.user_id, error=str(e))
                report.persisted = False

            logger.info("notifications_cleared", user_id=self.user_id, canceled=len(report.canceled))
            return report

    async def run_periodic(
        self,
        interval: timedelta,
        stop_event: asyncio.Event,
    ) -> None:
        """
        Re-evaluate every interval until stop_event is set.

        A failing pass is logged and the loop keeps going.
        """
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval.total_seconds())
                continue
            except TimeoutError:
                pass

            try:
                await self.reevaluate(ReevaluationReason.PERIODIC)
            except Exception:
                logger.exception("periodic_reevaluation_failed", user_id=self.user_id)

    # =========================================================================
    # Internals (caller holds self._lock)
    # =========================================================================

    async def _load_state(self) -> None:
        try:
            await self.preferences.load()
            self._preferences_load_failed = False
        except StorageUnavailable as e:
            logger.warning("preferences_load_failed", user_id=self.user_id, error=str(e))
            self._preferences_load_failed = True

        try:
            snapshot = await self.committed_store.load()
            self._committed = dict(snapshot.triggers)
            self._suppressed = snapshot.suppressed
            self._committed_load_failed = False
        except StorageUnavailable as e:
            logger.warning("committed_load_failed", user_id=self.user_id, error=str(e))
            self._committed_load_failed = True

    async def _retry_storage(self) -> bool:
        """Returns False if storage is still unavailable."""
        ok = True

        if self._unsaved_preferences is not None:
            try:
                await self.preferences.save(self._unsaved_preferences)
                self._unsaved_preferences = None
                self._preferences_load_failed = False
            except StorageUnavailable as e:
                logger.warning("preferences_save_retry_failed", user_id=self.user_id, error=str(e))
                ok = False
        elif self._preferences_load_failed:
            try:
                await self.preferences.load()
                self._preferences_load_failed = False
            except StorageUnavailable as e:
                logger.warning("preferences_load_retry_failed", user_id=self.user_id, error=str(e))
                ok = False

        if self._committed_load_failed:
            try:
                snapshot = await self.committed_store.load()
                # Stored entries were registered by an earlier process; in-memory wins
                self._committed = {**snapshot.triggers, **self._committed}
                self._suppressed = self._suppressed | snapshot.suppressed
                self._committed_load_failed = False
            except StorageUnavailable as e:
                logger.warning("committed_load_retry_failed", user_id=self.user_id, error=str(e))
                ok = False

        return ok

    def _prune_suppressed(self, now: datetime, prefs: Preferences) -> frozenset[str]:
        today = now.astimezone(resolve_timezone(prefs.timezone)).date()
        kept = set()
        for sequence_id in self._suppressed:
            try:
                _, day = parse_sequence_id(sequence_id)
            except ValueError:
                continue
            if day >= today - timedelta(days=1):
                kept.add(sequence_id)
        return frozenset(kept)

    async def _run_pass(self, reason: ReevaluationReason) -> ReconcileReport:
        with pass_context(self.user_id, reason):
            return await self._reconcile_pass(reason)

    async def _reconcile_pass(self, reason: ReevaluationReason) -> ReconcileReport:
        report = ReconcileReport(reason=reason)
        now = self._clock()
        prefs = self.get_preferences()

        try:
            self._suppressed = self._prune_suppressed(now, prefs)
            target = compute_targets(prefs, now, self.horizon, self._suppressed)
        except (InvalidPreferences, ValueError) as e:
            # Stored preferences are unusable; leave the device untouched
            logger.error("target_computation_failed", error=str(e))
            report.errors.append(str(e))
            return report

        live, fired = prune_fired(self._committed.values(), now)
        report.fired = sorted(fired)
        plan = reconcile(live.values(), target)
        working = dict(live)

        if not await self.port.has_permission():
            self._pending = {t.sequence_id: t for t in plan.to_schedule}
            report.pending_permission = sorted(self._pending)
            self._committed = working
            await self._persist_committed(report)
            self._log_pass(report, plan)
            return report

        self._pending = {}
        try:
            await self._apply(plan, working, report)
        finally:
            # Commit exactly the calls that completed, even if the pass was cancelled
            self._committed = working
            await self._persist_committed(report)

        report.pending_permission = sorted(self._pending)
        self._log_pass(report, plan)
        return report

    async def _apply(
        self,
        plan: ReconcilePlan,
        working: dict[str, Trigger],
        report: ReconcileReport,
    ) -> None:
        failed_cancels = set()

        for trigger in sorted(plan.to_cancel, key=_delivery_order):
            sequence_id = trigger.sequence_id
            try:
                await self.port.cancel(sequence_id)
            except DeliveryRejected as e:
                logger.warning("cancel_rejected", sequence_id=sequence_id, error=str(e))
                report.rejected.append(sequence_id)
                failed_cancels.add(sequence_id)
                continue

            if working.get(sequence_id) == trigger:
                del working[sequence_id]
            report.canceled.append(sequence_id)

        permission_lost = False
        for trigger in sorted(plan.to_schedule, key=_delivery_order):
            sequence_id = trigger.sequence_id

            if permission_lost:
                self._pending[sequence_id] = trigger
                continue

            # Old instant is still registered; retry both next pass
            if sequence_id in failed_cancels:
                continue

            try:
                await self.port.schedule(trigger)
            except DeliveryRejected as e:
                logger.warning("schedule_rejected", sequence_id=sequence_id, error=str(e))
                report.rejected.append(sequence_id)
                continue
            except PermissionDenied as e:
                logger.warning("permission_denied", error=str(e))
                permission_lost = True
                self._pending[sequence_id] = trigger
                continue

            working[sequence_id] = trigger
            report.scheduled.append(sequence_id)

    async def _persist_committed(self, report: ReconcileReport) -> None:
        try:
            await self.committed_store.save(self._committed, self._suppressed)
        except StorageUnavailable as e:
            logger.warning("committed_save_failed", error=str(e))
            report.persisted = False

    def _log_pass(self, report: ReconcileReport, plan: ReconcilePlan) -> None:
        logger.info(
            "reconcile_pass",
            scheduled=len(report.scheduled),
            canceled=len(report.canceled),
            moved=len(plan.moved_ids),
            rejected=len(report.rejected),
            pending_permission=len(report.pending_permission),
            fired=len(report.fired),
            committed=len(self._committed),
        )


def build_scheduler(
    user_id: str,
    port: DeliveryPort,
    config: NotificationsConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> NotificationScheduler:
    """Wire a scheduler from args/notifications.yaml."""
    config = config or load_config()
    db_path = config.storage.resolved_path()

    return NotificationScheduler(
        user_id=user_id,
        port=port,
        preference_store=PreferenceStore(
            user_id,
            db_path=db_path,
            defaults=config.default_preferences(user_id),
        ),
        committed_store=CommittedScheduleStore(user_id, db_path=db_path),
        horizon=config.horizon,
        clock=clock,
    )
