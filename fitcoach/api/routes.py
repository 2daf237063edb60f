"""
Notification Settings Routes

Endpoints the settings screen talks to:
- Preferences (get, partial update)
- Outstanding reminders and their state
- Re-evaluation hooks (app foreground, permission granted)
- Activity logging (suppress today's reminder)
- Logout (cancel everything)
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from fitcoach.notifications.errors import InvalidPreferences
from fitcoach.notifications.models import (
    NotificationCategory,
    Preferences,
    QuietHours,
    format_time_of_day,
    parse_time_of_day,
)
from fitcoach.notifications.scheduler import NotificationScheduler
from fitcoach.notifications.scheduling.messages import compose


router = APIRouter()


def get_scheduler(request: Request) -> NotificationScheduler:
    return request.app.state.scheduler


# =============================================================================
# Request/Response Models
# =============================================================================


class PreferencesUpdateRequest(BaseModel):
    """Partial update of notification preferences."""

    enabled: bool | None = None
    enabled_categories: list[NotificationCategory] | None = None
    preferred_times: dict[NotificationCategory, str] | None = Field(
        None, description="Category -> HH:MM, merged into existing times"
    )
    quiet_hours_enabled: bool | None = None
    quiet_hours_start: str | None = Field(None, description="Start time (HH:MM)")
    quiet_hours_end: str | None = Field(None, description="End time (HH:MM)")
    timezone: str | None = None
    workout_days: list[int] | None = Field(None, description="0 = Monday ... 6 = Sunday")
    max_per_day: int | None = Field(None, description="Daily cap; send null to remove")


def serialize_preferences(prefs: Preferences) -> dict[str, Any]:
    return {
        "user_id": prefs.user_id,
        "enabled": prefs.enabled,
        "enabled_categories": sorted(c.value for c in prefs.enabled_categories),
        "preferred_times": {
            category.value: format_time_of_day(moment)
            for category, moment in sorted(prefs.preferred_times.items())
        },
        "quiet_hours": prefs.quiet_hours.to_dict() if prefs.quiet_hours else None,
        "timezone": prefs.timezone,
        "workout_days": sorted(prefs.workout_days),
        "max_per_day": prefs.max_per_day,
        "updated_at": prefs.updated_at.isoformat() if prefs.updated_at else None,
    }


def apply_update(prefs: Preferences, request: PreferencesUpdateRequest) -> Preferences:
    """
    Merge a partial update into a snapshot.

    Raises:
        ValueError: on malformed times
    """
    updates: dict[str, Any] = {}
    fields_set = request.model_fields_set

    if request.enabled is not None:
        updates["enabled"] = request.enabled
    if request.enabled_categories is not None:
        updates["enabled_categories"] = frozenset(request.enabled_categories)
    if request.preferred_times is not None:
        preferred = dict(prefs.preferred_times)
        for category, value in request.preferred_times.items():
            preferred[category] = parse_time_of_day(value)
        updates["preferred_times"] = preferred

    if request.quiet_hours_enabled is False:
        updates["quiet_hours"] = None
    elif request.quiet_hours_start is not None or request.quiet_hours_end is not None:
        current = prefs.quiet_hours
        start = request.quiet_hours_start or (
            format_time_of_day(current.start) if current else None
        )
        end = request.quiet_hours_end or (format_time_of_day(current.end) if current else None)
        if start is None or end is None:
            raise ValueError("quiet hours need both start and end")
        updates["quiet_hours"] = QuietHours.from_strings(start, end)

    if request.timezone is not None:
        updates["timezone"] = request.timezone
    if request.workout_days is not None:
        updates["workout_days"] = frozenset(request.workout_days)
    if "max_per_day" in fields_set:
        updates["max_per_day"] = request.max_per_day

    return prefs.with_updates(**updates)


# =============================================================================
# Preferences Endpoints
# =============================================================================


@router.get("/preferences")
async def get_user_preferences(scheduler: NotificationScheduler = Depends(get_scheduler)):
    """Get the user's notification preferences."""
    return serialize_preferences(scheduler.get_preferences())


@router.put("/preferences")
async def update_user_preferences(
    request: PreferencesUpdateRequest,
    scheduler: NotificationScheduler = Depends(get_scheduler),
):
    """
    Update notification preferences and reschedule reminders.
    """
    if not request.model_fields_set:
        raise HTTPException(status_code=400, detail="No updates provided")

    try:
        new_prefs = apply_update(scheduler.get_preferences(), request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"error": "invalid_preferences", "violations": [str(e)]})

    try:
        report = await scheduler.update_preferences(new_prefs)
    except InvalidPreferences as e:
        raise HTTPException(
            status_code=400,
            detail={"error": type(e).__name__, "violations": e.violations},
        )

    return {
        "success": True,
        "preferences": serialize_preferences(scheduler.get_preferences()),
        "report": report.to_dict(),
    }


# =============================================================================
# Schedule Endpoints
# =============================================================================


@router.get("/scheduled")
async def list_scheduled(scheduler: NotificationScheduler = Depends(get_scheduler)):
    """List outstanding reminders with their content and state."""
    states = scheduler.trigger_states()
    triggers = {**scheduler.committed(), **scheduler.pending_permission()}

    items = []
    for trigger in sorted(triggers.values(), key=lambda t: (t.scheduled_at, t.sequence_id)):
        items.append({
            **trigger.to_dict(),
            "state": states[trigger.sequence_id].value,
            "content": compose(trigger),
        })

    return {"notifications": items, "total": len(items)}


@router.post("/foreground")
async def app_foreground(scheduler: NotificationScheduler = Depends(get_scheduler)):
    """Re-evaluate after the app returns to the foreground."""
    report = await scheduler.on_app_foreground()
    return report.to_dict()


@router.post("/permission-granted")
async def permission_granted(scheduler: NotificationScheduler = Depends(get_scheduler)):
    report = await scheduler.on_permission_granted()
    return report.to_dict()


@router.post("/activity/{category}")
async def log_activity(
    category: NotificationCategory,
    scheduler: NotificationScheduler = Depends(get_scheduler),
):
    """Mark today's activity done so its reminder is dropped."""
    report = await scheduler.mark_completed(category)
    return report.to_dict()


@router.post("/cancel-all")
async def cancel_all(scheduler: NotificationScheduler = Depends(get_scheduler)):
    """Cancel every outstanding reminder (logout)."""
    report = await scheduler.cancel_all()
    return report.to_dict()
