"""
Tool: Reminder Content
Purpose: Title/body/data for a trigger

Calm, supportive copy. The variant is picked from a hash of the sequence
id, so recomputing a trigger never changes what the user sees.

Usage:
    from fitcoach.notifications.scheduling.messages import compose

    content = compose(trigger)
    # {"title": ..., "body": ..., "data": {...}}
"""

import hashlib
from typing import Any

from fitcoach.notifications.models import CATEGORY_DEFAULTS, NotificationCategory, Trigger


MESSAGES: dict[NotificationCategory, list[dict[str, str]]] = {
    NotificationCategory.MEAL: [
        {"title": "🥗 Midday Fuel Stop", "body": "Quick log? Your energy later will thank you."},
        {"title": "🍳 Meal Check", "body": "Quick 30-sec log? Your future self will thank you."},
        {"title": "🍽️ Nourish Time", "body": "What's on the plate? One quick log keeps you on track."},
    ],
    NotificationCategory.WORKOUT: [
        {"title": "🏋️ Workout Waiting!", "body": "Today's session is ready. 30 mins to a better you?"},
        {"title": "💪 Your Muscles Called", "body": "They said it's go time. Ready when you are!"},
        {"title": "⚡ Energy Boost Ready", "body": "Your workout is prepped and waiting. Let's go!"},
    ],
    NotificationCategory.HYDRATION: [
        {"title": "💧 Hydration Check", "body": "Time for a glass of water. Quick sip?"},
        {"title": "🥤 Water Break", "body": "Your cells are thirsty! 1 glass = instant refresh."},
    ],
    NotificationCategory.PROGRESS_REPORT: [
        {"title": "📊 Weekly Wins", "body": "Your week in review is ready. See how far you've come."},
        {"title": "🌟 Week in Review", "body": "Another week done. Take a look at your progress."},
    ],
}


def _variant_index(sequence_id: str, count: int) -> int:
    digest = hashlib.sha256(sequence_id.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % count


def compose(trigger: Trigger) -> dict[str, Any]:
    """
    Build the notification content for a trigger.

    Returns:
        {"title": str, "body": str, "data": {type, category, sequence_id, screen}}
    """
    variants = MESSAGES[trigger.category]
    message = variants[_variant_index(trigger.sequence_id, len(variants))]

    return {
        "title": message["title"],
        "body": message["body"],
        "data": {
            "type": f"{trigger.category.value}_reminder",
            "category": trigger.category.value,
            "sequence_id": trigger.sequence_id,
            "screen": CATEGORY_DEFAULTS[trigger.category].screen,
        },
    }
