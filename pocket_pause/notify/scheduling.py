"""Notification scheduling: quiet hours, batching windows, custom times.

Everything here is pure time math; delivery lives in the queue and the
push sender.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional, Sequence

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

ScheduleType = Literal["immediate", "batched", "custom_time"]
NotificationProfile = Literal["default", "parent_mode", "morning_person", "work_focus", "custom"]


class NotificationScheduleSettings(BaseModel):
    """Per-user notification preferences."""

    notification_schedule_type: ScheduleType = "immediate"
    notification_time_preference: str = Field(default="09:00", pattern=HHMM_PATTERN)
    notification_batch_window: int = Field(default=60, gt=0, le=24 * 60, description="Minutes")
    quiet_hours_start: str = Field(default="22:00", pattern=HHMM_PATTERN)
    quiet_hours_end: str = Field(default="08:00", pattern=HHMM_PATTERN)
    notification_profile: NotificationProfile = "default"


PRESET_PROFILES: dict[str, dict[str, Any]] = {
    "default": {
        "notification_schedule_type": "immediate",
        "quiet_hours_start": "22:00",
        "quiet_hours_end": "08:00",
        "notification_profile": "default",
    },
    "parent_mode": {
        "notification_schedule_type": "custom_time",
        "notification_time_preference": "20:00",
        "quiet_hours_start": "22:00",
        "quiet_hours_end": "08:00",
        "notification_batch_window": 60,
        "notification_profile": "parent_mode",
    },
    "morning_person": {
        "notification_schedule_type": "custom_time",
        "notification_time_preference": "09:00",
        "quiet_hours_start": "22:00",
        "quiet_hours_end": "07:00",
        "notification_profile": "morning_person",
    },
    # Quiet during work hours
    "work_focus": {
        "notification_schedule_type": "batched",
        "quiet_hours_start": "09:00",
        "quiet_hours_end": "17:00",
        "notification_batch_window": 120,
        "notification_profile": "work_focus",
    },
}


def _parse_hhmm(value: str) -> tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)


def _hhmm(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def is_within_quiet_hours(moment: datetime, quiet_start: str, quiet_end: str) -> bool:
    """
    Whether a time of day falls in [quiet_start, quiet_end).

    Zero-padded "HH:MM" strings compare in time order. A window with
    start > end wraps midnight; start == end disables quiet hours.
    """
    if quiet_start == quiet_end:
        return False
    current = _hhmm(moment)
    if quiet_start > quiet_end:
        return current >= quiet_start or current < quiet_end
    return quiet_start <= current < quiet_end


def apply_quiet_hours(moment: datetime, quiet_start: str, quiet_end: str) -> datetime:
    """Push a time inside quiet hours to the end of the quiet window."""
    if not is_within_quiet_hours(moment, quiet_start, quiet_end):
        return moment

    end_hour, end_minute = _parse_hhmm(quiet_end)
    pushed = moment.replace(hour=end_hour, minute=end_minute, second=0, microsecond=0)
    # Late side of a window that wraps midnight: the end is tomorrow
    if quiet_start > quiet_end and _hhmm(moment) >= quiet_end:
        pushed += timedelta(days=1)
    return pushed


def round_up_to_window(moment: datetime, window_minutes: int) -> datetime:
    """Round minutes up to the next multiple of the window, zeroing seconds."""
    rounded = math.ceil(moment.minute / window_minutes) * window_minutes
    return moment.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=rounded)


def calculate_scheduled_time(
    settings: NotificationScheduleSettings,
    item_ready_time: datetime,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Next eligible send time for an item that becomes ready at
    ``item_ready_time``.

    The base is the ready time when it lies in the future, otherwise now.
    Naive datetimes are taken as UTC, matching the queue. Aware datetimes
    are compared in their own zone; ``now`` must match ``item_ready_time``.
    """
    if now is None:
        if item_ready_time.tzinfo is None:
            now = datetime.now(timezone.utc).replace(tzinfo=None)
        else:
            now = datetime.now(item_ready_time.tzinfo)
    base = item_ready_time if item_ready_time > now else now

    schedule_type = settings.notification_schedule_type
    if schedule_type == "immediate":
        return apply_quiet_hours(base, settings.quiet_hours_start, settings.quiet_hours_end)

    if schedule_type == "batched":
        rounded = round_up_to_window(base, settings.notification_batch_window)
        return apply_quiet_hours(rounded, settings.quiet_hours_start, settings.quiet_hours_end)

    if schedule_type == "custom_time":
        hour, minute = _parse_hhmm(settings.notification_time_preference)
        scheduled = base.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if scheduled <= base:
            scheduled += timedelta(days=1)
        return scheduled

    raise ValueError(f"Unknown schedule type: {schedule_type}")


def get_preset_profiles() -> dict[str, dict[str, Any]]:
    """Copy of the preset table."""
    return {name: dict(values) for name, values in PRESET_PROFILES.items()}


def apply_preset(settings: NotificationScheduleSettings, preset: str) -> NotificationScheduleSettings:
    """
    Overwrite only the fields the preset defines.

    Raises:
        KeyError: for an unknown preset name
    """
    if preset not in PRESET_PROFILES:
        raise KeyError(f"Unknown notification preset: {preset}")
    return settings.model_copy(update=PRESET_PROFILES[preset])


@dataclass
class ReadyItem:
    """A queued notification for one paused item."""

    item_id: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchedNotification:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


def create_batched_notification(items: Sequence[ReadyItem]) -> BatchedNotification:
    """
    Compose one push for a user's due notifications.

    A single item keeps its own title and body; several items are
    summarized and their ids attached for deep-linking.

    Raises:
        ValueError: for an empty batch
    """
    if not items:
        raise ValueError("Cannot compose a notification for zero items")

    if len(items) == 1:
        item = items[0]
        return BatchedNotification(
            title=item.title,
            body=item.body,
            data={**item.data, "type": "item_ready", "itemId": item.item_id},
        )

    count = len(items)
    return BatchedNotification(
        title=f"Time to review {count} paused items!",
        body=f"You have {count} items ready for thoughtful decisions.",
        data={
            "type": "batch_ready",
            "count": count,
            "itemIds": [item.item_id for item in items],
        },
    )


class NotificationSchedulingService:
    """Schedule math bound to one user's settings."""

    def __init__(self, settings: NotificationScheduleSettings | None = None):
        self.settings = settings or NotificationScheduleSettings()

    def calculate_scheduled_time(self, item_ready_time: datetime, now: Optional[datetime] = None) -> datetime:
        return calculate_scheduled_time(self.settings, item_ready_time, now)

    def is_within_quiet_hours(self, moment: datetime) -> bool:
        return is_within_quiet_hours(moment, self.settings.quiet_hours_start, self.settings.quiet_hours_end)

    def apply_preset(self, preset: str) -> NotificationScheduleSettings:
        self.settings = apply_preset(self.settings, preset)
        logger.info(f"Applied notification preset {preset}")
        return self.settings
