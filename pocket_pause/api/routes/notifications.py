"""Notification scheduling and queue routes."""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from pocket_pause.api.deps import get_queue
from pocket_pause.notify.formatters import format_item_ready_notification
from pocket_pause.notify.queue import NotificationQueue
from pocket_pause.notify.scheduling import (
    NotificationScheduleSettings,
    apply_preset,
    calculate_scheduled_time,
    get_preset_profiles,
    is_within_quiet_hours,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


class PreviewRequest(BaseModel):
    settings: NotificationScheduleSettings = Field(default_factory=NotificationScheduleSettings)
    item_ready_time: datetime
    now: Optional[datetime] = None
    preset: Optional[str] = None


class PreviewResponse(BaseModel):
    scheduled_for: datetime
    ready_time_in_quiet_hours: bool
    settings: NotificationScheduleSettings


class QueueRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    item_id: str = Field(..., min_length=1, max_length=64)
    item_title: str = Field(..., min_length=1)
    store_name: Optional[str] = None
    item_ready_time: datetime
    settings: NotificationScheduleSettings = Field(default_factory=NotificationScheduleSettings)


class QueueResponse(BaseModel):
    id: int
    user_id: str
    item_id: Optional[str]
    title: str
    body: str
    scheduled_for: datetime
    status: str

    class Config:
        from_attributes = True


def _resolve_settings(settings: NotificationScheduleSettings, preset: Optional[str]) -> NotificationScheduleSettings:
    if not preset:
        return settings
    try:
        return apply_preset(settings, preset)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown preset: {preset}")


@router.get("/presets")
async def list_presets() -> dict[str, dict[str, Any]]:
    """Preset notification profiles."""
    return get_preset_profiles()


@router.post("/preview", response_model=PreviewResponse)
async def preview_schedule(request: PreviewRequest):
    """When a notification for an item ready at the given time would go out."""
    settings = _resolve_settings(request.settings, request.preset)
    scheduled = calculate_scheduled_time(settings, request.item_ready_time, request.now)
    return PreviewResponse(
        scheduled_for=scheduled,
        ready_time_in_quiet_hours=is_within_quiet_hours(
            request.item_ready_time, settings.quiet_hours_start, settings.quiet_hours_end
        ),
        settings=settings,
    )


@router.post("/queue", response_model=QueueResponse, status_code=201)
async def queue_notification(request: QueueRequest, queue: NotificationQueue = Depends(get_queue)):
    """Schedule an item-ready notification."""
    scheduled = calculate_scheduled_time(request.settings, request.item_ready_time)
    message = format_item_ready_notification(request.item_id, request.item_title, request.store_name)
    row = await queue.enqueue(
        user_id=request.user_id,
        item_id=request.item_id,
        title=message["title"],
        body=message["body"],
        data=message["data"],
        scheduled_for=scheduled,
    )
    return row


@router.delete("/queue/{user_id}/{item_id}")
async def cancel_notification(user_id: str, item_id: str, queue: NotificationQueue = Depends(get_queue)):
    """Remove unsent notifications for an item."""
    removed = await queue.cancel(user_id, item_id)
    return {"cancelled": removed}
