"""Time block and day view endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from timeblocker.api.dependencies import get_current_user, get_notifications, get_stores
from timeblocker.api.schemas import (
    TimeBlockCreateRequest,
    TimeBlockUpdateRequest,
    time_block_to_dict,
)
from timeblocker.core import timeblock_service
from timeblocker.core.instants import ensure_utc
from timeblocker.core.notifications import NotificationService
from timeblocker.data.db import Stores
from timeblocker.data.models import User

router = APIRouter(prefix="/api", tags=["timeblocks"])

_NOT_NULLABLE = {"title", "start", "end"}
_INSTANTS = ("start", "end", "actual_end")


def _update_changes(body: TimeBlockUpdateRequest) -> dict:
    changes = {}
    for name, value in body.model_dump(exclude_unset=True).items():
        if value is None and name in _NOT_NULLABLE:
            continue
        changes[name] = value
    for name in _INSTANTS:
        if changes.get(name) is not None:
            changes[name] = ensure_utc(changes[name])
    if changes.get("notification") is not None:
        changes["notification"] = body.notification.to_settings()
    return changes


def _with_task(stores: Stores, block) -> dict:
    task = stores.tasks.get_task(block.task_id) if block.task_id else None
    return time_block_to_dict(block, task)


@router.get("/day-view")
def day_view(
    date: str | None = None,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
) -> list[dict]:
    entries = timeblock_service.get_day_view(stores.blocks, stores.tasks, user, date)
    return [time_block_to_dict(e.block, e.task) for e in entries]


@router.post("/timeblocks", status_code=201)
def create_time_block(
    body: TimeBlockCreateRequest,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
    notifications: NotificationService = Depends(get_notifications),
) -> dict:
    block = timeblock_service.create_time_block(
        stores.blocks, stores.tasks, user,
        body.title,
        ensure_utc(body.start),
        ensure_utc(body.end),
        task_id=body.task_id,
        category=body.category,
        notes=body.notes,
        notification=body.notification.to_settings() if body.notification else None,
        notifications=notifications,
    )
    return _with_task(stores, block)


@router.patch("/timeblocks/{block_id}")
def update_time_block(
    block_id: str,
    body: TimeBlockUpdateRequest,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
    notifications: NotificationService = Depends(get_notifications),
) -> dict:
    block = timeblock_service.update_time_block(
        stores.blocks, stores.tasks, user, block_id, _update_changes(body),
        notifications=notifications,
    )
    return _with_task(stores, block)


@router.delete("/timeblocks/{block_id}")
def delete_time_block(
    block_id: str,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
    notifications: NotificationService = Depends(get_notifications),
) -> dict:
    timeblock_service.delete_time_block(stores.blocks, user, block_id, notifications=notifications)
    return {"success": True}
