"""Task endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from timeblocker.api.dependencies import get_current_user, get_stores
from timeblocker.api.schemas import (
    TaskCreateRequest,
    TaskUpdateRequest,
    task_view_to_dict,
)
from timeblocker.core import task_service
from timeblocker.core.instants import ensure_utc
from timeblocker.data.db import ANY_PARENT, Stores
from timeblocker.data.models import TaskPriority, TaskStatus, User

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

# Fields that cannot be cleared with an explicit null
_NOT_NULLABLE = {"title", "status", "priority"}


def _update_changes(body: TaskUpdateRequest) -> dict:
    changes = {}
    for name, value in body.model_dump(exclude_unset=True).items():
        if value is None and name in _NOT_NULLABLE:
            continue
        changes[name] = value
    if changes.get("recurrence") is not None:
        changes["recurrence"] = body.recurrence.to_settings()
    if changes.get("deadline") is not None:
        changes["deadline"] = ensure_utc(changes["deadline"])
    return changes


@router.get("")
def list_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    parent_id: str | None = Query(None, alias="parentId"),
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
) -> list[dict]:
    if parent_id is None:
        parent = ANY_PARENT
    elif parent_id == "":
        parent = None
    else:
        parent = parent_id
    views = task_service.list_tasks(
        stores.tasks, stores.blocks, user,
        status=status, priority=priority, parent_id=parent,
    )
    return [task_view_to_dict(v) for v in views]


@router.post("", status_code=201)
def create_task(
    body: TaskCreateRequest,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
) -> dict:
    view = task_service.create_task(
        stores.tasks, stores.blocks, user,
        title=body.title,
        notes=body.notes,
        priority=body.priority,
        category=body.category,
        deadline=ensure_utc(body.deadline) if body.deadline else None,
        estimated_minutes=body.estimated_minutes,
        recurrence=body.recurrence.to_settings() if body.recurrence else None,
        parent_task_id=body.parent_task_id,
    )
    return task_view_to_dict(view)


@router.patch("/{task_id}")
def update_task(
    task_id: str,
    body: TaskUpdateRequest,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
) -> dict:
    view = task_service.update_task(
        stores.tasks, stores.blocks, user, task_id, _update_changes(body),
    )
    return task_view_to_dict(view)


@router.delete("/{task_id}")
def delete_task(
    task_id: str,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
) -> dict:
    task_service.delete_task(stores.tasks, user, task_id)
    return {"success": True}
