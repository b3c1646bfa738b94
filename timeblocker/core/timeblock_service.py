"""
TimeBlocker — Time Block Service.

Stateless orchestration of time block operations: interval validation,
overlap rejection, task ownership checks, day-view resolution and reminder
(re)scheduling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from timeblocker.core.day_window import resolve_day_window
from timeblocker.core.errors import NotFoundError, ValidationError
from timeblocker.core.overlap import ensure_no_overlap

if TYPE_CHECKING:
    from timeblocker.core.notifications import NotificationService
    from timeblocker.data.db import TaskDB, TimeBlockDB
    from timeblocker.data.models import NotificationSettings, Task, TimeBlock, User

logger = logging.getLogger(__name__)

SLOT_MINUTES = 15


@dataclass
class DayViewEntry:
    block: TimeBlock
    task: Task | None = None


def validate_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError("End time must be after start time")


def validate_slot_alignment(*instants: datetime) -> None:
    """Block edges must sit on the 15-minute grid."""
    for instant in instants:
        if instant.minute % SLOT_MINUTES or instant.second or instant.microsecond:
            raise ValidationError("Time must be in 15-minute increments")


def validate_actual_end(start: datetime, end: datetime, actual_end: datetime | None) -> None:
    if actual_end is None:
        return
    if actual_end < start or actual_end > end:
        raise ValidationError("Actual end must fall between the block's start and end")


def _require_task(task_db: TaskDB, user: User, task_id: str) -> Task:
    task = task_db.get_task(task_id, user_id=user.id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def get_day_view(
    block_db: TimeBlockDB, task_db: TaskDB, user: User, date_str: str | None,
) -> list[DayViewEntry]:
    """Blocks intersecting the user's local day, ordered by start, with their tasks."""
    window = resolve_day_window(date_str, user.timezone)
    blocks = block_db.list_in_window(user.id, window.start, window.end)

    tasks: dict[str, Task | None] = {}
    entries = []
    for block in blocks:
        task = None
        if block.task_id is not None:
            if block.task_id not in tasks:
                tasks[block.task_id] = task_db.get_task(block.task_id)
            task = tasks[block.task_id]
        entries.append(DayViewEntry(block=block, task=task))
    logger.debug("Day view %s for user %s: %d blocks", date_str, user.id, len(entries))
    return entries


def create_time_block(
    block_db: TimeBlockDB,
    task_db: TaskDB,
    user: User,
    title: str,
    start: datetime,
    end: datetime,
    task_id: str | None = None,
    category: str | None = None,
    notes: str | None = None,
    notification: NotificationSettings | None = None,
    notifications: NotificationService | None = None,
) -> TimeBlock:
    """Create a block for user. Raises OverlapError if it overlaps another."""
    validate_interval(start, end)
    validate_slot_alignment(start, end)
    if task_id is not None:
        _require_task(task_db, user, task_id)

    ensure_no_overlap(block_db, user.id, start, end)
    # The insert re-checks under a write lock
    block = block_db.add_time_block(
        user.id, title, start, end,
        task_id=task_id, category=category, notes=notes, notification=notification,
    )

    if notifications is not None and notification is not None and notification.enabled:
        notifications.schedule_time_block(block)
    return block


def update_time_block(
    block_db: TimeBlockDB,
    task_db: TaskDB,
    user: User,
    block_id: str,
    changes: dict,
    notifications: NotificationService | None = None,
) -> TimeBlock:
    """Partially update a block owned by user.

    Moving the block (start/end) is rejected if the new interval overlaps
    another of the user's blocks. A reminder is rescheduled when the start
    or the notification settings change.
    """
    block = block_db.get_time_block(block_id, user_id=user.id)
    if block is None:
        raise NotFoundError("Time block not found")

    start = changes.get("start", block.start)
    end = changes.get("end", block.end)
    if "start" in changes or "end" in changes:
        validate_interval(start, end)
        ensure_no_overlap(block_db, user.id, start, end, exclude_id=block_id)
    validate_actual_end(start, end, changes.get("actual_end", block.actual_end))

    if changes.get("task_id") is not None:
        _require_task(task_db, user, changes["task_id"])

    updated = block_db.update_time_block(block_id, changes)
    if updated is None:
        raise NotFoundError("Time block not found")

    if notifications is not None and ({"start", "notification"} & changes.keys()):
        notifications.schedule_time_block(updated)
    return updated


def delete_time_block(
    block_db: TimeBlockDB,
    user: User,
    block_id: str,
    notifications: NotificationService | None = None,
) -> None:
    if not block_db.delete_time_block(block_id, user.id):
        raise NotFoundError("Time block not found")
    if notifications is not None:
        notifications.cancel_time_block(block_id)
