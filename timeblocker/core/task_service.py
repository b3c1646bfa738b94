"""
TimeBlocker — Task Service.

Stateless orchestration of task operations: ownership checks, parent/child
validation and worked-time aggregation. The HTTP layer calls these
functions and renders the returned views.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from timeblocker.core.errors import NotFoundError
from timeblocker.core.task_tree import children_index, validate_parent
from timeblocker.core.worked_time import total_minutes_worked
from timeblocker.data.db import ANY_PARENT

if TYPE_CHECKING:
    from timeblocker.data.db import TaskDB, TimeBlockDB
    from timeblocker.data.models import Task, TaskPriority, TaskStatus, TimeBlock, User

logger = logging.getLogger(__name__)


@dataclass
class TaskView:
    """A task plus the values derived from its subtasks and time blocks."""

    task: Task
    subtask_ids: list[str] = field(default_factory=list)
    time_block_ids: list[str] = field(default_factory=list)
    total_minutes_worked: int = 0


def build_task_views(
    tasks: list[Task], all_tasks: list[Task], linked_blocks: list[TimeBlock],
) -> list[TaskView]:
    """Attach children, linked blocks and worked minutes to each task.

    all_tasks is the owner's full task list (for the children index);
    linked_blocks are the owner's blocks that reference a task.
    """
    index = children_index(all_tasks)
    blocks_by_task: dict[str, list[TimeBlock]] = {}
    for block in linked_blocks:
        blocks_by_task.setdefault(block.task_id, []).append(block)

    views = []
    for task in tasks:
        blocks = blocks_by_task.get(task.id, [])
        views.append(TaskView(
            task=task,
            subtask_ids=list(index.get(task.id, [])),
            time_block_ids=[b.id for b in blocks],
            total_minutes_worked=total_minutes_worked(blocks),
        ))
    return views


def _view_of(task_db: TaskDB, block_db: TimeBlockDB, task: Task) -> TaskView:
    return build_task_views(
        [task], task_db.list_tasks(task.user_id), block_db.list_for_task(task.id),
    )[0]


def list_tasks(
    task_db: TaskDB,
    block_db: TimeBlockDB,
    user: User,
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    parent_id: object = ANY_PARENT,
) -> list[TaskView]:
    """List the user's tasks with derived fields, HIGH priority first."""
    tasks = task_db.list_tasks(user.id, status=status, priority=priority, parent_id=parent_id)
    all_tasks = task_db.list_tasks(user.id)
    linked = block_db.list_for_user(user.id, linked_only=True)
    return build_task_views(tasks, all_tasks, linked)


def create_task(
    task_db: TaskDB, block_db: TimeBlockDB, user: User, **fields,
) -> TaskView:
    """Create a task for user. fields are TaskDB.add_task keyword arguments."""
    parent_id = fields.get("parent_task_id")
    if parent_id is not None:
        validate_parent(None, parent_id, task_db.list_tasks(user.id))
    task = task_db.add_task(user.id, **fields)
    return _view_of(task_db, block_db, task)


def update_task(
    task_db: TaskDB, block_db: TimeBlockDB, user: User, task_id: str, changes: dict,
) -> TaskView:
    """Partially update a task owned by user.

    A parent_task_id of None detaches the task from its parent.
    """
    task = task_db.get_task(task_id, user_id=user.id)
    if task is None:
        raise NotFoundError("Task not found")

    if changes.get("parent_task_id") is not None:
        validate_parent(task_id, changes["parent_task_id"], task_db.list_tasks(user.id))

    updated = task_db.update_task(task_id, changes)
    if updated is None:
        # Deleted concurrently
        raise NotFoundError("Task not found")
    return _view_of(task_db, block_db, updated)


def delete_task(task_db: TaskDB, user: User, task_id: str) -> None:
    """Delete a task; its subtasks and time blocks are detached, not deleted."""
    if not task_db.delete_task(task_id, user.id):
        raise NotFoundError("Task not found")
