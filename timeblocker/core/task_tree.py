"""Task hierarchy helpers.

The tree is kept as an adjacency index (parent id -> child ids) built from
the flat task list; tasks never hold references to each other.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from timeblocker.core.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from timeblocker.data.models import Task


def children_index(tasks: Iterable[Task]) -> dict[str, list[str]]:
    """Map each parent id to the ids of its direct children."""
    index: dict[str, list[str]] = {}
    for task in tasks:
        if task.parent_task_id is not None:
            index.setdefault(task.parent_task_id, []).append(task.id)
    return index


def descendant_ids(task_id: str, index: dict[str, list[str]]) -> set[str]:
    """All ids below task_id in the tree (not including task_id)."""
    found: set[str] = set()
    stack = list(index.get(task_id, []))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(index.get(current, []))
    return found


def validate_parent(task_id: str | None, parent_id: str, tasks: Iterable[Task]) -> None:
    """Check that parent_id is an acceptable parent for task_id.

    tasks must be the owner's full task list, so a parent belonging to
    another user is reported as not found. task_id is None for a task that
    does not exist yet.
    """
    tasks = list(tasks)
    if parent_id not in {t.id for t in tasks}:
        raise NotFoundError("Parent task not found")
    if task_id is None:
        return
    if parent_id == task_id:
        raise ValidationError("A task cannot be its own parent")
    if parent_id in descendant_ids(task_id, children_index(tasks)):
        raise ValidationError("A task cannot be moved under one of its subtasks")
