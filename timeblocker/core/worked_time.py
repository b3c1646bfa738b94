"""Worked-time aggregation for tasks.

No I/O: derived values recomputed on every read, never persisted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from timeblocker.data.models import TimeBlock


def block_minutes(block: TimeBlock) -> int:
    """Whole minutes worked in a block; actual_end wins over the scheduled end."""
    finish = block.actual_end or block.end
    return int((finish - block.start).total_seconds() // 60)


def total_minutes_worked(blocks: Iterable[TimeBlock]) -> int:
    """Sum of block_minutes over a task's linked blocks (0 when there are none)."""
    return sum(block_minutes(b) for b in blocks)

