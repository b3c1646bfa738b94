"""
TimeBlocker — Time Block Overlap Checker.

Detects conflicts before a time block is created or moved. Intervals are
half-open: [09:00, 10:00) and [10:00, 11:00) touch but do not overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from timeblocker.core.errors import OverlapError

if TYPE_CHECKING:
    from timeblocker.data.db import TimeBlockDB
    from timeblocker.data.models import TimeBlock

logger = logging.getLogger(__name__)


@dataclass
class ConflictResult:
    """Result of an overlap check against a user's time blocks."""

    has_conflict: bool
    conflicting_blocks: list[TimeBlock] = field(default_factory=list)


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime,
) -> bool:
    """Check if [a_start, a_end) intersects [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def has_overlap(
    block_db: TimeBlockDB,
    user_id: str,
    start: datetime,
    end: datetime,
    exclude_id: str | None = None,
) -> bool:
    """True iff another of the user's blocks overlaps [start, end).

    exclude_id: block to skip (update in place).
    """
    return block_db.count_overlapping(user_id, start, end, exclude_id=exclude_id) > 0


def check_overlap(
    block_db: TimeBlockDB,
    user_id: str,
    start: datetime,
    end: datetime,
    exclude_id: str | None = None,
) -> ConflictResult:
    """Like has_overlap, but returns the conflicting blocks."""
    conflicting = block_db.find_overlapping(user_id, start, end, exclude_id=exclude_id)
    if not conflicting:
        return ConflictResult(has_conflict=False)
    logger.info(
        "Interval %s-%s for user %s overlaps %s",
        start, end, user_id, ", ".join(b.id for b in conflicting),
    )
    return ConflictResult(has_conflict=True, conflicting_blocks=conflicting)


def ensure_no_overlap(
    block_db: TimeBlockDB,
    user_id: str,
    start: datetime,
    end: datetime,
    exclude_id: str | None = None,
) -> None:
    """Raise OverlapError if [start, end) conflicts with the user's blocks."""
    result = check_overlap(block_db, user_id, start, end, exclude_id=exclude_id)
    if result.has_conflict:
        raise OverlapError(conflicting_ids=[b.id for b in result.conflicting_blocks])
