"""Tests for timeblocker.core.overlap — half-open interval conflicts."""

from datetime import datetime, timezone

import pytest

from timeblocker.core.errors import OverlapError
from timeblocker.core.overlap import (
    check_overlap,
    ensure_no_overlap,
    has_overlap,
    intervals_overlap,
)


def utc(hour, minute=0):
    return datetime(2024, 6, 1, hour, minute, tzinfo=timezone.utc)


class TestIntervalsOverlap:
    def test_partial_overlap(self):
        assert intervals_overlap(utc(9), utc(10), utc(9, 30), utc(10, 30))

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap(utc(9), utc(10), utc(10), utc(11))
        assert not intervals_overlap(utc(10), utc(11), utc(9), utc(10))

    def test_containment(self):
        assert intervals_overlap(utc(9), utc(12), utc(10), utc(11))


class TestStoreBackedChecks:
    @pytest.fixture
    def existing(self, block_db, user):
        return block_db.add_time_block(user.id, "busy", utc(9), utc(10))

    def test_conflict_detected(self, block_db, user, existing):
        assert has_overlap(block_db, user.id, utc(9, 30), utc(10, 30))
        result = check_overlap(block_db, user.id, utc(9, 30), utc(10, 30))
        assert result.has_conflict
        assert [b.id for b in result.conflicting_blocks] == [existing.id]

    def test_adjacent_allowed(self, block_db, user, existing):
        assert not has_overlap(block_db, user.id, utc(10), utc(11))
        ensure_no_overlap(block_db, user.id, utc(10), utc(11))

    def test_exclude_self(self, block_db, user, existing):
        assert not has_overlap(block_db, user.id, utc(9), utc(10, 30), exclude_id=existing.id)

    def test_ensure_no_overlap_raises(self, block_db, user, existing):
        with pytest.raises(OverlapError) as exc_info:
            ensure_no_overlap(block_db, user.id, utc(8, 30), utc(9, 15))
        assert exc_info.value.message == "Time block overlaps with existing block"
        assert exc_info.value.conflicting_ids == [existing.id]

    def test_other_user_is_not_a_conflict(self, block_db, other_user, existing):
        assert not has_overlap(block_db, other_user.id, utc(9), utc(10))
