"""Tests for timeblocker.core.worked_time."""

from datetime import datetime, timezone

from timeblocker.core.worked_time import block_minutes, total_minutes_worked
from timeblocker.data.models import TimeBlock


def utc(hour, minute=0, second=0):
    return datetime(2024, 6, 1, hour, minute, second, tzinfo=timezone.utc)


def block(start, end, actual_end=None, task_id="t1", block_id="b"):
    return TimeBlock(
        id=block_id, user_id="u", title="x", start=start, end=end,
        actual_end=actual_end, task_id=task_id,
    )


class TestBlockMinutes:
    def test_scheduled_duration(self):
        assert block_minutes(block(utc(9), utc(10, 30))) == 90

    def test_actual_end_wins(self):
        assert block_minutes(block(utc(9), utc(10, 30), actual_end=utc(9, 40))) == 40

    def test_partial_minutes_are_floored(self):
        assert block_minutes(block(utc(9), utc(10), actual_end=utc(9, 10, 59))) == 10


class TestTotals:
    def test_no_blocks_is_zero(self):
        assert total_minutes_worked([]) == 0

    def test_sum(self):
        blocks = [
            block(utc(9), utc(10)),
            block(utc(11), utc(12), actual_end=utc(11, 15)),
        ]
        assert total_minutes_worked(blocks) == 75
