"""Tests for timeblocker.core.demo — demo account seeding."""

from datetime import date, timedelta
from unittest.mock import MagicMock

from timeblocker.core.auth import verify_password
from timeblocker.core.demo import (
    DEMO_EMAIL,
    DEMO_PASSWORD,
    ensure_demo_user,
    reset_demo_data,
    seed_demo_data,
)
from timeblocker.core.overlap import intervals_overlap
from timeblocker.core.timeblock_service import get_day_view

TODAY = date(2024, 6, 3)


class TestSeedDemoData:
    def test_counts(self, stores):
        user = stores.users.add_user(DEMO_EMAIL, "x", timezone="America/New_York")
        assert seed_demo_data(stores, user, today=TODAY) == (10, 12)
        assert len(stores.tasks.list_tasks(user.id)) == 10
        assert len(stores.blocks.list_for_user(user.id)) == 12

    def test_project_has_three_subtasks(self, stores):
        user = stores.users.add_user(DEMO_EMAIL, "x", timezone="America/New_York")
        seed_demo_data(stores, user, today=TODAY)
        [launch] = [t for t in stores.tasks.list_tasks(user.id) if t.title == "Q4 Product Launch"]
        assert len(stores.tasks.list_tasks(user.id, parent_id=launch.id)) == 3

    def test_blocks_do_not_overlap(self, stores):
        user = stores.users.add_user(DEMO_EMAIL, "x", timezone="America/New_York")
        seed_demo_data(stores, user, today=TODAY)
        blocks = stores.blocks.list_for_user(user.id)
        for i, a in enumerate(blocks):
            for b in blocks[i + 1:]:
                assert not intervals_overlap(a.start, a.end, b.start, b.end)

    def test_day_views(self, stores):
        user = stores.users.add_user(DEMO_EMAIL, "x", timezone="America/New_York")
        seed_demo_data(stores, user, today=TODAY)
        today = get_day_view(stores.blocks, stores.tasks, user, TODAY.isoformat())
        tomorrow = get_day_view(
            stores.blocks, stores.tasks, user, (TODAY + timedelta(days=1)).isoformat(),
        )
        assert len(today) == 8
        assert len(tomorrow) == 4
        # 07:00 New York in June is 11:00 UTC
        assert today[0].block.start.hour == 11


class TestEnsureDemoUser:
    def test_creates_once(self, stores):
        first = ensure_demo_user(stores)
        second = ensure_demo_user(stores)
        assert first.id == second.id
        assert verify_password(DEMO_PASSWORD, first.password_hash)
        assert len(stores.tasks.list_tasks(first.id)) == 10

    def test_concurrent_creation_reuses_existing_user(self, stores, monkeypatch):
        existing = ensure_demo_user(stores)
        # The other request inserted the row between our lookup and insert.
        lookups = MagicMock(side_effect=[None, existing])
        monkeypatch.setattr(stores.users, "get_by_email", lookups)

        user = ensure_demo_user(stores)

        assert user.id == existing.id
        assert lookups.call_count == 2
        assert len(stores.tasks.list_tasks(existing.id)) == 10


class TestResetDemoData:
    def test_reset_replaces_data(self, stores):
        user = reset_demo_data(stores, today=TODAY)
        stores.tasks.add_task(user.id, "extra")
        again = reset_demo_data(stores, today=TODAY)
        assert again.id == user.id
        assert len(stores.tasks.list_tasks(user.id)) == 10
        assert len(stores.blocks.list_for_user(user.id)) == 12
