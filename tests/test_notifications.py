"""Tests for timeblocker.core.notifications — reminders and push delivery."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

from timeblocker.adapters.webpush_notifier import WebPushNotifier
from timeblocker.core.instants import utc_now
from timeblocker.core.notifications import (
    DAILY_PLANNING_BODY,
    DAILY_PLANNING_JOB_ID,
    DAILY_PLANNING_TITLE,
    NotificationService,
    build_block_message,
    format_clock,
    notification_time,
    time_block_job_id,
)
from timeblocker.data.models import NotificationSettings, PushSubscription, TimeBlock
from timeblocker.ports.notification_port import NotificationError, SubscriptionGoneError


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_block(start, minutes_before=None, enabled=True, block_id="b1"):
    notification = None
    if minutes_before is not None:
        notification = NotificationSettings(enabled=enabled, minutes_before=minutes_before)
    return TimeBlock(
        id=block_id, user_id="u1", title="Deep work",
        start=start, end=start + timedelta(hours=1), notification=notification,
    )


class TestMessages:
    def test_format_clock(self):
        assert format_clock(utc(2024, 6, 1, 9, 5)) == "9:05 AM"
        assert format_clock(utc(2024, 6, 1, 13, 30)) == "1:30 PM"
        assert format_clock(utc(2024, 6, 1, 0, 0)) == "12:00 AM"

    def test_upcoming_message_in_user_timezone(self):
        block = make_block(utc(2024, 6, 1, 13, 0), minutes_before=10)
        title, body = build_block_message(block, "America/New_York")
        assert title == "Upcoming: Deep work"
        assert body == "Scheduled for 9:00 AM"

    def test_starting_now_message(self):
        title, _ = build_block_message(make_block(utc(2024, 6, 1, 9), minutes_before=0), "UTC")
        assert title == "Starting now: Deep work"

    def test_notification_time(self):
        assert notification_time(make_block(utc(2024, 6, 1, 9), 15)) == utc(2024, 6, 1, 8, 45)
        assert notification_time(make_block(utc(2024, 6, 1, 9))) is None
        assert notification_time(make_block(utc(2024, 6, 1, 9), 15, enabled=False)) is None


class TestLifecycle:
    def test_start_registers_daily_job(self, notifications, mock_scheduler):
        notifications.start()
        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == DAILY_PLANNING_JOB_ID
        assert kwargs["replace_existing"] is True
        mock_scheduler.start.assert_called_once()

    def test_start_does_not_restart_running_scheduler(self, notifications, mock_scheduler):
        mock_scheduler.running = True
        notifications.start()
        mock_scheduler.start.assert_not_called()

    def test_shutdown(self, notifications, mock_scheduler):
        mock_scheduler.running = True
        notifications.shutdown()
        mock_scheduler.shutdown.assert_called_once_with(wait=False)


class TestScheduleTimeBlock:
    def test_future_reminder_is_scheduled(self, notifications, mock_scheduler):
        start = utc_now() + timedelta(hours=2)
        block = make_block(start, minutes_before=10)
        fire_at = notifications.schedule_time_block(block)

        assert fire_at == start - timedelta(minutes=10)
        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["trigger"] == "date"
        assert kwargs["run_date"] == fire_at
        assert kwargs["id"] == time_block_job_id("b1")
        assert kwargs["args"] == ["b1"]

    def test_past_reminder_is_skipped(self, notifications, mock_scheduler):
        block = make_block(utc_now() - timedelta(hours=1), minutes_before=0)
        assert notifications.schedule_time_block(block) is None
        mock_scheduler.add_job.assert_not_called()

    def test_disabled_notification_cancels_existing(self, notifications, mock_scheduler):
        mock_scheduler.get_job.return_value = MagicMock()
        block = make_block(utc_now() + timedelta(hours=1), minutes_before=5, enabled=False)
        assert notifications.schedule_time_block(block) is None
        mock_scheduler.remove_job.assert_called_once_with(time_block_job_id("b1"))
        mock_scheduler.add_job.assert_not_called()

    def test_cancel_missing_job(self, notifications, mock_scheduler):
        assert notifications.cancel_time_block("nope") is False
        mock_scheduler.remove_job.assert_not_called()


class TestSendToUser:
    @pytest.mark.asyncio
    async def test_delivers_to_every_subscription(self, notifications, mock_notifier, user_db, user):
        user_db.upsert_push_subscription(user.id, PushSubscription("https://push/1", "k", "a"))
        user_db.upsert_push_subscription(user.id, PushSubscription("https://push/2", "k", "a"))
        user = user_db.get_user(user.id)

        delivered = await notifications.send_to_user(user, "Hi", "There", {"x": 1})

        assert delivered == 2
        payload = mock_notifier.send.call_args.args[1]
        assert payload["title"] == "Hi"
        assert payload["body"] == "There"
        assert payload["data"] == {"x": 1}
        assert isinstance(payload["timestamp"], int)

    @pytest.mark.asyncio
    async def test_gone_subscription_is_removed(self, notifications, mock_notifier, user_db, user):
        user_db.upsert_push_subscription(user.id, PushSubscription("https://push/gone", "k", "a"))
        user_db.upsert_push_subscription(user.id, PushSubscription("https://push/ok", "k", "a"))
        user = user_db.get_user(user.id)

        async def send(subscription, payload):
            if subscription.endpoint.endswith("gone"):
                raise SubscriptionGoneError(subscription.endpoint)

        mock_notifier.send = AsyncMock(side_effect=send)
        delivered = await notifications.send_to_user(user, "Hi", "There")

        assert delivered == 1
        remaining = user_db.get_user(user.id).push_subscriptions
        assert [s.endpoint for s in remaining] == ["https://push/ok"]

    @pytest.mark.asyncio
    async def test_other_failures_keep_subscription(self, notifications, mock_notifier, user_db, user):
        user_db.upsert_push_subscription(user.id, PushSubscription("https://push/1", "k", "a"))
        user = user_db.get_user(user.id)
        mock_notifier.send = AsyncMock(side_effect=NotificationError("boom"))

        assert await notifications.send_to_user(user, "Hi", "There") == 0
        assert len(user_db.get_user(user.id).push_subscriptions) == 1

    @pytest.mark.asyncio
    async def test_network_failure_does_not_stop_remaining_subscriptions(
        self, stores, mock_scheduler, user_db, user,
    ):
        user_db.upsert_push_subscription(user.id, PushSubscription("https://unreachable/1", "k", "a"))
        user_db.upsert_push_subscription(user.id, PushSubscription("https://push/2", "k", "a"))
        user = user_db.get_user(user.id)
        service = NotificationService(
            WebPushNotifier("private", "mailto:a@example.com"),
            stores.users, stores.blocks, mock_scheduler,
        )
        outcomes = [requests.exceptions.ConnectionError("name resolution failed"), None]

        with patch(
            "timeblocker.adapters.webpush_notifier.webpush", side_effect=outcomes,
        ) as mock_webpush:
            delivered = await service.send_to_user(user, "Hi", "There")

        assert delivered == 1
        assert mock_webpush.call_count == 2
        assert mock_webpush.call_args.kwargs["subscription_info"]["endpoint"] == "https://push/2"
        assert len(user_db.get_user(user.id).push_subscriptions) == 2


class TestJobs:
    @pytest.mark.asyncio
    async def test_daily_planning_reminders(self, notifications, mock_notifier, user_db):
        planner = user_db.add_user("p@example.com", "x", daily_planning_time="09:00")
        user_db.add_user("n@example.com", "x")
        user_db.upsert_push_subscription(planner.id, PushSubscription("https://push/p", "k", "a"))

        await notifications.send_daily_planning_reminders()

        mock_notifier.send.assert_awaited_once()
        payload = mock_notifier.send.call_args.args[1]
        assert payload["title"] == DAILY_PLANNING_TITLE
        assert payload["body"] == DAILY_PLANNING_BODY

    @pytest.mark.asyncio
    async def test_deliver_time_block_notification(self, notifications, mock_notifier, stores, user):
        stores.users.upsert_push_subscription(user.id, PushSubscription("https://push/1", "k", "a"))
        block = stores.blocks.add_time_block(
            user.id, "Standup", utc(2024, 6, 1, 9), utc(2024, 6, 1, 9, 30),
            notification=NotificationSettings(enabled=True, minutes_before=5),
        )

        await notifications.deliver_time_block_notification(block.id)

        payload = mock_notifier.send.call_args.args[1]
        assert payload["title"] == "Upcoming: Standup"
        assert payload["body"] == "Scheduled for 9:00 AM"
        assert payload["data"] == {"timeBlockId": block.id}

    @pytest.mark.asyncio
    async def test_deleted_block_is_skipped(self, notifications, mock_notifier):
        await notifications.deliver_time_block_notification("missing")
        mock_notifier.send.assert_not_called()
