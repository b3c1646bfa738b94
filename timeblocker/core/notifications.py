"""
TimeBlocker — Push Notifications.

Time block reminders: a one-shot job per block, fired minutesBefore the
block starts. Jobs live in the scheduler's memory and are lost on restart.

Daily planning reminder: one cron job that nudges every user who set a
daily planning time.

This module is provider-agnostic: it depends on the NotificationPort
protocol, not on a specific push implementation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.triggers.cron import CronTrigger

from timeblocker.core.day_window import get_zone
from timeblocker.core.instants import utc_now
from timeblocker.ports.notification_port import NotificationError, SubscriptionGoneError

if TYPE_CHECKING:
    from apscheduler.schedulers.base import BaseScheduler

    from timeblocker.data.db import TimeBlockDB, UserDB
    from timeblocker.data.models import TimeBlock, User
    from timeblocker.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

DAILY_PLANNING_JOB_ID = "daily_planning"
DAILY_PLANNING_TITLE = "Time to plan your day!"
DAILY_PLANNING_BODY = "Review your tasks and schedule your time blocks for today."


def time_block_job_id(block_id: str) -> str:
    return f"timeblock:{block_id}"


def format_clock(dt: datetime) -> str:
    """12-hour clock without a leading zero, e.g. "9:05 AM"."""
    return dt.strftime("%I:%M %p").lstrip("0")


def build_block_message(block: TimeBlock, tz_name: str) -> tuple[str, str]:
    """Return (title, body) for a time block reminder in the user's timezone."""
    minutes_before = block.notification.minutes_before if block.notification else 0
    if minutes_before > 0:
        title = f"Upcoming: {block.title}"
    else:
        title = f"Starting now: {block.title}"
    local_start = block.start.astimezone(get_zone(tz_name))
    return title, f"Scheduled for {format_clock(local_start)}"


def notification_time(block: TimeBlock) -> datetime | None:
    """When the block's reminder should fire, or None if it has none."""
    if block.notification is None or not block.notification.enabled:
        return None
    return block.start - timedelta(minutes=block.notification.minutes_before)


class NotificationService:
    """Schedules and delivers push notifications."""

    def __init__(
        self,
        notifier: NotificationPort,
        user_db: UserDB,
        block_db: TimeBlockDB,
        scheduler: BaseScheduler,
        daily_planning_hour: int = 9,
        scheduler_timezone: str = "UTC",
    ) -> None:
        self._notifier = notifier
        self._user_db = user_db
        self._block_db = block_db
        self._scheduler = scheduler
        self._daily_planning_hour = daily_planning_hour
        self._scheduler_timezone = scheduler_timezone

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Register the daily planning job and start the scheduler."""
        self._scheduler.add_job(
            self.send_daily_planning_reminders,
            CronTrigger(
                hour=self._daily_planning_hour, minute=0, timezone=self._scheduler_timezone,
            ),
            id=DAILY_PLANNING_JOB_ID,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info(
            "Notification scheduler started (daily planning at %02d:00 %s)",
            self._daily_planning_hour, self._scheduler_timezone,
        )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification scheduler stopped")

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send_to_user(
        self, user: User, title: str, body: str, data: dict | None = None,
    ) -> int:
        """Push one message to every subscription of user.

        Subscriptions the push service reports as gone are dropped from the
        user. Returns the number of successful deliveries.
        """
        payload = {
            "title": title,
            "body": body,
            "data": data,
            "timestamp": int(utc_now().timestamp() * 1000),
        }
        delivered = 0
        gone: list[str] = []
        for subscription in user.push_subscriptions:
            try:
                await self._notifier.send(subscription, payload)
                delivered += 1
            except SubscriptionGoneError:
                logger.info("Dropping expired push subscription of user %s", user.id)
                gone.append(subscription.endpoint)
            except NotificationError as exc:
                logger.error("Error sending notification to user %s: %s", user.id, exc)

        if gone:
            remaining = [s for s in user.push_subscriptions if s.endpoint not in gone]
            self._user_db.set_push_subscriptions(user.id, remaining)
            user.push_subscriptions = remaining
        return delivered

    async def send_daily_planning_reminders(self) -> None:
        """Send the daily planning nudge to every user who set a planning time."""
        users = self._user_db.list_with_planning_time()
        for user in users:
            try:
                await self.send_to_user(
                    user,
                    DAILY_PLANNING_TITLE,
                    DAILY_PLANNING_BODY,
                    {"type": "daily-planning", "url": "/day"},
                )
            except Exception as exc:
                logger.error("Failed to send daily planning reminder to %s: %s", user.id, exc)
        logger.info("Daily planning reminders processed for %d users", len(users))

    # ------------------------------------------------------------------
    # Time block reminders
    # ------------------------------------------------------------------

    def schedule_time_block(self, block: TimeBlock) -> datetime | None:
        """(Re)schedule the one-shot reminder for block.

        Any earlier job for the block is dropped first. Returns the fire
        time, or None when notifications are off or the time has passed.
        """
        self.cancel_time_block(block.id)
        fire_at = notification_time(block)
        if fire_at is None:
            return None
        if fire_at <= utc_now():
            logger.debug("Reminder for block %s is in the past, not scheduled", block.id)
            return None

        self._scheduler.add_job(
            self.deliver_time_block_notification,
            trigger="date",
            run_date=fire_at,
            args=[block.id],
            id=time_block_job_id(block.id),
            replace_existing=True,
        )
        logger.info("Reminder for block %s scheduled at %s", block.id, fire_at)
        return fire_at

    def cancel_time_block(self, block_id: str) -> bool:
        job_id = time_block_job_id(block_id)
        if self._scheduler.get_job(job_id) is None:
            return False
        self._scheduler.remove_job(job_id)
        logger.info("Reminder for block %s cancelled", block_id)
        return True

    async def deliver_time_block_notification(self, block_id: str) -> None:
        """Job body: reload the block and its owner, then push."""
        block = self._block_db.get_time_block(block_id)
        if block is None:
            logger.info("Block %s no longer exists, reminder skipped", block_id)
            return
        user = self._user_db.get_user(block.user_id)
        if user is None:
            return
        title, body = build_block_message(block, user.timezone)
        await self.send_to_user(user, title, body, {"timeBlockId": block.id})
