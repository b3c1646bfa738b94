"""
TimeBlocker — Demo Account.

A fixed demo user with a product-launch project, a handful of standalone
tasks and two days of time blocks, laid out in the demo user's timezone.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from timeblocker.core.auth import hash_password
from timeblocker.core.day_window import get_zone
from timeblocker.core.errors import ValidationError
from timeblocker.data.models import NotificationSettings, TaskPriority, TaskStatus

if TYPE_CHECKING:
    from timeblocker.core.notifications import NotificationService
    from timeblocker.data.db import Stores
    from timeblocker.data.models import User

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@timeblocker.app"
DEMO_PASSWORD = "demo123"
DEMO_NAME = "Demo User"
DEMO_TIMEZONE = "America/New_York"
DEMO_PLANNING_TIME = "09:00"

# key, title, notes, priority, category, deadline (days from today), estimate, status, parent key
_TASKS = (
    ("launch", "Q4 Product Launch", "Complete product launch preparation for Q4 release",
     TaskPriority.HIGH, "Work", 14, 480, TaskStatus.IN_PROGRESS, None),
    ("marketing", "Create marketing campaign", "Design social media and email marketing strategy",
     TaskPriority.HIGH, "Work", None, 120, TaskStatus.PENDING, "launch"),
    ("testing", "Final testing & QA", "Complete end-to-end testing before launch",
     TaskPriority.HIGH, "Work", None, 180, TaskStatus.SCHEDULED, "launch"),
    ("docs", "Update user documentation", "Revise help docs and tutorial videos",
     TaskPriority.MEDIUM, "Work", None, 90, TaskStatus.COMPLETED, "launch"),
    ("standup", "Team standup preparation", "Review yesterday's progress and plan today's work",
     TaskPriority.MEDIUM, "Work", None, 15, TaskStatus.COMPLETED, None),
    ("client", "Client feedback session", "Review prototype with key stakeholders",
     TaskPriority.HIGH, "Work", 2, 60, TaskStatus.SCHEDULED, None),
    ("vacation", "Plan vacation", "Research destinations and book accommodations for summer trip",
     TaskPriority.LOW, "Personal", 7, 90, TaskStatus.PENDING, None),
    ("workout", "Morning workout routine", "Gym session: 30min cardio + 30min strength training",
     TaskPriority.MEDIUM, "Health", None, 60, TaskStatus.SCHEDULED, None),
    ("learning", "Python advanced features", "Study descriptors, generics, and protocols",
     TaskPriority.MEDIUM, "Learning", None, 120, TaskStatus.PENDING, None),
    ("email", "Clear inbox", "Process and respond to pending emails",
     TaskPriority.LOW, "Admin", None, 30, TaskStatus.PENDING, None),
)

# day offset, start "HH:MM", end "HH:MM", title, category, task key, minutes before, actual end
_BLOCKS = (
    (0, "07:00", "08:00", "Morning workout routine", "Health", "workout", 10, None),
    (0, "09:00", "09:30", "Team Standup", "Work", "standup", 5, "09:25"),
    (0, "09:30", "10:00", "Process emails", "Admin", "email", None, None),
    (0, "10:00", "12:00", "Marketing campaign planning", "Work", "marketing", None, None),
    (0, "12:00", "13:00", "Lunch break", "Break", None, None, None),
    (0, "14:00", "15:00", "Client feedback session", "Work", "client", 15, None),
    (0, "15:15", "16:45", "QA Testing Session", "Work", "testing", None, None),
    (0, "17:00", "18:30", "Python Learning", "Learning", "learning", None, None),
    (1, "06:30", "07:30", "Morning run", "Health", None, None, None),
    (1, "09:00", "09:30", "Daily planning & review", "Planning", None, 0, None),
    (1, "10:00", "11:30", "Vacation research", "Personal", "vacation", None, None),
    (1, "14:00", "16:00", "Q4 Launch Progress Review", "Work", "launch", None, None),
)


def _local(day: date, hhmm: str, tz_name: str) -> datetime:
    hour, minute = map(int, hhmm.split(":"))
    return datetime.combine(day, time(hour, minute), tzinfo=get_zone(tz_name))


def seed_demo_data(
    stores: Stores,
    user: User,
    today: date | None = None,
    notifications: NotificationService | None = None,
) -> tuple[int, int]:
    """Create the demo tasks and blocks for user. Returns (tasks, blocks) created."""
    if today is None:
        today = datetime.now(get_zone(user.timezone)).date()

    task_ids: dict[str, str] = {}
    for key, title, notes, priority, category, due_in, estimate, status, parent in _TASKS:
        task = stores.tasks.add_task(
            user.id,
            title,
            notes=notes,
            priority=priority,
            category=category,
            deadline=_local(today + timedelta(days=due_in), "00:00", user.timezone) if due_in else None,
            estimated_minutes=estimate,
            parent_task_id=task_ids.get(parent) if parent else None,
            status=status,
        )
        task_ids[key] = task.id

    for offset, start, end, title, category, task_key, minutes_before, actual_end in _BLOCKS:
        day = today + timedelta(days=offset)
        notification = None
        if minutes_before is not None:
            notification = NotificationSettings(enabled=True, minutes_before=minutes_before)
        block = stores.blocks.add_time_block(
            user.id,
            title,
            _local(day, start, user.timezone),
            _local(day, end, user.timezone),
            task_id=task_ids.get(task_key) if task_key else None,
            category=category,
            notification=notification,
            actual_end=_local(day, actual_end, user.timezone) if actual_end else None,
        )
        if notifications is not None and notification is not None:
            notifications.schedule_time_block(block)

    logger.info("Demo data seeded for %s: %d tasks, %d blocks", user.id, len(_TASKS), len(_BLOCKS))
    return len(_TASKS), len(_BLOCKS)


def ensure_demo_user(
    stores: Stores, notifications: NotificationService | None = None,
) -> User:
    """Return the demo user, creating and seeding it on first use."""
    user = stores.users.get_by_email(DEMO_EMAIL)
    if user is not None:
        return user

    try:
        user = stores.users.add_user(
            DEMO_EMAIL,
            hash_password(DEMO_PASSWORD),
            name=DEMO_NAME,
            timezone=DEMO_TIMEZONE,
            daily_planning_time=DEMO_PLANNING_TIME,
        )
    except ValidationError:
        # Created by a concurrent request; that request seeds it.
        user = stores.users.get_by_email(DEMO_EMAIL)
        if user is None:
            raise
        logger.info("Demo user was created concurrently; reusing it")
        return user
    seed_demo_data(stores, user, notifications=notifications)
    return user


def reset_demo_data(stores: Stores, today: date | None = None) -> User:
    """Clear the demo user's tasks and blocks and seed them again."""
    user = stores.users.get_by_email(DEMO_EMAIL)
    if user is None:
        logger.info("Creating demo user...")
        user = stores.users.add_user(
            DEMO_EMAIL,
            hash_password(DEMO_PASSWORD),
            name=DEMO_NAME,
            timezone=DEMO_TIMEZONE,
            daily_planning_time=DEMO_PLANNING_TIME,
        )
    else:
        logger.info("Demo user already exists, clearing existing data...")
        stores.blocks.delete_for_user(user.id)
        stores.tasks.delete_for_user(user.id)
    seed_demo_data(stores, user, today=today)
    return user
