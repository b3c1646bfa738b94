"""
TimeBlocker — Data Models.

Users own tasks and time blocks. Tasks form a tree through parent_task_id;
time blocks are scheduled intervals of a user's day, optionally linked to
one task.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RecurrenceType(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


# Listing order: HIGH first
PRIORITY_RANK = {TaskPriority.HIGH: 0, TaskPriority.MEDIUM: 1, TaskPriority.LOW: 2}


@dataclass
class PushSubscription:
    """A browser Web Push subscription."""

    endpoint: str
    p256dh: str
    auth: str

    def to_dict(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}

    @classmethod
    def from_dict(cls, data: dict) -> PushSubscription:
        keys = data.get("keys") or {}
        return cls(
            endpoint=data["endpoint"],
            p256dh=keys.get("p256dh", ""),
            auth=keys.get("auth", ""),
        )


@dataclass
class NotificationSettings:
    """Per-block reminder: fire minutes_before the block starts (0 = at start)."""

    enabled: bool
    minutes_before: int = 0

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "minutesBefore": self.minutes_before}

    @classmethod
    def from_dict(cls, data: dict) -> NotificationSettings:
        return cls(
            enabled=bool(data.get("enabled", False)),
            minutes_before=int(data.get("minutesBefore") or 0),
        )


@dataclass
class RecurrenceSettings:
    """Recurrence descriptor stored with a task (not expanded into occurrences)."""

    type: RecurrenceType
    interval: int = 1
    end_date: str | None = None            # ISO date or timestamp
    days_of_week: list[int] | None = None  # 0-6, weekly recurrence
    day_of_month: int | None = None        # monthly recurrence

    def to_dict(self) -> dict:
        data: dict = {"type": self.type.value, "interval": self.interval}
        if self.end_date is not None:
            data["endDate"] = self.end_date
        if self.days_of_week is not None:
            data["daysOfWeek"] = list(self.days_of_week)
        if self.day_of_month is not None:
            data["dayOfMonth"] = self.day_of_month
        return data

    @classmethod
    def from_dict(cls, data: dict) -> RecurrenceSettings:
        return cls(
            type=RecurrenceType(data["type"]),
            interval=int(data.get("interval") or 1),
            end_date=data.get("endDate"),
            days_of_week=data.get("daysOfWeek"),
            day_of_month=data.get("dayOfMonth"),
        )


@dataclass
class User:
    """A registered account."""

    id: str
    email: str
    password_hash: str
    name: str | None = None
    timezone: str = "UTC"
    daily_planning_time: str | None = None   # "HH:MM"
    push_subscriptions: list[PushSubscription] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Task:
    """A unit of work, optionally decomposed into subtasks."""

    id: str
    user_id: str
    title: str
    notes: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str | None = None
    deadline: datetime | None = None
    estimated_minutes: int | None = None
    recurrence: RecurrenceSettings | None = None
    parent_task_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TimeBlock:
    """A scheduled [start, end) interval of a user's day."""

    id: str
    user_id: str
    title: str
    start: datetime
    end: datetime
    task_id: str | None = None
    actual_end: datetime | None = None     # set when the block was closed early
    category: str | None = None
    notes: str | None = None
    notification: NotificationSettings | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
