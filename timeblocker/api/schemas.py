"""Request bodies and response serialization for the REST API.

Wire names are camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from timeblocker.core.day_window import is_valid_timezone
from timeblocker.core.instants import to_iso
from timeblocker.data.models import (
    NotificationSettings,
    PushSubscription,
    RecurrenceSettings,
    RecurrenceType,
    TaskPriority,
    TaskStatus,
)

if TYPE_CHECKING:
    from timeblocker.core.task_service import TaskView
    from timeblocker.data.models import Task, TimeBlock, User

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

MAX_ESTIMATED_MINUTES = 60 * 24 * 366
MAX_MINUTES_BEFORE = 60 * 24 * 7


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str | None = None
    timezone: str = "UTC"
    daily_planning_time: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        return v.strip() if v is not None else None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        if not is_valid_timezone(v):
            raise ValueError(f"unknown timezone {v!r}")
        return v

    @field_validator("daily_planning_time")
    @classmethod
    def check_planning_time(cls, v: str | None) -> str | None:
        if v is not None and not _HHMM_RE.match(v):
            raise ValueError("expected HH:MM")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class PushKeys(CamelModel):
    p256dh: str
    auth: str


class PushSubscriptionBody(CamelModel):
    endpoint: str = Field(min_length=1)
    keys: PushKeys

    def to_subscription(self) -> PushSubscription:
        return PushSubscription(endpoint=self.endpoint, p256dh=self.keys.p256dh, auth=self.keys.auth)


class PushSubscriptionRequest(CamelModel):
    subscription: PushSubscriptionBody


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class RecurrenceBody(CamelModel):
    type: RecurrenceType
    interval: int = Field(1, ge=1)
    end_date: str | None = None
    days_of_week: list[int] | None = None
    day_of_month: int | None = Field(None, ge=1, le=31)

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(d < 0 or d > 6 for d in v):
            raise ValueError("days of week must be between 0 and 6")
        return v

    def to_settings(self) -> RecurrenceSettings:
        return RecurrenceSettings(
            type=self.type,
            interval=self.interval,
            end_date=self.end_date,
            days_of_week=self.days_of_week,
            day_of_month=self.day_of_month,
        )


class TaskCreateRequest(CamelModel):
    title: str
    notes: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category: str | None = None
    deadline: datetime | None = None
    estimated_minutes: int | None = Field(None, ge=0, le=MAX_ESTIMATED_MINUTES)
    recurrence: RecurrenceBody | None = None
    parent_task_id: str | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        return _required_text(v)


class TaskUpdateRequest(CamelModel):
    title: str | None = None
    notes: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category: str | None = None
    deadline: datetime | None = None
    estimated_minutes: int | None = Field(None, ge=0, le=MAX_ESTIMATED_MINUTES)
    recurrence: RecurrenceBody | None = None
    parent_task_id: str | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        return _required_text(v)


# ---------------------------------------------------------------------------
# Time blocks
# ---------------------------------------------------------------------------


class NotificationBody(CamelModel):
    enabled: bool
    minutes_before: int = Field(0, ge=0, le=MAX_MINUTES_BEFORE)

    def to_settings(self) -> NotificationSettings:
        return NotificationSettings(enabled=self.enabled, minutes_before=self.minutes_before)


class TimeBlockCreateRequest(CamelModel):
    title: str
    start: datetime
    end: datetime
    task_id: str | None = None
    category: str | None = None
    notes: str | None = None
    notification: NotificationBody | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        return _required_text(v)


class TimeBlockUpdateRequest(CamelModel):
    title: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    actual_end: datetime | None = None
    task_id: str | None = None
    category: str | None = None
    notes: str | None = None
    notification: NotificationBody | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str | None) -> str | None:
        return _required_text(v)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "timezone": user.timezone,
        "dailyPlanningTime": user.daily_planning_time,
    }


def task_to_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "notes": task.notes,
        "status": task.status.value,
        "priority": task.priority.value,
        "category": task.category,
        "deadline": to_iso(task.deadline),
        "estimatedMinutes": task.estimated_minutes,
        "recurrence": task.recurrence.to_dict() if task.recurrence else None,
        "parentTaskId": task.parent_task_id,
        "createdAt": to_iso(task.created_at),
        "updatedAt": to_iso(task.updated_at),
    }


def task_view_to_dict(view: TaskView) -> dict:
    data = task_to_dict(view.task)
    data["subtaskIds"] = view.subtask_ids
    data["timeBlockIds"] = view.time_block_ids
    data["totalMinutesWorked"] = view.total_minutes_worked
    return data


def time_block_to_dict(block: TimeBlock, task: Task | None = None) -> dict:
    data = {
        "id": block.id,
        "title": block.title,
        "start": to_iso(block.start),
        "end": to_iso(block.end),
        "actualEnd": to_iso(block.actual_end),
        "category": block.category,
        "notes": block.notes,
        "notification": block.notification.to_dict() if block.notification else None,
        "taskId": block.task_id,
        "createdAt": to_iso(block.created_at),
        "updatedAt": to_iso(block.updated_at),
    }
    if task is not None:
        data["task"] = {"id": task.id, "title": task.title, "status": task.status.value}
    else:
        data["task"] = None
    return data
