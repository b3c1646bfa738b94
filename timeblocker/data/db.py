"""
TimeBlocker — SQLite storage.

One store class per entity (users, tasks, time blocks), all sharing one
SQLite file. Instants are stored as fixed-width UTC text (see
timeblocker.core.instants) so range predicates can run in SQL.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from timeblocker.core.errors import OverlapError, ValidationError
from timeblocker.core.instants import from_storage, to_storage, utc_now
from timeblocker.data.models import (
    PRIORITY_RANK,
    NotificationSettings,
    PushSubscription,
    RecurrenceSettings,
    Task,
    TaskPriority,
    TaskStatus,
    TimeBlock,
    User,
)

logger = logging.getLogger(__name__)

# Passed as parent_id to TaskDB.list_tasks to skip the parent filter
ANY_PARENT = object()

# SQL sort key for tasks.priority, HIGH first
_PRIORITY_ORDER = "CASE priority " + " ".join(
    f"WHEN '{p.value}' THEN {rank}" for p, rank in PRIORITY_RANK.items()
) + " END"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id                  TEXT PRIMARY KEY,
        email               TEXT NOT NULL UNIQUE,
        password_hash       TEXT NOT NULL,
        name                TEXT,
        timezone            TEXT NOT NULL DEFAULT 'UTC',
        daily_planning_time TEXT,
        push_subscriptions  TEXT NOT NULL DEFAULT '[]',
        created_at          TEXT NOT NULL,
        updated_at          TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        token_hash  TEXT PRIMARY KEY,
        user_id     TEXT NOT NULL,
        expires_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id                TEXT PRIMARY KEY,
        user_id           TEXT NOT NULL,
        title             TEXT NOT NULL,
        notes             TEXT,
        status            TEXT NOT NULL DEFAULT 'PENDING',
        priority          TEXT NOT NULL DEFAULT 'MEDIUM',
        category          TEXT,
        deadline          TEXT,
        estimated_minutes INTEGER,
        recurrence        TEXT,
        parent_task_id    TEXT,
        created_at        TEXT NOT NULL,
        updated_at        TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS time_blocks (
        id            TEXT PRIMARY KEY,
        user_id       TEXT NOT NULL,
        task_id       TEXT,
        title         TEXT NOT NULL,
        start_at      TEXT NOT NULL,
        end_at        TEXT NOT NULL,
        actual_end_at TEXT,
        category      TEXT,
        notes         TEXT,
        notification  TEXT,
        created_at    TEXT NOT NULL,
        updated_at    TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_time_blocks_user_range ON time_blocks (user_id, start_at, end_at)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks (user_id)",
)


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create every table the stores rely on (idempotent)."""
    for statement in _SCHEMA:
        conn.execute(statement)


def _new_id() -> str:
    return str(uuid.uuid4())


def _dump_json(value: dict | list | None) -> str | None:
    if value is None:
        return None
    return json.dumps(value)


class _SQLiteStore:
    """Connection handling shared by the entity stores."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from timeblocker.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            _create_schema(conn)
        logger.debug("%s schema initialized at %s", type(self).__name__, self._db_path)


class UserDB(_SQLiteStore):
    """Users, their push subscriptions and their bearer-token sessions."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            _create_schema(conn)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(users)").fetchall()
            }
            if "daily_planning_time" not in existing_cols:
                conn.execute("ALTER TABLE users ADD COLUMN daily_planning_time TEXT")
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        subscriptions = json.loads(row["push_subscriptions"] or "[]")
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            name=row["name"],
            timezone=row["timezone"],
            daily_planning_time=row["daily_planning_time"],
            push_subscriptions=[PushSubscription.from_dict(s) for s in subscriptions],
            created_at=from_storage(row["created_at"]),
            updated_at=from_storage(row["updated_at"]),
        )

    def add_user(
        self,
        email: str,
        password_hash: str,
        name: str | None = None,
        timezone: str = "UTC",
        daily_planning_time: str | None = None,
    ) -> User:
        """Register a new user. Raises ValidationError if the email is taken."""
        user_id = _new_id()
        now = utc_now()
        email = email.strip().lower()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO users
                        (id, email, password_hash, name, timezone,
                         daily_planning_time, push_subscriptions, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, '[]', ?, ?)
                    """,
                    (
                        user_id, email, password_hash, name, timezone,
                        daily_planning_time, to_storage(now), to_storage(now),
                    ),
                )
        except sqlite3.IntegrityError:
            raise ValidationError("Email already registered")

        logger.info("User registered: %s <%s>", user_id, email)
        return User(
            id=user_id,
            email=email,
            password_hash=password_hash,
            name=name,
            timezone=timezone,
            daily_planning_time=daily_planning_time,
            created_at=now,
            updated_at=now,
        )

    def get_user(self, user_id: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup by email."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_with_planning_time(self) -> list[User]:
        """Users who asked for a daily planning reminder."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM users WHERE daily_planning_time IS NOT NULL ORDER BY created_at"
            ).fetchall()
        return [self._row_to_user(r) for r in rows]

    def set_push_subscriptions(
        self, user_id: str, subscriptions: list[PushSubscription],
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE users SET push_subscriptions = ?, updated_at = ? WHERE id = ?",
                (
                    json.dumps([s.to_dict() for s in subscriptions]),
                    to_storage(utc_now()),
                    user_id,
                ),
            )

    def upsert_push_subscription(
        self, user_id: str, subscription: PushSubscription,
    ) -> User | None:
        """Add a subscription, replacing one with the same endpoint."""
        user = self.get_user(user_id)
        if user is None:
            return None
        subs = [s for s in user.push_subscriptions if s.endpoint != subscription.endpoint]
        replaced = len(subs) != len(user.push_subscriptions)
        subs.append(subscription)
        self.set_push_subscriptions(user_id, subs)
        user.push_subscriptions = subs
        logger.info(
            "Push subscription %s for user %s",
            "updated" if replaced else "added", user_id,
        )
        return user

    # -- sessions ---------------------------------------------------------

    def create_session(self, token_hash: str, user_id: str, expires_at: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (token_hash, user_id, expires_at) VALUES (?, ?, ?)",
                (token_hash, user_id, to_storage(expires_at)),
            )

    def get_session(self, token_hash: str) -> tuple[str, datetime] | None:
        """Return (user_id, expires_at) for a token hash."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id, expires_at FROM sessions WHERE token_hash = ?",
                (token_hash,),
            ).fetchone()
        if row is None:
            return None
        return row["user_id"], from_storage(row["expires_at"])

    def delete_session(self, token_hash: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM sessions WHERE token_hash = ?", (token_hash,))

    def purge_expired_sessions(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM sessions WHERE expires_at <= ?", (to_storage(now),),
            )
        if cursor.rowcount:
            logger.info("Purged %d expired sessions", cursor.rowcount)
        return cursor.rowcount


class TaskDB(_SQLiteStore):
    """Tasks and their parent/child links."""

    _UPDATABLE = frozenset({
        "title", "notes", "status", "priority", "category", "deadline",
        "estimated_minutes", "recurrence", "parent_task_id",
    })

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        recurrence = json.loads(row["recurrence"]) if row["recurrence"] else None
        return Task(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            notes=row["notes"],
            status=TaskStatus(row["status"]),
            priority=TaskPriority(row["priority"]),
            category=row["category"],
            deadline=from_storage(row["deadline"]),
            estimated_minutes=row["estimated_minutes"],
            recurrence=RecurrenceSettings.from_dict(recurrence) if recurrence else None,
            parent_task_id=row["parent_task_id"],
            created_at=from_storage(row["created_at"]),
            updated_at=from_storage(row["updated_at"]),
        )

    @staticmethod
    def _to_column(name: str, value):
        if value is None:
            return None
        if name in ("status", "priority"):
            return value.value
        if name == "deadline":
            return to_storage(value)
        if name == "recurrence":
            return _dump_json(value.to_dict())
        return value

    def add_task(
        self,
        user_id: str,
        title: str,
        notes: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        category: str | None = None,
        deadline: datetime | None = None,
        estimated_minutes: int | None = None,
        recurrence: RecurrenceSettings | None = None,
        parent_task_id: str | None = None,
        status: TaskStatus = TaskStatus.PENDING,
    ) -> Task:
        """Insert a new task. The caller checks parent ownership."""
        task = Task(
            id=_new_id(),
            user_id=user_id,
            title=title,
            notes=notes,
            status=status,
            priority=priority,
            category=category,
            deadline=deadline,
            estimated_minutes=estimated_minutes,
            recurrence=recurrence,
            parent_task_id=parent_task_id,
            created_at=utc_now(),
        )
        task.updated_at = task.created_at
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks
                    (id, user_id, title, notes, status, priority, category, deadline,
                     estimated_minutes, recurrence, parent_task_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id, user_id, title, notes, status.value, priority.value, category,
                    self._to_column("deadline", deadline), estimated_minutes,
                    self._to_column("recurrence", recurrence), parent_task_id,
                    to_storage(task.created_at), to_storage(task.updated_at),
                ),
            )
        logger.info("Task added: %s '%s'", task.id, title)
        return task

    def get_task(self, task_id: str, user_id: str | None = None) -> Task | None:
        """Fetch a task, optionally requiring it to belong to user_id."""
        query = "SELECT * FROM tasks WHERE id = ?"
        params: list = [task_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks(
        self,
        user_id: str,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        parent_id: object = ANY_PARENT,
    ) -> list[Task]:
        """List a user's tasks, HIGH priority first, then newest first.

        parent_id: ANY_PARENT (no filter), None (root tasks only) or a task id.
        """
        conditions = ["user_id = ?"]
        params: list = [user_id]
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        if priority is not None:
            conditions.append("priority = ?")
            params.append(priority.value)
        if parent_id is None:
            conditions.append("parent_task_id IS NULL")
        elif parent_id is not ANY_PARENT:
            conditions.append("parent_task_id = ?")
            params.append(parent_id)

        query = (
            "SELECT * FROM tasks WHERE " + " AND ".join(conditions)
            + f" ORDER BY {_PRIORITY_ORDER}, created_at DESC"
        )
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def update_task(self, task_id: str, changes: dict) -> Task | None:
        """Apply a partial update. Keys are Task field names."""
        unknown = set(changes) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update task fields: {sorted(unknown)}")

        if changes:
            assignments = ", ".join(f"{name} = ?" for name in changes)
            params = [self._to_column(name, value) for name, value in changes.items()]
            params += [to_storage(utc_now()), task_id]
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE tasks SET {assignments}, updated_at = ? WHERE id = ?",
                    params,
                )
            logger.info("Task %s updated: %s", task_id, ", ".join(sorted(changes)))
        return self.get_task(task_id)

    def delete_task(self, task_id: str, user_id: str) -> bool:
        """Delete a task, detaching (not deleting) its children and time blocks."""
        now = to_storage(utc_now())
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id),
            )
            if cursor.rowcount == 0:
                return False
            conn.execute(
                "UPDATE tasks SET parent_task_id = NULL, updated_at = ? WHERE parent_task_id = ?",
                (now, task_id),
            )
            conn.execute(
                "UPDATE time_blocks SET task_id = NULL, updated_at = ? WHERE task_id = ?",
                (now, task_id),
            )
        logger.info("Task %s deleted", task_id)
        return True

    def delete_for_user(self, user_id: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE user_id = ?", (user_id,))
        return cursor.rowcount


class TimeBlockDB(_SQLiteStore):
    """Time blocks. Writes that move a block re-check overlaps in the same transaction."""

    _UPDATABLE = frozenset({
        "title", "start", "end", "actual_end", "category", "notes",
        "notification", "task_id",
    })
    _COLUMNS = {"start": "start_at", "end": "end_at", "actual_end": "actual_end_at"}

    @staticmethod
    def _row_to_block(row: sqlite3.Row) -> TimeBlock:
        notification = json.loads(row["notification"]) if row["notification"] else None
        return TimeBlock(
            id=row["id"],
            user_id=row["user_id"],
            task_id=row["task_id"],
            title=row["title"],
            start=from_storage(row["start_at"]),
            end=from_storage(row["end_at"]),
            actual_end=from_storage(row["actual_end_at"]),
            category=row["category"],
            notes=row["notes"],
            notification=NotificationSettings.from_dict(notification) if notification else None,
            created_at=from_storage(row["created_at"]),
            updated_at=from_storage(row["updated_at"]),
        )

    @staticmethod
    def _to_column(name: str, value):
        if value is None:
            return None
        if name in ("start", "end", "actual_end"):
            return to_storage(value)
        if name == "notification":
            return _dump_json(value.to_dict())
        return value

    @staticmethod
    def _overlapping_ids(
        conn: sqlite3.Connection,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[str]:
        # Half-open [start, end): blocks that merely touch do not overlap
        query = "SELECT id FROM time_blocks WHERE user_id = ? AND start_at < ? AND end_at > ?"
        params: list = [user_id, to_storage(end), to_storage(start)]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        return [row["id"] for row in conn.execute(query, params).fetchall()]

    def add_time_block(
        self,
        user_id: str,
        title: str,
        start: datetime,
        end: datetime,
        task_id: str | None = None,
        category: str | None = None,
        notes: str | None = None,
        notification: NotificationSettings | None = None,
        actual_end: datetime | None = None,
    ) -> TimeBlock:
        """Insert a block. Raises OverlapError if it overlaps another of the user's blocks."""
        block = TimeBlock(
            id=_new_id(),
            user_id=user_id,
            task_id=task_id,
            title=title,
            start=start,
            end=end,
            actual_end=actual_end,
            category=category,
            notes=notes,
            notification=notification,
            created_at=utc_now(),
        )
        block.updated_at = block.created_at
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            conflicting = self._overlapping_ids(conn, user_id, start, end)
            if conflicting:
                raise OverlapError(conflicting_ids=conflicting)
            conn.execute(
                """
                INSERT INTO time_blocks
                    (id, user_id, task_id, title, start_at, end_at, actual_end_at,
                     category, notes, notification, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    block.id, user_id, task_id, title, to_storage(start), to_storage(end),
                    self._to_column("actual_end", actual_end), category, notes,
                    self._to_column("notification", notification),
                    to_storage(block.created_at), to_storage(block.updated_at),
                ),
            )
        logger.info("Time block added: %s '%s' %s-%s", block.id, title, start, end)
        return block

    def get_time_block(self, block_id: str, user_id: str | None = None) -> TimeBlock | None:
        query = "SELECT * FROM time_blocks WHERE id = ?"
        params: list = [block_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_block(row)

    def update_time_block(self, block_id: str, changes: dict) -> TimeBlock | None:
        """Apply a partial update. Keys are TimeBlock field names.

        When start or end change, the new interval is checked for overlaps
        (excluding this block) before the write, in one transaction.
        """
        unknown = set(changes) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update time block fields: {sorted(unknown)}")
        if not changes:
            return self.get_time_block(block_id)

        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM time_blocks WHERE id = ?", (block_id,),
            ).fetchone()
            if row is None:
                return None
            current = self._row_to_block(row)
            if "start" in changes or "end" in changes:
                start = changes.get("start", current.start)
                end = changes.get("end", current.end)
                conflicting = self._overlapping_ids(
                    conn, current.user_id, start, end, exclude_id=block_id,
                )
                if conflicting:
                    raise OverlapError(conflicting_ids=conflicting)

            assignments = ", ".join(f"{self._COLUMNS.get(n, n)} = ?" for n in changes)
            params = [self._to_column(n, v) for n, v in changes.items()]
            params += [to_storage(utc_now()), block_id]
            conn.execute(
                f"UPDATE time_blocks SET {assignments}, updated_at = ? WHERE id = ?",
                params,
            )
        logger.info("Time block %s updated: %s", block_id, ", ".join(sorted(changes)))
        return self.get_time_block(block_id)

    def delete_time_block(self, block_id: str, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM time_blocks WHERE id = ? AND user_id = ?", (block_id, user_id),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Time block %s deleted", block_id)
        return deleted

    def find_overlapping(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> list[TimeBlock]:
        """Blocks of user_id whose [start, end) intersects the given interval."""
        query = (
            "SELECT * FROM time_blocks WHERE user_id = ? AND start_at < ? AND end_at > ?"
        )
        params: list = [user_id, to_storage(end), to_storage(start)]
        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)
        query += " ORDER BY start_at"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_block(r) for r in rows]

    def count_overlapping(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: str | None = None,
    ) -> int:
        with self._connect() as conn:
            return len(self._overlapping_ids(conn, user_id, start, end, exclude_id))

    def list_in_window(
        self, user_id: str, window_start: datetime, window_end: datetime,
    ) -> list[TimeBlock]:
        """Blocks that start in, end in, or span the window, ordered by start."""
        return self.find_overlapping(user_id, window_start, window_end)

    def list_for_user(self, user_id: str, linked_only: bool = False) -> list[TimeBlock]:
        query = "SELECT * FROM time_blocks WHERE user_id = ?"
        if linked_only:
            query += " AND task_id IS NOT NULL"
        query += " ORDER BY start_at"
        with self._connect() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()
        return [self._row_to_block(r) for r in rows]

    def list_for_task(self, task_id: str) -> list[TimeBlock]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM time_blocks WHERE task_id = ? ORDER BY start_at", (task_id,),
            ).fetchall()
        return [self._row_to_block(r) for r in rows]

    def delete_for_user(self, user_id: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM time_blocks WHERE user_id = ?", (user_id,))
        return cursor.rowcount


@dataclass
class Stores:
    """The three entity stores over one database file."""

    users: UserDB
    tasks: TaskDB
    blocks: TimeBlockDB


def open_stores(db_path: str | None = None) -> Stores:
    return Stores(users=UserDB(db_path), tasks=TaskDB(db_path), blocks=TimeBlockDB(db_path))
