"""
TimeBlocker — Optimistic client store.

Mutations are applied locally first and reconciled with the server's
answer. Each entity carries a sync state:

    Pending  a create/update/delete is in flight
    Synced   the local copy matches the last server response
    Failed   the last mutation was rejected; the local copy was rolled back

A failed create removes only the temporary entry; a failed update or
delete restores the previous snapshot. Other entities are never touched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Callable, Union

if TYPE_CHECKING:
    from timeblocker.client.api import TimeBlockerClient

logger = logging.getLogger(__name__)

TEMP_PREFIX = "temp-"


@dataclass(frozen=True)
class Pending:
    id: str


@dataclass(frozen=True)
class Synced:
    id: str


@dataclass(frozen=True)
class Failed:
    id: str
    error: Exception


SyncState = Union[Pending, Synced, Failed]


class MutationPendingError(Exception):
    """A mutation was attempted on an entity whose previous one is in flight."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"A change to {entity_id} is still being saved")
        self.entity_id = entity_id


def is_temp_id(entity_id: str) -> bool:
    return entity_id.startswith(TEMP_PREFIX)


class OptimisticStore:
    """Ordered collection of entity dicts keyed by "id"."""

    def __init__(self, on_error: Callable[[Exception], None] | None = None) -> None:
        self._items: dict[str, dict] = {}
        self._states: dict[str, SyncState] = {}
        self._on_error = on_error

    # -- hooks for subclasses ----------------------------------------------

    async def _create_remote(self, data: dict) -> dict:
        raise NotImplementedError

    async def _update_remote(self, entity_id: str, patch: dict) -> dict:
        raise NotImplementedError

    async def _delete_remote(self, entity_id: str) -> None:
        raise NotImplementedError

    # -- reads ---------------------------------------------------------------

    @property
    def items(self) -> list[dict]:
        return list(self._items.values())

    def get(self, entity_id: str) -> dict | None:
        return self._items.get(entity_id)

    def state(self, entity_id: str) -> SyncState | None:
        return self._states.get(entity_id)

    def is_pending(self, entity_id: str) -> bool:
        return isinstance(self._states.get(entity_id), Pending)

    # -- internals -------------------------------------------------------------

    def _report(self, exc: Exception) -> None:
        logger.warning("Store mutation failed: %s", exc)
        if self._on_error is not None:
            self._on_error(exc)

    def _check_mutable(self, entity_id: str) -> dict:
        """Return the current entry, or report and raise why it cannot change."""
        exc: Exception | None = None
        if self.is_pending(entity_id) or is_temp_id(entity_id):
            exc = MutationPendingError(entity_id)
        elif entity_id not in self._items:
            exc = KeyError(entity_id)
        if exc is not None:
            self._report(exc)
            raise exc
        return self._items[entity_id]

    def _replace(self, old_id: str, item: dict) -> None:
        """Swap the entry under old_id for item, keeping its position."""
        if old_id not in self._items:
            self._items[item["id"]] = item
            return
        self._items = {
            (item["id"] if key == old_id else key): (item if key == old_id else value)
            for key, value in self._items.items()
        }

    def _insert_at(self, position: int, item: dict) -> None:
        entries = list(self._items.items())
        entries.insert(position, (item["id"], item))
        self._items = dict(entries)

    def replace_all(self, items: list[dict]) -> None:
        """Replace the collection with a server snapshot; in-flight entries survive.

        An entity with a mutation in flight keeps its local copy, and one
        being deleted stays absent even if the snapshot still lists it.
        """
        in_flight = {
            key for key, state in self._states.items() if isinstance(state, Pending)
        }
        merged: dict[str, dict] = {}
        for item in items:
            key = item["id"]
            if key not in in_flight:
                merged[key] = item
            elif key in self._items:
                merged[key] = self._items[key]
        for key in in_flight:
            if key in self._items:
                merged.setdefault(key, self._items[key])
        self._items = merged
        self._states = {key: Synced(key) for key in merged}
        for key in in_flight:
            self._states[key] = Pending(key)

    # -- mutations ---------------------------------------------------------------

    async def create(self, data: dict) -> dict:
        temp_id = f"{TEMP_PREFIX}{uuid.uuid4()}"
        self._items[temp_id] = {**data, "id": temp_id}
        self._states[temp_id] = Pending(temp_id)
        try:
            created = await self._create_remote(data)
        except Exception as exc:
            self._items.pop(temp_id, None)
            self._states.pop(temp_id, None)
            self._report(exc)
            raise
        self._replace(temp_id, created)
        self._states.pop(temp_id, None)
        self._states[created["id"]] = Synced(created["id"])
        return created

    async def update(self, entity_id: str, patch: dict) -> dict:
        previous = self._check_mutable(entity_id)
        self._items[entity_id] = {**previous, **patch}
        self._states[entity_id] = Pending(entity_id)
        try:
            updated = await self._update_remote(entity_id, patch)
        except Exception as exc:
            self._items[entity_id] = previous
            self._states[entity_id] = Failed(entity_id, exc)
            self._report(exc)
            raise
        self._items[entity_id] = updated
        self._states[entity_id] = Synced(entity_id)
        return updated

    async def delete(self, entity_id: str) -> None:
        self._check_mutable(entity_id)
        position = list(self._items).index(entity_id)
        previous = self._items.pop(entity_id)
        self._states[entity_id] = Pending(entity_id)
        try:
            await self._delete_remote(entity_id)
        except Exception as exc:
            self._insert_at(position, previous)
            self._states[entity_id] = Failed(entity_id, exc)
            self._report(exc)
            raise
        self._states.pop(entity_id, None)


class TaskStore(OptimisticStore):
    def __init__(
        self, client: TimeBlockerClient, on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        super().__init__(on_error)
        self._client = client

    async def refresh(
        self, status: str | None = None, priority: str | None = None, parent_id: str | None = None,
    ) -> list[dict]:
        try:
            tasks = await self._client.list_tasks(
                status=status, priority=priority, parent_id=parent_id,
            )
        except Exception as exc:
            self._report(exc)
            raise
        self.replace_all(tasks)
        return tasks

    async def _create_remote(self, data: dict) -> dict:
        return await self._client.create_task(data)

    async def _update_remote(self, entity_id: str, patch: dict) -> dict:
        return await self._client.update_task(entity_id, patch)

    async def _delete_remote(self, entity_id: str) -> None:
        await self._client.delete_task(entity_id)


class TimeBlockStore(OptimisticStore):
    def __init__(
        self, client: TimeBlockerClient, on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        super().__init__(on_error)
        self._client = client
        self.day: date | str | None = None

    async def load_day(self, day: date | str) -> list[dict]:
        try:
            blocks = await self._client.get_day_view(day)
        except Exception as exc:
            self._report(exc)
            raise
        self.day = day
        self.replace_all(blocks)
        return blocks

    async def _create_remote(self, data: dict) -> dict:
        return await self._client.create_time_block(data)

    async def _update_remote(self, entity_id: str, patch: dict) -> dict:
        return await self._client.update_time_block(entity_id, patch)

    async def _delete_remote(self, entity_id: str) -> None:
        await self._client.delete_time_block(entity_id)
