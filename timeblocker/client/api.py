"""Async HTTP client for the TimeBlocker API.

Payloads and results are plain dicts with the API's camelCase keys.
Timestamps are sent as ISO-8601 strings and returned as aware UTC
datetimes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

import httpx

from timeblocker.core.instants import parse_iso, to_iso

logger = logging.getLogger(__name__)

_INSTANT_KEYS = ("start", "end", "actualEnd", "deadline", "createdAt", "updatedAt", "timestamp")

_DEFAULT_MESSAGES = {
    400: "Invalid request",
    401: "Please log in again",
    403: "You do not have access to this resource",
    404: "Not found",
    500: "Server error, please try again later",
}


class ApiError(Exception):
    """The server answered with an error status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class SessionExpiredError(ApiError):
    """An authenticated call was rejected with 401; the token has been cleared."""


class NetworkError(Exception):
    """The request never got a response (connection failure, timeout)."""


def error_message(status: int, body: object) -> str:
    """Pick the most specific message out of an error response body."""
    if isinstance(body, dict):
        for key in ("error", "message"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("msg"):
                return str(first["msg"])
            if isinstance(first, str):
                return first
    return _DEFAULT_MESSAGES.get(status, f"Request failed with status {status}")


def _encode(value):
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def _decode(value):
    if isinstance(value, list):
        return [_decode(v) for v in value]
    if not isinstance(value, dict):
        return value
    decoded = {}
    for key, item in value.items():
        if key in _INSTANT_KEYS and isinstance(item, str):
            decoded[key] = parse_iso(item)
        else:
            decoded[key] = _decode(item)
    return decoded


class TimeBlockerClient:
    """Thin wrapper over httpx.AsyncClient, one method per endpoint."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.token = token
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> TimeBlockerClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self, method: str, path: str, json: dict | None = None, params: dict | None = None,
    ):
        headers = {}
        sent_token = self.token
        if sent_token:
            headers["Authorization"] = f"Bearer {sent_token}"
        try:
            resp = await self._http.request(
                method, path, json=_encode(json) if json is not None else None,
                params=params, headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(f"Network error: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_error:
            message = error_message(resp.status_code, body)
            if resp.status_code == 401 and sent_token:
                self.token = None
                raise SessionExpiredError(401, message)
            raise ApiError(resp.status_code, message)
        return _decode(body)

    # -- auth ---------------------------------------------------------------

    async def _authenticate(self, path: str, payload: dict | None = None) -> dict:
        result = await self._request("POST", path, json=payload)
        self.token = result["token"]
        return result

    async def register(self, payload: dict) -> dict:
        return await self._authenticate("/api/auth/register", payload)

    async def login(self, email: str, password: str) -> dict:
        return await self._authenticate("/api/auth/login", {"email": email, "password": password})

    async def demo_login(self) -> dict:
        return await self._authenticate("/api/auth/demo")

    async def save_push_subscription(self, subscription: dict) -> dict:
        return await self._request(
            "POST", "/api/auth/push-subscription", json={"subscription": subscription},
        )

    def logout(self) -> None:
        self.token = None

    # -- tasks --------------------------------------------------------------

    async def list_tasks(
        self,
        status: str | None = None,
        priority: str | None = None,
        parent_id: str | None = None,
    ) -> list[dict]:
        """parent_id="" lists root tasks only; None applies no parent filter."""
        params = {}
        if status:
            params["status"] = status
        if priority:
            params["priority"] = priority
        if parent_id is not None:
            params["parentId"] = parent_id
        return await self._request("GET", "/api/tasks", params=params)

    async def create_task(self, payload: dict) -> dict:
        return await self._request("POST", "/api/tasks", json=payload)

    async def update_task(self, task_id: str, patch: dict) -> dict:
        return await self._request("PATCH", f"/api/tasks/{task_id}", json=patch)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    # -- time blocks --------------------------------------------------------

    async def get_day_view(self, day: date | str) -> list[dict]:
        if isinstance(day, date):
            day = day.isoformat()
        return await self._request("GET", "/api/day-view", params={"date": day})

    async def create_time_block(self, payload: dict) -> dict:
        return await self._request("POST", "/api/timeblocks", json=payload)

    async def update_time_block(self, block_id: str, patch: dict) -> dict:
        return await self._request("PATCH", f"/api/timeblocks/{block_id}", json=patch)

    async def delete_time_block(self, block_id: str) -> None:
        await self._request("DELETE", f"/api/timeblocks/{block_id}")

    async def health(self) -> dict:
        return await self._request("GET", "/api/health")
