"""Shared test fixtures and configuration.

Sets up environment variables so timeblocker.config doesn't sys.exit(),
and provides temp-file stores, a seeded user and an API test client.
"""

import os

# Patch env vars BEFORE any timeblocker imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("PORT", "3000")
os.environ.setdefault("SCHEDULER_TIMEZONE", "UTC")
os.environ.setdefault("DEMO_ENABLED", "true")
os.environ["VAPID_PRIVATE_KEY"] = ""
os.environ["VAPID_EMAIL"] = ""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_timeblocker.db")


@pytest.fixture
def stores(tmp_db_path):
    """Return user/task/time block stores sharing one temp file."""
    from timeblocker.data.db import open_stores
    return open_stores(tmp_db_path)


@pytest.fixture
def user_db(stores):
    return stores.users


@pytest.fixture
def task_db(stores):
    return stores.tasks


@pytest.fixture
def block_db(stores):
    return stores.blocks


@pytest.fixture
def user(user_db):
    """A registered user in UTC (password hashing skipped for speed)."""
    return user_db.add_user("amit@example.com", "x", name="Amit", timezone="UTC")


@pytest.fixture
def other_user(user_db):
    return user_db.add_user("dana@example.com", "x", name="Dana", timezone="UTC")


@pytest.fixture
def mock_scheduler():
    """A stand-in for AsyncIOScheduler that records jobs."""
    scheduler = MagicMock()
    scheduler.running = False
    scheduler.get_job.return_value = None
    return scheduler


@pytest.fixture
def mock_notifier():
    notifier = MagicMock()
    notifier.send = AsyncMock()
    return notifier


@pytest.fixture
def notifications(mock_notifier, stores, mock_scheduler):
    from timeblocker.core.notifications import NotificationService
    return NotificationService(mock_notifier, stores.users, stores.blocks, mock_scheduler)


@pytest.fixture
def app_settings(tmp_db_path):
    from timeblocker.config import Settings
    return Settings(DATABASE_PATH=tmp_db_path, DEMO_ENABLED=True)


@pytest.fixture
def app(app_settings, stores, mock_notifier, mock_scheduler):
    from timeblocker.api.app import create_app
    return create_app(
        app_settings, stores=stores, notifier=mock_notifier, scheduler=mock_scheduler,
    )


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    """Register a user through the API and return its bearer header."""
    resp = client.post(
        "/api/auth/register",
        json={"email": "amit@example.com", "password": "secret1", "timezone": "UTC"},
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}
