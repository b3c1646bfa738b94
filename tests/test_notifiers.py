"""Tests for the push adapters and the notifier factory."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from pywebpush import WebPushException

from timeblocker.adapters.log_notifier import LogNotifier
from timeblocker.adapters.notifier_factory import create_notifier
from timeblocker.adapters.webpush_notifier import WebPushNotifier
from timeblocker.config import Settings
from timeblocker.data.models import PushSubscription
from timeblocker.ports.notification_port import NotificationError, SubscriptionGoneError

SUB = PushSubscription(endpoint="https://push.example/abc", p256dh="key", auth="secret")


class TestCreateNotifier:
    def test_without_keys_logs_only(self):
        assert isinstance(create_notifier(Settings()), LogNotifier)

    def test_private_key_alone_logs_only(self):
        assert isinstance(create_notifier(Settings(VAPID_PRIVATE_KEY="private")), LogNotifier)

    def test_with_keys_uses_webpush(self):
        s = Settings(VAPID_PRIVATE_KEY="private", VAPID_EMAIL="mailto:admin@example.com")
        notifier = create_notifier(s)
        assert isinstance(notifier, WebPushNotifier)


class TestLogNotifier:
    @pytest.mark.asyncio
    async def test_send_logs(self, caplog):
        with caplog.at_level("INFO"):
            await LogNotifier().send(SUB, {"title": "Hello"})
        assert "Hello" in caplog.text


class TestWebPushNotifier:
    @pytest.mark.asyncio
    async def test_send_calls_webpush(self):
        with patch("timeblocker.adapters.webpush_notifier.webpush") as mock_webpush:
            await WebPushNotifier("private", "mailto:a@example.com").send(SUB, {"title": "Hi"})

        kwargs = mock_webpush.call_args.kwargs
        assert kwargs["subscription_info"] == SUB.to_dict()
        assert json.loads(kwargs["data"]) == {"title": "Hi"}
        assert kwargs["vapid_private_key"] == "private"
        assert kwargs["vapid_claims"] == {"sub": "mailto:a@example.com"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 410])
    async def test_gone_subscription(self, status):
        error = WebPushException("gone", response=MagicMock(status_code=status))
        with patch("timeblocker.adapters.webpush_notifier.webpush", side_effect=error):
            with pytest.raises(SubscriptionGoneError):
                await WebPushNotifier("private", "mailto:a@example.com").send(SUB, {})

    @pytest.mark.asyncio
    async def test_other_failure(self):
        error = WebPushException("server error", response=MagicMock(status_code=500))
        with patch("timeblocker.adapters.webpush_notifier.webpush", side_effect=error):
            with pytest.raises(NotificationError) as exc_info:
                await WebPushNotifier("private", "mailto:a@example.com").send(SUB, {})
        assert not isinstance(exc_info.value, SubscriptionGoneError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("name resolution failed"),
        requests.exceptions.Timeout("read timed out"),
        ValueError("Incorrect padding"),
    ])
    async def test_transport_and_key_errors_become_notification_errors(self, error):
        with patch("timeblocker.adapters.webpush_notifier.webpush", side_effect=error):
            with pytest.raises(NotificationError) as exc_info:
                await WebPushNotifier("private", "mailto:a@example.com").send(SUB, {})
        assert exc_info.value.__cause__ is error
        assert not isinstance(exc_info.value, SubscriptionGoneError)
