"""Tests for timeblocker.core.auth — password hashing and token sessions."""

from datetime import timedelta

import pytest

from timeblocker.core import auth
from timeblocker.core.errors import AuthError
from timeblocker.core.instants import utc_now


class TestPasswords:
    def test_hash_and_verify(self):
        encoded = auth.hash_password("secret1", iterations=1000)
        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert auth.verify_password("secret1", encoded) is True
        assert auth.verify_password("wrong", encoded) is False

    def test_salted(self):
        assert auth.hash_password("same", iterations=1000) != auth.hash_password("same", iterations=1000)

    def test_malformed_hash(self):
        assert auth.verify_password("x", "not-a-hash") is False


class TestTokens:
    def test_issue_and_authenticate(self, user_db, user):
        token = auth.issue_token(user_db, user.id, ttl_days=7)
        assert auth.authenticate_token(user_db, token).id == user.id

    def test_only_hash_is_stored(self, user_db, user):
        token = auth.issue_token(user_db, user.id, ttl_days=7)
        assert user_db.get_session(token) is None
        assert user_db.get_session(auth.hash_token(token)) is not None

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_missing_or_unknown_token(self, user_db, token):
        with pytest.raises(AuthError, match="Please authenticate"):
            auth.authenticate_token(user_db, token)

    def test_expired_session_is_deleted(self, user_db, user):
        user_db.create_session(auth.hash_token("old"), user.id, utc_now() - timedelta(seconds=1))
        with pytest.raises(AuthError, match="Session expired"):
            auth.authenticate_token(user_db, "old")
        assert user_db.get_session(auth.hash_token("old")) is None


class TestLogin:
    def test_login_success(self, user_db):
        created = user_db.add_user("a@example.com", auth.hash_password("pw123456", iterations=1000))
        assert auth.login(user_db, "A@example.com", "pw123456").id == created.id

    def test_wrong_password(self, user_db):
        user_db.add_user("a@example.com", auth.hash_password("pw123456", iterations=1000))
        with pytest.raises(AuthError, match="Invalid credentials"):
            auth.login(user_db, "a@example.com", "nope")

    def test_unknown_email(self, user_db):
        with pytest.raises(AuthError, match="Invalid credentials"):
            auth.login(user_db, "ghost@example.com", "pw")
