"""FastAPI dependency providers.

Everything is read from app.state, set up by create_app(); no
module-level singletons.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from timeblocker.config import Settings
from timeblocker.core.auth import authenticate_token
from timeblocker.core.notifications import NotificationService
from timeblocker.data.db import Stores
from timeblocker.data.models import User

_bearer = HTTPBearer(auto_error=False)


def get_stores(request: Request) -> Stores:
    return request.app.state.stores


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notifications(request: Request) -> NotificationService:
    return request.app.state.notifications


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    stores: Stores = Depends(get_stores),
) -> User:
    """Resolve the bearer token; AuthError (401) when missing or invalid."""
    token = credentials.credentials if credentials is not None else None
    return authenticate_token(stores.users, token)
