"""Registration, login, demo login and push subscription endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from timeblocker.api.dependencies import (
    get_current_user,
    get_notifications,
    get_settings,
    get_stores,
)
from timeblocker.api.schemas import (
    LoginRequest,
    PushSubscriptionRequest,
    RegisterRequest,
    user_to_dict,
)
from timeblocker.config import Settings
from timeblocker.core import auth
from timeblocker.core.demo import ensure_demo_user
from timeblocker.core.errors import NotFoundError
from timeblocker.core.notifications import NotificationService
from timeblocker.data.db import Stores
from timeblocker.data.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    stores: Stores = Depends(get_stores),
    settings: Settings = Depends(get_settings),
) -> dict:
    user = stores.users.add_user(
        body.email,
        auth.hash_password(body.password),
        name=body.name,
        timezone=body.timezone,
        daily_planning_time=body.daily_planning_time,
    )
    token = auth.issue_token(stores.users, user.id, settings.SESSION_TTL_DAYS)
    return {"user": user_to_dict(user), "token": token}


@router.post("/login")
def login(
    body: LoginRequest,
    stores: Stores = Depends(get_stores),
    settings: Settings = Depends(get_settings),
) -> dict:
    user = auth.login(stores.users, body.email, body.password)
    token = auth.issue_token(stores.users, user.id, settings.SESSION_TTL_DAYS)
    return {"user": user_to_dict(user), "token": token}


@router.post("/push-subscription")
def update_push_subscription(
    body: PushSubscriptionRequest,
    user: User = Depends(get_current_user),
    stores: Stores = Depends(get_stores),
) -> dict:
    if stores.users.upsert_push_subscription(user.id, body.subscription.to_subscription()) is None:
        raise NotFoundError("User not found")
    return {"success": True}


@router.post("/demo")
def demo_login(
    stores: Stores = Depends(get_stores),
    settings: Settings = Depends(get_settings),
    notifications: NotificationService = Depends(get_notifications),
) -> dict:
    if not settings.DEMO_ENABLED:
        raise NotFoundError("Demo account is disabled")
    user = ensure_demo_user(stores, notifications=notifications)
    token = auth.issue_token(stores.users, user.id, settings.SESSION_TTL_DAYS)
    return {"user": user_to_dict(user), "token": token, "isDemo": True}
