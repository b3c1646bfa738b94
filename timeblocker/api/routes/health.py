"""Liveness endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from timeblocker.core.instants import to_iso, utc_now

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": to_iso(utc_now())}
