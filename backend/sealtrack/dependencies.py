"""Request-scoped dependencies shared by the routers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from fastapi import Request

from .config import Settings

Clock = Callable[[], datetime]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """Server wall clock; client-supplied timestamps are never trusted."""

    return utc_now


def client_address(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45] or None
    return request.client.host if request.client else None
