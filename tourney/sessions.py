"""In-process login sessions keyed by an opaque cookie token."""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from tourney.roles import Role

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "tourney_session")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "0").lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class SessionContext:
    """Identity snapshot handed to request handlers."""

    token: str
    user_id: int
    username: str
    role: Role
    expires_at: float


class SessionStore:
    """Token -> identity map with a fixed time-to-live per session."""

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._sessions: Dict[str, SessionContext] = {}

    async def create(self, *, user_id: int, username: str, role: Role) -> SessionContext:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        context = SessionContext(
            token=token,
            user_id=user_id,
            username=username,
            role=Role(role),
            expires_at=now + self.ttl,
        )
        async with self._lock:
            # Abandoned cookies are never looked up again; sweep them here.
            self._drop_expired(now)
            self._sessions[token] = context
        return context

    def _drop_expired(self, now: float) -> int:
        expired = [t for t, c in self._sessions.items() if c.expires_at <= now]
        for token in expired:
            del self._sessions[token]
        return len(expired)

    async def get(self, token: Optional[str]) -> Optional[SessionContext]:
        if not token:
            return None
        async with self._lock:
            context = self._sessions.get(token)
            if context is None:
                return None
            if context.expires_at <= self._clock():
                del self._sessions[token]
                return None
            return context

    async def destroy(self, token: Optional[str]) -> bool:
        if not token:
            return False
        async with self._lock:
            return self._sessions.pop(token, None) is not None

    async def update_role(self, user_id: int, role: Role) -> int:
        """Refresh the role snapshot of every live session of ``user_id``."""
        updated = 0
        async with self._lock:
            for token, context in list(self._sessions.items()):
                if context.user_id == user_id:
                    self._sessions[token] = replace(context, role=Role(role))
                    updated += 1
        return updated

    async def revoke_user(self, user_id: int) -> int:
        async with self._lock:
            tokens = [t for t, c in self._sessions.items() if c.user_id == user_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    async def purge_expired(self) -> int:
        async with self._lock:
            return self._drop_expired(self._clock())

    def __len__(self) -> int:
        return len(self._sessions)


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Return the process-wide session store, built from env on first use."""

    global _session_store
    if _session_store is not None:
        return _session_store

    try:
        ttl = float(os.getenv("SESSION_TTL_SECONDS", "86400"))
    except ValueError:
        ttl = 86400.0
    if ttl <= 0:
        logger.warning("SESSION_TTL_SECONDS must be positive; using one day")
        ttl = 86400.0

    _session_store = SessionStore(ttl_seconds=ttl)
    return _session_store


class SessionMiddleware(BaseHTTPMiddleware):
    """Resolve the session cookie into ``request.state.session`` before routing."""

    async def dispatch(self, request: Request, call_next):
        token = request.cookies.get(SESSION_COOKIE_NAME)
        request.state.session = await get_session_store().get(token)
        return await call_next(request)


def set_session_cookie(response, context: SessionContext, ttl_seconds: float) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        context.token,
        max_age=int(ttl_seconds),
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


__all__ = [
    "SESSION_COOKIE_NAME",
    "SessionContext",
    "SessionStore",
    "SessionMiddleware",
    "get_session_store",
    "set_session_cookie",
    "clear_session_cookie",
]
