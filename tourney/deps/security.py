# tourney/deps/security.py
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request

from tourney.roles import PERMISSIONS, authorize
from tourney.sessions import SessionContext

logger = logging.getLogger(__name__)


def get_session(request: Request) -> Optional[SessionContext]:
    """Session resolved by ``SessionMiddleware``; None when logged out."""
    return getattr(request.state, "session", None)


def require_permission(operation: str):
    """Build a dependency that runs the authorization gate for ``operation``.

    The gate runs before the route body, so a denied request performs no work.
    """
    allowed = PERMISSIONS[operation]

    def _gate(session: Optional[SessionContext] = Depends(get_session)) -> SessionContext:
        decision = authorize(session, allowed)
        if not decision.allowed:
            if session is not None:
                logger.warning(
                    "Denied %s for user %s with role %s",
                    operation,
                    session.user_id,
                    session.role.value,
                )
            raise HTTPException(status_code=decision.status_code, detail=decision.reason)
        return session

    _gate.__name__ = f"require_{operation}"
    return _gate
