"""Roles, the permission table and the authorization predicate."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Optional

if TYPE_CHECKING:
    from tourney.sessions import SessionContext


class Role(str, enum.Enum):
    # Declaration order is privilege order.
    user = "User"
    player = "Player"
    college_rep = "CollegeRep"
    moderator = "Moderator"
    admin = "Admin"
    super_admin = "SuperAdmin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """Return the matching role for ``value`` or None when it is not a role name."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_RANKS: Dict[Role, int] = {role: index for index, role in enumerate(Role)}

ALL_ROLES: FrozenSet[Role] = frozenset(Role)
ADMINS: FrozenSet[Role] = frozenset({Role.super_admin, Role.admin})
TEAM_MANAGERS: FrozenSet[Role] = ADMINS | {Role.college_rep}

# operation -> roles allowed to run it
PERMISSIONS: Dict[str, FrozenSet[Role]] = {
    "list_colleges_admin": ADMINS,
    "add_college": ADMINS,
    "edit_college": ADMINS,
    "delete_college": ADMINS,
    "add_team": TEAM_MANAGERS,
    "edit_team": TEAM_MANAGERS,
    "add_player": TEAM_MANAGERS,
    "delete_team": ADMINS,
    "leave_team": frozenset({Role.player}),
    "add_tournament": ADMINS,
    "signup_tournament": ALL_ROLES,
    "cancel_signup": ALL_ROLES,
    "add_schedule": ADMINS,
    "post_results": ADMINS,
    "generate_report": ADMINS,
    "list_roles": ADMINS,
    "list_users": ADMINS,
    "add_user": ADMINS,
    "edit_user": ADMINS,
    "delete_user": ADMINS,
    "user_info": ALL_ROLES,
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    status_code: int = 200
    reason: Optional[str] = None


ALLOW = AccessDecision(allowed=True)


def authorize(session: Optional["SessionContext"], allowed_roles: Iterable[Role]) -> AccessDecision:
    """Decide whether the session may run an operation limited to ``allowed_roles``.

    Pure predicate: no session means 401, a role outside the set means 403.
    """
    if session is None:
        return AccessDecision(False, 401, "Please log in first.")
    if session.role not in frozenset(allowed_roles):
        return AccessDecision(False, 403, "You do not have permission to perform this action.")
    return ALLOW


def authorize_operation(session: Optional["SessionContext"], operation: str) -> AccessDecision:
    return authorize(session, PERMISSIONS[operation])


def assignable_roles(actor_role: Role) -> List[Role]:
    """Roles ``actor_role`` may hand out, lowest privilege first."""
    if actor_role is Role.super_admin:
        return [role for role in Role if role is not Role.super_admin]
    if actor_role is Role.admin:
        return [role for role in Role if role not in ADMINS]
    return []


__all__ = [
    "Role",
    "ALL_ROLES",
    "ADMINS",
    "TEAM_MANAGERS",
    "PERMISSIONS",
    "AccessDecision",
    "authorize",
    "authorize_operation",
    "assignable_roles",
]
