"""Team membership and leadership.

Invariants kept here:

* a user belongs to at most one team (``players.user_id`` is unique and
  ``users.team_id`` mirrors it);
* a team has at most one ``Leader`` membership, and a leader is always a
  current member because leadership lives on the membership row.

Every composite operation runs inside a single ``atomic`` block, and all
validation happens before the first write.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import atomic
from tourney.errors import Conflict, NotFound, ValidationError
from tourney.models.match import Match
from tourney.models.team import Player, Team, TeamRole
from tourney.models.tournament import Registration
from tourney.models.university import University
from tourney.models.user import User
from tourney.roles import Role

logger = logging.getLogger(__name__)

# Team-scoped global role; anything above it is kept when a user leaves a team.
_RESET_ROLE = case(
    (User.role == Role.player.value, Role.user.value),
    else_=User.role,
)


async def get_team(db: AsyncSession, team_id: int) -> Team:
    team = await db.get(Team, team_id)
    if team is None:
        raise NotFound("Team not found")
    return team


async def _ensure_university(db: AsyncSession, university_id: int) -> None:
    if await db.get(University, university_id) is None:
        raise NotFound("College not found")


async def _membership(db: AsyncSession, team_id: int, user_id: int) -> Optional[Player]:
    return await db.scalar(
        select(Player).where(Player.team_id == team_id, Player.user_id == user_id)
    )


async def leaders_of(db: AsyncSession, team_id: int) -> List[int]:
    rows = await db.execute(
        select(Player.user_id).where(Player.team_id == team_id, Player.role == TeamRole.leader.value)
    )
    return list(rows.scalars().all())


async def create_team(db: AsyncSession, *, name: str, university_id: int) -> Team:
    await _ensure_university(db, university_id)
    team = Team(name=name, university_id=university_id)
    db.add(team)
    await db.commit()
    await db.refresh(team)
    return team


async def add_member(db: AsyncSession, *, team_id: int, user_id: int) -> Player:
    """Put a user on a team as a plain member."""
    team = await get_team(db, team_id)
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    existing = await db.scalar(select(Player.id).where(Player.user_id == user_id))
    if existing is not None or user.team_id is not None:
        raise Conflict("User is already on a team.")

    async with atomic(db):
        player = Player(user_id=user_id, team_id=team.id, role=TeamRole.member.value)
        db.add(player)
        user.team_id = team.id
        if user.role == Role.user.value:
            user.role = Role.player.value

    logger.info("User %s joined team %s", user_id, team.id)
    return player


async def edit_team(
    db: AsyncSession,
    team_id: int,
    *,
    name: Optional[str] = None,
    university_id: Optional[int] = None,
    new_leader_id: Optional[int] = None,
    member_to_delete_id: Optional[int] = None,
) -> Team:
    """Rename, re-parent, hand over leadership and/or drop a member in one transaction."""
    team = await get_team(db, team_id)

    if new_leader_id is not None and new_leader_id == member_to_delete_id:
        raise ValidationError("The new leader cannot also be removed from the team.")
    if university_id is not None:
        await _ensure_university(db, university_id)
    if new_leader_id is not None and await _membership(db, team.id, new_leader_id) is None:
        raise ValidationError("New leader must be a current member of this team.")
    if member_to_delete_id is not None and await _membership(db, team.id, member_to_delete_id) is None:
        raise ValidationError("Member to remove is not on this team.")

    async with atomic(db):
        if name is not None:
            team.name = name
        if university_id is not None:
            team.university_id = university_id

        if new_leader_id is not None:
            # Demote first so the leader index never sees two leaders.
            await db.execute(
                update(Player)
                .where(Player.team_id == team.id)
                .values(role=TeamRole.member.value)
            )
            await db.execute(
                update(Player)
                .where(Player.team_id == team.id, Player.user_id == new_leader_id)
                .values(role=TeamRole.leader.value)
            )

        if member_to_delete_id is not None:
            await db.execute(
                delete(Player).where(Player.team_id == team.id, Player.user_id == member_to_delete_id)
            )
            await db.execute(
                update(User)
                .where(User.id == member_to_delete_id)
                .values(team_id=None, role=_RESET_ROLE)
            )

    logger.info(
        "Team %s edited (leader=%s, removed=%s)", team_id, new_leader_id, member_to_delete_id
    )
    return team


async def leave_team(db: AsyncSession, user_id: int) -> int:
    """Drop the caller's membership and return the team they left."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    membership = await db.scalar(select(Player).where(Player.user_id == user_id))
    team_id = membership.team_id if membership is not None else user.team_id
    if team_id is None:
        raise ValidationError("You are not currently in a team.")
    was_leader = membership is not None and membership.role == TeamRole.leader.value

    async with atomic(db):
        if membership is not None:
            await db.delete(membership)
        user.team_id = None
        user.role = Role.user.value

    if was_leader:
        logger.info("Leader %s left team %s; the team has no leader now", user_id, team_id)
    return team_id


async def delete_team(db: AsyncSession, team_id: int, *, detach_members: bool = False) -> List[int]:
    """Delete a team, returning the ids of the members that were detached.

    Members are never detached implicitly: a team with members is refused
    unless ``detach_members`` is set.
    """
    team = await get_team(db, team_id)

    member_ids = set(
        (await db.execute(select(Player.user_id).where(Player.team_id == team.id))).scalars().all()
    )
    member_ids.update(
        (await db.execute(select(User.id).where(User.team_id == team.id))).scalars().all()
    )
    if member_ids and not detach_members:
        raise Conflict(
            "Team still has members. Remove them first or set detachMembers=true."
        )

    matches = await db.scalar(
        select(func.count(Match.id)).where(or_(Match.team1_id == team.id, Match.team2_id == team.id))
    )
    if matches:
        raise Conflict("Team has scheduled or played matches and cannot be deleted.")

    async with atomic(db):
        if member_ids:
            await db.execute(delete(Player).where(Player.team_id == team.id))
            await db.execute(
                update(User)
                .where(User.id.in_(sorted(member_ids)))
                .values(team_id=None, role=_RESET_ROLE)
            )
        # Team sign-ups fall back to the registering user.
        await db.execute(
            update(Registration).where(Registration.team_id == team.id).values(team_id=None)
        )
        await db.execute(delete(Team).where(Team.id == team.id))

    logger.info("Team %s deleted, %s member(s) detached", team_id, len(member_ids))
    return sorted(member_ids)


__all__ = [
    "get_team",
    "leaders_of",
    "create_team",
    "add_member",
    "edit_team",
    "leave_team",
    "delete_team",
]
