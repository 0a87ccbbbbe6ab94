"""Tournament sign-up and cancellation."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import atomic
from tourney.errors import Forbidden, NotFound, ValidationError
from tourney.models.tournament import Registration, Tournament
from tourney.models.user import User

logger = logging.getLogger(__name__)


async def signup(
    db: AsyncSession,
    *,
    user_id: int,
    tournament_id: int,
    team_id: Optional[int] = None,
) -> Registration:
    """Register the caller, as themselves or as their team.

    Team members must register as their team. Duplicate sign-ups and
    tournament capacity are not checked.
    """
    if await db.get(Tournament, tournament_id) is None:
        raise NotFound("Tournament not found")

    caller_team = await db.scalar(select(User.team_id).where(User.id == user_id))
    if caller_team is not None and team_id is None:
        raise ValidationError("You are in a team and must sign up as a team.")
    if team_id is not None and team_id != caller_team:
        raise Forbidden("You can only sign up as your own team.")

    registration = Registration(user_id=user_id, tournament_id=tournament_id, team_id=team_id)
    async with atomic(db):
        db.add(registration)

    logger.info("User %s signed up for tournament %s (team=%s)", user_id, tournament_id, team_id)
    return registration


def _cancellable_by(user_id: int, tournament_id: int):
    # Own registrations, plus any registration made on behalf of the caller's team.
    caller_team = select(User.team_id).where(User.id == user_id).scalar_subquery()
    return and_(
        Registration.tournament_id == tournament_id,
        or_(
            Registration.user_id == user_id,
            and_(Registration.team_id.is_not(None), Registration.team_id == caller_team),
        ),
    )


async def cancel(db: AsyncSession, *, user_id: int, tournament_id: int) -> int:
    """Delete the registrations the caller may cancel and return how many were removed."""
    criteria = _cancellable_by(user_id, tournament_id)
    ids = list((await db.execute(select(Registration.id).where(criteria))).scalars().all())
    if not ids:
        raise Forbidden("Sorry, you do not have permission to cancel this registration.")

    async with atomic(db):
        await db.execute(delete(Registration).where(Registration.id.in_(ids)))

    logger.info("User %s cancelled %s registration(s) for tournament %s", user_id, len(ids), tournament_id)
    return len(ids)


__all__ = ["signup", "cancel"]
