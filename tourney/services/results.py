"""Match scheduling and result posting."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import null, select, update
from sqlalchemy.orm import aliased
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import atomic
from tourney.errors import NotFound, ValidationError
from tourney.models.match import Match, Schedule
from tourney.models.team import Team
from tourney.models.tournament import Tournament

logger = logging.getLogger(__name__)


def winner_column(score_team1: int, score_team2: int):
    """Column of the winning side, or SQL NULL for a tie.

    The winner is read from the match row itself, so a result can only
    ever name one of the two teams that played.
    """
    if score_team1 > score_team2:
        return Match.team1_id
    if score_team2 > score_team1:
        return Match.team2_id
    return null()


async def post_result(db: AsyncSession, *, match_id: int, score_team1: int, score_team2: int) -> Optional[int]:
    """Store both scores and the derived winner; returns the winner's team id."""
    for score in (score_team1, score_team2):
        if isinstance(score, bool) or not isinstance(score, int) or score < 0:
            raise ValidationError("Scores must be non-negative integers.")

    stmt = (
        update(Match)
        .where(Match.id == match_id)
        .values(
            score_team1=score_team1,
            score_team2=score_team2,
            winner_id=winner_column(score_team1, score_team2),
        )
        .execution_options(synchronize_session=False)
    )
    if await db.scalar(select(Match.id).where(Match.id == match_id)) is None:
        raise NotFound("Match not found")

    async with atomic(db):
        await db.execute(stmt)

    winner_id = await db.scalar(select(Match.winner_id).where(Match.id == match_id))
    logger.info("Result %s-%s posted for match %s (winner=%s)", score_team1, score_team2, match_id, winner_id)
    return winner_id


async def schedule_match(
    db: AsyncSession,
    *,
    tournament_id: int,
    match_date: datetime,
    team1_id: int,
    team2_id: int,
) -> Schedule:
    """Create a match between two teams and its schedule entry together."""
    if team1_id == team2_id:
        raise ValidationError("A team cannot play itself")
    if await db.get(Tournament, tournament_id) is None:
        raise NotFound("Tournament not found")
    for team_id in (team1_id, team2_id):
        if await db.get(Team, team_id) is None:
            raise NotFound("Team not found")

    async with atomic(db):
        match = Match(tournament_id=tournament_id, team1_id=team1_id, team2_id=team2_id)
        db.add(match)
        await db.flush()
        entry = Schedule(tournament_id=tournament_id, match_id=match.id, scheduled_date=match_date)
        db.add(entry)

    return entry


def _match_columns(team1, team2):
    return (
        Schedule.id.label("schedule_id"),
        Match.id.label("match_id"),
        Match.tournament_id.label("tournament_id"),
        Match.team1_id.label("team1_id"),
        Match.team2_id.label("team2_id"),
        team1.name.label("team1_name"),
        team2.name.label("team2_name"),
        Match.score_team1.label("score_team1"),
        Match.score_team2.label("score_team2"),
        Match.winner_id.label("winner_id"),
        Schedule.scheduled_date.label("scheduled_date"),
    )


async def list_schedules(db: AsyncSession, *, limit: int = 6, offset: int = 0) -> List[dict]:
    team1, team2 = aliased(Team), aliased(Team)
    stmt = (
        select(*_match_columns(team1, team2))
        .select_from(Schedule)
        .join(Match, Schedule.match_id == Match.id)
        .join(team1, Match.team1_id == team1.id)
        .join(team2, Match.team2_id == team2.id)
        .order_by(Schedule.scheduled_date.asc(), Schedule.id.asc())
        .limit(limit)
        .offset(offset)
    )
    return [dict(row._mapping) for row in (await db.execute(stmt)).all()]


async def list_matches(db: AsyncSession, tournament_id: Optional[int] = None) -> List[dict]:
    team1, team2 = aliased(Team), aliased(Team)
    stmt = (
        select(*_match_columns(team1, team2))
        .select_from(Match)
        .join(team1, Match.team1_id == team1.id)
        .join(team2, Match.team2_id == team2.id)
        .outerjoin(Schedule, Schedule.match_id == Match.id)
        .order_by(Match.id.asc())
    )
    if tournament_id is not None:
        stmt = stmt.where(Match.tournament_id == tournament_id)
    rows = []
    for row in (await db.execute(stmt)).all():
        data = dict(row._mapping)
        data["match_date"] = data.pop("scheduled_date")
        data.pop("schedule_id")
        rows.append(data)
    return rows


__all__ = ["winner_column", "post_result", "schedule_match", "list_schedules", "list_matches"]
