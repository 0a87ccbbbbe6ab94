"""Per-team standings export."""

from __future__ import annotations

import csv
import io
from typing import Iterable, List

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.models.match import Match
from tourney.models.team import Team
from tourney.models.university import University

REPORT_HEADER = ["Team Name", "University Name", "Matches Played", "Wins"]


async def team_standings(db: AsyncSession) -> List[dict]:
    """Matches played and wins per team, most wins first.

    Only matches with a posted result count as played.
    """
    played = and_(
        or_(Match.team1_id == Team.id, Match.team2_id == Team.id),
        Match.score_team1.is_not(None),
        Match.score_team2.is_not(None),
    )
    wins = func.coalesce(func.sum(case((Match.winner_id == Team.id, 1), else_=0)), 0)
    stmt = (
        select(
            Team.name.label("team_name"),
            University.name.label("university_name"),
            func.count(Match.id).label("matches_played"),
            wins.label("wins"),
        )
        .select_from(Team)
        .join(University, Team.university_id == University.id)
        .outerjoin(Match, played)
        .group_by(Team.id, Team.name, University.name)
        .order_by(wins.desc(), Team.name.asc())
    )
    return [dict(row._mapping) for row in (await db.execute(stmt)).all()]


def render_csv(rows: Iterable[dict]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(REPORT_HEADER)
    for row in rows:
        writer.writerow(
            [row["team_name"], row["university_name"], int(row["matches_played"]), int(row["wins"] or 0)]
        )
    return output.getvalue()


__all__ = ["REPORT_HEADER", "team_standings", "render_csv"]
