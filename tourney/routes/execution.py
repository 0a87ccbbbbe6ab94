# tourney/routes/execution.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import get_db
from tourney.deps.security import require_permission
from tourney.schemas import MatchRead, MatchResultIn, ScheduleCreate, ScheduleRead
from tourney.services import reports, results
from tourney.sessions import SessionContext

router = APIRouter(tags=["Matches"])


@router.get("/schedules", response_model=List[ScheduleRead])
async def list_schedules(
    limit: int = Query(6, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    return await results.list_schedules(db, limit=limit, offset=offset)


@router.get("/matches", response_model=List[MatchRead])
async def list_matches(
    tournament_id: Optional[int] = Query(None, alias="tournamentId"),
    db: AsyncSession = Depends(get_db),
):
    return await results.list_matches(db, tournament_id=tournament_id)


@router.post("/add-schedule", status_code=201)
async def add_schedule(
    payload: ScheduleCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("add_schedule")),
):
    entry = await results.schedule_match(
        db,
        tournament_id=payload.tournament_id,
        match_date=payload.match_date,
        team1_id=payload.team1_id,
        team2_id=payload.team2_id,
    )
    return {
        "message": "Match scheduled successfully!",
        "scheduleId": entry.id,
        "matchId": entry.match_id,
    }


@router.post("/post-results")
async def post_results(
    payload: MatchResultIn,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("post_results")),
):
    winner_id = await results.post_result(
        db,
        match_id=payload.match_id,
        score_team1=payload.score_team1,
        score_team2=payload.score_team2,
    )
    return {"message": "Results posted successfully!", "winnerId": winner_id}


@router.get("/generate-report")
async def generate_report(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("generate_report")),
):
    rows = await reports.team_standings(db)
    return Response(
        content=reports.render_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=tournament_report.csv"},
    )
