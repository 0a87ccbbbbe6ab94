# tourney/routes/tournaments.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import get_db
from tourney.deps.security import require_permission
from tourney.models.tournament import Tournament
from tourney.schemas import TournamentCreate, TournamentRead, TournamentSignup
from tourney.services import registration
from tourney.sessions import SessionContext

router = APIRouter(tags=["Tournaments"])


@router.get("/tournaments", response_model=List[TournamentRead])
async def list_tournaments(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Tournament).order_by(Tournament.start_date, Tournament.id))
    return result.scalars().all()


@router.post("/add-tournament", status_code=201)
async def add_tournament(
    payload: TournamentCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("add_tournament")),
):
    tournament = Tournament(
        name=payload.name,
        start_date=payload.start_date,
        location=payload.location,
    )
    db.add(tournament)
    await db.commit()
    await db.refresh(tournament)
    return {"message": "Tournament added successfully!", "tournamentId": tournament.id}


@router.post("/signup-tournament", status_code=201)
async def signup_tournament(
    payload: TournamentSignup,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("signup_tournament")),
):
    await registration.signup(
        db,
        user_id=session.user_id,
        tournament_id=payload.tournament_id,
        team_id=payload.team_id,
    )
    return {"message": "Successfully signed up for the tournament! Good luck!"}


@router.delete("/cancel-tournament-signup/{tournament_id}")
async def cancel_signup(
    tournament_id: int,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("cancel_signup")),
):
    await registration.cancel(db, user_id=session.user_id, tournament_id=tournament_id)
    return {"message": "Tournament registration cancelled."}
