# tourney/routes/teams.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import get_db
from tourney.deps.security import require_permission
from tourney.models.team import Player, Team
from tourney.models.university import University
from tourney.models.user import User
from tourney.schemas import (
    CollegeTeamRow,
    PlayerCreate,
    TeamCreate,
    TeamMemberRead,
    TeamRead,
    TeamUpdate,
)
from tourney.services import accounts, roster
from tourney.sessions import SessionContext

router = APIRouter(tags=["Teams"])


def _team_rows():
    return select(
        Team.id,
        Team.name,
        Team.university_id,
        University.name.label("university_name"),
        Team.created_at,
    ).join(University, Team.university_id == University.id)


# Read ---------------------------------------------------------------

@router.get("/teams", response_model=List[TeamRead])
async def list_teams(db: AsyncSession = Depends(get_db)):
    rows = await db.execute(_team_rows().order_by(Team.id))
    return [dict(row._mapping) for row in rows.all()]


@router.get("/team", response_model=TeamRead)
async def get_team(id: Optional[int] = Query(None), db: AsyncSession = Depends(get_db)):
    if id is None:
        raise HTTPException(status_code=400, detail="Missing team ID")
    row = (await db.execute(_team_rows().where(Team.id == id))).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return dict(row._mapping)


@router.get("/search-teams", response_model=List[TeamRead])
async def search_teams(query: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required.")
    pattern = f"%{query.strip()}%"
    stmt = _team_rows().where(or_(Team.name.ilike(pattern), University.name.ilike(pattern)))
    rows = await db.execute(stmt.order_by(Team.id))
    return [dict(row._mapping) for row in rows.all()]


@router.get("/teams-for-college", response_model=List[CollegeTeamRow])
async def teams_for_college(name: str, db: AsyncSession = Depends(get_db)):
    stmt = (
        select(
            Team.id.label("team_id"),
            Team.name,
            Player.user_id,
            User.username.label("player_name"),
            Player.image_url,
            Player.role,
        )
        .join(University, Team.university_id == University.id)
        .outerjoin(Player, Player.team_id == Team.id)
        .outerjoin(User, Player.user_id == User.id)
        .where(University.name == name)
        # "Member" > "Leader", so descending would list members first.
        .order_by(Team.id, Player.role.asc(), User.username)
    )
    return [dict(row._mapping) for row in (await db.execute(stmt)).all()]


@router.get("/team-members", response_model=List[TeamMemberRead])
async def team_members(
    team_id: Optional[int] = Query(None, alias="teamId"),
    db: AsyncSession = Depends(get_db),
):
    if team_id is None:
        raise HTTPException(status_code=400, detail="Missing team ID")
    stmt = (
        select(User.id.label("user_id"), User.username.label("name"), Player.role)
        .join(Player, Player.user_id == User.id)
        .where(Player.team_id == team_id)
        .order_by(Player.role.asc(), User.username)
    )
    return [dict(row._mapping) for row in (await db.execute(stmt)).all()]


# Write --------------------------------------------------------------

@router.post("/add-team", status_code=201)
async def add_team(
    payload: TeamCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("add_team")),
):
    team = await roster.create_team(db, name=payload.name, university_id=payload.university_id)
    return {"message": "Team added successfully!", "teamId": team.id}


@router.put("/edit-team/{team_id}")
async def edit_team(
    team_id: int,
    payload: TeamUpdate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("edit_team")),
):
    await roster.edit_team(
        db,
        team_id,
        name=payload.name,
        university_id=payload.university_id,
        new_leader_id=payload.new_leader_id,
        member_to_delete_id=payload.member_to_delete_id,
    )
    if payload.member_to_delete_id is not None:
        await accounts.refresh_session_roles(db, [payload.member_to_delete_id])
    return {"message": "Team updated successfully!"}


@router.delete("/delete-team/{team_id}")
async def delete_team(
    team_id: int,
    detach_members: bool = Query(False, alias="detachMembers"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("delete_team")),
):
    detached = await roster.delete_team(db, team_id, detach_members=detach_members)
    await accounts.refresh_session_roles(db, detached)
    return {"message": "Team deleted successfully!", "detachedMembers": len(detached)}


@router.post("/add-player", status_code=201)
async def add_player(
    payload: PlayerCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("add_player")),
):
    await roster.add_member(db, team_id=payload.team_id, user_id=payload.user_id)
    await accounts.refresh_session_roles(db, [payload.user_id])
    return {"message": "Player added to team!"}


@router.delete("/leave-team")
async def leave_team(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("leave_team")),
):
    await roster.leave_team(db, session.user_id)
    await accounts.refresh_session_roles(db, [session.user_id])
    return {"message": "You left the team successfully!"}
