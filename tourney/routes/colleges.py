# tourney/routes/colleges.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import get_db
from tourney.deps.security import require_permission
from tourney.errors import Conflict, NotFound
from tourney.models.team import Team
from tourney.models.university import University
from tourney.schemas import UniversityIn, UniversityRead
from tourney.sessions import SessionContext

router = APIRouter(tags=["Colleges"])


async def _get_university(db: AsyncSession, college_id: int) -> University:
    university = await db.get(University, college_id)
    if university is None:
        raise NotFound("College not found")
    return university


def _apply(university: University, payload: UniversityIn) -> None:
    university.name = payload.name
    university.location = payload.location
    university.founded = payload.founded
    university.description = payload.description
    university.emblem_url = payload.logo_url
    university.image_url = payload.picture_url


@router.get("/universities", response_model=List[UniversityRead])
async def list_universities(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(University).order_by(University.name))
    return result.scalars().all()


@router.get("/fetchColleges", response_model=List[UniversityRead])
async def search_colleges(
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("list_colleges_admin")),
):
    stmt = select(University).order_by(University.name)
    if search and search.strip():
        stmt = stmt.where(University.name.ilike(f"%{search.strip()}%"))
    return (await db.execute(stmt)).scalars().all()


@router.get("/university", response_model=UniversityRead)
async def get_university(
    id: Optional[int] = Query(None),
    name: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if not name and id is None:
        raise HTTPException(status_code=400, detail="Missing college name or ID")

    if name:
        stmt = select(University).where(University.name == name)
    else:
        stmt = select(University).where(University.id == id)
    university = (await db.execute(stmt)).scalars().first()
    if university is None:
        raise NotFound("College not found")
    return university


@router.post("/add-college", status_code=201)
async def add_college(
    payload: UniversityIn,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("add_college")),
):
    university = University()
    _apply(university, payload)
    db.add(university)
    await db.commit()
    await db.refresh(university)
    return {"message": "College added successfully!", "collegeId": university.id}


@router.put("/edit-college/{college_id}")
async def edit_college(
    college_id: int,
    payload: UniversityIn,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("edit_college")),
):
    university = await _get_university(db, college_id)
    _apply(university, payload)
    await db.commit()
    return {"message": "College updated successfully!"}


@router.delete("/delete-college/{college_id}")
async def delete_college(
    college_id: int,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("delete_college")),
):
    university = await _get_university(db, college_id)
    teams = await db.scalar(select(func.count(Team.id)).where(Team.university_id == college_id))
    if teams:
        raise Conflict("College still has teams. Delete or move them first.")
    await db.delete(university)
    await db.commit()
    return {"message": "College deleted successfully!"}
