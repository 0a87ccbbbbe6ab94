# tourney/routes/admin.py
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import get_db
from tourney.deps.security import require_permission
from tourney.roles import assignable_roles
from tourney.schemas import AdminUserCreate, RoleUpdate, UserRead
from tourney.services import accounts
from tourney.sessions import SessionContext

router = APIRouter(tags=["Admin"])


@router.get("/roles", response_model=List[str])
async def list_roles(session: SessionContext = Depends(require_permission("list_roles"))):
    return [role.value for role in assignable_roles(session.role)]


@router.get("/users", response_model=List[UserRead])
async def list_users(
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("list_users")),
):
    return await accounts.list_users(db, search)


@router.post("/add-user", status_code=201)
async def add_user(
    payload: AdminUserCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("add_user")),
):
    user = await accounts.create_user(
        db,
        session.role,
        username=payload.full_name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    return {"message": "User added successfully!", "userId": user.id}


@router.put("/edit-user/{user_id}")
async def edit_user(
    user_id: int,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("edit_user")),
):
    await accounts.change_role(
        db,
        actor_id=session.user_id,
        actor_role=session.role,
        target_id=user_id,
        role=payload.role,
    )
    return {"message": "User role updated successfully"}


@router.delete("/delete-user/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(require_permission("delete_user")),
):
    await accounts.delete_user(
        db,
        actor_id=session.user_id,
        actor_role=session.role,
        target_id=user_id,
    )
    return {"message": "User deleted successfully!"}
