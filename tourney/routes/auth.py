# tourney/routes/auth.py
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.database import get_db
from tourney.deps.security import get_session, require_permission
from tourney.schemas import UserLogin, UserSignup
from tourney.services import accounts
from tourney.sessions import (
    SESSION_COOKIE_NAME,
    SessionContext,
    clear_session_cookie,
    get_session_store,
    set_session_cookie,
)

router = APIRouter(tags=["Auth"])


@router.post("/login")
async def login(
    payload: UserLogin,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await accounts.authenticate(db, payload.email, payload.password)

    store = get_session_store()
    # A fresh token on every login; any previous one stops working.
    await store.destroy(request.cookies.get(SESSION_COOKIE_NAME))
    context = await store.create(user_id=user.id, username=user.username, role=user.role_enum)
    set_session_cookie(response, context, store.ttl)
    return {"message": "Login successful!"}


@router.post("/signup", status_code=201)
async def signup(payload: UserSignup, db: AsyncSession = Depends(get_db)):
    await accounts.register_user(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
    )
    return {"message": "User registered successfully!"}


@router.get("/logout")
async def logout(request: Request, response: Response):
    await get_session_store().destroy(request.cookies.get(SESSION_COOKIE_NAME))
    clear_session_cookie(response)
    return {"success": True, "message": "Logged out successfully!"}


@router.get("/check-session")
async def check_session(session: Optional[SessionContext] = Depends(get_session)):
    return {
        "loggedIn": session is not None,
        "role": session.role.value if session else None,
    }


@router.get("/user-info")
async def user_info(session: SessionContext = Depends(require_permission("user_info"))):
    return {
        "userId": session.user_id,
        "name": session.username,
        "role": session.role.value,
    }
