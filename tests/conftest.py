import asyncio
import sys
from datetime import date, datetime
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import tourney.models  # noqa: E402,F401  - registers every table on Base
from tourney import sessions  # noqa: E402
from tourney.database import Base  # noqa: E402
from tourney.models.match import Match, Schedule  # noqa: E402
from tourney.models.team import Player, Team, TeamRole  # noqa: E402
from tourney.models.tournament import Tournament  # noqa: E402
from tourney.models.university import University  # noqa: E402
from tourney.models.user import User  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_session_store():
    """Every test starts without live logins."""
    sessions._session_store = None
    yield
    sessions._session_store = None


def _run_with_db(scenario):
    """Run ``scenario(session_factory)`` against a throwaway in-memory database."""

    async def _runner():
        engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
        try:
            return await scenario(factory)
        finally:
            await engine.dispose()

    return asyncio.run(_runner())


@pytest.fixture
def run_with_db():
    return _run_with_db


class Seed:
    """Row builders shared by the engine tests. Each helper commits."""

    @staticmethod
    async def user(db, name, role="User", *, email=None, password_hash="x"):
        user = User(
            username=name,
            email=email or f"{name.lower()}@example.edu",
            password_hash=password_hash,
            role=role,
        )
        db.add(user)
        await db.commit()
        return user

    @staticmethod
    async def university(db, name="State University"):
        university = University(name=name, location="Springfield")
        db.add(university)
        await db.commit()
        return university

    @staticmethod
    async def team(db, university, name="Falcons", members=(), leader=None):
        """Create a team; ``members`` are users, ``leader`` one of them."""
        team = Team(name=name, university_id=university.id)
        db.add(team)
        await db.flush()
        for user in members:
            role = TeamRole.leader.value if leader is not None and user.id == leader.id else TeamRole.member.value
            db.add(Player(user_id=user.id, team_id=team.id, role=role))
            user.team_id = team.id
            if user.role == "User":
                user.role = "Player"
        await db.commit()
        return team

    @staticmethod
    async def tournament(db, name="Spring Cup"):
        tournament = Tournament(name=name, start_date=date(2026, 4, 1), location="Main Hall")
        db.add(tournament)
        await db.commit()
        return tournament

    @staticmethod
    async def match(db, tournament, team1, team2, when=None):
        match = Match(tournament_id=tournament.id, team1_id=team1.id, team2_id=team2.id)
        db.add(match)
        await db.flush()
        db.add(Schedule(tournament_id=tournament.id, match_id=match.id, scheduled_date=when or datetime(2026, 4, 2, 18)))
        await db.commit()
        return match


@pytest.fixture
def seed():
    return Seed
