import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tourney.database import Base, get_db
from tourney.main import app
from tourney.models.user import User
from tourney.security import hash_password
from tourney.sessions import SESSION_COOKIE_NAME


@pytest.fixture
def api_db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{(tmp_path / 'api.db').as_posix()}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def client(api_db):
    async def _get_db():
        async with api_db() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    # No context manager: startup would touch the configured database.
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add_account(factory, name, email, password, role):
    async def _insert():
        async with factory() as db:
            db.add(User(username=name, email=email, password_hash=hash_password(password), role=role))
            await db.commit()

    asyncio.run(_insert())


def _login(client, email, password):
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_protected_routes_need_a_session(client):
    for method, path in [
        ("get", "/users"),
        ("post", "/add-college"),
        ("get", "/generate-report"),
        ("delete", "/leave-team"),
        ("get", "/user-info"),
    ]:
        response = getattr(client, method)(path)
        assert response.status_code == 401, path
        assert response.json() == {"message": "Please log in first."}


def test_signup_login_and_session_flow(client):
    response = client.post(
        "/signup", json={"username": "Ana", "email": "Ana@StateU.edu", "password": "secret1"}
    )
    assert response.status_code == 201
    assert response.json() == {"message": "User registered successfully!"}

    duplicate = client.post("/signup", json={"username": "Ana", "email": "ana@stateu.edu", "password": "secret1"})
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Email already in use. Try logging in."

    assert client.get("/check-session").json() == {"loggedIn": False, "role": None}

    login = _login(client, "ana@stateu.edu", "secret1")
    assert login.json() == {"message": "Login successful!"}
    assert SESSION_COOKIE_NAME in login.cookies

    assert client.get("/check-session").json() == {"loggedIn": True, "role": "User"}
    info = client.get("/user-info").json()
    assert info["name"] == "Ana" and info["role"] == "User"

    # Plain users are turned away from admin routes.
    denied = client.get("/users")
    assert denied.status_code == 403

    logout = client.get("/logout")
    assert logout.json() == {"success": True, "message": "Logged out successfully!"}
    assert client.get("/check-session").json()["loggedIn"] is False


def test_bad_credentials(client):
    response = client.post("/login", json={"email": "nobody@stateu.edu", "password": "whatever"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid email or password. Please retry."}


def test_request_validation_errors_are_400(client):
    response = client.post("/signup", json={"username": "Ana", "email": "ana@stateu.edu", "password": "123"})
    assert response.status_code == 400
    assert "message" in response.json()


def test_admin_workflow(client, api_db):
    _add_account(api_db, "Boss", "boss@stateu.edu", "admin-pass", "Admin")
    _login(client, "boss@stateu.edu", "admin-pass")

    assert client.get("/roles").json() == ["User", "Player", "CollegeRep", "Moderator"]

    created = client.post(
        "/add-college",
        json={"name": "State University", "location": "Springfield", "logoURL": "https://img/logo.png"},
    )
    assert created.status_code == 201
    college_id = created.json()["collegeId"]
    college = client.get("/university", params={"id": college_id}).json()
    assert college["emblemUrl"] == "https://img/logo.png"
    assert client.get("/university").status_code == 400

    team_a = client.post("/add-team", json={"name": "Falcons", "universityId": college_id}).json()["teamId"]
    team_b = client.post("/add-team", json={"name": "Owls", "universityId": college_id}).json()["teamId"]
    tournament = client.post(
        "/add-tournament", json={"name": "Spring Cup", "startDate": "2026-04-01", "location": "Gym"}
    ).json()["tournamentId"]

    scheduled = client.post(
        "/add-schedule",
        json={
            "tournamentId": tournament,
            "matchDate": "2026-04-02T18:00:00",
            "team1Id": team_a,
            "team2Id": team_b,
        },
    )
    assert scheduled.status_code == 201
    match_id = scheduled.json()["matchId"]

    posted = client.post("/post-results", json={"matchId": match_id, "scoreTeam1": 3, "scoreTeam2": 1})
    assert posted.json() == {"message": "Results posted successfully!", "winnerId": team_a}

    report = client.get("/generate-report")
    assert report.headers["content-type"].startswith("text/csv")
    assert "tournament_report.csv" in report.headers["content-disposition"]
    assert report.text.splitlines()[0] == "Team Name,University Name,Matches Played,Wins"

    schedules = client.get("/schedules").json()
    assert schedules[0]["team1Name"] == "Falcons"

    promoted = client.post(
        "/add-user",
        json={
            "firstName": "Rae",
            "lastName": "Lin",
            "email": "rae@stateu.edu",
            "password": "secret1",
            "role": "CollegeRep",
        },
    )
    assert promoted.status_code == 201
    user_id = promoted.json()["userId"]

    bad_role = client.put(f"/edit-user/{user_id}", json={"role": "Wizard"})
    assert bad_role.status_code == 400
    escalate = client.put(f"/edit-user/{user_id}", json={"role": "Admin"})
    assert escalate.status_code == 403
    assert escalate.json() == {"message": "Admin cannot assign admin roles"}
    ok = client.put(f"/edit-user/{user_id}", json={"role": "Moderator"})
    assert ok.json() == {"message": "User role updated successfully"}

    users = client.get("/users", params={"search": "rae"}).json()
    assert [u["role"] for u in users] == ["Moderator"]

    assert client.delete(f"/delete-user/{user_id}").json() == {"message": "User deleted successfully!"}


def test_player_leaves_team_and_session_role_follows(client, api_db):
    _add_account(api_db, "Boss", "boss@stateu.edu", "admin-pass", "SuperAdmin")
    _add_account(api_db, "Ana", "ana@stateu.edu", "secret1", "User")

    admin = TestClient(app)
    _login(admin, "boss@stateu.edu", "admin-pass")
    college = admin.post("/add-college", json={"name": "State University"}).json()["collegeId"]
    team = admin.post("/add-team", json={"name": "Falcons", "universityId": college}).json()["teamId"]
    ana_id = [u["id"] for u in admin.get("/users", params={"search": "ana"}).json()][0]

    _login(client, "ana@stateu.edu", "secret1")
    assert client.delete("/leave-team").status_code == 403

    assert admin.post("/add-player", json={"teamId": team, "userId": ana_id}).status_code == 201
    # Live session picks up the new role without logging in again.
    assert client.get("/check-session").json()["role"] == "Player"

    members = client.get("/team-members", params={"teamId": team}).json()
    assert members == [{"userId": ana_id, "name": "Ana", "role": "Member"}]

    left = client.delete("/leave-team")
    assert left.json() == {"message": "You left the team successfully!"}
    assert client.get("/check-session").json()["role"] == "User"
