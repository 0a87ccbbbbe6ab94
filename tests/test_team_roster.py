import pytest
from sqlalchemy import select

from tourney.database import atomic
from tourney.errors import Conflict, StoreError, ValidationError
from tourney.models.team import Player, Team, TeamRole
from tourney.models.tournament import Registration
from tourney.models.user import User
from tourney.services import roster


async def _roster(db, team_id):
    rows = await db.execute(
        select(Player.user_id, Player.role).where(Player.team_id == team_id).order_by(Player.user_id)
    )
    return [tuple(row) for row in rows.all()]


async def _user_state(db, user_id):
    row = (await db.execute(select(User.team_id, User.role).where(User.id == user_id))).one()
    return tuple(row)


def test_edit_team_hands_leadership_to_exactly_one_member(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b, c = [await seed.user(db, name) for name in ("Ana", "Ben", "Cy")]
            team = await seed.team(db, await seed.university(db), members=[a, b, c], leader=a)

            await roster.edit_team(db, team.id, new_leader_id=b.id)
            return a.id, b.id, c.id, await _roster(db, team.id), await roster.leaders_of(db, team.id)

    a, b, c, members, leaders = run_with_db(scenario)
    assert leaders == [b]
    assert members == [(a, "Member"), (b, "Leader"), (c, "Member")]


def test_outsider_as_new_leader_changes_nothing(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b = await seed.user(db, "Ana"), await seed.user(db, "Ben")
            outsider = await seed.user(db, "Zed")
            team = await seed.team(db, await seed.university(db), members=[a, b], leader=a)

            for _ in range(2):
                with pytest.raises(ValidationError) as excinfo:
                    await roster.edit_team(db, team.id, name="Renamed", new_leader_id=outsider.id)
            name = await db.scalar(select(Team.name).where(Team.id == team.id))
            return excinfo.value.message, name, await roster.leaders_of(db, team.id), a.id

    message, name, leaders, leader_id = run_with_db(scenario)
    assert message == "New leader must be a current member of this team."
    assert name == "Falcons"
    assert leaders == [leader_id]


def test_new_leader_cannot_also_be_removed(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b = await seed.user(db, "Ana"), await seed.user(db, "Ben")
            team = await seed.team(db, await seed.university(db), members=[a, b], leader=a)
            with pytest.raises(ValidationError, match="cannot also be removed"):
                await roster.edit_team(db, team.id, new_leader_id=b.id, member_to_delete_id=b.id)
            return await _roster(db, team.id)

    assert len(run_with_db(scenario)) == 2


def test_removed_member_is_detached_and_keeps_higher_roles(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b = await seed.user(db, "Ana"), await seed.user(db, "Ben")
            rep = await seed.user(db, "Rae", "CollegeRep")
            team = await seed.team(db, await seed.university(db), members=[a, b, rep], leader=a)

            await roster.edit_team(db, team.id, member_to_delete_id=b.id)
            await roster.edit_team(db, team.id, member_to_delete_id=rep.id)
            return (
                await _roster(db, team.id),
                await _user_state(db, b.id),
                await _user_state(db, rep.id),
                a.id,
            )

    members, ben, rae, leader_id = run_with_db(scenario)
    assert members == [(leader_id, "Leader")]
    assert ben == (None, "User")
    assert rae == (None, "CollegeRep")


def test_removing_someone_not_on_the_team_is_refused(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a = await seed.user(db, "Ana")
            stranger = await seed.user(db, "Zed")
            team = await seed.team(db, await seed.university(db), members=[a], leader=a)
            with pytest.raises(ValidationError, match="not on this team"):
                await roster.edit_team(db, team.id, member_to_delete_id=stranger.id)

    run_with_db(scenario)


def test_add_member_promotes_user_to_player_once(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            university = await seed.university(db)
            team = await seed.team(db, university)
            other = await seed.team(db, university, name="Owls")
            user = await seed.user(db, "Ana")

            await roster.add_member(db, team_id=team.id, user_id=user.id)
            with pytest.raises(Conflict, match="already on a team"):
                await roster.add_member(db, team_id=other.id, user_id=user.id)
            return await _user_state(db, user.id), await _roster(db, team.id), team.id, user.id

    state, members, team_id, user_id = run_with_db(scenario)
    assert state == (team_id, "Player")
    assert members == [(user_id, TeamRole.member.value)]


def test_leave_team_resets_player(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b = await seed.user(db, "Ana"), await seed.user(db, "Ben")
            team = await seed.team(db, await seed.university(db), members=[a, b], leader=a)

            left = await roster.leave_team(db, a.id)
            with pytest.raises(ValidationError, match="not currently in a team"):
                await roster.leave_team(db, a.id)
            return left, team.id, await _user_state(db, a.id), await roster.leaders_of(db, team.id)

    left, team_id, state, leaders = run_with_db(scenario)
    assert left == team_id
    assert state == (None, "User")
    # No automatic succession.
    assert leaders == []


def test_delete_team_requires_explicit_detach(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b = await seed.user(db, "Ana"), await seed.user(db, "Ben")
            team = await seed.team(db, await seed.university(db), members=[a, b], leader=a)
            tournament = await seed.tournament(db)
            db.add(Registration(user_id=a.id, tournament_id=tournament.id, team_id=team.id))
            await db.commit()

            with pytest.raises(Conflict, match="still has members"):
                await roster.delete_team(db, team.id)
            detached = await roster.delete_team(db, team.id, detach_members=True)

            teams = (await db.execute(select(Team.id).where(Team.id == team.id))).all()
            registration_team = await db.scalar(select(Registration.team_id))
            return detached, sorted([a.id, b.id]), teams, await _user_state(db, a.id), registration_team

    detached, expected, teams, state, registration_team = run_with_db(scenario)
    assert detached == expected
    assert teams == []
    assert state == (None, "User")
    assert registration_team is None


def test_team_with_matches_cannot_be_deleted(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            university = await seed.university(db)
            home, away = await seed.team(db, university), await seed.team(db, university, name="Owls")
            await seed.match(db, await seed.tournament(db), home, away)
            with pytest.raises(Conflict, match="matches"):
                await roster.delete_team(db, home.id)

    run_with_db(scenario)


def test_atomic_rolls_back_on_error(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a = await seed.user(db, "Ana")
            user_id = a.id
            with pytest.raises(RuntimeError):
                async with atomic(db):
                    a.role = "Moderator"
                    await db.flush()
                    raise RuntimeError("boom")
            return await _user_state(db, user_id)

    assert run_with_db(scenario) == (None, "User")


def test_second_leader_is_rejected_by_the_store(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            a, b = await seed.user(db, "Ana"), await seed.user(db, "Ben")
            team = await seed.team(db, await seed.university(db), members=[a, b], leader=a)
            leader_id, team_id = a.id, team.id
            with pytest.raises(StoreError):
                async with atomic(db):
                    await db.execute(
                        Player.__table__.update()
                        .where(Player.user_id == b.id)
                        .values(role=TeamRole.leader.value)
                    )
            return await roster.leaders_of(db, team_id), leader_id

    leaders, leader_id = run_with_db(scenario)
    assert leaders == [leader_id]
