from datetime import datetime

import pytest
from sqlalchemy import select

from tourney.errors import NotFound, ValidationError
from tourney.models.match import Match
from tourney.services import results


def _play(run_with_db, seed, score_team1, score_team2):
    async def scenario(factory):
        async with factory() as db:
            university = await seed.university(db)
            home = await seed.team(db, university, name="Falcons")
            away = await seed.team(db, university, name="Owls")
            match = await seed.match(db, await seed.tournament(db), home, away)

            winner = await results.post_result(
                db, match_id=match.id, score_team1=score_team1, score_team2=score_team2
            )
            stored = (
                await db.execute(
                    select(Match.score_team1, Match.score_team2, Match.winner_id).where(Match.id == match.id)
                )
            ).one()
            return winner, tuple(stored), home.id, away.id

    return run_with_db(scenario)


def test_home_win(run_with_db, seed):
    winner, stored, home, _ = _play(run_with_db, seed, 3, 1)
    assert winner == home
    assert stored == (3, 1, home)


def test_away_win(run_with_db, seed):
    winner, stored, _, away = _play(run_with_db, seed, 1, 3)
    assert winner == away
    assert stored == (1, 3, away)


def test_tie_has_no_winner(run_with_db, seed):
    winner, stored, _, _ = _play(run_with_db, seed, 2, 2)
    assert winner is None
    assert stored == (2, 2, None)


def test_unknown_match(run_with_db):
    async def scenario(factory):
        async with factory() as db:
            with pytest.raises(NotFound, match="Match not found"):
                await results.post_result(db, match_id=99, score_team1=1, score_team2=0)

    run_with_db(scenario)


def test_negative_scores_are_rejected(run_with_db):
    async def scenario(factory):
        async with factory() as db:
            with pytest.raises(ValidationError):
                await results.post_result(db, match_id=1, score_team1=-1, score_team2=0)

    run_with_db(scenario)


def test_reposting_overwrites_the_result(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            university = await seed.university(db)
            home = await seed.team(db, university)
            away = await seed.team(db, university, name="Owls")
            match = await seed.match(db, await seed.tournament(db), home, away)
            await results.post_result(db, match_id=match.id, score_team1=3, score_team2=1)
            return await results.post_result(db, match_id=match.id, score_team1=0, score_team2=1), away.id

    winner, away = run_with_db(scenario)
    assert winner == away


def test_schedule_and_listings(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            university = await seed.university(db)
            home = await seed.team(db, university)
            away = await seed.team(db, university, name="Owls")
            tournament = await seed.tournament(db)
            for day in (5, 3, 4):
                await results.schedule_match(
                    db,
                    tournament_id=tournament.id,
                    match_date=datetime(2026, 4, day, 18),
                    team1_id=home.id,
                    team2_id=away.id,
                )
            page = await results.list_schedules(db, limit=2, offset=0)
            rest = await results.list_schedules(db, limit=2, offset=2)
            matches = await results.list_matches(db, tournament_id=tournament.id)
            return page, rest, matches

    page, rest, matches = run_with_db(scenario)
    assert [row["scheduled_date"].day for row in page] == [3, 4]
    assert [row["scheduled_date"].day for row in rest] == [5]
    assert page[0]["team1_name"] == "Falcons" and page[0]["team2_name"] == "Owls"
    assert len(matches) == 3
    assert all("match_date" in row and row["winner_id"] is None for row in matches)


def test_schedule_rejects_same_team(run_with_db, seed):
    async def scenario(factory):
        async with factory() as db:
            team = await seed.team(db, await seed.university(db))
            tournament = await seed.tournament(db)
            with pytest.raises(ValidationError):
                await results.schedule_match(
                    db,
                    tournament_id=tournament.id,
                    match_date=datetime(2026, 4, 1),
                    team1_id=team.id,
                    team2_id=team.id,
                )

    run_with_db(scenario)
