import pytest
from conftest import AFTER_SEASON, SEASON_ROUNDS, FakeFixtureSource, make_fixture, utc

from quinielas.models import SurvivorPick
from quinielas.services import survivor_service

R1, R2, R3 = (r["roundName"] for r in SEASON_ROUNDS)

# Round 2 is active and its first match is still a day away
BEFORE_ROUND_2 = utc(2024, 1, 9, 18, 0)


@pytest.fixture
def open_round_source():
    return FakeFixtureSource(
        {
            R1: [make_fixture(101, 1, 2, 2, 0), make_fixture(102, 3, 4, 0, 1)],
            R2: [
                make_fixture(201, 1, 3, status="NS", kickoff=utc(2024, 1, 10, 20, 0)),
                make_fixture(202, 2, 4, status="NS", kickoff=utc(2024, 1, 11, 2, 0)),
            ],
            R3: [make_fixture(301, 1, 4, status="NS", kickoff=utc(2024, 1, 17, 20, 0))],
        }
    )


@pytest.fixture
def open_game(db, make_game, make_user, add_pick):
    game = make_game(lives=2)
    ana = make_user("Ana")
    game.add_participant(ana.id)
    db.session.commit()
    add_pick(game, ana, R1, 101, 1)
    return game, ana


def test_load_picks_by_participant_includes_everyone(decided_game, make_user, db):
    game, ana, beto, caro = decided_game
    dani = make_user("Dani")
    game.add_participant(dani.id)
    db.session.commit()

    picks = survivor_service.load_picks_by_participant(game)

    assert set(picks) == {ana.id, beto.id, caro.id, dani.id}
    assert [p.round_name for p in picks[ana.id]] == [R1, R2, R3]
    assert picks[dani.id] == []


def test_participant_status(decided_game, fake_source):
    game, ana, beto, _ = decided_game

    status = survivor_service.get_participant_status(game, beto.id, fake_source, AFTER_SEASON)
    assert status.is_eliminated
    assert status.eliminated_at_round == R1

    assert survivor_service.get_participant_status(game, 9999, fake_source, AFTER_SEASON) is None


def test_standings_rank_and_winner(decided_game, fake_source):
    game, ana, beto, caro = decided_game

    result = survivor_service.get_standings(game, fake_source, AFTER_SEASON)

    assert [row["user_id"] for row in result["standings"]] == [ana.id, caro.id, beto.id]
    assert [row["rank"] for row in result["standings"]] == [1, 2, 3]
    assert result["alive_count"] == 1
    assert result["participant_count"] == 3
    assert result["winner_user_id"] == ana.id
    assert result["active_round"] == R3
    assert result["standings"][1]["eliminated_at_round"] == R2
    # One fetch per round for the whole table
    assert sorted(fake_source.calls) == sorted([R1, R2, R3])


def test_no_winner_while_several_survive(decided_game, fake_source, db):
    game, *_ = decided_game
    game.lives = 5
    db.session.commit()

    result = survivor_service.get_standings(game, fake_source, AFTER_SEASON)
    assert result["alive_count"] == 3
    assert result["winner_user_id"] is None


def test_single_participant_is_never_declared_winner(db, make_game, make_user, fake_source):
    game = make_game(lives=5)
    game.add_participant(make_user("Solo").id)
    db.session.commit()

    result = survivor_service.get_standings(game, fake_source, AFTER_SEASON)
    assert result["alive_count"] == 1
    assert result["winner_user_id"] is None


def test_add_participant_twice_returns_same_row(db, make_game, make_user):
    game = make_game(lives=3)
    user = make_user("Ana")
    first = game.add_participant(user.id)
    db.session.commit()

    assert game.add_participant(user.id) is first
    assert first.lives_remaining == 3
    assert game.participants.count() == 1


def test_submit_pick_saves_and_overwrites(open_game, open_round_source):
    game, ana = open_game

    pick, message = survivor_service.submit_pick(
        game, ana.id, R2, 201, 3, fixture_source=open_round_source, now=BEFORE_ROUND_2
    )
    assert message == "Pick saved"
    assert pick.external_picked_team_name == "Team 3"

    pick, _ = survivor_service.submit_pick(
        game, ana.id, R2, "202", "4", team_name="Cuatro",
        fixture_source=open_round_source, now=BEFORE_ROUND_2,
    )
    picks = SurvivorPick.query.filter_by(survivor_game_id=game.id, user_id=ana.id, external_round=R2).all()
    assert len(picks) == 1
    assert picks[0].external_picked_team_id == "4"
    assert picks[0].external_picked_team_name == "Cuatro"


def test_pick_for_future_round_allowed(open_game, open_round_source):
    game, ana = open_game
    pick, _ = survivor_service.submit_pick(
        game, ana.id, R3, 301, 4, fixture_source=open_round_source, now=BEFORE_ROUND_2
    )
    assert pick is not None


@pytest.mark.parametrize(
    "round_name, fixture_id, team_id, expected",
    [
        (R1, 102, 4, "already closed"),
        ("Clausura - 1", 1, 1, "not part of this game"),
        (R2, 999, 3, "Fixture does not belong"),
        (R2, 201, 4, "Team does not play"),
        (R2, 201, 1, "already picked this team"),
    ],
)
def test_submit_pick_rejections(open_game, open_round_source, round_name, fixture_id, team_id, expected):
    game, ana = open_game
    pick, message = survivor_service.submit_pick(
        game, ana.id, round_name, fixture_id, team_id,
        fixture_source=open_round_source, now=BEFORE_ROUND_2,
    )
    assert pick is None
    assert expected in message


def test_submit_pick_rejected_once_round_locked(open_game, open_round_source):
    game, ana = open_game
    just_before_kickoff = utc(2024, 1, 10, 19, 57)
    pick, message = survivor_service.submit_pick(
        game, ana.id, R2, 201, 3, fixture_source=open_round_source, now=just_before_kickoff
    )
    assert pick is None
    assert "locked" in message


def test_submit_pick_requires_fixture_data(open_game):
    game, ana = open_game
    source = FakeFixtureSource({R1: [make_fixture(101, 1, 2, 2, 0)]})
    pick, message = survivor_service.submit_pick(
        game, ana.id, R2, 201, 3, fixture_source=source, now=BEFORE_ROUND_2
    )
    assert pick is None
    assert "not available" in message


def test_submit_pick_rejects_outsiders_and_eliminated(open_game, open_round_source, make_user, add_pick, db):
    game, _ = open_game
    pick, message = survivor_service.submit_pick(
        game, 9999, R2, 201, 3, fixture_source=open_round_source, now=BEFORE_ROUND_2
    )
    assert pick is None and "not a participant" in message

    # Lost round 1 and missed nothing else yet, but with one life
    game.lives = 1
    db.session.commit()
    beto = make_user("Beto")
    game.add_participant(beto.id)
    db.session.commit()
    add_pick(game, beto, R1, 101, 2)

    pick, message = survivor_service.submit_pick(
        game, beto.id, R2, 201, 3, fixture_source=open_round_source, now=BEFORE_ROUND_2
    )
    assert pick is None and "eliminated" in message


def test_pending_picks_lists_alive_participants_without_pick(open_game, open_round_source, make_user, add_pick, db, app):
    game, ana = open_game
    beto, caro = make_user("Beto"), make_user("Caro")
    game.add_participant(beto.id)
    eliminated = game.add_participant(caro.id)
    eliminated.is_eliminated = True
    db.session.commit()
    add_pick(game, ana, R2, 201, 3)

    result = survivor_service.get_pending_picks(game, open_round_source, now=BEFORE_ROUND_2)

    assert result["round"] == R2
    assert [p["user_id"] for p in result["participants"]] == [beto.id]
    assert result["participants"][0]["email"] == "beto@example.com"
    assert result["first_kickoff"] == "2024-01-10T20:00:00+00:00"


def test_pending_picks_empty_once_round_has_kicked_off(open_game, open_round_source):
    game, _ = open_game
    result = survivor_service.get_pending_picks(game, open_round_source, now=utc(2024, 1, 11, 3, 0))
    assert result["round"] == R2
    assert result["participants"] == []


def test_survivor_statistics(decided_game, fake_source):
    game, ana, beto, caro = decided_game

    stats = survivor_service.get_survivor_statistics(ana.id, fake_source, AFTER_SEASON)
    assert stats["games_played"] == 1
    assert stats["games_won"] == 1
    assert stats["wins"] == 3
    assert stats["total_picks"] == 3
    assert stats["success_rate"] == 100.0

    stats = survivor_service.get_survivor_statistics(caro.id, fake_source, AFTER_SEASON)
    assert stats["games_lost"] == 1
    assert (stats["wins"], stats["losses"]) == (1, 1)
    assert stats["success_rate"] == 50.0

    assert survivor_service.get_survivor_statistics(9999, fake_source, AFTER_SEASON) is None
