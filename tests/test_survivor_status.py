from datetime import date

import pytest
from conftest import AFTER_SEASON, SEASON_ROUNDS, FakeFixtureSource, make_fixture, season_fixtures

from quinielas.services.survivor_status import (
    PickData,
    RoundFixtureCache,
    SurvivorStatus,
    compute_status,
    compute_status_batch,
)

R1, R2, R3 = (r["roundName"] for r in SEASON_ROUNDS)


def compute(picks, source, lives=2, rounds=SEASON_ROUNDS, as_of=AFTER_SEASON):
    return compute_status(picks, rounds, lives, "262", "2024", fixture_source=source, as_of=as_of)


def test_loss_draw_then_missed_round_eliminates():
    source = FakeFixtureSource(
        {
            R1: [make_fixture(1, 10, 20, 0, 2)],
            R2: [make_fixture(2, 30, 40, 1, 1)],
            R3: [make_fixture(3, 50, 60, 1, 0)],
        }
    )
    picks = [PickData(R1, "1", "10"), PickData(R2, "2", "30")]

    status = compute(picks, source, lives=2)

    assert status.lives_remaining == 0
    assert status.is_eliminated
    assert status.eliminated_at_round == R3
    assert [r.result for r in status.round_results] == ["loss", "draw", "no_pick"]
    assert [r.lives_after for r in status.round_results] == [1, 1, 0]


def test_fixture_not_found_is_pending_without_life_change(fake_source):
    status = compute([PickData(R1, "999", "1")], fake_source, lives=3)

    first = status.round_results[0]
    assert first.result == "pending"
    assert not first.evaluated
    assert first.is_round_finished
    assert first.lives_after == 3
    assert not status.is_eliminated


def test_unfinished_fixture_is_pending():
    source = FakeFixtureSource({R1: [make_fixture(1, 10, 20, 0, 3, status="2H")]})
    status = compute([PickData(R1, "1", "10")], source, lives=1, rounds=SEASON_ROUNDS[:1])
    assert status.round_results[0].result == "pending"
    assert status.lives_remaining == 1


def test_failed_fetch_never_penalizes(fake_source):
    fake_source.failing_rounds = {R1, R2, R3}
    status = compute([PickData(R1, "101", "2")], fake_source, lives=1)

    assert [r.result for r in status.round_results] == ["pending"] * 3
    assert status.lives_remaining == 1
    assert not status.is_eliminated


def test_round_without_fixtures_never_counts_as_missed():
    source = FakeFixtureSource({})
    status = compute([], source, lives=1)
    assert all(r.result == "pending" for r in status.round_results)
    assert not status.is_eliminated


def test_missed_round_before_active_round_is_penalized_even_if_unfinished():
    source = FakeFixtureSource(
        {
            R1: [make_fixture(1, 10, 20, status="PST")],
            R2: [make_fixture(2, 30, 40, status="NS")],
        }
    )
    status = compute([], source, lives=2, as_of=date(2024, 1, 8))

    assert [r.result for r in status.round_results] == ["no_pick", "pending", "pending"]
    assert status.lives_remaining == 1


def test_missed_active_round_stays_pending_until_finished():
    unfinished = FakeFixtureSource({R2: [make_fixture(2, 30, 40, 1, 0, status="2H")]})
    status = compute([], unfinished, lives=1, rounds=SEASON_ROUNDS[1:2], as_of=date(2024, 1, 11))
    assert status.round_results[0].result == "pending"

    finished = FakeFixtureSource({R2: [make_fixture(2, 30, 40, 1, 0)]})
    status = compute([], finished, lives=1, rounds=SEASON_ROUNDS[1:2], as_of=date(2024, 1, 11))
    assert status.round_results[0].result == "no_pick"
    assert status.eliminated_at_round == R2


@pytest.mark.parametrize("lives", [1, 2, 3, 5])
def test_no_picks_eliminate_at_min_of_rounds_and_lives(fake_source, lives):
    status = compute([], fake_source, lives=lives)

    finished_rounds = len(SEASON_ROUNDS)
    if lives <= finished_rounds:
        assert status.is_eliminated
        assert status.eliminated_at_round == SEASON_ROUNDS[lives - 1]["roundName"]
    else:
        assert not status.is_eliminated
        assert status.lives_remaining == lives - finished_rounds


def test_draws_never_eliminate():
    source = FakeFixtureSource(
        {name: [make_fixture(i, 10 + i, 20 + i, 2, 2)] for i, name in enumerate((R1, R2, R3))}
    )
    home_picks = [PickData(name, str(i), str(10 + i)) for i, name in enumerate((R1, R2, R3))]
    away_picks = [PickData(name, str(i), str(20 + i)) for i, name in enumerate((R1, R2, R3))]

    for picks in (home_picks, away_picks):
        status = compute(picks, source, lives=1)
        assert [r.result for r in status.round_results] == ["draw"] * 3
        assert status.lives_remaining == 1


def test_rounds_after_elimination_are_not_evaluated(fake_source):
    picks = [PickData(R1, "101", "2"), PickData(R2, "202", "2")]
    status = compute(picks, fake_source, lives=1)

    assert status.eliminated_at_round == R1
    later = status.round_results[1:]
    assert [r.result for r in later] == ["pending", "pending"]
    assert not any(r.evaluated for r in later)
    assert later[0].pick == picks[1]
    # Nothing is fetched for rounds a dead participant can no longer play
    assert fake_source.calls == [R1]


def test_lives_stay_in_bounds_and_elimination_is_monotonic(fake_source):
    status = compute([], fake_source, lives=2)

    lives_seen = [r.lives_after for r in status.round_results]
    assert all(0 <= lives <= 2 for lives in lives_seen)
    assert lives_seen == sorted(lives_seen, reverse=True)
    assert status.is_eliminated == (status.lives_remaining == 0)


def test_last_pick_for_a_round_wins(fake_source):
    picks = [PickData(R1, "101", "2"), PickData(R1, "101", "1")]
    status = compute(picks, fake_source, lives=1, rounds=SEASON_ROUNDS[:1])
    assert status.round_results[0].result == "win"
    assert status.round_results[0].pick.team_id == "1"


def test_picks_for_unknown_rounds_are_ignored(fake_source):
    status = compute([PickData("Clausura - 1", "1", "1")], fake_source, lives=1, rounds=SEASON_ROUNDS[:1])
    assert status.round_results[0].pick is None


def test_compute_status_is_deterministic(fake_source):
    picks = [PickData(R1, "101", "1"), PickData(R2, "201", "3", "Team 3")]
    first = compute(picks, fake_source, lives=2).to_dict()
    second = compute(picks, fake_source, lives=2).to_dict()
    assert first == second
    assert first["round_results"][1] == {
        "round": R2,
        "result": "draw",
        "pick": {"round": R2, "fixture_id": "201", "team_id": "3", "team_name": "Team 3"},
        "is_round_finished": True,
        "evaluated": True,
        "lives_after": 2,
    }


@pytest.mark.parametrize(
    "league, season, rounds, lives",
    [
        (None, "2024", SEASON_ROUNDS, 2),
        ("262", "", SEASON_ROUNDS, 2),
        ("262", "2024", [], 2),
        ("262", "2024", SEASON_ROUNDS, 0),
    ],
)
def test_configuration_errors_return_initial_status(fake_source, league, season, rounds, lives):
    status = compute_status([], rounds, lives, league, season, fixture_source=fake_source, as_of=AFTER_SEASON)
    assert status == SurvivorStatus.initial(lives)
    assert status.round_results == ()
    assert fake_source.calls == []


def batch_picks():
    return {
        "ana": [PickData(R1, "101", "1"), PickData(R2, "202", "2"), PickData(R3, "301", "4")],
        "beto": [PickData(R1, "101", "2")],
        "caro": [PickData(R1, "101", "1"), PickData(R2, "202", "4")],
        "dani": [],
        "eva": [PickData(R2, "201", "3"), PickData(R3, "999", "1")],
    }


@pytest.mark.parametrize("lives", [1, 2])
def test_batch_matches_single_computation(lives):
    statuses = compute_status_batch(
        batch_picks(), SEASON_ROUNDS, lives, "262", "2024",
        fixture_source=FakeFixtureSource(season_fixtures()), as_of=AFTER_SEASON,
    )

    for participant, picks in batch_picks().items():
        single = compute(picks, FakeFixtureSource(season_fixtures()), lives=lives)
        assert statuses[participant] == single


def test_batch_fetches_each_round_once(fake_source):
    compute_status_batch(
        batch_picks(), SEASON_ROUNDS, 2, "262", "2024",
        fixture_source=fake_source, as_of=AFTER_SEASON, max_workers=3,
    )
    assert sorted(fake_source.calls) == sorted([R1, R2, R3])


def test_batch_without_participants_fetches_nothing(fake_source):
    assert compute_status_batch({}, SEASON_ROUNDS, 2, "262", "2024", fixture_source=fake_source) == {}
    assert fake_source.calls == []


def test_fixture_cache_stores_failed_fetch_as_empty(fake_source):
    fake_source.failing_rounds = {R2}
    cache = RoundFixtureCache(fake_source, "262", "2024")
    cache.prefetch([R1, R2, R1], max_workers=2)

    assert set(cache.get(R1)) == {"101", "102"}
    assert cache.get(R2) == {}
    assert cache.fetch_count == 2
    assert fake_source.call_count(R2) == 1


def test_fixture_cache_can_be_shared_between_single_calls(fake_source):
    cache = RoundFixtureCache(fake_source, "262", "2024")
    for picks in batch_picks().values():
        compute_status(picks, SEASON_ROUNDS, 2, "262", "2024", as_of=AFTER_SEASON, fixture_cache=cache)
    assert sorted(fake_source.calls) == sorted([R1, R2, R3])
