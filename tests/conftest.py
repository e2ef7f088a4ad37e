"""Shared fixtures: an in-memory app and a fake fixture provider"""

import threading
from datetime import date, datetime, timezone

import pytest

from quinielas import create_app
from quinielas import db as _db
from quinielas.models import SurvivorGame, SurvivorPick, User
from quinielas.utils.fixtures import Fixture

# A finished three-round season
SEASON_ROUNDS = [
    {"roundName": "Apertura - 1", "dates": ["2024-01-01", "2024-01-03"]},
    {"roundName": "Apertura - 2", "dates": ["2024-01-10", "2024-01-12"]},
    {"roundName": "Apertura - 3", "dates": ["2024-01-17", "2024-01-19"]},
]
AFTER_SEASON = date(2024, 2, 1)


def make_fixture(
    fixture_id,
    home_id,
    away_id,
    home_goals=None,
    away_goals=None,
    status="FT",
    kickoff=None,
):
    return Fixture(
        fixture_id=str(fixture_id),
        home_team_id=str(home_id),
        home_team_name=f"Team {home_id}",
        away_team_id=str(away_id),
        away_team_name=f"Team {away_id}",
        status=status,
        home_goals=home_goals,
        away_goals=away_goals,
        kickoff=kickoff,
    )


def season_fixtures():
    """Results for SEASON_ROUNDS

    Round 1: 1 beats 2, 4 beats 3. Round 2: 1 draws 3, 2 beats 4.
    Round 3: 4 beats 1, 2 draws 3.
    """
    return {
        "Apertura - 1": [make_fixture(101, 1, 2, 2, 0), make_fixture(102, 3, 4, 0, 1)],
        "Apertura - 2": [make_fixture(201, 1, 3, 1, 1), make_fixture(202, 2, 4, 3, 1)],
        "Apertura - 3": [make_fixture(301, 1, 4, 0, 2), make_fixture(302, 2, 3, 2, 2)],
    }


class FakeFixtureSource:
    """In-memory stand-in for FootballApiClient that records every fetch"""

    def __init__(self, fixtures_by_round=None, rounds=None):
        self.fixtures_by_round = fixtures_by_round or {}
        self.rounds = rounds or []
        self.failing_rounds = set()
        self.calls = []
        self._lock = threading.Lock()

    def get_fixtures(self, league_id, season, round_name, skip_cache=False):
        with self._lock:
            self.calls.append(round_name)
        if round_name in self.failing_rounds:
            raise RuntimeError(f"provider down for {round_name}")
        return list(self.fixtures_by_round.get(round_name, []))

    def get_rounds(self, league_id, season, skip_cache=False):
        return list(self.rounds)

    def call_count(self, round_name):
        return self.calls.count(round_name)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def fake_source():
    return FakeFixtureSource(season_fixtures())


@pytest.fixture
def installed_source(app, fake_source):
    """Make the fake the application's fixture source"""
    app.extensions["football_api"] = fake_source
    return fake_source


@pytest.fixture
def make_user(db):
    def _make_user(name):
        user = User(name=name, email=f"{name.lower()}@example.com")
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_game(db, make_user):
    def _make_game(lives=1, rounds=None, name="Liga MX Survivor", owner=None):
        owner = owner or make_user(f"owner{SurvivorGame.query.count()}")
        game = SurvivorGame(
            name=name,
            owner_id=owner.id,
            league_name="Liga MX",
            external_league_id="262",
            external_season="2024",
            lives=lives,
            rounds_selected=rounds if rounds is not None else SEASON_ROUNDS,
        )
        db.session.add(game)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def add_pick(db):
    def _add_pick(game, user, round_name, fixture_id, team_id):
        pick = SurvivorPick(
            survivor_game_id=game.id,
            user_id=user.id,
            external_round=round_name,
            external_fixture_id=str(fixture_id),
            external_picked_team_id=str(team_id),
            external_picked_team_name=f"Team {team_id}",
        )
        db.session.add(pick)
        db.session.commit()
        return pick

    return _add_pick


@pytest.fixture
def decided_game(db, make_game, make_user, add_pick):
    """One-life game over SEASON_ROUNDS

    Ana survives every round, Beto loses round 1, Caro loses round 2.
    """
    game = make_game(lives=1)
    ana, beto, caro = make_user("Ana"), make_user("Beto"), make_user("Caro")
    for user in (ana, beto, caro):
        game.add_participant(user.id)
    db.session.commit()

    add_pick(game, ana, "Apertura - 1", 101, 1)
    add_pick(game, ana, "Apertura - 2", 202, 2)
    add_pick(game, ana, "Apertura - 3", 301, 4)
    add_pick(game, beto, "Apertura - 1", 101, 2)
    add_pick(game, caro, "Apertura - 1", 101, 1)
    add_pick(game, caro, "Apertura - 2", 202, 4)

    return game, ana, beto, caro


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)
