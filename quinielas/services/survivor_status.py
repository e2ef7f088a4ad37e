"""
Survivor status computation

Replays a participant's picks round by round against the provider's results
to derive lives remaining, elimination and a per-round outcome. Nothing
stored in the database is trusted here; the stored participant row is only a
cache refreshed from this computation.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from flask import current_app, has_app_context

from quinielas.utils.fixtures import is_round_finished, normalize_id
from quinielas.utils.rounds import active_round, parse_rounds
from quinielas.utils.scoring import (
    RESULT_NO_PICK,
    RESULT_PENDING,
    evaluate_pick,
)
from quinielas.utils.timezone_utils import to_app_date

logger = logging.getLogger(__name__)

DEFAULT_FETCH_WORKERS = 4


@dataclass(frozen=True)
class PickData:
    round_name: str
    fixture_id: str
    team_id: str
    team_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "fixture_id", normalize_id(self.fixture_id))
        object.__setattr__(self, "team_id", normalize_id(self.team_id))

    def to_dict(self):
        return {
            "round": self.round_name,
            "fixture_id": self.fixture_id,
            "team_id": self.team_id,
            "team_name": self.team_name,
        }


@dataclass(frozen=True)
class RoundResult:
    round_name: str
    result: str
    pick: Optional[PickData]
    is_round_finished: bool
    evaluated: bool
    lives_after: int

    def to_dict(self):
        return {
            "round": self.round_name,
            "result": self.result,
            "pick": self.pick.to_dict() if self.pick else None,
            "is_round_finished": self.is_round_finished,
            "evaluated": self.evaluated,
            "lives_after": self.lives_after,
        }


@dataclass(frozen=True)
class SurvivorStatus:
    lives_remaining: int
    is_eliminated: bool
    eliminated_at_round: Optional[str] = None
    round_results: tuple = ()

    @property
    def is_alive(self):
        return not self.is_eliminated

    @classmethod
    def initial(cls, total_lives):
        try:
            lives = max(0, int(total_lives))
        except (TypeError, ValueError):
            lives = 0
        return cls(lives_remaining=lives, is_eliminated=False)

    def to_dict(self):
        return {
            "lives_remaining": self.lives_remaining,
            "is_eliminated": self.is_eliminated,
            "eliminated_at_round": self.eliminated_at_round,
            "round_results": [r.to_dict() for r in self.round_results],
        }


class RoundFixtureCache:
    """
    Fixtures of each round for one evaluation run, keyed by fixture id.

    Each round is fetched from the source at most once, even when several
    threads ask for it at the same time. A fetch that raises is stored as an
    empty round so the run carries on with that round pending.
    """

    def __init__(self, fixture_source, league_id, season):
        self.fixture_source = fixture_source
        self.league_id = league_id
        self.season = season
        self.fetch_count = 0
        self._fixtures = {}
        self._round_locks = {}
        self._lock = threading.Lock()

    def __contains__(self, round_name):
        with self._lock:
            return round_name in self._fixtures

    def get(self, round_name):
        with self._lock:
            if round_name in self._fixtures:
                return self._fixtures[round_name]
            round_lock = self._round_locks.setdefault(round_name, threading.Lock())

        with round_lock:
            with self._lock:
                if round_name in self._fixtures:
                    return self._fixtures[round_name]

            fixtures = self._fetch(round_name)

            with self._lock:
                self._fixtures[round_name] = fixtures
                self.fetch_count += 1
            return fixtures

    def _fetch(self, round_name):
        try:
            fixtures = self.fixture_source.get_fixtures(
                self.league_id, self.season, round_name
            )
        except Exception as e:
            logger.error(f"Fixture fetch failed for round '{round_name}': {e}")
            fixtures = []

        return {f.fixture_id: f for f in fixtures or []}

    def prefetch(self, round_names, max_workers=DEFAULT_FETCH_WORKERS):
        """Fetch every missing round, concurrently when more than one is missing"""
        missing = [name for name in dict.fromkeys(round_names) if name not in self]
        if not missing:
            return

        if max_workers is None or max_workers <= 1 or len(missing) == 1:
            for name in missing:
                self.get(name)
            return

        app = current_app._get_current_object() if has_app_context() else None

        def load(name):
            if app is None:
                return self.get(name)
            with app.app_context():
                return self.get(name)

        with ThreadPoolExecutor(max_workers=min(max_workers, len(missing))) as executor:
            list(executor.map(load, missing))


def _validate_config(rounds, total_lives, league_id, season):
    """Return a description of the configuration problem, or None"""
    if not league_id or not season:
        return "missing league or season"
    if not rounds:
        return "no rounds configured"
    if not isinstance(total_lives, int) or total_lives < 1:
        return f"invalid lives value {total_lives!r}"
    return None


def _picks_by_round(picks, rounds):
    known = {rnd.name for rnd in rounds}
    by_round = {}
    for pick in picks or []:
        if pick.round_name not in known:
            logger.debug(f"Ignoring pick for unconfigured round '{pick.round_name}'")
            continue
        # A later pick for the same round replaces an earlier one
        by_round[pick.round_name] = pick
    return by_round


def _replay(picks, rounds, total_lives, fixture_cache, current_round):
    """Run the life tally for one participant over the rounds in order"""
    picks_by_round = _picks_by_round(picks, rounds)

    lives = total_lives
    eliminated = False
    eliminated_at_round = None
    results = []

    for rnd in rounds:
        pick = picks_by_round.get(rnd.name)

        # Eliminated participants accrue nothing further
        if eliminated:
            results.append(
                RoundResult(rnd.name, RESULT_PENDING, pick, False, False, lives)
            )
            continue

        fixtures = fixture_cache.get(rnd.name)
        round_finished = is_round_finished(fixtures.values())
        lost_life = False

        if pick is not None:
            fixture = fixtures.get(pick.fixture_id)
            if fixture is None or not fixture.is_finished:
                result, evaluated = RESULT_PENDING, False
            else:
                evaluation = evaluate_pick(fixture, pick.team_id)
                result, evaluated = evaluation.result, True
                lost_life = not evaluation.success
        else:
            # Without fixtures the round cannot be judged, whatever the calendar says
            round_over = bool(fixtures) and (
                round_finished
                or (current_round is not None and rnd.sequence < current_round.sequence)
            )
            if round_over:
                result, evaluated, lost_life = RESULT_NO_PICK, True, True
            else:
                result, evaluated = RESULT_PENDING, False

        if lost_life:
            lives = max(0, lives - 1)
            if lives == 0:
                eliminated = True
                eliminated_at_round = rnd.name

        results.append(
            RoundResult(rnd.name, result, pick, round_finished, evaluated, lives)
        )

    return SurvivorStatus(
        lives_remaining=lives,
        is_eliminated=eliminated,
        eliminated_at_round=eliminated_at_round,
        round_results=tuple(results),
    )


def _resolve_source(fixture_source):
    if fixture_source is not None:
        return fixture_source
    from quinielas.utils.football_api import get_fixture_source

    return get_fixture_source()


def _default_workers():
    if has_app_context():
        return current_app.config.get("FIXTURE_FETCH_WORKERS", DEFAULT_FETCH_WORKERS)
    return DEFAULT_FETCH_WORKERS


def compute_status(
    picks,
    rounds,
    total_lives,
    league_id,
    season,
    fixture_source=None,
    as_of=None,
    fixture_cache=None,
):
    """
    Compute one participant's survivor status.

    Args:
        picks: PickData sequence; for a repeated round the last one counts
        rounds: Round objects or raw ``rounds_selected`` configuration
        total_lives: Lives each participant starts with
        league_id, season: Provider identifiers for the fixtures
        fixture_source: Object with ``get_fixtures(league_id, season, round_name)``
        as_of: Reference date (or datetime) for the active round
        fixture_cache: RoundFixtureCache to share fetched rounds across calls

    Returns:
        SurvivorStatus
    """
    rounds = parse_rounds(rounds)
    problem = _validate_config(rounds, total_lives, league_id, season)
    if problem:
        logger.warning(f"Survivor status not computed: {problem}")
        return SurvivorStatus.initial(total_lives)

    if fixture_cache is None:
        fixture_cache = RoundFixtureCache(
            _resolve_source(fixture_source), league_id, season
        )
    current_round = active_round(rounds, to_app_date(as_of))

    return _replay(picks, rounds, total_lives, fixture_cache, current_round)


def compute_status_batch(
    picks_by_participant,
    rounds,
    total_lives,
    league_id,
    season,
    fixture_source=None,
    as_of=None,
    max_workers=None,
):
    """
    Compute statuses for every participant of a game.

    Each round's fixtures are fetched once for the whole batch, concurrently
    across rounds; the tally itself runs per participant in round order.

    Returns:
        dict mapping each key of ``picks_by_participant`` to its SurvivorStatus
    """
    rounds = parse_rounds(rounds)
    problem = _validate_config(rounds, total_lives, league_id, season)
    if problem:
        logger.warning(f"Survivor statuses not computed: {problem}")
        return {
            participant: SurvivorStatus.initial(total_lives)
            for participant in picks_by_participant
        }

    if not picks_by_participant:
        return {}

    fixture_cache = RoundFixtureCache(
        _resolve_source(fixture_source), league_id, season
    )
    fixture_cache.prefetch(
        [rnd.name for rnd in rounds],
        max_workers=max_workers if max_workers is not None else _default_workers(),
    )
    current_round = active_round(rounds, to_app_date(as_of))

    statuses = {
        participant: _replay(picks, rounds, total_lives, fixture_cache, current_round)
        for participant, picks in picks_by_participant.items()
    }

    logger.debug(
        f"Computed {len(statuses)} survivor statuses with {fixture_cache.fetch_count} round fetches"
    )
    return statuses
