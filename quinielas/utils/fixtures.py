"""
Fixture value objects parsed from API-Football payloads
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from quinielas.utils.timezone_utils import ensure_utc, parse_iso_datetime

logger = logging.getLogger(__name__)

# Short status codes from API-Football
FINISHED_STATUSES = frozenset({"FT", "AET", "PEN"})
NOT_STARTED_STATUSES = frozenset({"TBD", "NS"})
POSTPONED_STATUSES = frozenset({"PST", "CANC"})
IN_PLAY_STATUSES = frozenset(
    {"1H", "HT", "2H", "ET", "BT", "P", "SUSP", "INT", "LIVE"}
)


def normalize_id(value):
    """External identifiers are compared as trimmed strings"""
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class Fixture:
    """One match between two teams as reported by the provider"""

    fixture_id: str
    home_team_id: str
    home_team_name: str
    away_team_id: str
    away_team_name: str
    status: str
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None
    kickoff: Optional[datetime] = None

    @property
    def is_finished(self):
        return self.status in FINISHED_STATUSES

    @property
    def is_live(self):
        return self.status in IN_PLAY_STATUSES

    @property
    def has_started(self):
        """True once the match left the scheduled states"""
        return self.status not in NOT_STARTED_STATUSES | POSTPONED_STATUSES

    def involves(self, team_id):
        team_id = normalize_id(team_id)
        return team_id in (self.home_team_id, self.away_team_id)

    def team_name(self, team_id):
        team_id = normalize_id(team_id)
        if team_id == self.home_team_id:
            return self.home_team_name
        if team_id == self.away_team_id:
            return self.away_team_name
        return None

    @classmethod
    def from_api(cls, payload):
        """
        Build a Fixture from one element of the API-Football ``response`` list.

        Returns None when the payload lacks a fixture id or either team id.
        """
        fixture = payload.get("fixture") or {}
        teams = payload.get("teams") or {}
        goals = payload.get("goals") or {}
        home = teams.get("home") or {}
        away = teams.get("away") or {}

        fixture_id = normalize_id(fixture.get("id"))
        home_id = normalize_id(home.get("id"))
        away_id = normalize_id(away.get("id"))
        if not fixture_id or not home_id or not away_id:
            logger.warning(f"Skipping malformed fixture payload: {fixture.get('id')}")
            return None

        return cls(
            fixture_id=fixture_id,
            home_team_id=home_id,
            home_team_name=home.get("name") or "",
            away_team_id=away_id,
            away_team_name=away.get("name") or "",
            status=((fixture.get("status") or {}).get("short") or "NS").upper(),
            home_goals=_parse_goals(goals.get("home")),
            away_goals=_parse_goals(goals.get("away")),
            kickoff=parse_iso_datetime(fixture.get("date")),
        )

    def to_dict(self):
        """Convert fixture to dictionary for API responses"""
        return {
            "fixture_id": self.fixture_id,
            "home_team": {"id": self.home_team_id, "name": self.home_team_name},
            "away_team": {"id": self.away_team_id, "name": self.away_team_name},
            "status": self.status,
            "goals": {"home": self.home_goals, "away": self.away_goals},
            "kickoff": self.kickoff.isoformat() if self.kickoff else None,
            "is_finished": self.is_finished,
            "is_live": self.is_live,
        }


def _parse_goals(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_fixtures(payloads):
    """Parse a provider response list, dropping malformed entries"""
    fixtures = []
    for payload in payloads or []:
        fixture = Fixture.from_api(payload)
        if fixture is not None:
            fixtures.append(fixture)
    return fixtures


def is_round_finished(fixtures):
    """A round is finished when it has fixtures and every one of them is finished"""
    fixtures = list(fixtures or [])
    if not fixtures:
        return False
    return all(f.is_finished for f in fixtures)


def has_round_started(fixtures):
    """At least one match of the round is in progress or finished"""
    return any(f.has_started for f in fixtures or [])


def is_round_locked(fixtures, now):
    """
    Picks for a round close once its first fixture has started.

    A scheduled fixture whose kickoff time has passed counts as started even
    if the provider has not updated its status yet.
    """
    if has_round_started(fixtures):
        return True

    now = ensure_utc(now)
    for fixture in fixtures or []:
        if (
            fixture.status in NOT_STARTED_STATUSES
            and fixture.kickoff is not None
            and fixture.kickoff <= now
        ):
            return True
    return False
