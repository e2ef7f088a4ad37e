"""
Round scheduling for survivor games

Rounds come from the game configuration as an ordered list of
``{"roundName": ..., "dates": [...]}`` items. Their position in that list is
the only ordering the survivor engine trusts.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

logger = logging.getLogger(__name__)

ROUND_NAME_KEYS = ("roundName", "round_name", "round", "name")


@dataclass(frozen=True)
class Round:
    name: str
    dates: tuple = field(default_factory=tuple)
    sequence: int = 0

    @property
    def start_date(self) -> Optional[date]:
        return self.dates[0] if self.dates else None

    @property
    def end_date(self) -> Optional[date]:
        return self.dates[-1] if self.dates else None

    def to_dict(self):
        return {
            "roundName": self.name,
            "dates": [d.isoformat() for d in self.dates],
            "sequence": self.sequence,
        }


def _parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _round_name(item):
    for key in ROUND_NAME_KEYS:
        value = item.get(key)
        if value:
            return str(value).strip()
    return None


def parse_rounds(config):
    """
    Turn a rounds configuration into an ordered list of Round objects.

    Accepts Round instances (re-sequenced by position) or dicts. Unparsable
    dates are dropped, each round's dates are sorted, and a repeated round
    name keeps its first occurrence.
    """
    rounds = []
    seen = set()

    for item in config or []:
        if isinstance(item, Round):
            name, raw_dates = item.name, item.dates
        elif isinstance(item, dict):
            name, raw_dates = _round_name(item), item.get("dates") or []
        else:
            logger.warning(f"Ignoring unrecognised round entry: {item!r}")
            continue

        if not name:
            logger.warning(f"Ignoring round without a name: {item!r}")
            continue
        if name in seen:
            logger.warning(f"Duplicate round '{name}' in configuration, keeping the first")
            continue
        seen.add(name)

        dates = []
        for raw in raw_dates:
            parsed = _parse_date(raw)
            if parsed is None:
                logger.warning(f"Ignoring invalid date {raw!r} in round '{name}'")
                continue
            dates.append(parsed)

        rounds.append(Round(name=name, dates=tuple(sorted(set(dates))), sequence=len(rounds)))

    return rounds


def active_round(rounds, as_of):
    """
    Determine the current/next round relative to ``as_of``.

    A round stays active until its last date has passed, so a match week is
    current from the moment the previous one ends until its own final day.
    Rounds without dates are never active. When every dated round has ended,
    the last dated round is returned; an empty list gives None.
    """
    dated = [r for r in sorted(rounds or [], key=lambda r: r.sequence) if r.dates]
    if not dated:
        return None

    for rnd in dated:
        if rnd.end_date >= as_of:
            return rnd

    return dated[-1]


def find_round(rounds, round_name):
    for rnd in rounds or []:
        if rnd.name == round_name:
            return rnd
    return None
