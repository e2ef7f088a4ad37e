"""
Pick outcome evaluation for survivor games

A survivor pick survives when the picked team wins or the match ends level.
Only a loss costs a life.
"""

import logging
from typing import NamedTuple

from quinielas.utils.fixtures import normalize_id

logger = logging.getLogger(__name__)

RESULT_WIN = "win"
RESULT_DRAW = "draw"
RESULT_LOSS = "loss"
RESULT_PENDING = "pending"
RESULT_NO_PICK = "no_pick"


class PickEvaluation(NamedTuple):
    success: bool
    finished: bool
    result: str


def evaluate_pick(fixture, picked_team_id):
    """
    Evaluate a single pick against its fixture.

    Returns:
        PickEvaluation with ``finished=False`` while the match is undecided,
        otherwise ``success`` tells whether the pick survived and ``result``
        is one of win/draw/loss.
    """
    if not fixture.is_finished:
        return PickEvaluation(success=False, finished=False, result=RESULT_PENDING)

    home_goals = fixture.home_goals or 0
    away_goals = fixture.away_goals or 0

    # Draw - both teams survive
    if home_goals == away_goals:
        return PickEvaluation(success=True, finished=True, result=RESULT_DRAW)

    picked_team_id = normalize_id(picked_team_id)
    if not fixture.involves(picked_team_id):
        logger.warning(
            f"Picked team {picked_team_id} is not part of fixture {fixture.fixture_id}"
        )

    if home_goals > away_goals:
        winning_team_id = fixture.home_team_id
    else:
        winning_team_id = fixture.away_team_id

    if picked_team_id == winning_team_id:
        return PickEvaluation(success=True, finished=True, result=RESULT_WIN)

    return PickEvaluation(success=False, finished=True, result=RESULT_LOSS)
