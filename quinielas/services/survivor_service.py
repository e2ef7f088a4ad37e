"""
Survivor game read path and pick submission
"""

import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from quinielas import db
from quinielas.models import SurvivorGame, SurvivorParticipant, SurvivorPick, User
from quinielas.services.survivor_status import compute_status, compute_status_batch
from quinielas.utils.fixtures import is_round_locked, normalize_id
from quinielas.utils.rounds import active_round, find_round
from quinielas.utils.scoring import (
    RESULT_DRAW,
    RESULT_LOSS,
    RESULT_NO_PICK,
    RESULT_WIN,
)
from quinielas.utils.timezone_utils import ensure_utc, get_utc_time, to_app_date

logger = logging.getLogger(__name__)


def _fixture_source(fixture_source):
    if fixture_source is not None:
        return fixture_source
    from quinielas.utils.football_api import get_fixture_source

    return get_fixture_source()


def load_picks_by_participant(game):
    """Map each participant's user id to their picks, in submission order"""
    picks_by_user = {
        user_id: []
        for (user_id,) in db.session.query(SurvivorParticipant.user_id)
        .filter_by(survivor_game_id=game.id)
        .order_by(SurvivorParticipant.user_id)
    }

    picks = (
        SurvivorPick.query.filter_by(survivor_game_id=game.id)
        .order_by(SurvivorPick.id)
        .all()
    )
    for pick in picks:
        picks_by_user.setdefault(pick.user_id, []).append(pick.to_pick_data())

    return picks_by_user


def get_participant(game, user_id):
    return SurvivorParticipant.query.filter_by(
        survivor_game_id=game.id, user_id=user_id
    ).first()


def get_participant_status(game, user_id, fixture_source=None, as_of=None):
    """Computed SurvivorStatus of one participant, or None if the user never joined"""
    if get_participant(game, user_id) is None:
        return None

    picks = (
        SurvivorPick.query.filter_by(survivor_game_id=game.id, user_id=user_id)
        .order_by(SurvivorPick.id)
        .all()
    )
    return compute_status(
        [pick.to_pick_data() for pick in picks],
        game.rounds_selected,
        game.lives,
        game.external_league_id,
        game.external_season,
        fixture_source=fixture_source,
        as_of=as_of,
    )


def get_standings(game, fixture_source=None, as_of=None):
    """
    Ranked standings of a survivor game and its winner, if decided.

    Rows are ordered alive first, then by lives remaining, then by how late
    the participant was eliminated. The winner is the last participant alive
    in a game that had at least two.
    """
    participants = game.participants.order_by(SurvivorParticipant.user_id).all()
    rounds = game.get_rounds()
    statuses = compute_status_batch(
        load_picks_by_participant(game),
        rounds,
        game.lives,
        game.external_league_id,
        game.external_season,
        fixture_source=fixture_source,
        as_of=as_of,
    )
    round_positions = {rnd.name: rnd.sequence for rnd in rounds}

    ranked = []
    alive_ids = []
    for participant in participants:
        status = statuses.get(participant.user_id)
        if status is None:
            continue

        if status.is_alive:
            alive_ids.append(participant.user_id)
            survived_until = len(rounds)
        else:
            survived_until = round_positions.get(status.eliminated_at_round, -1)

        user = participant.user
        sort_key = (
            status.is_eliminated,
            -status.lives_remaining,
            -survived_until,
            participant.user_id,
        )
        ranked.append(
            (
                sort_key,
                {
                    "user_id": participant.user_id,
                    "name": user.display_name if user else None,
                    "image": user.image if user else None,
                    "lives_remaining": status.lives_remaining,
                    "is_eliminated": status.is_eliminated,
                    "eliminated_at_round": status.eliminated_at_round,
                    "round_results": [r.to_dict() for r in status.round_results],
                },
            )
        )

    ranked.sort(key=lambda item: item[0])
    rows = [row for _, row in ranked]
    for position, row in enumerate(rows, start=1):
        row["rank"] = position

    winner_user_id = None
    if len(rows) >= 2 and len(alive_ids) == 1:
        winner_user_id = alive_ids[0]

    current_round = active_round(rounds, to_app_date(as_of))

    return {
        "game_id": game.id,
        "participant_count": len(rows),
        "alive_count": len(alive_ids),
        "winner_user_id": winner_user_id,
        "active_round": current_round.name if current_round else None,
        "standings": rows,
    }


def get_pending_picks(game, fixture_source=None, now=None):
    """
    Participants who still owe a pick for the active round.

    Only reported while the active round has a fixture kicking off later
    than the pick lock window.
    """
    now = ensure_utc(now) if now is not None else get_utc_time()
    current_round = active_round(game.get_rounds(), to_app_date(now))
    if current_round is None:
        return {"round": None, "participants": []}

    fixtures = _fixture_source(fixture_source).get_fixtures(
        game.external_league_id, game.external_season, current_round.name
    )
    lock_minutes = current_app.config.get("PICK_LOCK_MINUTES", 5)
    cutoff = now + timedelta(minutes=lock_minutes)
    open_fixtures = [f for f in fixtures if f.kickoff is not None and f.kickoff > cutoff]
    if not open_fixtures:
        return {"round": current_round.name, "participants": []}

    picked_user_ids = {
        user_id
        for (user_id,) in db.session.query(SurvivorPick.user_id).filter_by(
            survivor_game_id=game.id, external_round=current_round.name
        )
    }

    pending = []
    for participant in game.get_active_participants():
        if participant.user_id in picked_user_ids:
            continue
        user = participant.user
        pending.append(
            {
                "user_id": participant.user_id,
                "name": user.display_name if user else None,
                "email": user.email if user else None,
            }
        )

    return {
        "round": current_round.name,
        "first_kickoff": min(f.kickoff for f in open_fixtures).isoformat(),
        "participants": pending,
    }


def submit_pick(
    game,
    user_id,
    round_name,
    fixture_id,
    team_id,
    team_name=None,
    fixture_source=None,
    now=None,
):
    """
    Validate and store a participant's pick for a round.

    Picking again for the same round replaces the earlier pick.

    Returns:
        tuple: (SurvivorPick or None, message)
    """
    now = ensure_utc(now) if now is not None else get_utc_time()
    fixture_id = normalize_id(fixture_id)
    team_id = normalize_id(team_id)
    source = _fixture_source(fixture_source)

    if get_participant(game, user_id) is None:
        return None, "You are not a participant in this game"

    status = get_participant_status(game, user_id, fixture_source=source, as_of=now)
    if status.is_eliminated:
        return None, "You have been eliminated from this game"

    rounds = game.get_rounds()
    target_round = find_round(rounds, round_name)
    if target_round is None:
        return None, f"Round '{round_name}' is not part of this game"

    current_round = active_round(rounds, to_app_date(now))
    if current_round is not None and target_round.sequence < current_round.sequence:
        return None, f"Round '{round_name}' is already closed"

    fixtures = source.get_fixtures(
        game.external_league_id, game.external_season, target_round.name
    )
    if not fixtures:
        return None, "Fixtures for this round are not available yet"

    lock_minutes = current_app.config.get("PICK_LOCK_MINUTES", 5)
    if is_round_locked(fixtures, now + timedelta(minutes=lock_minutes)):
        return None, f"Picks for round '{round_name}' are locked"

    fixture = next((f for f in fixtures if f.fixture_id == fixture_id), None)
    if fixture is None:
        return None, "Fixture does not belong to this round"
    if not fixture.involves(team_id):
        return None, "Team does not play in this fixture"

    used = SurvivorPick.query.filter(
        SurvivorPick.survivor_game_id == game.id,
        SurvivorPick.user_id == user_id,
        SurvivorPick.external_picked_team_id == team_id,
        SurvivorPick.external_round != target_round.name,
    ).first()
    if used:
        return None, f"You already picked this team in round '{used.external_round}'"

    pick = SurvivorPick.query.filter_by(
        survivor_game_id=game.id, user_id=user_id, external_round=target_round.name
    ).first()
    if pick is None:
        pick = SurvivorPick(
            survivor_game_id=game.id,
            user_id=user_id,
            external_round=target_round.name,
        )
        db.session.add(pick)

    pick.external_fixture_id = fixture.fixture_id
    pick.external_picked_team_id = team_id
    pick.external_picked_team_name = team_name or fixture.team_name(team_id)

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error saving survivor pick for user {user_id}: {e}")
        return None, "Could not save pick"

    logger.info(
        f"User {user_id} picked team {team_id} for round '{target_round.name}' "
        f"in survivor game {game.id}"
    )
    return pick, "Pick saved"


def get_survivor_statistics(user_id, fixture_source=None, as_of=None):
    """Aggregate survivor results for one user across every game they joined"""
    stats = {
        "user_id": user_id,
        "games_played": 0,
        "games_won": 0,
        "games_lost": 0,
        "games_active": 0,
        "total_picks": 0,
        "wins": 0,
        "draws": 0,
        "losses": 0,
        "no_picks": 0,
        "success_rate": 0.0,
    }

    user = db.session.get(User, user_id)
    if user is None:
        return None

    games = (
        SurvivorGame.query.join(SurvivorParticipant)
        .filter(SurvivorParticipant.user_id == user_id)
        .order_by(SurvivorGame.id)
        .all()
    )

    for game in games:
        standings = get_standings(game, fixture_source=fixture_source, as_of=as_of)
        row = next(r for r in standings["standings"] if r["user_id"] == user_id)
        stats["games_played"] += 1

        if standings["winner_user_id"] == user_id:
            stats["games_won"] += 1
        elif row["is_eliminated"]:
            stats["games_lost"] += 1
        else:
            stats["games_active"] += 1

        for result in row["round_results"]:
            if result["pick"] is not None and result["evaluated"]:
                stats["total_picks"] += 1
            outcome = result["result"]
            if outcome == RESULT_WIN:
                stats["wins"] += 1
            elif outcome == RESULT_DRAW:
                stats["draws"] += 1
            elif outcome == RESULT_LOSS:
                stats["losses"] += 1
            elif outcome == RESULT_NO_PICK:
                stats["no_picks"] += 1

    if stats["total_picks"]:
        stats["success_rate"] = round(
            (stats["wins"] + stats["draws"]) / stats["total_picks"] * 100, 1
        )

    return stats
