"""
Elimination writer

Recomputes every running survivor game and copies the computed lives and
elimination state onto the stored participant rows. Safe to re-run: rows that
already match are left untouched.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from quinielas import db
from quinielas.models import SurvivorGame, SurvivorParticipant
from quinielas.services.survivor_service import load_picks_by_participant
from quinielas.services.survivor_status import compute_status_batch
from quinielas.utils.performance import PerformanceMonitor, timer

logger = logging.getLogger(__name__)


def get_games_to_process():
    """Games with at least one participant not yet eliminated in storage"""
    return (
        SurvivorGame.query.join(SurvivorParticipant)
        .filter(SurvivorParticipant.is_eliminated.is_(False))
        .distinct()
        .order_by(SurvivorGame.id)
        .all()
    )


def process_game(game, fixture_source=None, as_of=None):
    """
    Write computed statuses for one game's surviving participants.

    Does not commit.

    Returns:
        tuple: (participants_updated, eliminations_processed)
    """
    participants = game.get_active_participants()
    if not participants:
        return 0, 0

    picks_by_user = load_picks_by_participant(game)
    statuses = compute_status_batch(
        {p.user_id: picks_by_user.get(p.user_id, []) for p in participants},
        game.rounds_selected,
        game.lives,
        game.external_league_id,
        game.external_season,
        fixture_source=fixture_source,
        as_of=as_of,
    )

    updated = 0
    eliminations = 0
    for participant in participants:
        status = statuses[participant.user_id]
        if not participant.apply_status(status):
            continue

        updated += 1
        if status.is_eliminated:
            eliminations += 1
            logger.info(
                f"User {participant.user_id} eliminated from survivor game "
                f"{game.id} at round '{status.eliminated_at_round}'"
            )

    return updated, eliminations


@timer
def process_survivor_results(fixture_source=None, as_of=None):
    """
    Refresh stored survivor statuses for every running game.

    A failure in one game is rolled back and logged, and the run moves on to
    the next game.

    Returns:
        dict: Run counters
    """
    stats = {
        "games_processed": 0,
        "games_failed": 0,
        "participants_updated": 0,
        "eliminations_processed": 0,
    }

    games = get_games_to_process()
    logger.info(f"Processing survivor results for {len(games)} games")

    for game in games:
        game_id = game.id
        try:
            with PerformanceMonitor(f"survivor game {game_id}", log_threshold=2.0):
                updated, eliminations = process_game(
                    game, fixture_source=fixture_source, as_of=as_of
                )
                if updated:
                    db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            stats["games_failed"] += 1
            logger.error(
                f"Error writing survivor results for game {game_id}: {e}",
                exc_info=True,
            )
            continue
        except Exception as e:
            db.session.rollback()
            stats["games_failed"] += 1
            logger.error(
                f"Error processing survivor game {game_id}: {e}", exc_info=True
            )
            continue

        stats["games_processed"] += 1
        stats["participants_updated"] += updated
        stats["eliminations_processed"] += eliminations

    logger.info(
        f"Survivor results processed: {stats['games_processed']} games, "
        f"{stats['participants_updated']} participants updated, "
        f"{stats['eliminations_processed']} eliminations, "
        f"{stats['games_failed']} failures"
    )
    return stats
