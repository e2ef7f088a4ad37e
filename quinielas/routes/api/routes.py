import hmac
import logging
from functools import wraps

from flask import current_app, jsonify, request

from quinielas import db, limiter
from quinielas.models import SurvivorGame, User
from quinielas.routes.api import bp
from quinielas.services import survivor_service
from quinielas.services.elimination_service import process_survivor_results
from quinielas.utils.football_api import get_fixture_source

logger = logging.getLogger(__name__)


def add_security_headers(f):
    """Add security headers to API responses"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    return decorated_function


def cron_auth_required(f):
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        secret = current_app.config.get("CRON_SECRET")
        if not secret:
            logger.warning("CRON_SECRET not set, accepting unauthenticated cron request")
            return f(*args, **kwargs)

        header = request.headers.get("Authorization", "")
        token = header[7:] if header.startswith("Bearer ") else ""

        if not hmac.compare_digest(token, secret):
            logger.warning(f"Rejected cron request from {request.remote_addr}")
            return jsonify({"error": "Unauthorized"}), 401

        return f(*args, **kwargs)

    return decorated_function


@bp.route("/survivor/<int:game_id>/standings")
@add_security_headers
def survivor_standings(game_id):
    """Ranked standings and winner of a survivor game"""
    game = db.get_or_404(SurvivorGame, game_id)
    return jsonify(survivor_service.get_standings(game))


@bp.route("/survivor/<int:game_id>/participants/<int:user_id>/status")
@add_security_headers
def survivor_participant_status(game_id, user_id):
    game = db.get_or_404(SurvivorGame, game_id)
    status = survivor_service.get_participant_status(game, user_id)
    if status is None:
        return jsonify({"error": "Not a participant in this game"}), 404

    return jsonify({"game_id": game.id, "user_id": user_id, **status.to_dict()})


@bp.route("/survivor/<int:game_id>/picks", methods=["POST"])
@limiter.limit("30 per minute")
@add_security_headers
def survivor_submit_pick(game_id):
    """Submit or replace a pick for a round"""
    game = db.get_or_404(SurvivorGame, game_id)
    data = request.get_json(silent=True) or {}

    required = ("user_id", "round", "fixture_id", "team_id")
    missing = [field for field in required if data.get(field) in (None, "")]
    if missing:
        return jsonify({"error": f"Missing fields: {', '.join(missing)}"}), 400

    try:
        user_id = int(data["user_id"])
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid user_id"}), 400

    pick, message = survivor_service.submit_pick(
        game,
        user_id,
        str(data["round"]),
        data["fixture_id"],
        data["team_id"],
        team_name=data.get("team_name"),
    )
    if pick is None:
        return jsonify({"success": False, "error": message}), 400

    return jsonify({"success": True, "message": message, "pick": pick.to_dict()})


@bp.route("/survivor/<int:game_id>/pending-picks")
@add_security_headers
def survivor_pending_picks(game_id):
    """Participants who have not picked for the active round yet"""
    game = db.get_or_404(SurvivorGame, game_id)
    return jsonify(survivor_service.get_pending_picks(game))


@bp.route("/users/<int:user_id>/survivor-statistics")
@add_security_headers
def user_survivor_statistics(user_id):
    db.get_or_404(User, user_id)
    return jsonify(survivor_service.get_survivor_statistics(user_id))


@bp.route("/football/fixtures")
def football_fixtures():
    """Fixtures of one round from the provider (cached)"""
    league = request.args.get("league")
    season = request.args.get("season")
    round_name = request.args.get("round")
    if not league or not season or not round_name:
        return jsonify({"error": "league, season and round are required"}), 400

    fixtures = get_fixture_source().get_fixtures(league, season, round_name)
    return jsonify(
        {
            "league": league,
            "season": season,
            "round": round_name,
            "fixtures": [f.to_dict() for f in fixtures],
        }
    )


@bp.route("/football/rounds")
def football_rounds():
    """Rounds of a league season with their match dates"""
    league = request.args.get("league")
    season = request.args.get("season")
    if not league or not season:
        return jsonify({"error": "league and season are required"}), 400

    rounds = get_fixture_source().get_rounds(league, season)
    return jsonify(
        {"league": league, "season": season, "rounds": [r.to_dict() for r in rounds]}
    )


@bp.route("/cron/process-survivor-results", methods=["POST"])
@limiter.limit("10 per hour")
@cron_auth_required
def cron_process_survivor_results():
    """Run the elimination writer on demand"""
    result = process_survivor_results()
    return jsonify({"success": True, **result})
