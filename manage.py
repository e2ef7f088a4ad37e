#!/usr/bin/env python3
"""
Quinielas Management CLI

This script provides command-line management functionality for the Quinielas application.
"""

import json
import logging

import click
from flask.cli import with_appcontext
from flask_migrate import migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from quinielas import create_app, db
from quinielas.models import SurvivorGame, SurvivorParticipant, SurvivorPick, User
from quinielas.services import survivor_service
from quinielas.services.elimination_service import process_survivor_results
from quinielas.utils.cache_utils import (
    CacheManager,
    invalidate_round_fixtures,
    invalidate_rounds,
)
from quinielas.utils.football_api import get_fixture_source

app = create_app()


@click.group()
def cli():
    """Quinielas Management CLI"""
    pass


# Survivor Commands
@cli.group()
def survivor():
    """Survivor game commands"""
    pass


@survivor.command("process-results")
@with_appcontext
def process_results():
    """Recompute every running survivor game and store status changes"""
    click.echo("⚽ Processing survivor results...")

    try:
        result = process_survivor_results()
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error processing results: {str(e)}")
        logging.error(f"Survivor results processing failed - SQL error: {e}")
        return

    click.echo(f"✅ Games processed: {result['games_processed']}")
    click.echo(f"👥 Participants updated: {result['participants_updated']}")
    click.echo(f"💀 Eliminations: {result['eliminations_processed']}")
    if result["games_failed"]:
        click.echo(f"⚠️  Games failed: {result['games_failed']}")


@survivor.command()
@click.argument("game_id", type=int)
@with_appcontext
def standings(game_id):
    """Show standings of a survivor game"""
    game = db.session.get(SurvivorGame, game_id)
    if not game:
        click.echo(f"❌ Survivor game {game_id} not found!")
        return

    result = survivor_service.get_standings(game)

    click.echo(f"🏆 {game.name} - {game.league_name or game.external_league_id}")
    click.echo(f"Active round: {result['active_round'] or 'None'}")
    click.echo("=" * 50)

    for row in result["standings"]:
        if row["is_eliminated"]:
            state = f"eliminated at {row['eliminated_at_round']}"
        else:
            state = f"{row['lives_remaining']} lives"
        click.echo(f"{row['rank']:>3}. {row['name']:<25} {state}")

    click.echo("=" * 50)
    click.echo(f"Alive: {result['alive_count']}/{result['participant_count']}")
    if result["winner_user_id"] is not None:
        click.echo(f"🎉 Winner: user {result['winner_user_id']}")


@survivor.command()
@click.argument("game_id", type=int)
@click.argument("user_id", type=int)
@with_appcontext
def status(game_id, user_id):
    """Show the computed status of one participant"""
    game = db.session.get(SurvivorGame, game_id)
    if not game:
        click.echo(f"❌ Survivor game {game_id} not found!")
        return

    participant_status = survivor_service.get_participant_status(game, user_id)
    if participant_status is None:
        click.echo(f"❌ User {user_id} is not a participant in game {game_id}")
        return

    click.echo(json.dumps(participant_status.to_dict(), indent=2))


# Fixture Commands
@cli.group()
def fixtures():
    """Fixture provider commands"""
    pass


@fixtures.command()
@click.argument("league")
@click.argument("season")
@click.argument("round_name")
@click.option("--refresh", is_flag=True, help="Drop the cached copy first")
@with_appcontext
def show(league, season, round_name, refresh):
    """Show the fixtures of a round"""
    if refresh:
        invalidate_round_fixtures(league, season, round_name)
        click.echo("🔄 Cached fixtures dropped")

    round_fixtures = get_fixture_source().get_fixtures(league, season, round_name)
    if not round_fixtures:
        click.echo("⚠️  No fixtures available")
        return

    for fixture in round_fixtures:
        home = fixture.home_goals if fixture.home_goals is not None else "-"
        away = fixture.away_goals if fixture.away_goals is not None else "-"
        click.echo(
            f"{fixture.fixture_id:>8}  {fixture.home_team_name} {home} - "
            f"{away} {fixture.away_team_name}  [{fixture.status}]"
        )


@fixtures.command()
@click.argument("league")
@click.argument("season")
@click.option("--refresh", is_flag=True, help="Drop the cached copy first")
@with_appcontext
def rounds(league, season, refresh):
    """Show the rounds of a league season with their dates"""
    if refresh:
        invalidate_rounds(league, season)
        click.echo("🔄 Cached rounds dropped")

    season_rounds = get_fixture_source().get_rounds(league, season)
    if not season_rounds:
        click.echo("⚠️  No rounds available")
        return

    for rnd in season_rounds:
        span = f"{rnd.start_date} → {rnd.end_date}" if rnd.dates else "no dates"
        click.echo(f"{rnd.sequence + 1:>3}. {rnd.name:<30} {span}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    try:
        migrate(message=message)
        click.echo(f"✅ Migration created: {message}")
    except Exception as e:
        click.echo(f"❌ Error creating migration: {str(e)}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


# Info Commands
@cli.command("status")
@with_appcontext
def app_status():
    """Show application status"""
    click.echo("⚽ Quinielas Application Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    if app.config.get("FOOTBALL_API_KEY"):
        click.echo("✅ Football API: Key configured")
    else:
        click.echo("⚠️  Football API: No key configured")

    click.echo(f"👥 Users: {User.query.count()}")
    click.echo(f"🏆 Survivor games: {SurvivorGame.query.count()}")

    alive = SurvivorParticipant.query.filter_by(is_eliminated=False).count()
    total = SurvivorParticipant.query.count()
    click.echo(f"❤️  Participants alive: {alive}/{total}")
    click.echo(f"📝 Picks: {SurvivorPick.query.count()}")

    rate_limit = get_fixture_source().get_rate_limit_status()
    click.echo(
        f"📡 API requests: {rate_limit['requests_last_minute']}/"
        f"{rate_limit['max_requests_per_minute']} in the last minute"
    )

    cache_stats = CacheManager.get_cache_stats()
    click.echo(
        f"🗄️  Cache: {cache_stats['type']} "
        f"(fixtures {cache_stats['fixtures_ttl']}s, rounds {cache_stats['rounds_ttl']}s)"
    )


if __name__ == "__main__":
    with app.app_context():
        cli()
