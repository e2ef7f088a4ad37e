#!/usr/bin/env python3
"""
Generate secure secrets for the Quinielas application

Prints a fresh SECRET_KEY and CRON_SECRET, or with --env-file writes the ones
that are missing into a .env file. Keys already present are left alone unless
--force is given.
"""

import os
import secrets

import click
from dotenv import dotenv_values, set_key

SECRET_NAMES = ("SECRET_KEY", "CRON_SECRET")


def new_secret():
    return secrets.token_urlsafe(32)


def missing_secrets(env_path, force=False):
    """Secrets to write into env_path, generated for every absent or empty key"""
    current = dotenv_values(env_path) if os.path.exists(env_path) else {}
    return {
        name: new_secret()
        for name in SECRET_NAMES
        if force or not current.get(name)
    }


def write_secrets(env_path, force=False):
    """Write missing secrets into env_path and return the names written"""
    generated = missing_secrets(env_path, force=force)
    if generated and not os.path.exists(env_path):
        open(env_path, "a").close()

    for name, value in generated.items():
        set_key(env_path, name, value, quote_mode="never")
    return sorted(generated)


@click.command()
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write missing secrets into this .env file instead of printing them",
)
@click.option("--force", is_flag=True, help="Replace secrets that already exist")
def generate_secrets(env_file, force):
    """Generate secure random keys for the application"""
    click.echo("🔐 Generating secure secrets for Quinielas...")
    click.echo("=" * 50)

    if env_file is None:
        for name in SECRET_NAMES:
            click.echo(f"{name}={new_secret()}")
        click.echo("=" * 50)
        click.echo("📝 Copy these values to your .env file")
    else:
        written = write_secrets(env_file, force=force)
        if written:
            click.echo(f"✅ Wrote {', '.join(written)} to {env_file}")
        else:
            click.echo(f"ℹ️  {env_file} already has every secret, nothing written")

    click.echo("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
