"""
Timezone utility functions for the Quinielas application
"""

from datetime import datetime, timezone

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "America/Mexico_City"


def get_app_timezone():
    """Get the application's configured timezone"""
    timezone_name = DEFAULT_TIMEZONE
    if has_app_context():
        timezone_name = current_app.config.get("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        return pytz.UTC


def get_current_time():
    """Get current time in the application's timezone"""
    app_tz = get_app_timezone()
    return datetime.now(app_tz)


def get_utc_time():
    """Get current time in UTC"""
    return datetime.now(timezone.utc)


def today_in_app_timezone():
    """Calendar date used to decide which round is active"""
    return get_current_time().date()


def ensure_utc(dt):
    """Return an aware UTC datetime (naive values are assumed to be UTC)"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(value):
    """Parse a provider ISO-8601 timestamp into an aware UTC datetime"""
    if not value:
        return None

    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def to_app_date(value):
    """Calendar date of ``value`` in the application's timezone"""
    if value is None:
        return today_in_app_timezone()
    if isinstance(value, datetime):
        return ensure_utc(value).astimezone(get_app_timezone()).date()
    return value
