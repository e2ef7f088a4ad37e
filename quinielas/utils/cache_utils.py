"""
Cache utilities for the Quinielas application
Key builders and invalidation helpers for provider responses
"""

from urllib.parse import quote

from flask import current_app

from quinielas import cache


def fixtures_cache_key(league_id, season, round_name):
    """Cache key for one round's fixtures"""
    return f"fixtures:round:{league_id}:{season}:{quote(str(round_name), safe='')}"


def rounds_cache_key(league_id, season):
    """Cache key for a league season's round list"""
    return f"rounds:{league_id}:{season}"


def invalidate_round_fixtures(league_id, season, round_name):
    """
    Drop the cached fixtures of a round so the next read hits the provider

    Returns:
        bool: True if the cache backend reported a deletion
    """
    key = fixtures_cache_key(league_id, season, round_name)
    deleted = cache.delete(key)
    current_app.logger.info(f"Cache invalidated for key: {key}")
    return bool(deleted)


def invalidate_rounds(league_id, season):
    """Drop the cached round list of a league season"""
    key = rounds_cache_key(league_id, season)
    deleted = cache.delete(key)
    current_app.logger.info(f"Cache invalidated for key: {key}")
    return bool(deleted)


class CacheManager:
    """Cache management utilities"""

    @staticmethod
    def get_cache_stats():
        """Get cache statistics"""
        return {
            "type": current_app.config.get("CACHE_TYPE", "Unknown"),
            "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
            "fixtures_ttl": current_app.config.get("FIXTURES_CACHE_TTL", 1800),
            "rounds_ttl": current_app.config.get("ROUNDS_CACHE_TTL", 3600),
        }
