import logging
import threading
import time
from functools import wraps
from urllib.parse import urlparse

import requests
from flask import current_app

from quinielas import cache
from quinielas.utils.cache_utils import fixtures_cache_key, rounds_cache_key
from quinielas.utils.fixtures import parse_fixtures
from quinielas.utils.rounds import parse_rounds

logger = logging.getLogger(__name__)


class FootballApiError(Exception):
    """The provider could not be reached or answered with an error"""


def _retry_after(response, default):
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff

    The instance may override ``base_delay`` through ``retry_base_delay``.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            delay_unit = getattr(self, "retry_base_delay", base_delay)
            last_error = None

            for attempt in range(max_retries):
                delay = delay_unit * (backoff_factor**attempt)
                is_last = attempt == max_retries - 1

                try:
                    response = func(self, *args, **kwargs)
                except requests.exceptions.RequestException as e:
                    last_error = e
                    logger.warning(
                        f"Request failed: {e}. Retry {attempt + 1}/{max_retries}"
                    )
                    if not is_last:
                        time.sleep(delay)
                    continue

                if response.status_code == 429:  # Too Many Requests
                    last_error = FootballApiError("Rate limited by provider")
                    retry_after = min(_retry_after(response, delay), 60.0)
                    logger.warning(
                        f"Rate limited. Waiting {retry_after}s before retry {attempt + 1}/{max_retries}"
                    )
                    if not is_last:
                        time.sleep(retry_after)
                    continue

                if response.status_code >= 500:  # Server errors
                    last_error = FootballApiError(
                        f"Provider server error {response.status_code}"
                    )
                    logger.warning(
                        f"Server error {response.status_code}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    if not is_last:
                        time.sleep(delay)
                    continue

                return response

            raise FootballApiError(f"Max retries ({max_retries}) exceeded: {last_error}")

        return wrapper

    return decorator


class FootballApiClient:
    """
    Reads fixtures and rounds from API-Football with rate limiting, retries
    and a shared read-through cache.

    Every public read fails open: provider errors are logged and an empty
    list is returned, so callers see "no data yet" rather than an exception.
    """

    def __init__(
        self,
        api_base_url,
        api_key,
        timeout=15.0,
        cache_ttl=1800,
        rounds_cache_ttl=3600,
        max_requests_per_minute=30,
        retry_base_delay=2.0,
    ):
        self.api_base_url = (api_base_url or "").rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.rounds_cache_ttl = rounds_cache_ttl
        self.retry_base_delay = retry_base_delay

        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "Quinielas/1.0"})
        if self.api_key:
            self.session.headers.update(
                {
                    "X-RapidAPI-Key": self.api_key,
                    "X-RapidAPI-Host": urlparse(self.api_base_url).hostname or "",
                }
            )

        # Rate limiting configuration
        self._lock = threading.Lock()
        self.request_count = 0
        self.last_request_time = 0
        self.min_request_interval = 0.2
        self.max_requests_per_minute = max_requests_per_minute
        self.request_timestamps = []

    @classmethod
    def from_config(cls, config):
        return cls(
            api_base_url=config.get("FOOTBALL_API_URL"),
            api_key=config.get("FOOTBALL_API_KEY"),
            timeout=config.get("FOOTBALL_API_TIMEOUT", 15.0),
            cache_ttl=config.get("FIXTURES_CACHE_TTL", 1800),
            rounds_cache_ttl=config.get("ROUNDS_CACHE_TTL", 3600),
            max_requests_per_minute=config.get(
                "FOOTBALL_API_MAX_REQUESTS_PER_MINUTE", 30
            ),
        )

    @property
    def is_configured(self):
        return bool(self.api_base_url and self.api_key)

    def _enforce_rate_limit(self):
        """Enforce rate limiting before making requests"""
        with self._lock:
            current_time = time.time()

            # Remove timestamps older than 1 minute
            self.request_timestamps = [
                ts for ts in self.request_timestamps if current_time - ts < 60
            ]

            if len(self.request_timestamps) >= self.max_requests_per_minute:
                sleep_time = 60 - (current_time - self.request_timestamps[0])
                if sleep_time > 0:
                    logger.info(f"Rate limit reached. Sleeping for {sleep_time:.1f}s")
                    time.sleep(sleep_time)
                    self.request_timestamps = []

            # Enforce minimum interval between requests
            time_since_last = time.time() - self.last_request_time
            if time_since_last < self.min_request_interval:
                time.sleep(self.min_request_interval - time_since_last)

            self.last_request_time = time.time()
            self.request_timestamps.append(self.last_request_time)
            self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, path, params=None):
        """Make API request with rate limiting and retry logic"""
        self._enforce_rate_limit()
        return self.session.get(
            f"{self.api_base_url}{path}", params=params, timeout=self.timeout
        )

    def _get_response_list(self, path, params):
        """Fetch an endpoint and return its ``response`` list"""
        response = self._make_api_request(path, params=params)

        if response.status_code >= 400:
            raise FootballApiError(f"HTTP error {response.status_code} for {path}")

        try:
            data = response.json()
        except ValueError as e:
            raise FootballApiError(f"Invalid JSON from {path}: {e}") from e

        # API-Football reports quota and parameter problems in the body
        errors = data.get("errors")
        if errors:
            raise FootballApiError(f"Provider errors for {path}: {errors}")

        return data.get("response") or []

    def get_fixtures(self, league_id, season, round_name, skip_cache=False):
        """
        Fetch the fixtures of one round

        Args:
            league_id: External league id
            season: Season year
            round_name: Provider round name (e.g. "Apertura - 1")
            skip_cache: Ignore the cached copy and hit the provider

        Returns:
            list[Fixture]: Empty when the provider is unavailable
        """
        cache_key = fixtures_cache_key(league_id, season, round_name)

        if not skip_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Returning cached fixtures for round '{round_name}'")
                return parse_fixtures(cached)

        if not self.is_configured:
            logger.error("Football API URL or API key not configured")
            return []

        logger.info(
            f"Fetching fixtures - League: {league_id}, Season: {season}, Round: {round_name}"
        )

        try:
            payloads = self._get_response_list(
                "/fixtures",
                {"league": league_id, "season": season, "round": round_name},
            )
        except FootballApiError as e:
            logger.error(f"Error fetching fixtures for round '{round_name}': {e}")
            return []

        logger.info(f"API returned {len(payloads)} fixtures for round '{round_name}'")
        cache.set(cache_key, payloads, timeout=self.cache_ttl)

        return parse_fixtures(payloads)

    def get_rounds(self, league_id, season, skip_cache=False):
        """Fetch a league season's rounds with their match dates, in schedule order"""
        cache_key = rounds_cache_key(league_id, season)

        if not skip_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                return parse_rounds(cached)

        if not self.is_configured:
            logger.error("Football API URL or API key not configured")
            return []

        try:
            payloads = self._get_response_list(
                "/fixtures/rounds",
                {"league": league_id, "season": season, "dates": "true"},
            )
        except FootballApiError as e:
            logger.error(f"Error fetching rounds for league {league_id}/{season}: {e}")
            return []

        cache.set(cache_key, payloads, timeout=self.rounds_cache_ttl)
        return parse_rounds(payloads)

    def get_rate_limit_status(self):
        """Get current rate limit status"""
        with self._lock:
            current_time = time.time()
            self.request_timestamps = [
                ts for ts in self.request_timestamps if current_time - ts < 60
            ]

            return {
                "total_requests": self.request_count,
                "requests_last_minute": len(self.request_timestamps),
                "max_requests_per_minute": self.max_requests_per_minute,
                "time_since_last_request": (
                    current_time - self.last_request_time
                    if self.last_request_time
                    else 0
                ),
                "min_request_interval": self.min_request_interval,
            }


def get_fixture_source():
    """Return the application's shared API client, creating it on first use"""
    client = current_app.extensions.get("football_api")
    if client is None:
        client = FootballApiClient.from_config(current_app.config)
        current_app.extensions["football_api"] = client
    return client
