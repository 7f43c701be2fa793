"""
Domain error taxonomy for the weather cache.

The lookup engine and refresh job raise and catch these; the HTTP layer maps
them to status codes in main.py. None of them carry a status code themselves.

  NotFoundError              -> 404  city unknown upstream / nothing cached
  InvalidConfigurationError  -> 400  upstream rejected the credential
  UpstreamError              -> 500  any other provider failure
  PersistenceError           -> 500  storage read/write failed
"""

from __future__ import annotations


class WeatherServiceError(Exception):
    """Base class for every error the weather core raises."""

    code = "INTERNAL_ERROR"


class NotFoundError(WeatherServiceError):
    code = "NOT_FOUND"


class InvalidConfigurationError(WeatherServiceError):
    code = "INVALID_CONFIGURATION"


class UpstreamError(WeatherServiceError):
    code = "UPSTREAM_ERROR"


class PersistenceError(WeatherServiceError):
    code = "PERSISTENCE_ERROR"


# Failures the engine may recover from by serving stale cache.
UPSTREAM_FAILURES = (NotFoundError, InvalidConfigurationError, UpstreamError)
