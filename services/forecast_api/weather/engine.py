"""
WeatherLookupEngine: freshness-aware lookups with stale fallback.

Per request:
  1. Resolve (or create) the City by normalized name.
  2. Serve the cached row if it is inside its freshness window.
  3. Otherwise call OpenWeatherMap and persist the result.
  4. If the provider fails, serve whatever is cached regardless of age;
     with nothing cached, raise NotFoundError.
  5. Count the search (every successful path, never a failed one).

Freshness windows:
  current weather   15 min, judged by WeatherSnapshot.updated_at
  forecast          60 min, judged by City.forecast_refreshed_at

Provider failures are recovered here; PersistenceError is not, and
propagates to the caller untouched.

Two concurrent misses for the same city may both call the provider and
both write. That is accepted: last write wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from services.forecast_api.errors import NotFoundError, UPSTREAM_FAILURES
from services.forecast_api.weather.client import OpenWeatherClient
from services.forecast_api.weather.popularity import PopularityTracker
from services.forecast_api.weather.registry import CityRegistry
from services.forecast_api.weather.store import WeatherCacheStore
from services.forecast_api.weather.views import (
    CityView,
    ForecastView,
    SearchHistoryView,
    WeatherView,
)

logger = logging.getLogger(__name__)

CURRENT_WEATHER_TTL = timedelta(minutes=15)
FORECAST_TTL = timedelta(minutes=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_fresh(stamp: datetime | None, now: datetime, ttl: timedelta) -> bool:
    if stamp is None:
        return False
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return now - stamp < ttl


class WeatherLookupEngine:
    """
    Usage:
        engine = WeatherLookupEngine(registry, store, tracker, client)
        view = await engine.get_current_weather("London")
        forecast = await engine.get_forecast("London")
    """

    def __init__(
        self,
        registry: CityRegistry,
        store: WeatherCacheStore,
        tracker: PopularityTracker,
        client: OpenWeatherClient,
        current_ttl: timedelta = CURRENT_WEATHER_TTL,
        forecast_ttl: timedelta = FORECAST_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._registry = registry
        self._store = store
        self._tracker = tracker
        self._client = client
        self._current_ttl = current_ttl
        self._forecast_ttl = forecast_ttl
        self._clock = clock

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_current_weather(self, city_name: str) -> WeatherView:
        query = city_name.strip()
        city = await self._registry.resolve(query)
        now = self._clock()

        snapshot = await self._store.get_snapshot(city.id)
        if snapshot is not None and _is_fresh(snapshot.updated_at, now, self._current_ttl):
            logger.info("Returning cached weather data for %s", city.name)
        else:
            logger.info("Fetching fresh weather data for %s", city.name)
            try:
                current = await self._client.fetch_current(query)
            except UPSTREAM_FAILURES as exc:
                logger.error("Error fetching weather for %s: %s", city.name, exc)
                snapshot = await self._store.get_snapshot(city.id)
                if snapshot is None:
                    raise NotFoundError(f"weather data not found for city {query}") from exc
                logger.warning("Returning stale cached weather data for %s", city.name)
            else:
                city = await self._registry.apply_provider_identity(
                    city.id, current.country, current.latitude, current.longitude
                ) or city
                snapshot = await self._store.save_snapshot(city.id, current, now)

        await self._tracker.record_search(city.id, city.name, now)
        return WeatherView.from_rows(city, snapshot)

    async def get_forecast(self, city_name: str) -> ForecastView:
        query = city_name.strip()
        city = await self._registry.resolve(query)
        now = self._clock()

        entries = []
        if _is_fresh(city.forecast_refreshed_at, now, self._forecast_ttl):
            entries = await self._store.get_forecasts(city.id)

        if entries:
            logger.info("Returning cached forecast data for %s", city.name)
        else:
            logger.info("Fetching fresh forecast data for %s", city.name)
            try:
                forecast = await self._client.fetch_forecast(query)
            except UPSTREAM_FAILURES as exc:
                logger.error("Error fetching forecast for %s: %s", city.name, exc)
                entries = await self._store.get_forecasts(city.id)
                if not entries:
                    raise NotFoundError(f"forecast data not found for city {query}") from exc
                logger.warning("Returning stale forecast data for %s", city.name)
            else:
                city = await self._registry.apply_provider_identity(
                    city.id, forecast.country, forecast.latitude, forecast.longitude
                ) or city
                entries = await self._store.replace_forecasts(city.id, forecast, now)

        await self._tracker.record_search(city.id, city.name, now)
        return ForecastView.from_rows(city, entries)

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------

    async def refresh_city(self, city) -> None:
        """
        Refetch current weather and forecast for a known city and persist both.

        Used by the popular-city job. Does not count as a search. Any error
        propagates; the job decides what to do with it.
        """
        now = self._clock()

        current = await self._client.fetch_current(city.name)
        city = await self._registry.apply_provider_identity(
            city.id, current.country, current.latitude, current.longitude
        ) or city
        await self._store.save_snapshot(city.id, current, now)

        forecast = await self._client.fetch_forecast(city.name)
        await self._store.replace_forecasts(city.id, forecast, now)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    async def get_search_history(self, limit: int = 10) -> list[SearchHistoryView]:
        cities = await self._registry.recently_searched(limit)
        return [
            SearchHistoryView(
                city_name=c.name,
                search_count=c.search_count,
                last_searched=c.last_searched,
            )
            for c in cities
        ]

    async def list_cities(self) -> list[CityView]:
        return [CityView.from_row(c) for c in await self._registry.all_by_popularity()]


def build_engine(session_factory, settings) -> WeatherLookupEngine:
    """Wire an engine over the given session factory using app settings."""
    return WeatherLookupEngine(
        registry=CityRegistry(session_factory),
        store=WeatherCacheStore(session_factory),
        tracker=PopularityTracker(session_factory),
        client=OpenWeatherClient(
            api_key=settings.openweathermap_api_key,
            base_url=settings.openweathermap_base_url,
            timeout_s=settings.weather_api_timeout_s,
        ),
        current_ttl=timedelta(minutes=settings.current_weather_ttl_minutes),
        forecast_ttl=timedelta(minutes=settings.forecast_ttl_minutes),
    )
