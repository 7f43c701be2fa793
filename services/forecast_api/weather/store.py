"""
Weather Cache Store: WeatherSnapshot and ForecastEntry rows.

Snapshots: one row per city, written with INSERT ... ON CONFLICT (city_id)
DO UPDATE so concurrent refreshes are last-write-wins rather than errors.

Forecasts: the set for a city is replaced as a unit. The owning City row is
locked (SELECT ... FOR UPDATE) for the duration of delete + insert + stamp,
so two replacements for the same city serialize instead of interleaving rows.

Timestamps are passed in by the caller; the engine's clock is the single
source of "now" for freshness decisions.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from services.forecast_api.db.models import City, ForecastEntry, WeatherSnapshot
from services.forecast_api.db.session import persistence_scope
from services.forecast_api.weather.client import ProviderCurrent, ProviderForecast

logger = logging.getLogger(__name__)


def _snapshot_values(current: ProviderCurrent, fetched_at: datetime) -> dict:
    return {
        "temperature": current.temperature,
        "feels_like": current.feels_like,
        "humidity": current.humidity,
        "wind_speed": current.wind_speed,
        "wind_direction": current.wind_direction,
        "pressure": current.pressure,
        "condition_code": current.condition_code,
        "weather_condition": current.condition,
        "description": current.description,
        "icon": current.icon,
        "sunrise": current.sunrise,
        "sunset": current.sunset,
        "updated_at": fetched_at,
    }


class WeatherCacheStore:
    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def get_snapshot(self, city_id: int) -> WeatherSnapshot | None:
        """Return the city's snapshot regardless of age (freshness is the engine's call)."""
        async with persistence_scope(self._session_factory, "snapshot read") as session:
            result = await session.execute(
                select(WeatherSnapshot).where(WeatherSnapshot.city_id == city_id)
            )
            return result.scalars().first()

    async def save_snapshot(
        self,
        city_id: int,
        current: ProviderCurrent,
        fetched_at: datetime,
    ) -> WeatherSnapshot:
        values = _snapshot_values(current, fetched_at)
        async with persistence_scope(self._session_factory, "snapshot write") as session:
            stmt = (
                insert(WeatherSnapshot)
                .values(city_id=city_id, **values)
                .on_conflict_do_update(index_elements=[WeatherSnapshot.city_id], set_=values)
                .returning(WeatherSnapshot)
            )
            snapshot = (await session.execute(stmt)).scalars().first()
            await session.commit()
            logger.debug("Snapshot written for city_id=%d at %s", city_id, fetched_at.isoformat())
            return snapshot

    async def get_forecasts(self, city_id: int) -> list[ForecastEntry]:
        """All stored entries for the city, earliest forecast time first."""
        async with persistence_scope(self._session_factory, "forecast read") as session:
            result = await session.execute(
                select(ForecastEntry)
                .where(ForecastEntry.city_id == city_id)
                .order_by(ForecastEntry.forecast_time.asc())
            )
            return list(result.scalars().all())

    async def replace_forecasts(
        self,
        city_id: int,
        forecast: ProviderForecast,
        fetched_at: datetime,
    ) -> list[ForecastEntry]:
        """
        Swap the city's forecast set for the provider's horizon in one transaction
        and stamp City.forecast_refreshed_at.
        """
        entries = [
            ForecastEntry(
                city_id=city_id,
                forecast_time=point.forecast_time,
                temperature=point.temperature,
                humidity=point.humidity,
                wind_speed=point.wind_speed,
                wind_direction=point.wind_direction,
                pressure=point.pressure,
                weather_condition=point.condition,
                weather_description=point.description,
                rain_volume=point.rain_volume,
                probability=point.probability,
                icon=point.icon,
                updated_at=fetched_at,
            )
            for point in forecast.entries
        ]

        async with persistence_scope(self._session_factory, "forecast replace") as session:
            await session.execute(select(City.id).where(City.id == city_id).with_for_update())
            await session.execute(delete(ForecastEntry).where(ForecastEntry.city_id == city_id))
            session.add_all(entries)
            await session.execute(
                update(City).where(City.id == city_id).values(forecast_refreshed_at=fetched_at)
            )
            await session.commit()

        logger.debug("Forecast replaced for city_id=%d (%d entries)", city_id, len(entries))
        return sorted(entries, key=lambda e: e.forecast_time)
