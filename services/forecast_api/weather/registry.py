"""
City Registry: owns City rows.

Lookups are by normalized name (trimmed + case-folded). First lookup of an
unseen name creates a placeholder row (country unknown, coordinates 0/0)
that the engine later corrects from provider data.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from services.forecast_api.db.models import City
from services.forecast_api.db.session import persistence_scope

logger = logging.getLogger(__name__)


def normalize_city_name(city_name: str) -> str:
    """'  New York ' -> 'new york'"""
    return city_name.strip().casefold()


class CityRegistry:
    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def find(self, city_name: str) -> City | None:
        name = normalize_city_name(city_name)
        async with persistence_scope(self._session_factory, "city lookup") as session:
            result = await session.execute(select(City).where(City.name == name))
            return result.scalars().first()

    async def resolve(self, city_name: str) -> City:
        """
        Return the City for this name, creating a placeholder if unseen.

        INSERT ... ON CONFLICT DO NOTHING makes two concurrent first lookups
        of the same name converge on one row instead of one failing.
        """
        name = normalize_city_name(city_name)
        async with persistence_scope(self._session_factory, "city resolve") as session:
            stmt = (
                insert(City)
                .values(name=name, country=None, latitude=0.0, longitude=0.0, search_count=0)
                .on_conflict_do_nothing(index_elements=[City.name])
                .returning(City.id)
            )
            created = (await session.execute(stmt)).first()
            await session.commit()
            if created is not None:
                logger.info("Registered new city %r", name)

            result = await session.execute(select(City).where(City.name == name))
            return result.scalars().first()

    async def apply_provider_identity(
        self,
        city_id: int,
        country: str | None,
        latitude: float,
        longitude: float,
    ) -> City:
        """Correct country/coordinates from provider data. The name is left alone."""
        async with persistence_scope(self._session_factory, "city identity update") as session:
            stmt = (
                update(City)
                .where(City.id == city_id)
                .values(country=country, latitude=latitude, longitude=longitude)
                .returning(City)
            )
            city = (await session.execute(stmt)).scalars().first()
            await session.commit()
            return city

    async def popular(self, min_search_count: int, limit: int) -> list[City]:
        """Refresh candidates: most-searched first."""
        async with persistence_scope(self._session_factory, "popular city query") as session:
            stmt = (
                select(City)
                .where(City.search_count >= min_search_count)
                .order_by(City.search_count.desc(), City.id)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def recently_searched(self, limit: int = 10) -> list[City]:
        async with persistence_scope(self._session_factory, "search history query") as session:
            stmt = (
                select(City)
                .where(City.search_count >= 1)
                .order_by(City.last_searched.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def all_by_popularity(self) -> list[City]:
        async with persistence_scope(self._session_factory, "city list query") as session:
            stmt = select(City).order_by(City.search_count.desc(), City.name)
            result = await session.execute(stmt)
            return list(result.scalars().all())
