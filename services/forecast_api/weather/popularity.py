"""
Popularity Tracker.

record_search bumps City.search_count and stamps last_searched with a single
UPDATE (search_count = search_count + 1), so concurrent lookups for the same
city never lose increments. The per-name search_history tally is upserted
in the same transaction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from services.forecast_api.db.models import City, SearchHistory
from services.forecast_api.db.session import persistence_scope


class PopularityTracker:
    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def record_search(self, city_id: int, city_name: str, at: datetime) -> None:
        async with persistence_scope(self._session_factory, "popularity update") as session:
            await session.execute(
                update(City)
                .where(City.id == city_id)
                .values(search_count=City.search_count + 1, last_searched=at)
            )
            tally = insert(SearchHistory).values(city_name=city_name, search_count=1, last_searched=at)
            await session.execute(
                tally.on_conflict_do_update(
                    index_elements=[SearchHistory.city_name],
                    set_={
                        "search_count": SearchHistory.search_count + 1,
                        "last_searched": tally.excluded.last_searched,
                    },
                )
            )
            await session.commit()
