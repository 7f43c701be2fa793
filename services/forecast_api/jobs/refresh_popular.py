"""
Hourly refresh of popular cities.

Keeps the cache warm for the cities people actually ask about so their
lookups are cache hits instead of provider calls.

Algorithm:
  1. Candidates: cities with search_count >= 3, most-searched first, max 10.
  2. Split into batches of 3.
  3. Refresh each batch concurrently (current weather + forecast + persist).
     A city that fails is logged and counted; its siblings and later
     batches carry on.
  4. Sleep 1s between batches (not after the last) to stay under the
     provider's rate limit.
  5. Never raise. If candidate selection fails the run is logged as an
     error and the next scheduled run tries again.

Overlap guard: the job is IDLE or RUNNING. A trigger that arrives while a
run is in progress is skipped, not queued.

Entry points:
    async PopularCityRefreshJob.run()        -- used by the in-process scheduler
    python -m services.forecast_api.jobs.refresh_popular
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Any

import sentry_sdk

from services.forecast_api.weather.engine import WeatherLookupEngine, build_engine
from services.forecast_api.weather.registry import CityRegistry

logger = logging.getLogger(__name__)

POPULARITY_THRESHOLD = 3
MAX_CANDIDATES = 10
BATCH_SIZE = 3
BATCH_DELAY_S = 1.0


class JobState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


def _batched(items: list[Any], size: int) -> list[list[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class PopularCityRefreshJob:
    def __init__(
        self,
        registry: CityRegistry,
        engine: WeatherLookupEngine,
        popularity_threshold: int = POPULARITY_THRESHOLD,
        max_candidates: int = MAX_CANDIDATES,
        batch_size: int = BATCH_SIZE,
        batch_delay_s: float = BATCH_DELAY_S,
    ) -> None:
        self._registry = registry
        self._engine = engine
        self._popularity_threshold = popularity_threshold
        self._max_candidates = max_candidates
        self._batch_size = batch_size
        self._batch_delay_s = batch_delay_s
        self.state = JobState.IDLE

    async def run(self) -> dict[str, Any]:
        """
        Run one refresh pass.

        Returns a result dict::

            {
                "status": "success" | "skipped" | "error",
                "candidates": int,
                "refreshed": ["london", ...],
                "failed": ["atlantis", ...],
                "duration_ms": int,
            }
        """
        if self.state is JobState.RUNNING:
            logger.warning("refresh_popular: previous run still in progress, skipping trigger")
            return {
                "status": "skipped",
                "candidates": 0,
                "refreshed": [],
                "failed": [],
                "duration_ms": 0,
            }

        self.state = JobState.RUNNING
        try:
            return await self._run()
        finally:
            self.state = JobState.IDLE

    async def _run(self) -> dict[str, Any]:
        start_ts = time.monotonic()
        refreshed: list[str] = []
        failed: list[str] = []
        status = "success"
        candidates: list[Any] = []

        logger.info("refresh_popular: starting scheduled refresh of popular cities")

        try:
            candidates = await self._registry.popular(
                self._popularity_threshold, self._max_candidates
            )
            batches = _batched(candidates, self._batch_size)

            for index, batch in enumerate(batches):
                outcomes = await asyncio.gather(*(self._refresh_one(city) for city in batch))
                for city, ok in zip(batch, outcomes):
                    (refreshed if ok else failed).append(city.name)

                if index < len(batches) - 1:
                    await asyncio.sleep(self._batch_delay_s)
        except Exception as exc:
            status = "error"
            logger.error("refresh_popular: run aborted: %s", exc, exc_info=True)
            sentry_sdk.capture_exception(exc)

        duration_ms = int((time.monotonic() - start_ts) * 1000)
        logger.info(
            "refresh_popular: complete status=%s candidates=%d refreshed=%d failed=%d duration_ms=%d",
            status,
            len(candidates),
            len(refreshed),
            len(failed),
            duration_ms,
        )
        return {
            "status": status,
            "candidates": len(candidates),
            "refreshed": refreshed,
            "failed": failed,
            "duration_ms": duration_ms,
        }

    async def _refresh_one(self, city: Any) -> bool:
        try:
            await self._engine.refresh_city(city)
        except Exception as exc:
            logger.error("refresh_popular: failed to refresh %s: %s", city.name, exc)
            return False
        logger.info("refresh_popular: refreshed data for %s", city.name)
        return True

    @classmethod
    def from_settings(cls, session_factory, settings) -> PopularCityRefreshJob:
        """Wire a job, and the engine it drives, from app settings."""
        return cls(
            registry=CityRegistry(session_factory),
            engine=build_engine(session_factory, settings),
            popularity_threshold=settings.refresh_popularity_threshold,
            max_candidates=settings.refresh_max_cities,
            batch_size=settings.refresh_batch_size,
            batch_delay_s=settings.refresh_batch_delay_s,
        )


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

async def main() -> None:
    """Standalone entry point for running from cron or a Cloud Run Job."""
    from services.forecast_api.config import settings
    from services.forecast_api.db.engine import standalone_session_factory
    from services.forecast_api.middleware.sentry import setup_sentry

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    setup_sentry()

    async with standalone_session_factory() as session_factory:
        result = await PopularCityRefreshJob.from_settings(session_factory, settings).run()
        print(f"refresh_popular complete: {result}")


if __name__ == "__main__":
    asyncio.run(main())
