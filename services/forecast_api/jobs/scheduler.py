"""
In-process periodic runner.

Wakes every `interval_s` seconds and awaits job.run(). The first run happens
one interval after start, not at startup, so a cold boot does not hit the
provider for every popular city at once.

The job owns its own overlap guard; the runner never starts a second run
while one is pending because it awaits each run before sleeping again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Protocol

logger = logging.getLogger(__name__)


class _Job(Protocol):
    def run(self) -> Awaitable[dict[str, Any]]: ...


class PeriodicJobRunner:
    def __init__(self, job: _Job, interval_s: float, name: str = "job") -> None:
        self._job = job
        self._interval_s = interval_s
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self._name}")
        logger.info("Scheduled %s every %.0fs", self._name, self._interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped %s", self._name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                await self._job.run()
            except Exception:
                # Keep the schedule alive; the next tick retries.
                logger.exception("%s raised out of run()", self._name)
