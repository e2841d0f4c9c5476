"""Owned periodic background jobs.

Each job runs a blocking callable on a worker thread every ``interval``
seconds. Jobs are independent: a slow Google call in the sync sweep never
delays the reminder scan.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import OperationalError

from ..utils.notifications import alert_scheduler_failure

logger = logging.getLogger(__name__)


class PeriodicJob:
    def __init__(
        self,
        name: str,
        func: Callable[[], Any],
        interval: float,
        run_immediately: bool = False,
        max_retries: int = 5,
        initial_backoff: float = 5.0,
        max_backoff: float = 60.0,
    ) -> None:
        self.name = name
        self.func = func
        self.interval = interval
        self.run_immediately = run_immediately
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Any:
        """Run a single tick synchronously; exceptions propagate."""
        return self.func()

    async def _tick(self) -> None:
        # Retry with backoff on transient DB failures
        delay = self.initial_backoff
        for attempt in range(self.max_retries):
            try:
                summary = await asyncio.to_thread(self.func)
                logger.debug("Job %s finished: %s", self.name, summary)
                return
            except OperationalError as exc:
                alert_scheduler_failure(exc)
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, self.max_backoff)
                    continue
                # Give up for this cycle; try again next tick
                return
            except Exception as exc:  # noqa: BLE001 - keep the loop alive
                alert_scheduler_failure(exc)
                return

    async def _loop(self) -> None:
        if self.run_immediately:
            await self._tick()
        while True:
            await asyncio.sleep(self.interval)
            await self._tick()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)
        logger.info("Started background job %s (every %ss)", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped background job %s", self.name)
