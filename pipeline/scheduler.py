"""Poll the content source on a fixed interval with APScheduler."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

JOB_ID = "poll_new_content"


class PipelineScheduler:
    """Run one poll-and-publish cycle every ``interval_minutes``.

    The interval should match the connector's commit look-back window so
    consecutive polls cover every commit.  Overlapping polls are never
    started; a poll that is still running when the next one is due makes
    the scheduler skip that tick.
    """

    def __init__(
        self,
        run_pipeline_fn: Callable[[], Awaitable[Sequence[object] | None]],
        interval_minutes: int = 10,
        log_dir: Path | None = None,
        run_immediately: bool = True,
    ) -> None:
        self._run_pipeline = run_pipeline_fn
        self._interval_minutes = interval_minutes
        self._log_dir = log_dir
        self._run_immediately = run_immediately
        self._scheduler: AsyncIOScheduler | None = None
        self.polls = 0

    async def _wrapped_run(self) -> None:
        self.polls += 1
        logger.info("Poll #%d starting", self.polls)
        try:
            results = await self._run_pipeline()
        except Exception:
            logger.exception("Poll #%d failed; next attempt in %d minute(s)", self.polls, self._interval_minutes)
            return
        logger.info("Poll #%d handled %d post(s)", self.polls, len(results or ()))

    def start(self) -> None:
        if self._log_dir:
            self._log_dir.mkdir(parents=True, exist_ok=True)

        # next_run_time=None would add the job paused, so only pass it to fire now
        first_run = {"next_run_time": datetime.now(timezone.utc)} if self._run_immediately else {}
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self._wrapped_run,
            IntervalTrigger(minutes=self._interval_minutes),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            **first_run,
        )
        self._scheduler.start()
        logger.info("Polling for new posts every %d minute(s)", self._interval_minutes)

    def stop(self) -> None:
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Polling stopped after %d poll(s)", self.polls)

    def run_blocking(self) -> None:
        """Start polling and block until interrupted (CLI ``--schedule``)."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self.start()
        try:
            loop.run_forever()
        except (KeyboardInterrupt, SystemExit):
            self.stop()
        finally:
            loop.close()
