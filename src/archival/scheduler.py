"""Background scheduler that sweeps all configured tables on an interval."""

import asyncio
import uuid
from datetime import datetime
from typing import Optional

from structlog import BoundLogger

from archival.engine import ArchivalEngine
from archival.metrics import ArchivalMetrics
from archival.models import ArchiveLog, utc_now
from utils.logging import bind_sweep_context, clear_sweep_context, get_logger

DEFAULT_INTERVAL_SECONDS = 24 * 60 * 60
DEFAULT_RETRY_DELAY_SECONDS = 5 * 60


class ArchivalScheduler:
    """Runs one sweep at a time, then parks on an interruptible wait.

    A sweep that raises (for example when configs cannot be listed) is
    followed by the shorter retry delay instead of the regular interval.
    Per-table failures are already captured as Failed log entries and
    never reach the scheduler.
    """

    def __init__(
        self,
        engine: ArchivalEngine,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        run_on_start: bool = True,
        metrics: Optional[ArchivalMetrics] = None,
        logger: Optional[BoundLogger] = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            engine: Archival engine to drive
            interval_seconds: Wait between successful sweeps
            retry_delay_seconds: Wait after a failed sweep
            run_on_start: Sweep immediately instead of waiting one interval first
            metrics: Optional metrics collector
            logger: Optional logger instance
        """
        if interval_seconds <= 0 or retry_delay_seconds <= 0:
            raise ValueError("interval_seconds and retry_delay_seconds must be positive")

        self.engine = engine
        self.interval_seconds = interval_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.run_on_start = run_on_start
        self.metrics = metrics
        self.logger = logger or get_logger("scheduler")

        self._stop_event = asyncio.Event()
        self.sweeps_completed = 0
        self.sweeps_failed = 0
        self.last_sweep_at: Optional[datetime] = None

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    @property
    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request shutdown; the current page finishes and run() returns."""
        if not self._stop_event.is_set():
            self.logger.info("Scheduler stop requested")
        self._stop_event.set()

    async def _wait(self, seconds: float) -> bool:
        """Sleep unless stopped first.

        Returns:
            True if the stop event ended the wait
        """
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def run_once(self) -> list[ArchiveLog]:
        """Perform a single sweep.

        Returns:
            Log entries of the tables processed

        Raises:
            Exception: Whatever escaped the sweep; counted as a failed sweep
        """
        sweep_id = str(uuid.uuid4())
        bind_sweep_context(sweep_id)
        try:
            self.logger.info("Starting archival sweep")
            results = await self.engine.archive_all_configured_tables(self._stop_event)
        except Exception as e:
            self.sweeps_failed += 1
            if self.metrics is not None:
                self.metrics.record_sweep(success=False)
            self.logger.error(
                "Archival sweep failed",
                error=str(e),
                error_type=type(e).__name__,
                retry_in_seconds=self.retry_delay_seconds,
            )
            raise
        else:
            self.sweeps_completed += 1
            self.last_sweep_at = utc_now()
            if self.metrics is not None:
                self.metrics.record_sweep(success=True)
            self.logger.info("Archival sweep completed", tables=len(results))
            return results
        finally:
            clear_sweep_context()

    async def run(self) -> None:
        """Sweep, wait, repeat until stop() is called."""
        self.logger.info(
            "Scheduler started",
            interval_seconds=self.interval_seconds,
            retry_delay_seconds=self.retry_delay_seconds,
        )

        if not self.run_on_start and await self._wait(self.interval_seconds):
            self.logger.info("Scheduler stopped")
            return

        while not self._stop_event.is_set():
            try:
                await self.run_once()
                delay = self.interval_seconds
            except Exception:
                delay = self.retry_delay_seconds

            if self._stop_event.is_set() or await self._wait(delay):
                break

        self.logger.info(
            "Scheduler stopped",
            sweeps_completed=self.sweeps_completed,
            sweeps_failed=self.sweeps_failed,
        )
