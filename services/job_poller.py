"""
Job poller with background polling thread.

Every poll interval the poller asks the job store for the oldest queued job
and hands it to the job processor. At most one job is processed per tick,
and a tick never starts while the previous one is still running.

Thread Safety:
    - The background thread is the only caller of run_once() in production
    - Tests call run_once() directly without starting the thread
    - Counters are only written by the thread running run_once()

Usage:
    # At app startup
    poller = JobPoller(job_store, processor, poll_interval_seconds=5)
    poller.start()

    # At app shutdown
    poller.stop()
"""

from __future__ import annotations

import threading
from typing import Optional

from core.job_store import JobStore
from models.job_result import JobResult
from modules.job_processor import JobProcessor
from logging_config import get_logger, set_thread_name


# Module logger
logger = get_logger(__name__)


class JobPoller:
    """
    Background service that feeds queued jobs to the job processor.

    A failing tick (store unavailable, unexpected processor error) is
    logged and the loop continues with the next tick.

    Attributes:
        poll_interval_seconds: Time between polls (default 5)
        is_running: Whether the background thread is active
    """

    def __init__(
        self,
        job_store: JobStore,
        processor: JobProcessor,
        poll_interval_seconds: float = 5.0
    ):
        self._job_store = job_store
        self._processor = processor
        self._poll_interval = poll_interval_seconds

        # Thread control
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False

        self._consecutive_failures = 0
        self._jobs_processed = 0
        self._last_result: Optional[JobResult] = None

        logger.info(f"JobPoller initialized (poll interval: {poll_interval_seconds}s)")

    @property
    def is_running(self) -> bool:
        """Whether the background polling thread is active."""
        return self._is_running

    @property
    def poll_interval_seconds(self) -> float:
        return self._poll_interval

    @property
    def jobs_processed(self) -> int:
        """Jobs processed since start (including skipped and failed)."""
        return self._jobs_processed

    @property
    def last_result(self) -> Optional[JobResult]:
        return self._last_result

    def start(self) -> None:
        """
        Start the background polling thread.

        The first poll happens immediately. Safe to call multiple times.
        """
        if self._is_running:
            logger.warning("JobPoller already running")
            return

        logger.info("Starting job polling thread...")
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._poll_loop,
            name="JobPoller",
            daemon=True
        )
        self._is_running = True
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the background polling thread.

        A job that is being processed finishes first; the thread then exits
        before the next tick. Safe to call multiple times.
        """
        if not self._is_running:
            return

        logger.info("Stopping job polling thread...")
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

            if self._thread.is_alive():
                logger.warning("JobPoller thread did not stop cleanly")

        self._is_running = False
        self._thread = None

        logger.info("Job polling thread stopped")

    def run_once(self) -> Optional[JobResult]:
        """
        Perform a single poll: fetch the oldest queued job and process it.

        Returns:
            JobResult for the processed job, or None if the queue was empty

        Raises:
            PersistenceError: If the job store is unavailable
        """
        job = self._job_store.fetch_next_queued()
        if job is None:
            logger.debug("No queued jobs")
            return None

        logger.info(f"Picked up job {job.id} '{job.job_name}'")
        result = self._processor.process(job)

        self._jobs_processed += 1
        self._last_result = result
        logger.info(f"Job {result.job_id} finished pass: {result.kind.value} ({result.status.value})")
        return result

    def _poll_loop(self) -> None:
        """Background thread main loop. Polls until stop_event is set."""
        set_thread_name("JobPoller")
        logger.info("Job polling loop starting")

        while not self._stop_event.is_set():
            self._do_poll()

            if self._stop_event.wait(timeout=self._poll_interval):
                break

        logger.info("Job polling loop exiting")

    def _do_poll(self) -> bool:
        """
        Run one tick, logging instead of raising.

        Returns:
            True if the tick completed, False if it failed
        """
        try:
            self.run_once()
        except Exception as e:
            self._consecutive_failures += 1

            if self._consecutive_failures == 1:
                logger.warning(f"Job poll failed: {e}", exc_info=True)
            elif self._consecutive_failures <= 3:
                logger.error(f"Job poll failed ({self._consecutive_failures} consecutive): {e}")
            elif self._consecutive_failures % 5 == 0:
                logger.error(
                    f"Job poll still failing ({self._consecutive_failures} consecutive): {e}"
                )
            return False

        if self._consecutive_failures > 0:
            logger.info(f"Job polling recovered after {self._consecutive_failures} failures")
        self._consecutive_failures = 0
        return True
