"""
Tray synchronizer with background sync thread.

Periodically asks the device what media is loaded in each input tray and
copies the media facts (type, source code, weight) onto the matching
printer_trays rows. Operator-owned fields such as sheets_loaded are never
written here.

Usage:
    # At app startup
    tray_sync = TraySyncService(transport, tray_store)
    tray_sync.start()

    # From the status API
    result = tray_sync.force_sync()

    # At app shutdown
    tray_sync.stop()
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.device_transport import DeviceTransport
from core.exceptions import PersistenceError, PrintWorkerError
from core.tray_store import TrayStore
from models.print_job import utc_now
from modules.media_mapper import to_tray_label
from logging_config import get_logger, set_thread_name


# Module logger
logger = get_logger(__name__)

# Used when the device reports a tray without a media-type
FALLBACK_PAPER_TYPE = "Plain"


@dataclass
class TraySyncResult:
    """Outcome of one synchronization tick."""

    synced_at: datetime = field(default_factory=utc_now)

    updated: List[str] = field(default_factory=list)
    """Tray labels whose row was updated."""

    skipped: List[str] = field(default_factory=list)
    """Device media-source codes with no tray label."""

    missing: List[str] = field(default_factory=list)
    """Tray labels reported by the device with no matching row."""

    failures: List[str] = field(default_factory=list)
    """Per-tray update errors."""

    error: Optional[str] = None
    """Set when the device query itself failed and the tick was skipped."""

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synced_at": self.synced_at.isoformat(),
            "updated": list(self.updated),
            "skipped": list(self.skipped),
            "missing": list(self.missing),
            "failures": list(self.failures),
            "error": self.error,
        }


class TraySyncService:
    """
    Background service for tray media synchronization.

    Attributes:
        sync_interval_seconds: Time between syncs (default 60)
        initial_delay_seconds: Wait before the first sync (default 5)
        is_running: Whether the background thread is active
    """

    def __init__(
        self,
        transport: DeviceTransport,
        tray_store: TrayStore,
        sync_interval_seconds: float = 60.0,
        initial_delay_seconds: float = 5.0
    ):
        self._transport = transport
        self._tray_store = tray_store
        self._sync_interval = sync_interval_seconds
        self._initial_delay = initial_delay_seconds

        # Thread control
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False

        # A forced sync from the API and the scheduled one must not interleave
        self._sync_lock = threading.Lock()

        self._consecutive_failures = 0
        self._last_result: Optional[TraySyncResult] = None

        logger.info(
            f"TraySyncService initialized (interval: {sync_interval_seconds}s, "
            f"initial delay: {initial_delay_seconds}s)"
        )

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def sync_interval_seconds(self) -> float:
        return self._sync_interval

    @property
    def last_result(self) -> Optional[TraySyncResult]:
        """Result of the most recent tick, None before the first one."""
        return self._last_result

    def start(self) -> None:
        """Start the background sync thread. Safe to call multiple times."""
        if self._is_running:
            logger.warning("TraySyncService already running")
            return

        logger.info("Starting tray sync thread...")
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._sync_loop,
            name="TraySync",
            daemon=True
        )
        self._is_running = True
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background sync thread. Safe to call multiple times."""
        if not self._is_running:
            return

        logger.info("Stopping tray sync thread...")
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)

            if self._thread.is_alive():
                logger.warning("TraySync thread did not stop cleanly")

        self._is_running = False
        self._thread = None

        logger.info("Tray sync thread stopped")

    def force_sync(self) -> TraySyncResult:
        """
        Run a sync immediately in the calling thread.

        Returns:
            TraySyncResult of the tick (never raises for device errors)
        """
        logger.info("Forcing tray sync...")
        return self.run_once()

    def run_once(self) -> TraySyncResult:
        """
        Query ready media and update the matching tray rows.

        A device that cannot be reached or rejects the query skips the tick;
        the error is reported on the result.
        """
        with self._sync_lock:
            result = self._sync()

        self._last_result = result
        self._track_failures(result)
        return result

    def _sync(self) -> TraySyncResult:
        result = TraySyncResult()

        try:
            descriptors = self._transport.query_ready_media()
        except PrintWorkerError as e:
            result.error = e.to_error_message()
            return result

        for descriptor in descriptors:
            label = to_tray_label(descriptor.media_source)
            if label is None:
                logger.debug(f"Ignoring unmapped media-source '{descriptor.media_source}'")
                result.skipped.append(descriptor.media_source)
                continue

            paper_type = descriptor.media_type or FALLBACK_PAPER_TYPE
            try:
                found = self._tray_store.update_media(
                    label,
                    paper_type=paper_type,
                    media_source_code=descriptor.media_source,
                    paper_weight_gsm=descriptor.media_weight_metric,
                )
            except PersistenceError as e:
                logger.error(f"Updating {label} failed: {e}")
                result.failures.append(f"{label}: {e.message}")
                continue

            if not found:
                logger.warning(f"Device reports {label} but no tray row is named '{label}'")
                result.missing.append(label)
                continue

            weight = descriptor.media_weight_metric
            logger.debug(f"Synced {label}: {paper_type}" + (f" {weight}gsm" if weight else ""))
            result.updated.append(label)

        return result

    def _track_failures(self, result: TraySyncResult) -> None:
        if result.error is None:
            if self._consecutive_failures > 0:
                logger.info(f"Tray sync recovered after {self._consecutive_failures} failures")
            self._consecutive_failures = 0
            logger.debug(
                f"Tray sync: {len(result.updated)} updated, "
                f"{len(result.skipped)} skipped, {len(result.failures)} failed"
            )
            return

        self._consecutive_failures += 1

        # Log with increasing severity based on consecutive failures
        if self._consecutive_failures == 1:
            logger.warning(f"Tray sync skipped: {result.error}")
        elif self._consecutive_failures <= 3:
            logger.error(f"Tray sync skipped ({self._consecutive_failures} consecutive): {result.error}")
        elif self._consecutive_failures % 5 == 0:
            logger.error(
                f"Tray sync still failing ({self._consecutive_failures} consecutive): {result.error}"
            )

    def _sync_loop(self) -> None:
        """Background thread main loop: initial delay, then every interval."""
        set_thread_name("TraySync")
        logger.info("Tray sync loop starting")

        if self._stop_event.wait(timeout=self._initial_delay):
            logger.info("Tray sync loop exiting")
            return

        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.error("Unexpected error in tray sync", exc_info=True)

            if self._stop_event.wait(timeout=self._sync_interval):
                break

        logger.info("Tray sync loop exiting")
