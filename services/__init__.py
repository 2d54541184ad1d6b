"""
Services layer for the print worker.

This module contains the background services:
- JobPoller: Feeds queued jobs to the job processor (5-second loop)
- TraySyncService: Copies device media into printer_trays (60-second loop)

Thread Model:
    Main Thread (Flask)
    ├── JobPoller thread
    └── TraySync thread

Both threads share one DeviceTransport, whose lock serializes device calls.
"""

from .job_poller import JobPoller
from .tray_sync_service import TraySyncService, TraySyncResult

__all__ = [
    "JobPoller",
    "TraySyncService",
    "TraySyncResult",
]
