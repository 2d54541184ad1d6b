"""
Data models for the print worker.

This module contains dataclasses for:
- PrintJob: One queued print request and its processing record
- PrinterTray / TrayConfig: Tray contents and the media used for a job
- MediaDescriptor: Media the device reports as loaded
- PrintRequest / SubmitOutcome: Typed IPP messages
- JobResult: Outcome of one processing pass

Messages and tray configurations are frozen so they can be passed between
threads safely.
"""

from .print_job import PrintJob, JobStatus, TERMINAL_STATUSES, can_transition
from .tray import PrinterTray, TrayConfig, TrayFillStatus, MediaDescriptor
from .ipp_messages import (
    OperationAttributes,
    MediaCollection,
    JobAttributes,
    PrintRequest,
    AttributesQuery,
    SubmitOutcome,
)
from .job_result import JobResult, ResultKind

__all__ = [
    # Job models
    "PrintJob",
    "JobStatus",
    "TERMINAL_STATUSES",
    "can_transition",
    "JobResult",
    "ResultKind",
    # Tray models
    "PrinterTray",
    "TrayConfig",
    "TrayFillStatus",
    "MediaDescriptor",
    # Protocol messages
    "OperationAttributes",
    "MediaCollection",
    "JobAttributes",
    "PrintRequest",
    "AttributesQuery",
    "SubmitOutcome",
]
