"""
Print job data models.

A PrintJob row is created by the ordering flow in status QUEUED and is
owned by the job processor from then on.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Mapping, Optional


class JobStatus(Enum):
    """
    Status of a print job.

    Lifecycle:
        QUEUED -> PRINTING -> (COMPLETED | ERROR)
        QUEUED -> CANCELLED   (set externally)
    """

    QUEUED = "queued"
    """Waiting for the poller."""

    PRINTING = "printing"
    """Picked up by the job processor."""

    COMPLETED = "completed"
    """Accepted by the device."""

    ERROR = "error"
    """Processing failed; see error_message."""

    CANCELLED = "cancelled"
    """Cancelled before processing started."""

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.CANCELLED})

# Legal transitions; anything not listed here is a bug in the caller
ALLOWED_TRANSITIONS: Dict[JobStatus, frozenset] = {
    JobStatus.QUEUED: frozenset({JobStatus.PRINTING, JobStatus.CANCELLED}),
    JobStatus.PRINTING: frozenset({JobStatus.COMPLETED, JobStatus.ERROR}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Whether ``current -> target`` is a legal job status transition."""
    return target in ALLOWED_TRANSITIONS[current]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class PrintJob:
    """One queued print request and its processing record."""

    id: int
    job_name: str
    status: JobStatus = JobStatus.QUEUED

    file_path: Optional[str] = None
    """Reference into the file store (the "print-jobs" bucket)."""

    tray_requested: Optional[str] = None
    """Human tray label, e.g. "Tray 2" or "Bypass"."""

    copies: int = 1
    duplex: bool = False
    color_mode: str = "color"

    total_pages: Optional[int] = None
    """Page estimate from the ordering flow, corrected from the real PDF."""

    pages_printed: int = 0
    submitted_by: Optional[str] = None

    submitted_at: datetime = field(default_factory=utc_now)
    started_printing_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    device_job_id: Optional[int] = None
    """job-id reported by the printer."""

    tray_used: Optional[str] = None
    retry_count: int = 0
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PrintJob":
        """Create from a database row (sqlite3.Row or dict)."""
        keys = set(row.keys())

        def get(name: str, default: Any = None) -> Any:
            return row[name] if name in keys and row[name] is not None else default

        return cls(
            id=int(row["id"]),
            job_name=get("job_name", ""),
            status=JobStatus(get("status", JobStatus.QUEUED.value)),
            file_path=get("file_path"),
            tray_requested=get("tray_requested"),
            copies=int(get("copies", 1)),
            duplex=bool(get("duplex", False)),
            color_mode=get("color_mode", "color"),
            total_pages=get("total_pages"),
            pages_printed=int(get("pages_printed", 0)),
            submitted_by=get("submitted_by"),
            submitted_at=_parse_datetime(get("submitted_at")) or utc_now(),
            started_printing_at=_parse_datetime(get("started_printing_at")),
            completed_at=_parse_datetime(get("completed_at")),
            error_message=get("error_message"),
            device_job_id=get("device_job_id"),
            tray_used=get("tray_used"),
            retry_count=int(get("retry_count", 0)),
            updated_at=_parse_datetime(get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary (status API)."""
        data = asdict(self)
        data["status"] = self.status.value
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
        return data
