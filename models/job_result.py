"""
Job result data models.

These models describe what happened to one job during a single pass of the
job processor. The authoritative record is the job row itself; a JobResult
is what the processor hands back to the poller for logging and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional

from .print_job import JobStatus


class ResultKind(Enum):
    """How a processing pass ended."""

    COMPLETED = "completed"
    """Device accepted the job."""

    FAILED = "failed"
    """Job was moved to error."""

    SKIPPED = "skipped"
    """Job was no longer queued (cancelled or claimed elsewhere)."""


@dataclass
class JobResult:
    """Outcome of processing one job."""

    job_id: int
    kind: ResultKind
    status: JobStatus
    """Job status after the pass."""

    error_message: Optional[str] = None
    device_job_id: Optional[int] = None
    total_pages: Optional[int] = None
    pages_printed: int = 0

    @property
    def submitted(self) -> bool:
        return self.kind is ResultKind.COMPLETED

    @classmethod
    def create_completed(
        cls,
        job_id: int,
        device_job_id: Optional[int],
        total_pages: Optional[int],
        pages_printed: int,
    ) -> "JobResult":
        return cls(
            job_id=job_id,
            kind=ResultKind.COMPLETED,
            status=JobStatus.COMPLETED,
            device_job_id=device_job_id,
            total_pages=total_pages,
            pages_printed=pages_printed,
        )

    @classmethod
    def create_failed(
        cls,
        job_id: int,
        error_message: str,
        total_pages: Optional[int] = None,
    ) -> "JobResult":
        return cls(
            job_id=job_id,
            kind=ResultKind.FAILED,
            status=JobStatus.ERROR,
            error_message=error_message,
            total_pages=total_pages,
        )

    @classmethod
    def create_skipped(cls, job_id: int, status: JobStatus) -> "JobResult":
        """
        Create a result for a job that was not processed.

        Args:
            job_id: Job identifier
            status: Status the job was found in
        """
        return cls(job_id=job_id, kind=ResultKind.SKIPPED, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "result": self.kind.value,
            "status": self.status.value,
            "error_message": self.error_message,
            "device_job_id": self.device_job_id,
            "total_pages": self.total_pages,
            "pages_printed": self.pages_printed,
        }
