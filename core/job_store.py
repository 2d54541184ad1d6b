"""
Job store: persistence for print_jobs rows.

Status changes go through ``transition()``, a conditional update that only
succeeds while the row is still in the expected status. This is how a
cancellation issued between dequeue and processing is observed: the
queued -> printing transition simply does not match any row.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.print_job import JobStatus, PrintJob, can_transition, utc_now
from .database import Database
from .exceptions import PersistenceError


# Columns the worker may write. id and submitted_at are set on insert only;
# retry_count is owned by whatever resubmits jobs.
UPDATABLE_COLUMNS = frozenset({
    "job_name", "file_path", "status", "tray_requested", "copies", "duplex",
    "color_mode", "total_pages", "pages_printed", "submitted_by",
    "started_printing_at", "completed_at", "error_message", "device_job_id",
    "tray_used",
})


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


class JobStore:
    """Reads and writes PrintJob rows."""

    def __init__(self, database: Database):
        self._db = database

    def fetch_next_queued(self) -> Optional[PrintJob]:
        """Oldest queued job (FIFO by submission time), or None."""
        row = self._db.query_one(
            "SELECT * FROM print_jobs WHERE status = ? "
            "ORDER BY submitted_at ASC, id ASC LIMIT 1",
            (JobStatus.QUEUED.value,),
        )
        return PrintJob.from_row(row) if row else None

    def get(self, job_id: int) -> Optional[PrintJob]:
        row = self._db.query_one("SELECT * FROM print_jobs WHERE id = ?", (job_id,))
        return PrintJob.from_row(row) if row else None

    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 50) -> List[PrintJob]:
        if status is None:
            rows = self._db.query_all(
                "SELECT * FROM print_jobs ORDER BY submitted_at DESC, id DESC LIMIT ?",
                (limit,),
            )
        else:
            rows = self._db.query_all(
                "SELECT * FROM print_jobs WHERE status = ? "
                "ORDER BY submitted_at ASC, id ASC LIMIT ?",
                (status.value, limit),
            )
        return [PrintJob.from_row(row) for row in rows]

    def insert(self, job: PrintJob) -> PrintJob:
        """Insert a new job row; returns it with the assigned id."""
        values: Dict[str, Any] = {
            "job_name": job.job_name,
            "file_path": job.file_path,
            "status": job.status,
            "tray_requested": job.tray_requested,
            "copies": job.copies,
            "duplex": job.duplex,
            "color_mode": job.color_mode,
            "total_pages": job.total_pages,
            "pages_printed": job.pages_printed,
            "submitted_by": job.submitted_by,
            "submitted_at": job.submitted_at,
            "retry_count": job.retry_count,
            "updated_at": utc_now(),
        }
        if job.id:
            values["id"] = job.id

        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        cursor = self._db.execute(
            f"INSERT INTO print_jobs ({columns}) VALUES ({placeholders})",
            [_to_db(v) for v in values.values()],
        )
        return self.get(cursor.lastrowid)

    def update(self, job_id: int, **fields: Any) -> None:
        """
        Update columns of one job.

        Raises:
            ValueError: If an unknown column is given
            PersistenceError: If the write fails or the job does not exist
        """
        if not fields:
            return
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown print_jobs columns: {sorted(unknown)}")

        fields["updated_at"] = utc_now()
        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_db(v) for v in fields.values()] + [job_id]

        cursor = self._db.execute(f"UPDATE print_jobs SET {assignments} WHERE id = ?", params)
        if cursor.rowcount == 0:
            raise PersistenceError("update job", f"job {job_id} not found")

    def transition(
        self,
        job_id: int,
        expected: JobStatus,
        target: JobStatus,
        **fields: Any,
    ) -> bool:
        """
        Move a job from ``expected`` to ``target`` status.

        Returns:
            True if the row was in ``expected`` status and was updated,
            False if its status had changed in the meantime

        Raises:
            ValueError: If the transition is not allowed by the lifecycle
        """
        if not can_transition(expected, target):
            raise ValueError(f"Illegal job transition {expected.value} -> {target.value}")
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown print_jobs columns: {sorted(unknown)}")

        fields["status"] = target
        fields["updated_at"] = utc_now()
        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_db(v) for v in fields.values()] + [job_id, expected.value]

        cursor = self._db.execute(
            f"UPDATE print_jobs SET {assignments} WHERE id = ? AND status = ?", params
        )
        return cursor.rowcount == 1

    def request_cancel(self, job_id: int) -> bool:
        """
        Cancel a job that has not been picked up yet.

        Jobs already printing cannot be cancelled; the device submission
        may be in flight.
        """
        return self.transition(
            job_id, JobStatus.QUEUED, JobStatus.CANCELLED, completed_at=utc_now()
        )
