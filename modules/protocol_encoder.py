"""
Builds typed IPP requests from a print job and its resolved tray.

Deterministic and side-effect free. Malformed jobs are rejected here with
ValueError, before anything reaches the device.
"""

from __future__ import annotations

from typing import Optional

from models.ipp_messages import (
    JobAttributes,
    MediaCollection,
    OperationAttributes,
    PrintRequest,
    SIDES_ONE_SIDED,
    SIDES_TWO_SIDED_LONG_EDGE,
)
from models.print_job import PrintJob
from models.tray import DEFAULT_MEDIA_TYPE, TrayConfig
from .media_mapper import to_device_source


class ProtocolEncoder:
    """Turns (job, tray configuration) into a PrintRequest."""

    def __init__(self, default_user_name: str = "PrintServer"):
        self.default_user_name = default_user_name

    def encode(
        self,
        job: PrintJob,
        tray: Optional[TrayConfig],
        document_format: str,
    ) -> PrintRequest:
        """
        Args:
            job: The job being printed
            tray: Resolved tray configuration, None if the tray is unknown
            document_format: MIME type of the normalized document

        Raises:
            ValueError: If the job cannot be expressed as a valid request
        """
        if not job.job_name or not job.job_name.strip():
            raise ValueError(f"Job {job.id} has no job name")
        if job.copies is None or job.copies < 1:
            raise ValueError(f"Job {job.id} has invalid copies: {job.copies}")

        operation = OperationAttributes(
            requesting_user_name=job.submitted_by or self.default_user_name,
            job_name=job.job_name,
            document_format=document_format,
        )
        job_attributes = JobAttributes(
            copies=job.copies,
            sides=SIDES_TWO_SIDED_LONG_EDGE if job.duplex else SIDES_ONE_SIDED,
            media_col=self.media_collection(job.tray_requested, tray),
        )
        return PrintRequest(operation=operation, job=job_attributes)

    @staticmethod
    def media_collection(tray_label: Optional[str], tray: Optional[TrayConfig]) -> MediaCollection:
        """
        Nested media-col for the requested tray.

        The media-source is the device code recorded on the tray by the
        tray synchronizer, else the code derived from the job's tray label.
        Weight is only sent when a positive value is known.
        """
        media_source = to_device_source(tray_label)
        media_type = DEFAULT_MEDIA_TYPE
        weight = None
        if tray is not None:
            if tray.media_source_code:
                media_source = tray.media_source_code
            media_type = (tray.paper_type or DEFAULT_MEDIA_TYPE).lower()
            if tray.paper_weight_gsm is not None and tray.paper_weight_gsm > 0:
                weight = int(tray.paper_weight_gsm)

        return MediaCollection(
            media_source=media_source,
            media_type=media_type,
            media_weight_metric=weight,
        )
