"""Job processor: drives one print job from queued to a terminal status."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from core.device_transport import DeviceTransport
from core.exceptions import (
    InvalidJobError,
    JobFailure,
    PersistenceError,
    ProtocolRejection,
)
from core.file_store import LocalFileStore
from core.job_store import JobStore
from core.tray_store import TrayStore
from logging_config import get_job_logger
from models.ipp_messages import MEDIA_SOURCE_AUTO, PrintRequest
from models.job_result import JobResult
from models.print_job import JobStatus, PrintJob, utc_now
from models.tray import TrayConfig
from .format_normalizer import FormatNormalizer, NormalizedDocument, detect_content_kind
from .protocol_encoder import ProtocolEncoder


class JobProcessor:
    """
    Processes print jobs one at a time.

    Lifecycle enforced here:
        queued -> printing -> (completed | error)

    The queued -> printing claim is a conditional update, so a job that was
    cancelled (or claimed by another worker) after it was dequeued is
    skipped and never reaches the device. Every JobFailure raised while
    printing moves the job to error with "<kind>: <detail>"; nothing is
    retried. A store failure before submission also moves the job to error
    and is re-raised; after submission the job is left in printing.

    Thread Safety:
        process() holds an internal lock, so at most one job is in flight
        per processor even if several loops share it.
    """

    def __init__(
        self,
        job_store: JobStore,
        tray_store: TrayStore,
        file_store: LocalFileStore,
        transport: DeviceTransport,
        normalizer: Optional[FormatNormalizer] = None,
        encoder: Optional[ProtocolEncoder] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.job_store = job_store
        self.tray_store = tray_store
        self.file_store = file_store
        self.transport = transport
        self.normalizer = normalizer or FormatNormalizer()
        self.encoder = encoder or ProtocolEncoder()
        self.logger = logger or logging.getLogger(__name__)
        self._process_lock = threading.Lock()

    def process(self, job: PrintJob) -> JobResult:
        """
        Process one job to a terminal status.

        Args:
            job: Job as dequeued by the poller (may already be stale)

        Returns:
            JobResult describing the pass

        Raises:
            PersistenceError: If the job row cannot be read or written
        """
        with self._process_lock:
            return self._process(job)

    def _process(self, dequeued: PrintJob) -> JobResult:
        job_logger = get_job_logger(dequeued.id)

        # =================================================================
        # STEP 1: Claim the job (queued -> printing)
        # =================================================================
        job = self.job_store.get(dequeued.id)
        if job is None:
            job_logger.warning("Job disappeared before processing, skipping")
            return JobResult.create_skipped(dequeued.id, dequeued.status)

        if job.status is not JobStatus.QUEUED:
            job_logger.info(f"Job is {job.status.value}, skipping")
            return JobResult.create_skipped(job.id, job.status)

        started_at = utc_now()
        if not self.job_store.transition(
            job.id, JobStatus.QUEUED, JobStatus.PRINTING, started_printing_at=started_at
        ):
            current = self.job_store.get(job.id)
            status = current.status if current else job.status
            job_logger.info(f"Job changed to {status.value} before it could be claimed, skipping")
            return JobResult.create_skipped(job.id, status)

        job.status = JobStatus.PRINTING
        job.started_printing_at = started_at
        job_logger.info(f"Processing '{job.job_name}' (tray={job.tray_requested}, copies={job.copies})")

        submitted = False
        try:
            request, document = self._prepare(job, job_logger)
            submitted = True
            return self._submit(job, request, document, job_logger)
        except JobFailure as e:
            job_logger.error(f"Job failed: {e}")
            return self._fail(job, e.to_error_message(), job_logger)
        except PersistenceError as e:
            # A job handed to the device stays in printing
            if not submitted:
                job_logger.error(f"Store failure before submission: {e}")
                try:
                    self._fail(job, e.to_error_message(), job_logger)
                except PersistenceError as fail_error:
                    job_logger.error(f"Could not record the failure: {fail_error}")
            raise
        except Exception as e:
            job_logger.exception("Unexpected error while processing job")
            self._fail(job, f"InternalError: {e}", job_logger)
            raise

    def _prepare(
        self, job: PrintJob, job_logger: logging.Logger
    ) -> Tuple[PrintRequest, NormalizedDocument]:
        # =================================================================
        # STEP 2: Resolve the requested tray
        # =================================================================
        tray_config = self._resolve_tray(job, job_logger)

        # =================================================================
        # STEP 3: Fetch the document
        # =================================================================
        data = self.file_store.fetch(job.file_path)
        job_logger.debug(f"Downloaded {len(data)} bytes from {job.file_path}")

        # =================================================================
        # STEP 4: Normalize format and correct the page count
        # =================================================================
        kind = detect_content_kind(job.file_path, data)
        document = self.normalizer.normalize(data, kind)
        if document.converted:
            job_logger.info("Converted image to a one-page PDF")

        if document.page_count is not None and document.page_count != job.total_pages:
            job_logger.info(f"Correcting page count {job.total_pages} -> {document.page_count}")
            self.job_store.update(job.id, total_pages=document.page_count)
            job.total_pages = document.page_count
        elif document.page_count_error:
            job_logger.warning(f"Keeping page estimate {job.total_pages}: {document.page_count_error}")

        # =================================================================
        # STEP 5: Encode the request
        # =================================================================
        try:
            request = self.encoder.encode(job, tray_config, document.document_format)
        except ValueError as e:
            raise InvalidJobError(str(e)) from e
        return request, document

    def _submit(
        self,
        job: PrintJob,
        request: PrintRequest,
        document: NormalizedDocument,
        job_logger: logging.Logger,
    ) -> JobResult:
        # =================================================================
        # STEP 6: Submit to the device
        # =================================================================
        media = request.job.media_col
        job_logger.info(
            f"Submitting to device: media-source={media.media_source}, "
            f"media-type={media.media_type}, weight={media.media_weight_metric}"
        )
        outcome = self.transport.submit_job(request, document.data)

        # =================================================================
        # STEP 7: Record the outcome
        # =================================================================
        if not outcome.is_successful:
            raise ProtocolRejection(outcome.raw_status_code, outcome.status_code)

        pages_printed = (job.total_pages or 0) * job.copies
        tray_used = job.tray_requested if media.media_source != MEDIA_SOURCE_AUTO else None
        if not self.job_store.transition(
            job.id,
            JobStatus.PRINTING,
            JobStatus.COMPLETED,
            completed_at=utc_now(),
            device_job_id=outcome.device_job_id,
            tray_used=tray_used,
            pages_printed=pages_printed,
        ):
            raise PersistenceError("complete job", f"job {job.id} is no longer printing")

        job_logger.info(
            f"Job completed: device job-id={outcome.device_job_id}, "
            f"status={outcome.raw_status_code}, pages={pages_printed}"
        )
        return JobResult.create_completed(
            job_id=job.id,
            device_job_id=outcome.device_job_id,
            total_pages=job.total_pages,
            pages_printed=pages_printed,
        )

    def _resolve_tray(self, job: PrintJob, job_logger: logging.Logger) -> TrayConfig:
        """
        Tray configuration for the job's requested tray.

        An unknown tray, or a store failure, falls back to default media.
        """
        if not job.tray_requested:
            return TrayConfig.defaults()
        try:
            tray = self.tray_store.get_by_name(job.tray_requested)
        except PersistenceError as e:
            job_logger.warning(f"Tray lookup failed, using default media: {e}")
            return TrayConfig.defaults()
        if tray is None:
            job_logger.warning(f"Unknown tray '{job.tray_requested}', using default media")
            return TrayConfig.defaults()
        return tray.to_config()

    def _fail(self, job: PrintJob, error_message: str, job_logger: logging.Logger) -> JobResult:
        if not self.job_store.transition(
            job.id, JobStatus.PRINTING, JobStatus.ERROR, error_message=error_message
        ):
            job_logger.warning("Job was no longer printing when recording the failure")
        return JobResult.create_failed(job.id, error_message, total_pages=job.total_pages)
