"""
Single-channel transport to the physical printer.

Most printer controllers do not tolerate overlapping IPP sessions, so every
outbound call (job submission from the poller thread, attribute queries
from the tray sync thread) goes through one lock: at most one device call
is in flight at any time.

Every call carries the configured timeout. Timeouts and connection errors
are reported as TransportTimeout / TransportError; nothing is retried here,
since a silently repeated Print-Job can produce a duplicate printout.

Usage:
    transport = DeviceTransport("http://192.168.1.123:631/ipp", timeout_seconds=30)
    transport.open()

    outcome = transport.submit_job(print_request, pdf_bytes)
    media = transport.query_ready_media()

    transport.close()
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import List, Optional
from urllib.parse import urlparse, urlunparse

import requests

from models.ipp_messages import AttributesQuery, PrintRequest, SubmitOutcome
from models.tray import MediaDescriptor
from . import ipp
from .exceptions import TransportError, TransportTimeout, ProtocolRejection


def _printer_uri(printer_url: str) -> str:
    """http://host:631/ipp -> ipp://host:631/ipp (the URI sent inside the request)."""
    parsed = urlparse(printer_url)
    scheme = {"http": "ipp", "https": "ipps"}.get(parsed.scheme, parsed.scheme)
    return urlunparse(parsed._replace(scheme=scheme))


class DeviceTransport:
    """
    Owns the HTTP session to the printer's IPP endpoint.

    Thread Safety:
        - submit_job() and query_ready_media() may be called from any thread
        - Calls are serialized by an internal lock
    """

    def __init__(
        self,
        printer_url: str,
        timeout_seconds: float = 30.0,
        requesting_user_name: str = "PrintServer",
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            printer_url: HTTP URL of the IPP endpoint
            timeout_seconds: Upper bound for a single device call
            requesting_user_name: Name used for attribute queries
            session: Pre-built session (tests inject a fake one)
            logger: Logger instance
        """
        self.printer_url = printer_url
        self.printer_uri = _printer_uri(printer_url)
        self.timeout_seconds = timeout_seconds
        self.requesting_user_name = requesting_user_name
        self._session = session
        self._owns_session = session is None
        self._logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._request_ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._session is not None

    def open(self) -> None:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Content-Type": ipp.CONTENT_TYPE})
            self._owns_session = True
        self._logger.info(f"Device transport ready for {self.printer_url}")

    def close(self) -> None:
        with self._lock:
            if self._session is not None and self._owns_session:
                self._session.close()
            self._session = None

    def __enter__(self) -> "DeviceTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def submit_job(self, request: PrintRequest, document: bytes) -> SubmitOutcome:
        """
        Send a Print-Job request with the document attached.

        A non-success IPP status is NOT raised; it is returned in the
        outcome so the caller can record the raw status.

        Raises:
            TransportTimeout: If the device did not answer in time
            TransportError: On connection failure or an unreadable reply
        """
        body = ipp.encode_request(
            ipp.OP_PRINT_JOB,
            next(self._request_ids),
            self.printer_uri,
            request.operation.to_ipp(),
            request.job.to_ipp(),
            document,
        )
        response = self._call("Print-Job", body)

        job_group = response.group(ipp.TAG_JOB)
        device_job_id = job_group.get("job-id") if job_group else None
        state = job_group.get("job-state") if job_group else None
        device_state = ipp.JOB_STATE_NAMES.get(state) if isinstance(state, int) else state

        outcome = SubmitOutcome(
            status_code=response.status_code,
            raw_status_code=response.status_name,
            device_job_id=device_job_id,
            device_state=device_state,
        )
        self._logger.debug(
            f"Print-Job answered {outcome.raw_status_code} "
            f"(job-id={outcome.device_job_id}, state={outcome.device_state})"
        )
        return outcome

    def query_ready_media(self) -> List[MediaDescriptor]:
        """
        Ask the printer for its loaded media (media-col-ready).

        Entries without a usable media-source are dropped with a warning.

        Raises:
            TransportTimeout: If the device did not answer in time
            TransportError: On connection failure or an unreadable reply
            ProtocolRejection: If the printer refused the query
        """
        query = AttributesQuery(requesting_user_name=self.requesting_user_name)
        body = ipp.encode_request(
            ipp.OP_GET_PRINTER_ATTRIBUTES,
            next(self._request_ids),
            self.printer_uri,
            query.to_ipp(),
        )
        response = self._call("Get-Printer-Attributes", body)

        if not 0x0000 <= response.status_code <= 0x00FF:
            raise ProtocolRejection(response.status_name, response.status_code)

        printer_group = response.group(ipp.TAG_PRINTER)
        if printer_group is None:
            return []

        descriptors = []
        for collection in ipp.iter_collections(printer_group.get_all("media-col-ready")):
            try:
                descriptors.append(MediaDescriptor.from_collection(collection))
            except ValueError as e:
                self._logger.warning(f"Ignoring media-col-ready entry: {e}")
        return descriptors

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _call(self, operation: str, body: bytes) -> ipp.IppResponse:
        with self._lock:
            if self._session is None:
                raise TransportError(operation, "transport is not open")

            try:
                http_response = self._session.post(
                    self.printer_url,
                    data=body,
                    headers={"Content-Type": ipp.CONTENT_TYPE},
                    timeout=self.timeout_seconds,
                )
            except requests.Timeout:
                self._logger.error(f"{operation} timed out after {self.timeout_seconds}s")
                raise TransportTimeout(operation, self.timeout_seconds)
            except requests.RequestException as e:
                self._logger.error(f"{operation} failed: {e}")
                raise TransportError(operation, str(e)) from e

        if http_response.status_code != 200:
            raise TransportError(operation, f"HTTP {http_response.status_code}")

        try:
            return ipp.decode_response(http_response.content)
        except ipp.IppDecodeError as e:
            raise TransportError(operation, f"invalid IPP response: {e}") from e
