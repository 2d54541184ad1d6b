"""
Custom exceptions for the print fulfillment worker.

Exception Hierarchy:
    PrintWorkerError (base)
    ├── JobFailure                  - terminates the job in `error`
    │   ├── InvalidJobError         - job row cannot be encoded (bad copies, no name)
    │   ├── MissingFileError       - job has no file reference / file absent
    │   ├── DownloadFailure         - file store fetch failed
    │   ├── ConversionFailure       - raster image could not be turned into a PDF
    │   ├── TransportTimeout        - device call exceeded its timeout
    │   ├── TransportError          - connection-level or framing failure
    │   └── ProtocolRejection       - device answered with a non-success status
    ├── PageCountParseFailure       - PDF could not be counted (non-fatal)
    └── PersistenceError            - job/tray store read or write failed

Usage:
    JobFailure subclasses are caught by the job processor and recorded on the
    job as "<kind>: <detail>". None of them is retried by the worker;
    resubmission is an explicit external action.

    PersistenceError and any other infrastructure failure is logged by the
    polling loops, which then continue with the next tick.
"""

from typing import Optional, Dict, Any


class PrintWorkerError(Exception):
    """
    Base exception for all worker errors.

    Attributes:
        kind: Short taxonomy tag used in persisted error messages
        message: Human-readable detail
        details: Optional extra context for debugging
    """

    kind = "PrintWorkerError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_error_message(self) -> str:
        """Format for the job's error_message column."""
        return f"{self.kind}: {self.message}"


# =============================================================================
# JOB FAILURES - the job ends in `error`, the worker keeps running
# =============================================================================

class JobFailure(PrintWorkerError):
    """Base class for failures that terminate a single job."""

    kind = "JobFailure"


class InvalidJobError(JobFailure):
    """The job row cannot be expressed as a valid device request."""

    kind = "InvalidJob"


class MissingFileError(JobFailure):
    """The job does not reference a file, or the referenced file does not exist."""

    kind = "MissingFile"

    def __init__(self, message: str = "missing file", reference: Optional[str] = None):
        details = {"reference": reference} if reference else None
        super().__init__(message, details)
        self.reference = reference


class DownloadFailure(JobFailure):
    """The file store could not return the document bytes."""

    kind = "DownloadFailure"

    def __init__(self, reference: str, reason: str):
        super().__init__(f"download failed: {reason}", {"reference": reference})
        self.reference = reference
        self.reason = reason


class ConversionFailure(JobFailure):
    """
    A raster image could not be converted into a paged document.

    Fatal for the job. Page counting problems on real PDFs are NOT
    conversion failures, see PageCountParseFailure.
    """

    kind = "ConversionFailure"

    def __init__(self, reason: str):
        super().__init__(f"conversion failed: {reason}")
        self.reason = reason


class TransportTimeout(JobFailure):
    """A device call did not complete within the configured timeout."""

    kind = "TransportTimeout"

    def __init__(self, operation: str, timeout_seconds: float):
        message = f"{operation} timed out after {timeout_seconds:.1f}s"
        details = {
            "operation": operation,
            "timeout_seconds": timeout_seconds,
        }
        super().__init__(message, details)
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class TransportError(JobFailure):
    """Connection-level failure talking to the device, or an unreadable reply."""

    kind = "TransportError"

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation} failed: {reason}", {"operation": operation})
        self.operation = operation
        self.reason = reason


class ProtocolRejection(JobFailure):
    """The device processed the request but answered with a non-success status."""

    kind = "ProtocolRejection"

    def __init__(self, status_name: str, status_code: int):
        super().__init__(f"IPP status {status_name} (0x{status_code:04x})")
        self.status_name = status_name
        self.status_code = status_code


# =============================================================================
# NON-FATAL / INFRASTRUCTURE ERRORS
# =============================================================================

class PageCountParseFailure(PrintWorkerError):
    """
    A paged document could not be parsed for its page count.

    Never fatal: the job keeps its previous estimate and is still printed.
    """

    kind = "PageCountParseFailure"

    def __init__(self, reason: str):
        super().__init__(f"page count unavailable: {reason}")
        self.reason = reason


class PersistenceError(PrintWorkerError):
    """A job or tray store operation failed."""

    kind = "PersistenceError"

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation} failed: {reason}", {"operation": operation})
        self.operation = operation
        self.reason = reason
