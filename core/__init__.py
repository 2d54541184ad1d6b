"""
Core module for the print worker.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- ipp: IPP/1.1 request encoder and response decoder
- device_transport: Serialized HTTP transport to the printer
- database: Shared SQLite connection and schema
- job_store / tray_store: Row access for print_jobs and printer_trays
- file_store: Document bytes by reference
"""

from .exceptions import (
    PrintWorkerError,
    JobFailure,
    InvalidJobError,
    MissingFileError,
    DownloadFailure,
    ConversionFailure,
    TransportTimeout,
    TransportError,
    ProtocolRejection,
    PageCountParseFailure,
    PersistenceError,
)
from .database import Database
from .device_transport import DeviceTransport
from .file_store import LocalFileStore
from .job_store import JobStore
from .tray_store import TrayStore

__all__ = [
    "PrintWorkerError",
    "JobFailure",
    "InvalidJobError",
    "MissingFileError",
    "DownloadFailure",
    "ConversionFailure",
    "TransportTimeout",
    "TransportError",
    "ProtocolRejection",
    "PageCountParseFailure",
    "PersistenceError",
    "Database",
    "DeviceTransport",
    "LocalFileStore",
    "JobStore",
    "TrayStore",
]
