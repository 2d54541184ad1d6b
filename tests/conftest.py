"""Shared fixtures for the print worker tests."""

import io
import struct
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, Mock

import pytest
from PIL import Image
from pypdf import PdfWriter

from core import ipp
from core.database import Database
from core.device_transport import DeviceTransport
from core.file_store import LocalFileStore
from core.job_store import JobStore
from core.tray_store import TrayStore
from models.print_job import PrintJob
from models.tray import PrinterTray


PRINTER_URL = "http://printer.test:631/ipp"


# Fixtures

@pytest.fixture
def database():
    """Fresh in-memory database with the schema applied."""
    db = Database(":memory:")
    db.open()
    yield db
    db.close()


@pytest.fixture
def job_store(database):
    return JobStore(database)


@pytest.fixture
def tray_store(database):
    return TrayStore(database)


@pytest.fixture
def file_root(tmp_path):
    root = tmp_path / "print-jobs"
    root.mkdir()
    return root


@pytest.fixture
def file_store(file_root):
    return LocalFileStore(file_root)


@pytest.fixture
def make_job(job_store):
    """
    Insert queued jobs. Each call is submitted one second after the previous
    one, so FIFO order follows call order.
    """
    base = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        values = {
            "id": 0,
            "job_name": f"Job {counter['n']}",
            "file_path": f"orders/job-{counter['n']}.pdf",
            "tray_requested": "Tray 1",
            "total_pages": 1,
            "submitted_by": "alice",
            "submitted_at": base + timedelta(seconds=counter["n"]),
        }
        values.update(fields)
        return job_store.insert(PrintJob(**values))

    return _make


@pytest.fixture
def make_tray(tray_store):
    def _make(tray_name, **fields):
        values = {
            "id": 0,
            "tray_name": tray_name,
            "paper_size": "A4",
            "paper_type": "Plain",
            "sheets_loaded": 250,
            "sheets_capacity": 500,
        }
        values.update(fields)
        return tray_store.insert(PrinterTray(**values))

    return _make


@pytest.fixture
def pdf_bytes():
    """Factory for a PDF with the given number of blank A4 pages."""
    def _make(pages=1):
        writer = PdfWriter()
        for _ in range(pages):
            writer.add_blank_page(width=595, height=842)
        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()

    return _make


@pytest.fixture
def png_bytes():
    """A small landscape PNG."""
    image = Image.new("RGB", (400, 200), (200, 30, 30))
    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def ipp_response():
    """
    Factory for raw IPP response bodies.

    Args (of the returned callable):
        status_code: IPP status-code
        groups: List of (delimiter tag, {name: value}) pairs
    """
    def _make(status_code=0x0000, groups=None, request_id=1):
        body = bytearray(struct.pack(">BBHI", 1, 1, status_code, request_id))
        body += ipp.encode_group(ipp.TAG_OPERATION, {
            "attributes-charset": "utf-8",
            "attributes-natural-language": "en",
        })
        for tag, attributes in groups or []:
            body += ipp.encode_group(tag, attributes)
        body.append(ipp.TAG_END)
        return bytes(body)

    return _make


@pytest.fixture
def http_reply():
    """Factory for a fake requests.Response carrying an IPP body."""
    def _make(content, status_code=200):
        return Mock(status_code=status_code, content=content)

    return _make


@pytest.fixture
def session():
    """Mocked requests.Session; tests set post.return_value / side_effect."""
    return MagicMock()


@pytest.fixture
def transport(session):
    t = DeviceTransport(PRINTER_URL, timeout_seconds=2.0, session=session)
    t.open()
    yield t
    t.close()
