"""
Unit tests for the Device Transport.

The HTTP session is a MagicMock; the IPP bodies it returns are built with
the codec under test.
"""

import struct
import threading
import time
from unittest.mock import Mock

import pytest
import requests

from core import ipp
from core.device_transport import DeviceTransport
from core.exceptions import ProtocolRejection, TransportError, TransportTimeout
from models.ipp_messages import (
    JobAttributes,
    MediaCollection,
    OperationAttributes,
    PrintRequest,
)


# Fixtures

@pytest.fixture
def print_request():
    return PrintRequest(
        operation=OperationAttributes("alice", "Poster", "application/pdf"),
        job=JobAttributes(
            copies=1,
            sides="one-sided",
            media_col=MediaCollection("tray-2", "coated", 170),
        ),
    )


class TestLifecycle:
    """open/close and the context manager."""

    def test_printer_uri_uses_ipp_scheme(self):
        transport = DeviceTransport("http://192.168.1.123:631/ipp")

        assert transport.printer_uri == "ipp://192.168.1.123:631/ipp"

    def test_closed_transport_raises(self, session, print_request):
        transport = DeviceTransport("http://printer.test:631/ipp", session=session)
        transport.close()

        with pytest.raises(TransportError, match="not open"):
            transport.submit_job(print_request, b"%PDF")
        session.post.assert_not_called()

    def test_context_manager(self, session):
        with DeviceTransport("http://printer.test:631/ipp", session=session) as transport:
            assert transport.is_open

        assert not transport.is_open
        # Injected sessions belong to the caller
        session.close.assert_not_called()


class TestSubmitJob:
    """Tests for submit_job()."""

    def test_successful_submission(self, transport, session, http_reply, ipp_response, print_request):
        session.post.return_value = http_reply(
            ipp_response(0x0000, [(ipp.TAG_JOB, {"job-id": 88, "job-state": 5})])
        )

        outcome = transport.submit_job(print_request, b"%PDF-doc")

        assert outcome.is_successful
        assert outcome.raw_status_code == "successful-ok"
        assert outcome.device_job_id == 88
        assert outcome.device_state == "processing"

        _, kwargs = session.post.call_args
        assert kwargs["timeout"] == 2.0
        assert kwargs["headers"]["Content-Type"] == "application/ipp"

        sent = ipp.decode_response(kwargs["data"])
        assert sent.status_code == ipp.OP_PRINT_JOB
        assert sent.data == b"%PDF-doc"
        assert sent.group(ipp.TAG_JOB).get("media-col") == {
            "media-source": "tray-2",
            "media-type": "coated",
            "media-weight-metric": 170,
        }

    def test_rejection_is_returned_not_raised(self, transport, session, http_reply, ipp_response, print_request):
        session.post.return_value = http_reply(ipp_response(0x040A))

        outcome = transport.submit_job(print_request, b"%PDF")

        assert not outcome.is_successful
        assert outcome.raw_status_code == "client-error-document-format-not-supported"
        assert outcome.device_job_id is None

    def test_timeout(self, transport, session, print_request):
        session.post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(TransportTimeout) as exc_info:
            transport.submit_job(print_request, b"%PDF")

        assert exc_info.value.to_error_message() == "TransportTimeout: Print-Job timed out after 2.0s"

    def test_connection_error(self, transport, session, print_request):
        session.post.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError, match="connection refused"):
            transport.submit_job(print_request, b"%PDF")

    def test_http_error_status(self, transport, session, http_reply, print_request):
        session.post.return_value = http_reply(b"", status_code=503)

        with pytest.raises(TransportError, match="HTTP 503"):
            transport.submit_job(print_request, b"%PDF")

    def test_garbage_reply(self, transport, session, http_reply, print_request):
        session.post.return_value = http_reply(b"<html>")

        with pytest.raises(TransportError, match="invalid IPP response"):
            transport.submit_job(print_request, b"%PDF")

    def test_no_retry(self, transport, session, print_request):
        session.post.side_effect = requests.ConnectionError("reset")

        with pytest.raises(TransportError):
            transport.submit_job(print_request, b"%PDF")

        assert session.post.call_count == 1


class TestQueryReadyMedia:
    """Tests for query_ready_media()."""

    def test_returns_descriptors(self, transport, session, http_reply, ipp_response):
        ready = [
            {"media-source": "tray-1", "media-type": "stationery", "media-weight-metric": 80,
             "media-size": {"x-dimension": 21000, "y-dimension": 29700}},
            {"media-source": "bypass-tray", "media-type": "labels"},
        ]
        session.post.return_value = http_reply(
            ipp_response(0x0000, [(ipp.TAG_PRINTER, {
                "printer-input-tray": "type=sheetFeedAutoRemovableTray;",
                "media-col-ready": ready,
            })])
        )

        media = transport.query_ready_media()

        assert [m.media_source for m in media] == ["tray-1", "bypass-tray"]
        assert media[0].media_weight_metric == 80
        assert (media[0].x_dimension, media[0].y_dimension) == (21000, 29700)
        assert media[1].media_weight_metric is None

        sent = ipp.decode_response(session.post.call_args.kwargs["data"])
        assert sent.status_code == ipp.OP_GET_PRINTER_ATTRIBUTES
        assert sent.group(ipp.TAG_OPERATION).get_all("requested-attributes") == [
            "printer-input-tray", "media-col-ready",
        ]

    def test_invalid_entries_skipped(self, transport, session, http_reply, ipp_response):
        ready = [{"media-type": "plain"}, {"media-source": "tray-3", "media-weight-metric": 0}]
        session.post.return_value = http_reply(
            ipp_response(0x0000, [(ipp.TAG_PRINTER, {"media-col-ready": ready})])
        )

        media = transport.query_ready_media()

        assert len(media) == 1
        assert media[0].media_source == "tray-3"
        assert media[0].media_weight_metric is None

    def test_no_printer_group(self, transport, session, http_reply, ipp_response):
        session.post.return_value = http_reply(ipp_response(0x0000))

        assert transport.query_ready_media() == []

    def test_rejected_query_raises(self, transport, session, http_reply, ipp_response):
        session.post.return_value = http_reply(ipp_response(0x0502))

        with pytest.raises(ProtocolRejection, match="server-error-service-unavailable"):
            transport.query_ready_media()


    def test_malformed_value_is_transport_error(self, transport, session, http_reply):
        attr = (struct.pack(">BH", ipp.TAG_RANGE_OF_INTEGER, 12) + b"copies-range"
                + struct.pack(">H", 4) + struct.pack(">i", 1))
        body = struct.pack(">BBHI", 1, 1, 0, 1) + bytes([ipp.TAG_PRINTER]) + attr + bytes([ipp.TAG_END])
        session.post.return_value = http_reply(body)

        with pytest.raises(TransportError, match="invalid IPP response"):
            transport.query_ready_media()


class TestSerialization:
    """At most one device call is in flight at a time."""

    def test_concurrent_calls_do_not_overlap(self, transport, session, ipp_response):
        state = {"active": 0, "max_active": 0}
        state_lock = threading.Lock()
        body = ipp_response(0x0000)

        def slow_post(*args, **kwargs):
            with state_lock:
                state["active"] += 1
                state["max_active"] = max(state["max_active"], state["active"])
            time.sleep(0.02)
            with state_lock:
                state["active"] -= 1
            return Mock(status_code=200, content=body)

        session.post.side_effect = slow_post

        threads = [threading.Thread(target=transport.query_ready_media) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert session.post.call_count == 5
        assert state["max_active"] == 1
