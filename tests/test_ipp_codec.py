"""
Unit tests for the IPP request encoder and response decoder.
"""

import struct

import pytest

from core import ipp


class TestEncodeRequest:
    """Tests for encode_request()."""

    def test_header_and_leading_operation_attributes(self):
        body = ipp.encode_request(
            ipp.OP_GET_PRINTER_ATTRIBUTES, 42, "ipp://printer/ipp",
            {"requesting-user-name": "PrintServer"},
        )

        version_major, version_minor, operation, request_id = struct.unpack(">BBHI", body[:8])
        assert (version_major, version_minor) == (1, 1)
        assert operation == ipp.OP_GET_PRINTER_ATTRIBUTES
        assert request_id == 42

        # Request bodies share the response layout, so the decoder can read them
        decoded = ipp.decode_response(body)
        names = list(decoded.group(ipp.TAG_OPERATION).attributes)
        assert names[:3] == ["attributes-charset", "attributes-natural-language", "printer-uri"]
        assert decoded.group(ipp.TAG_OPERATION).get("printer-uri") == "ipp://printer/ipp"

    def test_document_follows_end_tag(self):
        body = ipp.encode_request(
            ipp.OP_PRINT_JOB, 1, "ipp://printer/ipp",
            {"job-name": "x"}, {"copies": 1}, data=b"%PDF-1.4 payload",
        )

        assert ipp.decode_response(body).data == b"%PDF-1.4 payload"

    def test_media_col_collection(self):
        media_col = {"media-source": "tray-2", "media-type": "coated", "media-weight-metric": 170}
        body = ipp.encode_request(
            ipp.OP_PRINT_JOB, 1, "ipp://printer/ipp", {}, {"media-col": media_col},
        )

        # begCollection with the attribute name, then memberAttrName entries
        assert b"\x34\x00\x09media-col\x00\x00" in body
        assert b"\x4a\x00\x00\x00\x0cmedia-source" in body

        job_group = ipp.decode_response(body).group(ipp.TAG_JOB)
        assert job_group.get("media-col") == media_col

    def test_multi_valued_keyword(self):
        body = ipp.encode_request(
            ipp.OP_GET_PRINTER_ATTRIBUTES, 1, "ipp://printer/ipp",
            {"requested-attributes": ["printer-input-tray", "media-col-ready"]},
        )

        group = ipp.decode_response(body).group(ipp.TAG_OPERATION)
        assert group.get_all("requested-attributes") == ["printer-input-tray", "media-col-ready"]

    def test_empty_value_list_rejected(self):
        with pytest.raises(ValueError):
            ipp.encode_request(ipp.OP_PRINT_JOB, 1, "ipp://p", {"requested-attributes": []})


class TestDecodeResponse:
    """Tests for decode_response()."""

    def test_status_and_job_attributes(self, ipp_response):
        body = ipp_response(0x0001, [(ipp.TAG_JOB, {"job-id": 311, "job-state": 3})])

        response = ipp.decode_response(body)

        assert response.status_code == 0x0001
        assert response.status_name == "successful-ok-ignored-or-substituted-attributes"
        assert response.group(ipp.TAG_JOB).get("job-id") == 311
        assert ipp.JOB_STATE_NAMES[response.group(ipp.TAG_JOB).get("job-state")] == "pending"

    def test_multiple_collections(self, ipp_response):
        ready = [
            {"media-source": "tray-1", "media-type": "stationery",
             "media-size": {"x-dimension": 21000, "y-dimension": 29700}},
            {"media-source": "bypass-tray"},
        ]
        body = ipp_response(0x0000, [(ipp.TAG_PRINTER, {"media-col-ready": ready})])

        values = ipp.decode_response(body).group(ipp.TAG_PRINTER).get_all("media-col-ready")

        assert list(ipp.iter_collections(values)) == ready

    def test_text_with_language(self):
        raw = struct.pack(">H", 2) + b"en" + struct.pack(">H", 5) + b"hello"
        attr = struct.pack(">BH", ipp.TAG_TEXT_WITH_LANGUAGE, 3) + b"msg" + struct.pack(">H", len(raw)) + raw
        body = struct.pack(">BBHI", 1, 1, 0, 1) + bytes([ipp.TAG_OPERATION]) + attr + bytes([ipp.TAG_END])

        assert ipp.decode_response(body).group(ipp.TAG_OPERATION).get("msg") == "hello"

    @pytest.mark.parametrize("tag,raw", [
        (ipp.TAG_RANGE_OF_INTEGER, struct.pack(">i", 1)),
        (ipp.TAG_RESOLUTION, struct.pack(">ii", 600, 600)),
        (ipp.TAG_TEXT_WITH_LANGUAGE, b"\x00"),
        (ipp.TAG_TEXT_WITH_LANGUAGE, struct.pack(">H", 40) + b"en"),
    ])
    def test_short_values_rejected(self, tag, raw):
        attr = struct.pack(">BH", tag, 4) + b"attr" + struct.pack(">H", len(raw)) + raw
        body = struct.pack(">BBHI", 1, 1, 0, 1) + bytes([ipp.TAG_PRINTER]) + attr + bytes([ipp.TAG_END])

        with pytest.raises(ipp.IppDecodeError):
            ipp.decode_response(body)

    def test_range_of_integer(self):
        raw = struct.pack(">ii", 1, 999)
        attr = struct.pack(">BH", ipp.TAG_RANGE_OF_INTEGER, 12) + b"copies-range" + struct.pack(">H", 8) + raw
        body = struct.pack(">BBHI", 1, 1, 0, 1) + bytes([ipp.TAG_PRINTER]) + attr + bytes([ipp.TAG_END])

        assert ipp.decode_response(body).group(ipp.TAG_PRINTER).get("copies-range") == (1, 999)

    def test_truncated_message(self, ipp_response):
        body = ipp_response(0x0000, [(ipp.TAG_JOB, {"job-id": 5})])

        with pytest.raises(ipp.IppDecodeError):
            ipp.decode_response(body[:-6])

    def test_too_short(self):
        with pytest.raises(ipp.IppDecodeError):
            ipp.decode_response(b"\x01\x01")


class TestStatusNames:
    def test_known(self):
        assert ipp.status_name(0x0400) == "client-error-bad-request"

    def test_unknown(self):
        assert ipp.status_name(0x0777) == "unknown-status-0x0777"
