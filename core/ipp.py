"""
IPP/1.1 binary encoding (RFC 8010).

Only what the worker needs: building Print-Job and Get-Printer-Attributes
requests (including nested collections such as media-col) and decoding the
printer's responses (status code, attribute groups, collections and
multi-valued attributes).

Request layout:
    version (2 bytes) | operation-id (2) | request-id (4)
    operation-attributes-tag, attributes...
    [job-attributes-tag, attributes...]
    end-of-attributes-tag
    document data

Attribute layout:
    value-tag (1) | name-length (2) | name | value-length (2) | value
    Additional values of the same attribute repeat with name-length 0.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, List, Mapping, Optional, Tuple


IPP_VERSION = (1, 1)
CONTENT_TYPE = "application/ipp"

# Operations
OP_PRINT_JOB = 0x0002
OP_GET_PRINTER_ATTRIBUTES = 0x000B

# Delimiter tags
TAG_OPERATION = 0x01
TAG_JOB = 0x02
TAG_END = 0x03
TAG_PRINTER = 0x04
TAG_UNSUPPORTED = 0x05

# Out-of-band value tags
TAG_UNSUPPORTED_VALUE = 0x10
TAG_UNKNOWN = 0x12
TAG_NO_VALUE = 0x13

# Value tags
TAG_INTEGER = 0x21
TAG_BOOLEAN = 0x22
TAG_ENUM = 0x23
TAG_OCTET_STRING = 0x30
TAG_DATETIME = 0x31
TAG_RESOLUTION = 0x32
TAG_RANGE_OF_INTEGER = 0x33
TAG_BEGIN_COLLECTION = 0x34
TAG_TEXT_WITH_LANGUAGE = 0x35
TAG_NAME_WITH_LANGUAGE = 0x36
TAG_END_COLLECTION = 0x37
TAG_TEXT = 0x41
TAG_NAME = 0x42
TAG_KEYWORD = 0x44
TAG_URI = 0x45
TAG_URI_SCHEME = 0x46
TAG_CHARSET = 0x47
TAG_NATURAL_LANGUAGE = 0x48
TAG_MIME_MEDIA_TYPE = 0x49
TAG_MEMBER_NAME = 0x4A

_STRING_TAGS = frozenset({
    TAG_TEXT, TAG_NAME, TAG_KEYWORD, TAG_URI, TAG_URI_SCHEME, TAG_CHARSET,
    TAG_NATURAL_LANGUAGE, TAG_MIME_MEDIA_TYPE, TAG_MEMBER_NAME,
})

# Syntax of the attributes this worker sends. Anything else falls back to a
# tag derived from the Python type.
ATTRIBUTE_TAGS: Dict[str, int] = {
    "attributes-charset": TAG_CHARSET,
    "attributes-natural-language": TAG_NATURAL_LANGUAGE,
    "printer-uri": TAG_URI,
    "requesting-user-name": TAG_NAME,
    "job-name": TAG_NAME,
    "document-format": TAG_MIME_MEDIA_TYPE,
    "requested-attributes": TAG_KEYWORD,
    "copies": TAG_INTEGER,
    "sides": TAG_KEYWORD,
    "media-col": TAG_BEGIN_COLLECTION,
    "media-source": TAG_KEYWORD,
    "media-type": TAG_KEYWORD,
    "media-weight-metric": TAG_INTEGER,
}

STATUS_NAMES: Dict[int, str] = {
    0x0000: "successful-ok",
    0x0001: "successful-ok-ignored-or-substituted-attributes",
    0x0002: "successful-ok-conflicting-attributes",
    0x0400: "client-error-bad-request",
    0x0401: "client-error-forbidden",
    0x0402: "client-error-not-authenticated",
    0x0403: "client-error-not-authorized",
    0x0404: "client-error-not-possible",
    0x0405: "client-error-timeout",
    0x0406: "client-error-not-found",
    0x0407: "client-error-gone",
    0x0408: "client-error-request-entity-too-large",
    0x0409: "client-error-request-value-too-long",
    0x040A: "client-error-document-format-not-supported",
    0x040B: "client-error-attributes-or-values-not-supported",
    0x040C: "client-error-uri-scheme-not-supported",
    0x040D: "client-error-charset-not-supported",
    0x040E: "client-error-conflicting-attributes",
    0x040F: "client-error-compression-not-supported",
    0x0410: "client-error-compression-error",
    0x0411: "client-error-document-format-error",
    0x0412: "client-error-document-access-error",
    0x0500: "server-error-internal-error",
    0x0501: "server-error-operation-not-supported",
    0x0502: "server-error-service-unavailable",
    0x0503: "server-error-version-not-supported",
    0x0504: "server-error-device-error",
    0x0505: "server-error-temporary-error",
    0x0506: "server-error-not-accepting-jobs",
    0x0507: "server-error-busy",
    0x0508: "server-error-job-canceled",
    0x0509: "server-error-multiple-document-jobs-not-supported",
}

JOB_STATE_NAMES: Dict[int, str] = {
    3: "pending",
    4: "pending-held",
    5: "processing",
    6: "processing-stopped",
    7: "canceled",
    8: "aborted",
    9: "completed",
}


class IppDecodeError(ValueError):
    """The response body is not a well-formed IPP message."""


def status_name(status_code: int) -> str:
    return STATUS_NAMES.get(status_code, f"unknown-status-0x{status_code:04x}")


# =============================================================================
# ENCODING
# =============================================================================

def _tag_for(name: str, value: Any) -> int:
    if name in ATTRIBUTE_TAGS:
        return ATTRIBUTE_TAGS[name]
    if isinstance(value, bool):
        return TAG_BOOLEAN
    if isinstance(value, int):
        return TAG_INTEGER
    if isinstance(value, Mapping):
        return TAG_BEGIN_COLLECTION
    return TAG_KEYWORD


def _encode_value(tag: int, value: Any) -> bytes:
    if tag in (TAG_INTEGER, TAG_ENUM):
        return struct.pack(">i", int(value))
    if tag == TAG_BOOLEAN:
        return struct.pack(">B", 1 if value else 0)
    if tag in _STRING_TAGS:
        return str(value).encode("utf-8")
    if tag == TAG_OCTET_STRING:
        return bytes(value)
    raise ValueError(f"Cannot encode value tag 0x{tag:02x}")


def _encode_single(tag: int, name: str, value: bytes) -> bytes:
    encoded_name = name.encode("utf-8")
    return (
        struct.pack(">BH", tag, len(encoded_name)) + encoded_name
        + struct.pack(">H", len(value)) + value
    )


def _encode_collection(name: str, collection: Mapping[str, Any]) -> bytes:
    out = bytearray(_encode_single(TAG_BEGIN_COLLECTION, name, b""))
    for member_name, member_value in collection.items():
        out += _encode_single(TAG_MEMBER_NAME, "", member_name.encode("utf-8"))
        out += _encode_attribute("", member_value, _tag_for(member_name, member_value))
    out += _encode_single(TAG_END_COLLECTION, "", b"")
    return bytes(out)


def _encode_attribute(name: str, value: Any, tag: Optional[int] = None) -> bytes:
    values = list(value) if isinstance(value, (list, tuple)) else [value]
    if not values:
        raise ValueError(f"Attribute {name!r} has no values")
    if tag is None:
        tag = _tag_for(name, values[0])

    out = bytearray()
    for index, single in enumerate(values):
        # Additional values carry an empty name
        attr_name = name if index == 0 else ""
        if tag == TAG_BEGIN_COLLECTION:
            out += _encode_collection(attr_name, single)
        else:
            out += _encode_single(tag, attr_name, _encode_value(tag, single))
    return bytes(out)


def encode_group(delimiter: int, attributes: Mapping[str, Any]) -> bytes:
    out = bytearray([delimiter])
    for name, value in attributes.items():
        out += _encode_attribute(name, value)
    return bytes(out)


def encode_request(
    operation_id: int,
    request_id: int,
    printer_uri: str,
    operation_attributes: Mapping[str, Any],
    job_attributes: Optional[Mapping[str, Any]] = None,
    data: bytes = b"",
) -> bytes:
    """
    Build a complete IPP request body.

    attributes-charset, attributes-natural-language and printer-uri are
    prepended to the operation group in the order RFC 8011 requires.
    """
    operation_group: Dict[str, Any] = {
        "attributes-charset": "utf-8",
        "attributes-natural-language": "en",
        "printer-uri": printer_uri,
    }
    operation_group.update(operation_attributes)

    out = bytearray(struct.pack(">BBHI", IPP_VERSION[0], IPP_VERSION[1], operation_id, request_id))
    out += encode_group(TAG_OPERATION, operation_group)
    if job_attributes:
        out += encode_group(TAG_JOB, job_attributes)
    out.append(TAG_END)
    out += data
    return bytes(out)


# =============================================================================
# DECODING
# =============================================================================

@dataclass
class IppGroup:
    """One attribute group of a response. Every attribute maps to its list of values."""

    tag: int
    attributes: Dict[str, List[Any]] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        values = self.attributes.get(name)
        return values[0] if values else default

    def get_all(self, name: str) -> List[Any]:
        return list(self.attributes.get(name, []))


@dataclass
class IppResponse:
    version: Tuple[int, int]
    status_code: int
    request_id: int
    groups: List[IppGroup] = field(default_factory=list)
    data: bytes = b""

    @property
    def status_name(self) -> str:
        return status_name(self.status_code)

    def group(self, tag: int) -> Optional[IppGroup]:
        for group in self.groups:
            if group.tag == tag:
                return group
        return None


class _Reader:
    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.pos = offset

    def take(self, count: int) -> bytes:
        end = self.pos + count
        if end > len(self.data):
            raise IppDecodeError(f"Truncated IPP message at offset {self.pos}")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def byte(self) -> int:
        return self.take(1)[0]

    def short(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def attribute_header(self) -> Tuple[str, bytes]:
        name = self.take(self.short()).decode("utf-8", errors="replace")
        value = self.take(self.short())
        return name, value


def _decode_value(tag: int, raw: bytes) -> Any:
    if tag in (TAG_INTEGER, TAG_ENUM):
        if len(raw) != 4:
            raise IppDecodeError(f"Integer value of length {len(raw)}")
        return struct.unpack(">i", raw)[0]
    if tag == TAG_BOOLEAN:
        return bool(raw[0]) if raw else False
    if tag in _STRING_TAGS:
        return raw.decode("utf-8", errors="replace")
    if tag in (TAG_TEXT_WITH_LANGUAGE, TAG_NAME_WITH_LANGUAGE):
        # language-length, language, text-length, text
        if len(raw) < 4:
            raise IppDecodeError(f"Text-with-language value of length {len(raw)}")
        lang_len = struct.unpack(">H", raw[:2])[0]
        text_start = 2 + lang_len + 2
        if text_start > len(raw):
            raise IppDecodeError(f"Language length {lang_len} exceeds value")
        return raw[text_start:].decode("utf-8", errors="replace")
    if tag == TAG_RANGE_OF_INTEGER:
        if len(raw) != 8:
            raise IppDecodeError(f"Range value of length {len(raw)}")
        return struct.unpack(">ii", raw)
    if tag == TAG_RESOLUTION:
        if len(raw) != 9:
            raise IppDecodeError(f"Resolution value of length {len(raw)}")
        return struct.unpack(">iiB", raw)
    if tag in (TAG_UNSUPPORTED_VALUE, TAG_UNKNOWN, TAG_NO_VALUE):
        return None
    return raw


def _flatten(attributes: Dict[str, List[Any]]) -> Dict[str, Any]:
    return {
        name: values[0] if len(values) == 1 else values
        for name, values in attributes.items()
    }


def _read_collection(reader: _Reader) -> Dict[str, Any]:
    members: Dict[str, List[Any]] = {}
    current: Optional[str] = None

    while True:
        tag = reader.byte()
        _, raw = reader.attribute_header()

        if tag == TAG_END_COLLECTION:
            return _flatten(members)
        if tag == TAG_MEMBER_NAME:
            current = raw.decode("utf-8", errors="replace")
            members.setdefault(current, [])
            continue
        if current is None:
            raise IppDecodeError("Collection value without member name")
        if tag == TAG_BEGIN_COLLECTION:
            members[current].append(_read_collection(reader))
        else:
            members[current].append(_decode_value(tag, raw))


def decode_response(data: bytes) -> IppResponse:
    """
    Parse an IPP response body.

    Raises:
        IppDecodeError: If the message is truncated or malformed
    """
    if len(data) < 9:
        raise IppDecodeError(f"IPP message too short ({len(data)} bytes)")

    major, minor, status_code, request_id = struct.unpack(">BBHI", data[:8])
    reader = _Reader(data, 8)
    groups: List[IppGroup] = []
    current: Optional[IppGroup] = None
    last_name: Optional[str] = None

    while True:
        tag = reader.byte()
        if tag == TAG_END:
            break
        if tag < 0x10:
            current = IppGroup(tag=tag)
            groups.append(current)
            last_name = None
            continue
        if current is None:
            raise IppDecodeError("Attribute outside of an attribute group")

        name, raw = reader.attribute_header()
        value = _read_collection(reader) if tag == TAG_BEGIN_COLLECTION else _decode_value(tag, raw)

        if name:
            current.attributes.setdefault(name, []).append(value)
            last_name = name
        elif last_name is not None:
            current.attributes[last_name].append(value)
        else:
            raise IppDecodeError("Additional value without a preceding attribute")

    return IppResponse(
        version=(major, minor),
        status_code=status_code,
        request_id=request_id,
        groups=groups,
        data=data[reader.pos:],
    )


def iter_collections(values: Iterable[Any]) -> Iterable[Mapping[str, Any]]:
    """Yield the collection values of a (possibly mixed) value list."""
    for value in values:
        if isinstance(value, Mapping):
            yield value
