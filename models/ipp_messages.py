"""
Typed IPP message models.

One dataclass per attribute group of the two message kinds the worker
sends (Print-Job and Get-Printer-Attributes), plus the normalized outcome
of a job submission. The wire codec in core.ipp only ever sees the ordered
dictionaries produced by ``to_ipp()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple


SIDES_ONE_SIDED = "one-sided"
SIDES_TWO_SIDED_LONG_EDGE = "two-sided-long-edge"

MEDIA_SOURCE_AUTO = "auto"

# Attributes asked for by the tray synchronizer
TRAY_QUERY_ATTRIBUTES = ("printer-input-tray", "media-col-ready")


@dataclass(frozen=True)
class OperationAttributes:
    """operation-attributes-tag of a Print-Job request."""

    requesting_user_name: str
    job_name: str
    document_format: str

    def to_ipp(self) -> Dict[str, Any]:
        return {
            "requesting-user-name": self.requesting_user_name,
            "job-name": self.job_name,
            "document-format": self.document_format,
        }


@dataclass(frozen=True)
class MediaCollection:
    """
    The nested media-col collection.

    media_weight_metric is only ever emitted when it is a positive integer.
    """

    media_source: str = MEDIA_SOURCE_AUTO
    media_type: str = "plain"
    media_weight_metric: Optional[int] = None

    def __post_init__(self):
        if self.media_weight_metric is not None and self.media_weight_metric <= 0:
            raise ValueError(
                f"media_weight_metric must be positive or None, got {self.media_weight_metric}"
            )

    def to_ipp(self) -> Dict[str, Any]:
        collection: Dict[str, Any] = {
            "media-source": self.media_source,
            "media-type": self.media_type,
        }
        if self.media_weight_metric is not None:
            collection["media-weight-metric"] = self.media_weight_metric
        return collection


@dataclass(frozen=True)
class JobAttributes:
    """job-attributes-tag of a Print-Job request."""

    copies: int
    sides: str
    media_col: MediaCollection

    def to_ipp(self) -> Dict[str, Any]:
        return {
            "copies": self.copies,
            "sides": self.sides,
            "media-col": self.media_col.to_ipp(),
        }


@dataclass(frozen=True)
class PrintRequest:
    """A complete Print-Job request, minus the document bytes."""

    operation: OperationAttributes
    job: JobAttributes


@dataclass(frozen=True)
class AttributesQuery:
    """A Get-Printer-Attributes request."""

    requesting_user_name: str
    requested_attributes: Tuple[str, ...] = TRAY_QUERY_ATTRIBUTES

    def to_ipp(self) -> Dict[str, Any]:
        return {
            "requesting-user-name": self.requesting_user_name,
            "requested-attributes": list(self.requested_attributes),
        }


@dataclass(frozen=True)
class SubmitOutcome:
    """Normalized reply to a Print-Job request."""

    status_code: int
    """Numeric IPP status-code."""

    raw_status_code: str
    """RFC name of the status code, e.g. "successful-ok"."""

    device_job_id: Optional[int] = None
    device_state: Optional[str] = None
    """job-state keyword, e.g. "pending" or "processing"."""

    @property
    def is_successful(self) -> bool:
        # successful-ok .. successful-ok-events-complete
        return 0x0000 <= self.status_code <= 0x00FF
