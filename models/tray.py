"""
Paper tray data models.

PrinterTray is the persisted tray record. It is edited by operators
(sheets_loaded is a human-entered physical count) and by the tray
synchronizer, which only writes the device-reported media facts.

MediaDescriptor is the transient, device-reported view of one ready paper
source. It is validated here, at the protocol boundary, so downstream code
never inspects raw IPP collections.

TrayConfig is what the job processor needs from a tray to build a request.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Mapping, Optional


DEFAULT_MEDIA_TYPE = "plain"


class TrayFillStatus(Enum):
    """Coarse fill level shown by the status API."""

    GOOD = "Good"
    MEDIUM = "Medium"
    LOW = "Low"
    EMPTY = "Empty"


@dataclass(frozen=True)
class TrayConfig:
    """
    Resolved tray configuration used to build a print request.

    paper_weight_gsm is None when the weight is unknown; the encoder then
    leaves media-weight-metric out of the request entirely.
    """

    paper_type: str = DEFAULT_MEDIA_TYPE
    paper_weight_gsm: Optional[int] = None
    media_source_code: Optional[str] = None

    @classmethod
    def defaults(cls) -> "TrayConfig":
        """Configuration used when the requested tray cannot be resolved."""
        return cls()


@dataclass(frozen=True)
class PrinterTray:
    """A persisted paper tray row."""

    id: int
    tray_name: str
    tray_number: Optional[int] = None
    paper_size: Optional[str] = None
    paper_type: Optional[str] = None
    paper_weight_gsm: Optional[int] = None
    color: Optional[str] = None
    sheets_loaded: int = 0
    sheets_capacity: int = 0
    media_source_code: Optional[str] = None
    is_active: bool = True
    updated_at: Optional[str] = None

    @property
    def fill_percentage(self) -> Optional[float]:
        if not self.sheets_capacity:
            return None
        return round(100.0 * self.sheets_loaded / self.sheets_capacity, 1)

    @property
    def fill_status(self) -> TrayFillStatus:
        pct = self.fill_percentage
        if pct is None or self.sheets_loaded <= 0:
            return TrayFillStatus.EMPTY
        if pct >= 50:
            return TrayFillStatus.GOOD
        if pct >= 20:
            return TrayFillStatus.MEDIUM
        return TrayFillStatus.LOW

    def to_config(self) -> TrayConfig:
        """
        Reduce to what the protocol encoder needs.

        Non-positive weights are treated as unknown.
        """
        weight = self.paper_weight_gsm
        if weight is not None and weight <= 0:
            weight = None
        return TrayConfig(
            paper_type=(self.paper_type or DEFAULT_MEDIA_TYPE).lower(),
            paper_weight_gsm=weight,
            media_source_code=self.media_source_code,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PrinterTray":
        """Create from a database row (sqlite3.Row or dict)."""
        return cls(
            id=int(row["id"]),
            tray_name=row["tray_name"],
            tray_number=row["tray_number"],
            paper_size=row["paper_size"],
            paper_type=row["paper_type"],
            paper_weight_gsm=row["paper_weight_gsm"],
            color=row["color"],
            sheets_loaded=int(row["sheets_loaded"] or 0),
            sheets_capacity=int(row["sheets_capacity"] or 0),
            media_source_code=row["media_source_code"],
            is_active=bool(row["is_active"]),
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the status API."""
        return {
            "id": self.id,
            "tray_name": self.tray_name,
            "tray_number": self.tray_number,
            "paper_size": self.paper_size,
            "paper_type": self.paper_type,
            "paper_weight_gsm": self.paper_weight_gsm,
            "color": self.color,
            "sheets_loaded": self.sheets_loaded,
            "sheets_capacity": self.sheets_capacity,
            "media_source_code": self.media_source_code,
            "is_active": self.is_active,
            "updated_at": self.updated_at,
            "fill_percentage": self.fill_percentage,
            "status": self.fill_status.value,
        }


@dataclass(frozen=True)
class MediaDescriptor:
    """
    One entry of the printer's media-col-ready attribute.

    Dimensions are in hundredths of a millimetre, as reported by IPP
    (A4 is 21000 x 29700).
    """

    media_source: str
    media_type: Optional[str] = None
    media_weight_metric: Optional[int] = None
    x_dimension: Optional[int] = None
    y_dimension: Optional[int] = None

    @classmethod
    def from_collection(cls, collection: Mapping[str, Any]) -> "MediaDescriptor":
        """
        Validate a decoded media-col collection.

        Raises:
            ValueError: If the collection has no usable media-source
        """
        if not isinstance(collection, Mapping):
            raise ValueError(f"media-col entry is not a collection: {collection!r}")

        source = collection.get("media-source")
        if not isinstance(source, str) or not source.strip():
            raise ValueError("media-col entry has no media-source")

        media_type = collection.get("media-type")
        if not isinstance(media_type, str) or not media_type.strip():
            media_type = None

        weight = collection.get("media-weight-metric")
        if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
            weight = None

        x_dim = y_dim = None
        size = collection.get("media-size")
        if isinstance(size, Mapping):
            x_dim = size.get("x-dimension") if isinstance(size.get("x-dimension"), int) else None
            y_dim = size.get("y-dimension") if isinstance(size.get("y-dimension"), int) else None

        return cls(
            media_source=source.strip(),
            media_type=media_type.strip() if media_type else None,
            media_weight_metric=weight,
            x_dimension=x_dim,
            y_dimension=y_dim,
        )
