"""Turns stored job documents into a printable PDF and an authoritative page count."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional, Tuple

from PIL import Image
from pypdf import PdfReader

from core.exceptions import ConversionFailure, PageCountParseFailure


PDF_FORMAT = "application/pdf"
OCTET_STREAM_FORMAT = "application/octet-stream"

# A4 in PostScript points
A4_POINTS: Tuple[float, float] = (595.28, 841.89)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg"})


class ContentKind(Enum):
    PAGED_DOCUMENT = "paged-document"
    RASTER_IMAGE = "raster-image"
    UNKNOWN = "unknown"


def detect_content_kind(reference: Optional[str], data: bytes) -> ContentKind:
    """Decide by file extension first, then by magic bytes."""
    suffix = PurePosixPath(reference or "").suffix.lower()
    if suffix == ".pdf":
        return ContentKind.PAGED_DOCUMENT
    if suffix in IMAGE_EXTENSIONS:
        return ContentKind.RASTER_IMAGE

    head = data[:8]
    if head.startswith(b"%PDF"):
        return ContentKind.PAGED_DOCUMENT
    if head.startswith(b"\x89PNG") or head.startswith(b"\xff\xd8\xff"):
        return ContentKind.RASTER_IMAGE
    return ContentKind.UNKNOWN


@dataclass(frozen=True)
class NormalizedDocument:
    data: bytes
    document_format: str
    page_count: Optional[int] = None
    """Authoritative page count, or None when it could not be determined."""
    converted: bool = False
    page_count_error: Optional[str] = None


class FormatNormalizer:
    """
    Raster images become a one-page, centered A4 PDF.
    PDFs are passed through and their pages counted, best effort.
    """

    def __init__(
        self,
        page_size: Tuple[float, float] = A4_POINTS,
        resolution_dpi: int = 150,
        logger: Optional[logging.Logger] = None,
    ):
        self.page_size = page_size
        self.resolution_dpi = resolution_dpi
        self.logger = logger or logging.getLogger(__name__)

    def normalize(self, data: bytes, kind: ContentKind) -> NormalizedDocument:
        """
        Raises:
            ConversionFailure: If a raster image cannot be converted
        """
        if kind is ContentKind.RASTER_IMAGE:
            pdf = self.image_to_pdf(data)
            return NormalizedDocument(data=pdf, document_format=PDF_FORMAT, page_count=1, converted=True)

        if kind is ContentKind.PAGED_DOCUMENT:
            try:
                pages = self.count_pages(data)
            except PageCountParseFailure as e:
                # Non-critical, the job keeps its estimate
                self.logger.warning(f"Failed to count PDF pages: {e.reason}")
                return NormalizedDocument(data=data, document_format=PDF_FORMAT, page_count_error=e.reason)
            return NormalizedDocument(data=data, document_format=PDF_FORMAT, page_count=pages)

        return NormalizedDocument(data=data, document_format=OCTET_STREAM_FORMAT)

    def image_to_pdf(self, data: bytes) -> bytes:
        page_w = round(self.page_size[0] / 72 * self.resolution_dpi)
        page_h = round(self.page_size[1] / 72 * self.resolution_dpi)

        try:
            with Image.open(io.BytesIO(data)) as source:
                source.load()
                image = self._flatten(source)

            scale = min(page_w / image.width, page_h / image.height)
            fitted = image.resize(
                (max(1, int(image.width * scale)), max(1, int(image.height * scale))),
                Image.Resampling.LANCZOS,
            )

            page = Image.new("RGB", (page_w, page_h), "white")
            page.paste(fitted, ((page_w - fitted.width) // 2, (page_h - fitted.height) // 2))

            out = io.BytesIO()
            page.save(out, format="PDF", resolution=float(self.resolution_dpi))
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise ConversionFailure(str(e)) from e

        self.logger.debug(f"Converted {image.width}x{image.height} image to a one-page PDF")
        return out.getvalue()

    @staticmethod
    def _flatten(image: Image.Image) -> Image.Image:
        """RGB copy of ``image``, transparent areas composited onto white."""
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, "white")
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image.convert("RGB")

    def count_pages(self, data: bytes) -> int:
        """
        Raises:
            PageCountParseFailure: If the PDF cannot be parsed or has no pages
        """
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = len(reader.pages)
        except Exception as e:  # pypdf raises a wide range of types on damaged files
            raise PageCountParseFailure(str(e) or type(e).__name__) from e

        if pages <= 0:
            raise PageCountParseFailure("document has no pages")
        return pages
