from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .row_data import CellPosition, NormalizedRow

"""Image models for extraction and row matching.

ExtractedImage is transient: it lives for one ingestion run and is consumed
by the matcher. Positions use the same 0-based grid coordinates as
NormalizedRow.image_position.
"""

__all__ = [
    "CONTENT_TYPES",
    "ExtractionTier",
    "ExtractedImage",
    "ImageExtractionResult",
    "MatchTier",
    "ImageAssignment",
    "MatchResult",
]

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "webp": "image/webp",
    "emf": "image/emf",
    "wmf": "image/wmf",
}


class ExtractionTier(Enum):
    """Which extraction path produced the images of a run."""
    STRUCTURED = "structured"  # workbook image list with anchors
    ARCHIVE = "archive"  # drawing markup parsed from the raw archive
    ORDER = "order"  # media list paired with rows by ordering
    NONE = "none"


@dataclass(frozen=True)
class ExtractedImage:
    position: CellPosition
    data: bytes
    format: str  # normalized extension: png, jpg, gif, ...

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES.get(self.format, "application/octet-stream")


@dataclass(frozen=True)
class ImageExtractionResult:
    images: list[ExtractedImage]
    tier: ExtractionTier
    media_count: int = 0  # raw media entries seen in the container

    def by_position(self) -> dict[CellPosition, bytes]:
        """Position -> image bytes. The first image wins on a shared anchor."""
        out: dict[CellPosition, bytes] = {}
        for image in self.images:
            out.setdefault(image.position, image.data)
        return out


class MatchTier(Enum):
    EXACT = "exact"
    ROW_DRIFT = "row-drift"
    NEAREST_IN_COLUMN = "nearest-in-column"
    ANY_IN_COLUMN = "any-in-column"


@dataclass(frozen=True)
class ImageAssignment:
    row: NormalizedRow
    image: ExtractedImage
    tier: MatchTier


@dataclass(frozen=True)
class MatchResult:
    assignments: list[ImageAssignment]
    rows_without_image: list[NormalizedRow]  # rows that expected an image
    unclaimed_images: list[ExtractedImage]

    def image_for(self, code: str) -> ExtractedImage | None:
        for a in self.assignments:
            if a.row.code == code:
                return a.image
        return None
