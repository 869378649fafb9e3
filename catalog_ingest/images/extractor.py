from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import replace
from xml.etree.ElementTree import ParseError

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from catalog_ingest.models.images import ExtractedImage, ExtractionTier, ImageExtractionResult
from catalog_ingest.models.row_data import CellPosition, NormalizedRow

from .archive import list_media, read_first_sheet_pictures
from .resize import detect_format, normalize_extension, normalize_image

"""Embedded image extraction with three fallback tiers.

1. STRUCTURED: openpyxl's anchored image list of the first sheet
2. ARCHIVE: drawing markup parsed straight from the zip container
3. ORDER: media files paired with rows sorted by expected image position

A container without images (or a legacy .xls) yields an empty result; it
never fails the run.
"""

__all__ = [
    "extract_images",
    "structured_images",
    "archive_images",
    "order_paired_images",
]

logger = logging.getLogger(__name__)


def structured_images(data: bytes) -> list[ExtractedImage]:
    """Images openpyxl reports for the first worksheet, with their anchor cell."""
    wb = openpyxl.load_workbook(io.BytesIO(data))
    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        out: list[ExtractedImage] = []
        for img in getattr(ws, "_images", []):
            start = getattr(img.anchor, "_from", None)
            if start is None:
                continue
            payload = img._data()
            if not payload:
                continue
            fmt = detect_format(payload, getattr(img, "format", None) or "png")
            out.append(ExtractedImage(CellPosition(start.row, start.col), payload, fmt))
        return sorted(out, key=lambda i: i.position)
    finally:
        wb.close()


def archive_images(data: bytes) -> list[ExtractedImage]:
    out = []
    for picture in read_first_sheet_pictures(data):
        ext = normalize_extension(picture.media_path.rsplit(".", 1)[-1])
        out.append(
            ExtractedImage(CellPosition(picture.row, picture.col), picture.data, detect_format(picture.data, ext))
        )
    return out


def order_paired_images(media: list[tuple[str, bytes]], rows: list[NormalizedRow]) -> list[ExtractedImage]:
    """Pair the i-th media file with the i-th row in (row, col) image-position order."""
    positions = sorted(r.image_position for r in rows if r.image_position is not None)
    out = []
    for position, (name, payload) in zip(positions, media):
        ext = normalize_extension(name.rsplit(".", 1)[-1])
        out.append(ExtractedImage(position, payload, detect_format(payload, ext)))
    return out


def extract_images(
    data: bytes,
    file_name: str,
    rows: list[NormalizedRow] | None = None,
    *,
    resize_target: int | None = 192,
) -> ImageExtractionResult:
    """Extract embedded images of the first sheet, resized to `resize_target`.

    Args:
        data: raw workbook bytes
        file_name: used for log context only
        rows: parsed rows; required for the order-based tier
        resize_target: longer edge in px; None keeps the original bytes
    """
    result = _extract(data, file_name, rows)
    if resize_target is None or not result.images:
        return result
    images = [replace(img, data=normalize_image(img.data, img.format, resize_target)) for img in result.images]
    return replace(result, images=images)


def _extract(data: bytes, file_name: str, rows: list[NormalizedRow] | None) -> ImageExtractionResult:
    if not zipfile.is_zipfile(io.BytesIO(data)):
        logger.info(f"{file_name}: not a zip container (legacy .xls?), continuing without images")
        return ImageExtractionResult(images=[], tier=ExtractionTier.NONE)
    try:
        images = structured_images(data)
    except (InvalidFileException, KeyError, OSError, ValueError, ParseError, zipfile.BadZipFile) as e:
        logger.warning(f"{file_name}: workbook image list unreadable ({e}), trying drawing markup")
        images = []
    if images:
        logger.debug(f"{file_name}: {len(images)} images from workbook drawing list")
        return ImageExtractionResult(images=images, tier=ExtractionTier.STRUCTURED, media_count=len(images))

    try:
        media = list_media(data)
        images = archive_images(data)
    except (zipfile.BadZipFile, KeyError, ParseError) as e:
        logger.warning(f"{file_name}: cannot read drawing archive: {e}")
        return ImageExtractionResult(images=[], tier=ExtractionTier.NONE)
    if images:
        logger.info(f"{file_name}: {len(images)} images recovered from drawing markup")
        return ImageExtractionResult(images=images, tier=ExtractionTier.ARCHIVE, media_count=len(media))

    if media and rows:
        images = order_paired_images(media, rows)
        if images:
            logger.warning(
                f"{file_name}: no image anchors found; paired {len(images)} of {len(media)} media files by order"
            )
            return ImageExtractionResult(images=images, tier=ExtractionTier.ORDER, media_count=len(media))

    return ImageExtractionResult(images=[], tier=ExtractionTier.NONE, media_count=len(media))
