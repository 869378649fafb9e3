from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

"""Image format sniffing and thumbnail normalization (Pillow).

normalize_image never fails the run: anything Pillow cannot decode or
re-encode is passed through unchanged.
"""

__all__ = [
    "detect_format",
    "normalize_extension",
    "normalize_image",
]

logger = logging.getLogger(__name__)

_MAGIC: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
    (b"\xd7\xcd\xc6\x9a", "wmf"),
    (b"BM", "bmp"),
)

# extension -> Pillow encoder name; vector formats are not re-encoded
_PIL_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "gif": "GIF",
    "bmp": "BMP",
    "tiff": "TIFF",
    "webp": "WEBP",
}


def normalize_extension(ext: str) -> str:
    ext = ext.lower().lstrip(".")
    if ext == "jpeg":
        return "jpg"
    if ext == "tif":
        return "tiff"
    return ext


def detect_format(data: bytes, fallback: str = "png") -> str:
    """Format from magic bytes, else the normalized `fallback` extension."""
    for magic, fmt in _MAGIC:
        if data.startswith(magic):
            return fmt
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if data[40:44] == b" EMF":
        return "emf"
    return normalize_extension(fallback) or "png"


def normalize_image(data: bytes, fmt: str, target: int = 192) -> bytes:
    """Scale so the longer edge equals `target`, aspect ratio kept, same format.

    Returns the original bytes when the format is not raster or decoding fails.
    """
    pil_format = _PIL_FORMATS.get(fmt)
    if pil_format is None:
        return data
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = img.size
            if width <= 0 or height <= 0:
                return data
            scale = target / max(width, height)
            size = (max(1, round(width * scale)), max(1, round(height * scale)))
            resized = img.resize(size, Image.Resampling.LANCZOS)
            if pil_format == "JPEG" and resized.mode not in ("RGB", "L"):
                resized = resized.convert("RGB")
            out = io.BytesIO()
            resized.save(out, format=pil_format)
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"image resize failed ({fmt}), keeping original bytes: {e}")
        return data
