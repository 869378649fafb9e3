from __future__ import annotations

import re

from catalog_ingest.models.catalog import ProductType, VersionTarget

"""Cell-level normalization rules shared by every layout strategy.

- codes: `*` decoration stripped, short all-digit values zero-padded
- names: text before the first comma, whitespace runs collapsed
- header detection: keyword set of the back-office export
"""

__all__ = [
    "normalize_code",
    "is_valid_code",
    "clean_name",
    "is_padding_name",
    "is_header_like",
    "detect_product_type",
    "parse_version_from_filename",
]

_WHITESPACE_RUN = re.compile(r"\s+")
_PADDING = re.compile(r"^\*+$")

# Substring tokens of header cells in the source exports
HEADER_TOKENS = (
    "PLU",
    "SPALTE",
    "WARENTEXT",
    "WAARENTEXT",
    "WAAGENTEXT",
    "ETIKETTENTEXT",
    "ABBILDUNG",
    "BILD",
    "ZWS",
    "BEZEICHNUNG",
)
HEADER_EXACT = ("LIEFERANT", "SAP")
NAME_HEADER_TOKENS = ("WARENTEXT", "WAARENTEXT", "WAAGENTEXT", "ETIKETTENTEXT")
IMAGE_HEADER_TOKENS = ("ABBILDUNG", "BILD")

_WEEK_IN_NAME = re.compile(r"kw\s*(\d{1,2})", re.IGNORECASE)
_YEAR_IN_NAME = re.compile(r"(?<!\d)(20\d{2})(?!\d)")


def normalize_code(raw: str, code_length: int = 5) -> str:
    """'*81597*' -> '81597', '8304' -> '08304'. Anything else is returned stripped."""
    cleaned = raw.replace("*", "").strip()
    if cleaned.isdigit() and cleaned.isascii() and len(cleaned) < code_length:
        return cleaned.zfill(code_length)
    return cleaned


def is_valid_code(code: str, code_length: int = 5) -> bool:
    return len(code) == code_length and code.isascii() and code.isdigit()


def clean_name(raw: str) -> str:
    """'Whole Wheat Bread, 500g' -> 'Whole Wheat Bread'; 'Berliner    Jam' -> 'Berliner Jam'."""
    name, _, _ = raw.strip().partition(",")
    return _WHITESPACE_RUN.sub(" ", name).strip()


def is_padding_name(name: str) -> bool:
    return not name or bool(_PADDING.match(name))


def is_header_like(cell: str) -> bool:
    u = cell.strip().upper()
    if not u:
        return False
    if any(token in u for token in HEADER_TOKENS):
        return True
    if "ARTIKEL" in u and "NR" in u:
        return True
    if "ART." in u and "NR" in u:
        return True
    return u in HEADER_EXACT


def detect_product_type(file_name: str, grid: list[list[str]] | None = None) -> ProductType:
    """Product type from the first non-empty row, then the file name; PIECE otherwise."""
    for row in grid or []:
        if not any(row):
            continue
        joined = " ".join(row).lower()
        if "gewicht" in joined:
            return ProductType.WEIGHT
        if "stück" in joined or "stueck" in joined:
            return ProductType.PIECE
        break
    lower = file_name.lower()
    if "gewicht" in lower:
        return ProductType.WEIGHT
    return ProductType.PIECE


def parse_version_from_filename(file_name: str) -> VersionTarget | None:
    """'Backshop KW7 2026.xlsx' -> VersionTarget(7, 2026); None unless both week and year appear."""
    week = _WEEK_IN_NAME.search(file_name)
    year = _YEAR_IN_NAME.search(file_name)
    if not week or not year:
        return None
    week_no = int(week.group(1))
    if not 1 <= week_no <= 53:
        return None
    return VersionTarget(week=week_no, year=int(year.group(1)))
