from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from openpyxl.utils import get_column_letter

"""Row-level domain models produced by the layout detector.

All positions are 0-based (row, col) grid coordinates, the same coordinate
system used by drawing anchors inside the workbook. `CellPosition.a1` renders
the 1-based reference an operator sees in the spreadsheet application.
"""

__all__ = [
    "CellPosition",
    "NormalizedRow",
    "SkipReason",
    "SkippedRowRecord",
    "SameNameEntry",
]


class CellPosition(NamedTuple):
    row: int
    col: int

    @property
    def a1(self) -> str:
        """Spreadsheet-style reference, e.g. (2, 1) -> 'B3'."""
        return f"{get_column_letter(self.col + 1)}{self.row + 1}"


@dataclass(frozen=True)
class NormalizedRow:
    """One product row after layout detection and validation.

    `code` always matches the fixed-length numeric pattern; it is unique
    within one parse run (first occurrence wins).
    """
    code: str
    display_name: str
    source_position: CellPosition  # cell the code was read from
    image_position: CellPosition | None = None  # cell an image is expected at
    image_url: str | None = None  # set after the upload step


class SkipReason(Enum):
    INVALID_CODE = "invalid-code"
    EMPTY_NAME = "empty-name"
    DUPLICATE_CODE = "duplicate-code"


@dataclass(frozen=True)
class SkippedRowRecord:
    """Diagnostic for a row that was not turned into a NormalizedRow."""
    position: CellPosition
    reason: SkipReason
    code: str | None = None  # normalized code, when one could be read
    duplicate_of: CellPosition | None = None  # first occurrence, duplicates only


@dataclass(frozen=True)
class SameNameEntry:
    """A product name that maps to two or more distinct codes in one file."""
    name: str
    occurrences: tuple[tuple[str, CellPosition], ...]  # (code, source position)

    @property
    def codes(self) -> list[str]:
        return sorted({code for code, _ in self.occurrences})
