from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from .catalog import ProductType
from .row_data import NormalizedRow, SameNameEntry, SkippedRowRecord, SkipReason

"""Parse result models for the layout detector.

ParseResult is the hand-off from row extraction to image matching and
reconciliation: normalized rows, skip diagnostics and the detected layout.
"""

__all__ = [
    "LayoutKind",
    "ColumnLayout",
    "ParseResult",
]


class LayoutKind(Enum):
    """Physical sheet layout a strategy recognised.

    - BLOCK: one product per column, fixed-size bands stacked vertically
    - BANDED: repeated name-row / code-row pairs anywhere on the sheet
    - HEADER: classic header row, one product per row
    """
    BLOCK = "column-block"
    BANDED = "banded"
    HEADER = "header-row"


@dataclass(frozen=True)
class ColumnLayout:
    """Columns detected for a header-row sheet (0-based)."""
    header_row: int | None  # None when no header-like row was found
    code_col: int
    name_col: int
    image_col: int | None = None


@dataclass(frozen=True)
class ParseResult:
    file_name: str
    layout: LayoutKind
    rows: list[NormalizedRow]
    skipped: list[SkippedRowRecord]
    product_type: ProductType = ProductType.PIECE
    columns: ColumnLayout | None = None  # header-row layout only
    same_name_different_code: list[SameNameEntry] = field(default_factory=list)
    sheet_name: str = ""

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def skipped_total(self) -> int:
        return len(self.skipped)

    @property
    def skip_counts(self) -> dict[SkipReason, int]:
        """Count per skip reason; every reason is present, zero when unused."""
        counts = Counter(s.reason for s in self.skipped)
        return {reason: counts.get(reason, 0) for reason in SkipReason}
