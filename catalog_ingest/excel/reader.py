from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd

"""Workbook reader: raw bytes -> 2-D grid of cell text.

Both container formats are accepted through pandas.ExcelFile (openpyxl for
.xlsx/.xlsm, xlrd for legacy .xls). Only the first sheet is read. The grid
keeps blank rows and columns so that grid coordinates line up with the
drawing anchors of embedded images.
"""

__all__ = [
    "UnreadableWorkbookError",
    "SheetGrid",
    "read_sheet_grid",
    "cell_text",
]

logger = logging.getLogger(__name__)


class UnreadableWorkbookError(Exception):
    """Raised when the container cannot be opened or has no sheets."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"cannot parse file '{file_name}': {reason}")
        self.file_name = file_name
        self.reason = reason


@dataclass(frozen=True)
class SheetGrid:
    sheet_name: str
    cells: list[list[str]]  # rectangular, "" for empty cells

    @property
    def row_count(self) -> int:
        return len(self.cells)

    @property
    def col_count(self) -> int:
        return len(self.cells[0]) if self.cells else 0


def cell_text(value: Any) -> str:
    """Render one cell as trimmed text. Integral numbers lose the '.0'."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if value is pd.NaT:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def read_sheet_grid(data: bytes, file_name: str) -> SheetGrid:
    """Read the first sheet of a workbook as a grid of cell text.

    Raises
    ------
    UnreadableWorkbookError: container cannot be opened or contains no sheets
    """
    if not data:
        raise UnreadableWorkbookError(file_name, "empty file")
    try:
        xls = pd.ExcelFile(io.BytesIO(data))
    except Exception as e:
        raise UnreadableWorkbookError(file_name, str(e) or type(e).__name__) from e

    with xls:
        if not xls.sheet_names:
            raise UnreadableWorkbookError(file_name, "workbook contains no sheets")
        sheet_name = str(xls.sheet_names[0])
        try:
            # keep_default_na=False: "NA"/"null" are product text here, not missing values
            df = xls.parse(
                xls.sheet_names[0],
                header=None,
                dtype=object,
                keep_default_na=False,
                na_values=[""],
            )
        except Exception as e:
            raise UnreadableWorkbookError(file_name, str(e) or type(e).__name__) from e

    cells = [[cell_text(v) for v in row] for row in df.itertuples(index=False, name=None)]
    logger.debug(f"read {file_name}: sheet={sheet_name} rows={len(cells)} cols={df.shape[1]}")
    return SheetGrid(sheet_name=sheet_name, cells=cells)
