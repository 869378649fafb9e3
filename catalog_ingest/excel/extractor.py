from __future__ import annotations

import logging
from collections import defaultdict

from catalog_ingest.models.config_models import IngestConfig
from catalog_ingest.models.parse_result import ParseResult
from catalog_ingest.models.row_data import CellPosition, NormalizedRow, SameNameEntry

from .layout import extract_rows
from .normalize import detect_product_type
from .reader import read_sheet_grid

"""Workbook -> ParseResult.

Reads the first sheet, runs the layout strategies and attaches the product
type and the same-name-different-code report.
"""

__all__ = [
    "parse_workbook",
    "parse_grid",
    "same_name_different_code",
]

logger = logging.getLogger(__name__)


def same_name_different_code(rows: list[NormalizedRow]) -> list[SameNameEntry]:
    """Exact names that appear with two or more distinct codes."""
    by_name: dict[str, list[tuple[str, CellPosition]]] = defaultdict(list)
    for row in rows:
        by_name[row.display_name].append((row.code, row.source_position))
    return [
        SameNameEntry(name=name, occurrences=tuple(occ))
        for name, occ in by_name.items()
        if len({code for code, _ in occ}) > 1
    ]


def parse_grid(
    cells: list[list[str]],
    file_name: str,
    config: IngestConfig | None = None,
    *,
    sheet_name: str = "",
) -> ParseResult:
    cfg = config or IngestConfig()
    result = extract_rows(cells, cfg.layout)
    parsed = ParseResult(
        file_name=file_name,
        layout=result.layout,
        rows=result.rows,
        skipped=result.skipped,
        product_type=detect_product_type(file_name, cells),
        columns=result.columns,
        same_name_different_code=same_name_different_code(result.rows),
        sheet_name=sheet_name,
    )
    logger.info(
        f"parsed {file_name}: layout={parsed.layout.value} rows={parsed.total_rows} "
        f"skipped={parsed.skipped_total} type={parsed.product_type.value}"
    )
    return parsed


def parse_workbook(data: bytes, file_name: str, config: IngestConfig | None = None) -> ParseResult:
    """Parse raw workbook bytes.

    Raises:
        UnreadableWorkbookError: container cannot be opened or has no sheets
    """
    grid = read_sheet_grid(data, file_name)
    return parse_grid(grid.cells, file_name, config, sheet_name=grid.sheet_name)
