"""Layout detection and row extraction strategies.

Each strategy is an independent function grid -> StrategyResult. The result
carries its own confidence signal (rows produced vs. rows skipped) and
`extract_rows` compares those signals to pick the winner:

1. column-per-product blocks (no header in the early rows)
2. banded name-row / code-row pairs repeated across the sheet
3. classic header row, one product per row

Strategies never raise on malformed cells; every rejected row becomes a
SkippedRowRecord.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from catalog_ingest.models.config_models import LayoutConfig
from catalog_ingest.models.parse_result import ColumnLayout, LayoutKind
from catalog_ingest.models.row_data import CellPosition, NormalizedRow, SkippedRowRecord, SkipReason

from .normalize import (
    IMAGE_HEADER_TOKENS,
    NAME_HEADER_TOKENS,
    clean_name,
    is_header_like,
    is_padding_name,
    is_valid_code,
    normalize_code,
)

__all__ = [
    "StrategyResult",
    "RowCollector",
    "detect_block_layout",
    "parse_block_layout",
    "find_band_starts",
    "parse_banded_layout",
    "find_header_row",
    "detect_columns",
    "parse_header_layout",
    "extract_rows",
]

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence[str]]


@dataclass(frozen=True)
class StrategyResult:
    layout: LayoutKind
    rows: list[NormalizedRow]
    skipped: list[SkippedRowRecord]
    columns: ColumnLayout | None = None

    @property
    def produced(self) -> int:
        return len(self.rows)

    @property
    def skip_count(self) -> int:
        return len(self.skipped)

    @property
    def invalid_code_count(self) -> int:
        return sum(1 for s in self.skipped if s.reason is SkipReason.INVALID_CODE)

    @property
    def confidence(self) -> tuple[int, int]:
        return (self.produced, self.skip_count)


class RowCollector:
    """Validates candidate rows and keeps the first occurrence of every code.

    Shared by all strategies so validation is identical whatever the layout.
    """

    def __init__(self, code_length: int) -> None:
        self.code_length = code_length
        self.rows: list[NormalizedRow] = []
        self.skipped: list[SkippedRowRecord] = []
        self._first_seen: dict[str, CellPosition] = {}

    def offer(
        self,
        raw_code: str,
        raw_name: str,
        code_pos: CellPosition,
        name_pos: CellPosition,
        image_pos: CellPosition | None = None,
    ) -> NormalizedRow | None:
        code = normalize_code(raw_code, self.code_length)
        if not is_valid_code(code, self.code_length):
            self.skipped.append(SkippedRowRecord(code_pos, SkipReason.INVALID_CODE, code=code or None))
            return None
        name = clean_name(raw_name)
        if is_padding_name(name):
            self.skipped.append(SkippedRowRecord(name_pos, SkipReason.EMPTY_NAME, code=code))
            return None
        first = self._first_seen.get(code)
        if first is not None:
            self.skipped.append(
                SkippedRowRecord(code_pos, SkipReason.DUPLICATE_CODE, code=code, duplicate_of=first)
            )
            return None
        self._first_seen[code] = code_pos
        row = NormalizedRow(
            code=code,
            display_name=name,
            source_position=code_pos,
            image_position=image_pos,
        )
        self.rows.append(row)
        return row

    def result(self, layout: LayoutKind, columns: ColumnLayout | None = None) -> StrategyResult:
        return StrategyResult(layout=layout, rows=list(self.rows), skipped=list(self.skipped), columns=columns)


def _cell(grid: Grid, r: int, c: int) -> str:
    if r < 0 or r >= len(grid):
        return ""
    row = grid[r]
    return row[c] if 0 <= c < len(row) else ""


def _width(grid: Grid, start: int, stop: int) -> int:
    return max((len(grid[r]) for r in range(max(start, 0), min(stop, len(grid)))), default=0)


def _looks_like_code(raw: str, code_length: int) -> bool:
    return bool(raw) and is_valid_code(normalize_code(raw, code_length), code_length)


# --- 1. column-per-product blocks ------------------------------------------


def detect_block_layout(grid: Grid, cfg: LayoutConfig) -> bool:
    """Blocks: no header-like cell early on and >=2 columns with a code in row 1 or 2."""
    if len(grid) < 4:
        return False
    for r in range(min(cfg.block_header_scan_rows, len(grid))):
        if any(is_header_like(cell) for cell in grid[r]):
            return False
    width = min(len(grid[0]), cfg.block_max_columns)
    columns_with_code = 0
    for c in range(width):
        if _looks_like_code(_cell(grid, 1, c), cfg.code_length) or _looks_like_code(
            _cell(grid, 2, c), cfg.code_length
        ):
            columns_with_code += 1
    return columns_with_code >= 2


def parse_block_layout(grid: Grid, cfg: LayoutConfig) -> StrategyResult:
    """One product per column; every band is name row, 1-2 code rows, image row."""
    collector = RowCollector(cfg.code_length)
    for start in range(0, max(len(grid) - 1, 0), cfg.block_size):
        if not any(grid[start]):
            continue
        image_row = start + 3
        for c in range(_width(grid, start, start + 3)):
            name_raw = _cell(grid, start, c)
            code_row = start + 1 if _cell(grid, start + 1, c) else start + 2
            code_raw = _cell(grid, code_row, c)
            if not name_raw and not code_raw:
                continue
            collector.offer(
                code_raw,
                name_raw,
                CellPosition(code_row, c),
                CellPosition(start, c),
                CellPosition(image_row, c),
            )
    return collector.result(LayoutKind.BLOCK)


# --- 2. banded name/code row pairs -----------------------------------------


def _is_band_start(grid: Grid, start: int, cfg: LayoutConfig) -> bool:
    width = min(_width(grid, start, start + 2), cfg.band_max_columns)
    code_cells = 0
    name_cells = 0
    for c in range(width):
        if _looks_like_code(_cell(grid, start + 1, c), cfg.code_length):
            code_cells += 1
        name = _cell(grid, start, c)
        if name and not _looks_like_code(name, cfg.code_length):
            name_cells += 1
    return code_cells >= cfg.band_min_cells and name_cells >= cfg.band_min_cells


def find_band_starts(grid: Grid, cfg: LayoutConfig) -> list[int]:
    """Name-row indices of every band, at least `band_min_spacing` rows apart."""
    starts: list[int] = []
    for start in range(min(len(grid) - 1, cfg.band_scan_rows)):
        if not _is_band_start(grid, start, cfg):
            continue
        if not starts or start >= starts[-1] + cfg.band_min_spacing:
            starts.append(start)
    return starts


def parse_banded_layout(grid: Grid, cfg: LayoutConfig) -> StrategyResult:
    """Extract every band independently: name row N, code row N+1, image row N+2."""
    collector = RowCollector(cfg.code_length)
    for start in find_band_starts(grid, cfg):
        for c in range(_width(grid, start, start + 2)):
            name_raw = _cell(grid, start, c)
            code_raw = _cell(grid, start + 1, c)
            if not name_raw and not code_raw:
                continue
            collector.offer(
                code_raw,
                name_raw,
                CellPosition(start + 1, c),
                CellPosition(start, c),
                CellPosition(start + 2, c),
            )
    return collector.result(LayoutKind.BANDED)


# --- 3. classic header row -------------------------------------------------


def find_header_row(grid: Grid, cfg: LayoutConfig) -> int | None:
    for r in range(min(cfg.header_scan_rows, len(grid))):
        if any(is_header_like(cell) for cell in grid[r]):
            return r
    return None


def _code_column_by_content(grid: Grid, first: int, width: int, cfg: LayoutConfig) -> int | None:
    """First column whose non-empty probe cells are all codes (at least one cell)."""
    stop = min(first + cfg.code_probe_rows, len(grid))
    for c in range(width):
        cells = [_cell(grid, r, c) for r in range(first, stop)]
        filled = [cell for cell in cells if cell]
        if filled and all(_looks_like_code(cell, cfg.code_length) for cell in filled):
            return c
    return None


def _name_column_by_length(grid: Grid, first: int, width: int, exclude: set[int], cfg: LayoutConfig) -> int | None:
    """Column with the longest average non-empty text over the probe rows."""
    stop = min(first + cfg.name_probe_rows, len(grid))
    best: int | None = None
    best_avg = 0.0
    for c in range(width):
        if c in exclude:
            continue
        lengths = [len(cell) for cell in (_cell(grid, r, c) for r in range(first, stop)) if cell]
        if len(lengths) < cfg.name_min_samples:
            continue
        avg = sum(lengths) / len(lengths)
        if avg > best_avg:
            best_avg = avg
            best = c
    return best


def detect_columns(grid: Grid, header_row: int | None, cfg: LayoutConfig) -> ColumnLayout:
    """Locate code, name and optional image columns.

    Header keywords first; content-based fallbacks when the header is silent:
    - code: column whose next rows only hold codes
    - name: header mentions name/text, else the longest average text
    """
    first = 0 if header_row is None else header_row + 1
    header = [] if header_row is None else [cell.strip().upper() for cell in grid[header_row]]
    width = max(len(header), _width(grid, first, first + 20))

    code_col: int | None = None
    name_col: int | None = None
    image_col: int | None = None

    for c, h in enumerate(header):
        if "ZWS" in h and "PLU" in h:
            code_col = c
            break
    for c, h in enumerate(header):
        if code_col is None and "PLU" in h and len(h) <= 10:
            code_col = c
        if name_col is None and any(token in h for token in NAME_HEADER_TOKENS):
            name_col = c
        if image_col is None and any(token in h for token in IMAGE_HEADER_TOKENS):
            image_col = c

    if code_col is None:
        code_col = _code_column_by_content(grid, first, width, cfg)

    if name_col is None:
        for c, h in enumerate(header):
            if c in (code_col, image_col):
                continue
            low = h.lower()
            if "name" in low or "text" in low or "bezeichnung" in low:
                name_col = c
                break
    if name_col is None:
        name_col = _name_column_by_length(grid, first, width, {code_col, image_col} - {None}, cfg)

    if code_col is None:
        code_col = 0
    if name_col is None:
        name_col = 1 if code_col != 1 else 0
    return ColumnLayout(header_row=header_row, code_col=code_col, name_col=name_col, image_col=image_col)


def parse_header_layout(grid: Grid, cfg: LayoutConfig) -> StrategyResult:
    """One product per row below the header row. Blank rows are ignored."""
    header_row = find_header_row(grid, cfg)
    columns = detect_columns(grid, header_row, cfg)
    collector = RowCollector(cfg.code_length)
    first = 0 if header_row is None else header_row + 1
    for r in range(first, len(grid)):
        if not any(grid[r]):
            continue
        image_pos = CellPosition(r, columns.image_col) if columns.image_col is not None else None
        collector.offer(
            _cell(grid, r, columns.code_col),
            _cell(grid, r, columns.name_col),
            CellPosition(r, columns.code_col),
            CellPosition(r, columns.name_col),
            image_pos,
        )
    return collector.result(LayoutKind.HEADER, columns)


# --- strategy selection ----------------------------------------------------


def _more_rows(incumbent: StrategyResult, challenger: StrategyResult) -> StrategyResult:
    """Challenger wins only with strictly more produced rows."""
    return challenger if challenger.produced > incumbent.produced else incumbent


def extract_rows(grid: Grid, cfg: LayoutConfig) -> StrategyResult:
    """Run the strategies in priority order and return the winning result."""
    if detect_block_layout(grid, cfg):
        block = parse_block_layout(grid, cfg)
        if block.skip_count <= cfg.block_fallback_ratio * max(1, block.produced):
            return block
        header = parse_header_layout(grid, cfg)
        winner = _more_rows(block, header)
        logger.debug(
            f"block layout skipped too much (confidence={block.confidence}); "
            f"header layout confidence={header.confidence} -> {winner.layout.value}"
        )
        return winner

    header = parse_header_layout(grid, cfg)
    if header.produced == 0 and header.invalid_code_count >= cfg.banded_fallback_min_invalid:
        banded = parse_banded_layout(grid, cfg)
        logger.debug(
            f"header layout produced no rows ({header.invalid_code_count} invalid codes); "
            f"banded layout confidence={banded.confidence}"
        )
        if banded.produced > 0:
            return banded
    return header
