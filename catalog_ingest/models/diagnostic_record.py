from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""DiagnosticRecord model for the diagnostics log.

One record per row-, image- or upload-level condition. None of these are
fatal; they are collected and written as JSON Lines for operator review.
row/col are 1-based as shown in the spreadsheet application; -1 marks a
condition without a cell position (e.g. a failed upload).
"""

__all__ = [
    "DiagnosticRecord",
]


@dataclass(frozen=True)
class DiagnosticRecord:
    """Structured diagnostic for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source file name
        sheet: sheet name (first sheet of the workbook)
        row: 1-based row, -1 if unknown
        col: 1-based column, -1 if unknown
        kind: classification in UPPER_SNAKE_CASE
        detail: human readable detail (code, duplicate back-pointer, error)
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    col: int
    kind: str
    detail: str

    @staticmethod
    def create(file: str, sheet: str, row: int, col: int, kind: str, detail: str) -> DiagnosticRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return DiagnosticRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            col=col,
            kind=kind,
            detail=detail,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
