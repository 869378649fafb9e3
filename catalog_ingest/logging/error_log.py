from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from catalog_ingest.models.diagnostic_record import DiagnosticRecord
from catalog_ingest.models.images import ExtractedImage
from catalog_ingest.models.parse_result import ParseResult
from catalog_ingest.models.row_data import NormalizedRow

"""Diagnostics log buffering.

- JSON Lines, fixed key set (see DiagnosticRecord)
- one `logs/diagnostics-YYYYMMDD-HHMMSS.log` (UTC) per run, created lazily
- records buffered in memory, appended on flush()

Record kinds:
    SKIPPED_INVALID_CODE / SKIPPED_EMPTY_NAME / SKIPPED_DUPLICATE_CODE
    ROW_WITHOUT_IMAGE / UNCLAIMED_IMAGE / UPLOAD_FAILED
"""

__all__ = [
    "DiagnosticRecord",
    "DiagnosticLogBuffer",
    "skipped_row_records",
    "image_records",
    "upload_failure_records",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class DiagnosticLogBuffer:
    """In-memory buffer for diagnostic records. Flush writes JSON Lines.

    Not thread safe; records are appended from the pipeline thread only.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self._records: list[DiagnosticRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"diagnostics-{stamp}.log"
        return self._file_path

    def append(self, record: DiagnosticRecord) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[DiagnosticRecord]) -> int:
        before = len(self._records)
        self._records.extend(records)
        return len(self._records) - before

    @property
    def records(self) -> list[DiagnosticRecord]:
        return list(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp


def skipped_row_records(parse: ParseResult) -> list[DiagnosticRecord]:
    out = []
    for s in parse.skipped:
        detail = f"code={s.code}" if s.code else "code=<none>"
        if s.duplicate_of is not None:
            detail += f" first={s.duplicate_of.a1}"
        out.append(
            DiagnosticRecord.create(
                file=parse.file_name,
                sheet=parse.sheet_name,
                row=s.position.row + 1,
                col=s.position.col + 1,
                kind=f"SKIPPED_{s.reason.name}",
                detail=detail,
            )
        )
    return out


def image_records(
    file_name: str,
    sheet: str,
    rows_without_image: Iterable[NormalizedRow],
    unclaimed: Iterable[ExtractedImage],
) -> list[DiagnosticRecord]:
    out = []
    for row in rows_without_image:
        pos = row.image_position
        if pos is None:
            continue
        out.append(
            DiagnosticRecord.create(file_name, sheet, pos.row + 1, pos.col + 1, "ROW_WITHOUT_IMAGE", f"code={row.code}")
        )
    for image in unclaimed:
        pos = image.position
        out.append(
            DiagnosticRecord.create(file_name, sheet, pos.row + 1, pos.col + 1, "UNCLAIMED_IMAGE", f"format={image.format}")
        )
    return out


def upload_failure_records(file_name: str, sheet: str, codes: Iterable[str]) -> list[DiagnosticRecord]:
    return [DiagnosticRecord.create(file_name, sheet, -1, -1, "UPLOAD_FAILED", f"code={code}") for code in codes]
