from __future__ import annotations

import json
import re
from pathlib import Path

from catalog_ingest.logging.error_log import (
    DiagnosticLogBuffer,
    DiagnosticRecord,
    image_records,
    skipped_row_records,
    upload_failure_records,
)
from catalog_ingest.models.images import ExtractedImage
from catalog_ingest.models.parse_result import LayoutKind, ParseResult
from catalog_ingest.models.row_data import CellPosition, NormalizedRow, SkippedRowRecord, SkipReason


def test_record_json_line():
    rec = DiagnosticRecord.create("liste.xlsx", "Tabelle1", 4, 1, "SKIPPED_INVALID_CODE", "code=ABC")
    data = json.loads(rec.to_json_line())
    assert set(data) == {"timestamp", "file", "sheet", "row", "col", "kind", "detail"}
    assert data["timestamp"].endswith("Z")
    assert data["row"] == 4


def test_flush_writes_json_lines(tmp_path: Path):
    buf = DiagnosticLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()

    buf.append(DiagnosticRecord.create("a.xlsx", "S", 2, 1, "UPLOAD_FAILED", "code=1"))
    added = buf.extend([DiagnosticRecord.create("a.xlsx", "S", 3, 1, "UPLOAD_FAILED", "code=2")])
    assert added == 1
    assert len(buf.records) == 2

    path = buf.flush()
    assert path is not None
    assert re.fullmatch(r"diagnostics-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["detail"] for line in lines] == ["code=1", "code=2"]
    assert buf.records == []

    # later flushes append to the same file
    buf.append(DiagnosticRecord.create("a.xlsx", "S", 4, 1, "UPLOAD_FAILED", "code=3"))
    assert buf.flush() == path
    assert len(path.read_text(encoding="utf-8").splitlines()) == 3


def test_skipped_row_records_are_one_based():
    parse = ParseResult(
        file_name="liste.xlsx",
        layout=LayoutKind.HEADER,
        rows=[],
        skipped=[
            SkippedRowRecord(CellPosition(4, 0), SkipReason.INVALID_CODE, "ABC"),
            SkippedRowRecord(CellPosition(6, 0), SkipReason.DUPLICATE_CODE, "81597", CellPosition(1, 0)),
            SkippedRowRecord(CellPosition(7, 0), SkipReason.EMPTY_NAME, None),
        ],
        sheet_name="Tabelle1",
    )
    records = skipped_row_records(parse)
    assert [(r.row, r.col, r.kind, r.detail) for r in records] == [
        (5, 1, "SKIPPED_INVALID_CODE", "code=ABC"),
        (7, 1, "SKIPPED_DUPLICATE_CODE", "code=81597 first=A2"),
        (8, 1, "SKIPPED_EMPTY_NAME", "code=<none>"),
    ]
    assert all(r.sheet == "Tabelle1" for r in records)


def test_image_and_upload_records():
    rows = [
        NormalizedRow("11111", "A", CellPosition(1, 0), CellPosition(1, 2)),
        NormalizedRow("22222", "B", CellPosition(2, 0), None),
    ]
    unclaimed = [ExtractedImage(CellPosition(9, 4), b"x", "jpg")]
    records = image_records("liste.xlsx", "S", rows, unclaimed)
    assert [(r.kind, r.row, r.col, r.detail) for r in records] == [
        ("ROW_WITHOUT_IMAGE", 2, 3, "code=11111"),
        ("UNCLAIMED_IMAGE", 10, 5, "format=jpg"),
    ]
    failed = upload_failure_records("liste.xlsx", "S", ["33333"])
    assert [(r.kind, r.row, r.col, r.detail) for r in failed] == [("UPLOAD_FAILED", -1, -1, "code=33333")]
