from __future__ import annotations

from ..models.catalog import ReconciliationSummary
from ..models.processing_result import IngestionResult

"""SUMMARY line rendering.

Formats (one line each, key=value pairs separated by single spaces):

    SUMMARY files={n} rows={rows} skipped={skipped} images={images} matched={matched}
            uploaded={uploaded} upload_failed={failed} elapsed_sec={elapsed}
    SUMMARY reconcile total={t} unchanged={u} code_changed={c} new={n} removed={r}
            conflicts={k} duplicates_skipped={d}

The renderers return the line without its label; `log_summary` adds the
label through the SUMMARY log level.
"""

__all__ = [
    "format_number",
    "render_ingest_summary",
    "render_reconciliation_summary",
]


def format_number(value: float) -> str:
    """Integral values without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_ingest_summary(results: list[IngestionResult], elapsed_seconds: float) -> str:
    rows = sum(r.parse.total_rows for r in results)
    skipped = sum(r.parse.skipped_total for r in results)
    images = sum(len(r.images.images) for r in results)
    matched = sum(len(r.match.assignments) for r in results)
    uploaded = sum(r.upload.uploaded for r in results if r.upload is not None)
    failed = sum(len(r.upload.failed_codes) for r in results if r.upload is not None)
    return (
        f"files={len(results)} "
        f"rows={rows} "
        f"skipped={skipped} "
        f"images={images} "
        f"matched={matched} "
        f"uploaded={uploaded} "
        f"upload_failed={failed} "
        f"elapsed_sec={format_number(elapsed_seconds)}"
    )


def render_reconciliation_summary(summary: ReconciliationSummary) -> str:
    return (
        f"reconcile total={summary.total} "
        f"unchanged={summary.unchanged} "
        f"code_changed={summary.code_changed} "
        f"new={summary.new} "
        f"removed={summary.removed} "
        f"conflicts={summary.conflicts} "
        f"duplicates_skipped={summary.duplicates_skipped}"
    )
