from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path

from ..excel.extractor import parse_workbook
from ..images.extractor import extract_images
from ..logging.error_log import (
    DiagnosticLogBuffer,
    image_records,
    skipped_row_records,
    upload_failure_records,
)
from ..matching.matcher import match_images
from ..models.config_models import IngestConfig
from ..models.processing_result import IngestionResult
from .upload import BlobStore, ProgressCallback, upload_matched_images

"""Ingestion orchestration for one workbook.

parse -> extract images -> match -> (optional) upload -> rows with image URLs.

Only UnreadableWorkbookError propagates; row, image and upload conditions end
up as counts in the result and as records in the diagnostics buffer.
"""

__all__ = [
    "ingest_workbook",
    "ingest_file",
]

logger = logging.getLogger(__name__)


def ingest_workbook(
    data: bytes,
    file_name: str,
    config: IngestConfig | None = None,
    *,
    blob_store: BlobStore | None = None,
    path_prefix: str | None = None,
    progress_callback: ProgressCallback | None = None,
    diagnostics: DiagnosticLogBuffer | None = None,
) -> IngestionResult:
    """Run the ingestion core over raw workbook bytes.

    Args:
        data: workbook bytes (.xlsx or .xls)
        file_name: original file name; drives product type and log context
        config: tunables, defaults when None
        blob_store: upload target; images are matched but not uploaded when None
        path_prefix: blob path prefix, defaults to `config.upload.bucket_prefix`
        progress_callback: `(completed, total)` after every upload batch
        diagnostics: buffer that receives the run's diagnostic records

    Raises:
        UnreadableWorkbookError: container cannot be opened or has no sheets
    """
    cfg = config or IngestConfig()
    t0 = time.perf_counter()

    parse = parse_workbook(data, file_name, cfg)
    images = extract_images(data, file_name, parse.rows, resize_target=cfg.images.resize_target)
    match = match_images(parse.rows, images.images, cfg.matching)

    upload = None
    rows = parse.rows
    if blob_store is not None:
        upload = upload_matched_images(
            match.assignments,
            blob_store,
            path_prefix=path_prefix if path_prefix is not None else cfg.upload.bucket_prefix,
            concurrency=cfg.upload.concurrency,
            progress_callback=progress_callback,
        )
        urls = upload.urls
        rows = [replace(r, image_url=urls[r.code]) if r.code in urls else r for r in rows]

    records = skipped_row_records(parse)
    records += image_records(file_name, parse.sheet_name, match.rows_without_image, match.unclaimed_images)
    if upload is not None:
        records += upload_failure_records(file_name, parse.sheet_name, upload.failed_codes)
    if diagnostics is not None:
        diagnostics.extend(records)

    elapsed = time.perf_counter() - t0
    logger.info(
        f"{file_name}: rows={parse.total_rows} images={len(images.images)} ({images.tier.value}) "
        f"matched={len(match.assignments)} elapsed={elapsed:.2f}s"
    )
    return IngestionResult(
        parse=parse,
        images=images,
        match=match,
        upload=upload,
        rows=rows,
        elapsed_seconds=elapsed,
        diagnostics=len(records),
    )


def ingest_file(path: Path, config: IngestConfig | None = None, **kwargs) -> IngestionResult:
    """Read `path` and delegate to ingest_workbook (same keyword arguments)."""
    return ingest_workbook(path.read_bytes(), path.name, config, **kwargs)
