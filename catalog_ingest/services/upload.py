from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Protocol

from ..models.images import ImageAssignment
from ..models.processing_result import BatchStatsAccumulator, UploadResult

"""Upload of matched images to a blob store.

Uploads run in fixed-width batches; each batch is fully awaited before the
next starts. A failed upload is logged and left out of the URL map, it never
aborts the batch or the run. No retries.
"""

__all__ = [
    "BlobStore",
    "DirectoryBlobStore",
    "ProgressCallback",
    "blob_path",
    "upload_matched_images",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


class BlobStore(Protocol):
    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store `data` under `path` (overwriting) and return its URL."""
        ...


class DirectoryBlobStore:
    """Writes blobs below a local directory; URLs are file:// URIs."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = (self.root / path).resolve()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target.as_uri()


def blob_path(prefix: str, code: str, fmt: str) -> str:
    """'{prefix}/{code}.{ext}' with anything but [A-Za-z0-9_-] in the code replaced."""
    name = f"{_UNSAFE.sub('_', code)}.{fmt}"
    return f"{prefix.rstrip('/')}/{name}" if prefix else name


def _upload_one(store: BlobStore, assignment: ImageAssignment, prefix: str) -> tuple[str, str | None]:
    image = assignment.image
    code = assignment.row.code
    try:
        url = store.upload(blob_path(prefix, code, image.format), image.data, image.content_type)
    except Exception as e:  # noqa: BLE001 - any store failure is per-image
        logger.warning(f"image upload failed for code {code}: {e}")
        return code, None
    return code, url


def upload_matched_images(
    assignments: list[ImageAssignment],
    store: BlobStore,
    *,
    path_prefix: str,
    concurrency: int = 8,
    progress_callback: ProgressCallback | None = None,
) -> UploadResult:
    """Upload every assigned image; returns code -> URL plus the failed codes.

    `progress_callback(completed, total)` fires once before the first batch
    and after every batch; `completed` counts successful uploads.
    """
    total = len(assignments)
    urls: dict[str, str] = {}
    failed: list[str] = []
    stats = BatchStatsAccumulator()
    if progress_callback is not None:
        progress_callback(0, total)
    if total == 0:
        return UploadResult(urls=urls, failed_codes=failed)

    width = max(1, concurrency)
    with ThreadPoolExecutor(max_workers=width) as pool:
        for start in range(0, total, width):
            batch = assignments[start : start + width]
            t0 = time.perf_counter()
            results = list(pool.map(lambda a: _upload_one(store, a, path_prefix), batch))
            stats.add_batch_time(time.perf_counter() - t0)
            for code, url in results:
                if url is None:
                    failed.append(code)
                else:
                    urls[code] = url
            if progress_callback is not None:
                progress_callback(len(urls), total)

    batches, avg, p95 = stats.get_stats()
    if failed:
        logger.warning(f"{len(failed)} of {total} image uploads failed")
    return UploadResult(
        urls=urls,
        failed_codes=failed,
        total_batches=batches,
        avg_batch_seconds=avg,
        p95_batch_seconds=p95,
    )
