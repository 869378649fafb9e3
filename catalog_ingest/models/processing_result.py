from __future__ import annotations

import statistics
from dataclasses import dataclass, field

from .images import ImageExtractionResult, MatchResult
from .parse_result import ParseResult
from .row_data import NormalizedRow

"""Processing result models for one ingestion run.

Aggregates the parse result, image extraction, matching and upload outcome
plus the upload batch timing statistics.
"""


@dataclass(frozen=True)
class UploadBatchMetrics:
    """Timing for one upload batch."""
    batch_size: int
    succeeded: int
    elapsed_seconds: float


@dataclass(frozen=True)
class UploadResult:
    urls: dict[str, str]  # code -> URL
    failed_codes: list[str]
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def uploaded(self) -> int:
        return len(self.urls)


@dataclass(frozen=True)
class IngestionResult:
    """Everything one workbook produced, ready for reconciliation."""
    parse: ParseResult
    images: ImageExtractionResult
    match: MatchResult
    upload: UploadResult | None  # None when no blob store was supplied
    rows: list[NormalizedRow]  # parse rows with image URLs applied
    elapsed_seconds: float = 0.0
    diagnostics: int = field(default=0)  # diagnostic records emitted

    @property
    def file_name(self) -> str:
        return self.parse.file_name


class BatchStatsAccumulator:
    """Collects batch timings and summarises them (count, mean, p95)."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Returns (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 quantiles
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
