from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the catalogue ingestion core.

The loader in catalog_ingest/config/loader.py builds these from YAML; every
field has a default so `IngestConfig()` is a complete, usable configuration.
Spacing and tolerance values here are empirically chosen tunables, not
invariants of the source format.
"""


@dataclass(frozen=True)
class LayoutConfig:
    """Layout detection and row extraction tunables."""
    code_length: int = 5  # digits in a product code
    block_size: int = 5  # rows per band in the column-per-product layout
    block_header_scan_rows: int = 20  # no header-like cell may appear in these rows
    block_max_columns: int = 50
    band_scan_rows: int = 120
    band_min_spacing: int = 3  # rows between two accepted band starts
    band_min_cells: int = 3  # code cells and name cells needed per band
    band_max_columns: int = 200
    header_scan_rows: int = 25
    code_probe_rows: int = 15  # rows checked by the code column fallback
    name_probe_rows: int = 50  # rows averaged by the name column fallback
    name_min_samples: int = 3
    block_fallback_ratio: int = 10  # skipped > ratio * produced -> retry header layout
    banded_fallback_min_invalid: int = 5  # invalid-code skips before trying banded layout


@dataclass(frozen=True)
class ImageConfig:
    resize_target: int = 192  # px of the longer edge after normalization


@dataclass(frozen=True)
class MatchingConfig:
    row_drift: tuple[int, ...] = (1, 2)  # tried as -1, +1, -2, +2
    column_window: int = 50  # rows searched for the nearest image in a column


@dataclass(frozen=True)
class UploadConfig:
    concurrency: int = 8  # uploads per batch
    bucket_prefix: str = "catalog-images"


@dataclass(frozen=True)
class IngestConfig:
    """Root configuration object for one ingestion run."""
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    images: ImageConfig = field(default_factory=ImageConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    logs_directory: str = "./logs"
