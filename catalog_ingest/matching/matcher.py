from __future__ import annotations

import logging
from bisect import bisect_left
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from catalog_ingest.models.config_models import MatchingConfig
from catalog_ingest.models.images import ExtractedImage, ImageAssignment, MatchResult, MatchTier
from catalog_ingest.models.row_data import CellPosition, NormalizedRow

"""Row -> image assignment.

Rows are matched in input order against a pool of extracted images sorted by
(row, col). Each image is claimed at most once. Every tier stays inside the
row's own column; a picture from the neighbouring column is never assigned.

The pool is immutable: tier functions only read it and `ImagePool.claim`
returns a new pool, so every tier can be exercised on its own.
"""

__all__ = [
    "ImagePool",
    "match_exact",
    "match_row_drift",
    "match_nearest_in_column",
    "match_any_in_column",
    "match_images",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImagePool:
    images: tuple[ExtractedImage, ...]
    free: Mapping[int, tuple[int, ...]]  # column -> unclaimed indices, top to bottom

    @classmethod
    def of(cls, images: list[ExtractedImage]) -> ImagePool:
        ordered = tuple(sorted(images, key=lambda i: i.position))
        free: dict[int, list[int]] = {}
        for idx, image in enumerate(ordered):
            free.setdefault(image.position.col, []).append(idx)
        return cls(ordered, {col: tuple(ids) for col, ids in free.items()})

    def free_in_column(self, col: int) -> tuple[int, ...]:
        return self.free.get(col, ())

    def row_of(self, idx: int) -> int:
        return self.images[idx].position.row

    def first_at_or_below(self, col: int, row: int) -> int:
        """Offset into `free_in_column(col)` of the first image with row >= `row`."""
        return bisect_left(self.free_in_column(col), row, key=self.row_of)

    def claim(self, idx: int) -> ImagePool:
        col = self.images[idx].position.col
        ids = self.free_in_column(col)
        k = bisect_left(ids, idx)
        free = dict(self.free)
        free[col] = ids[:k] + ids[k + 1 :]
        return ImagePool(self.images, free)

    def unclaimed(self) -> list[ExtractedImage]:
        remaining = sorted(i for ids in self.free.values() for i in ids)
        return [self.images[i] for i in remaining]


def match_exact(pool: ImagePool, target: CellPosition, cfg: MatchingConfig) -> int | None:
    free = pool.free_in_column(target.col)
    k = pool.first_at_or_below(target.col, target.row)
    if k < len(free) and pool.row_of(free[k]) == target.row:
        return free[k]
    return None


def match_row_drift(pool: ImagePool, target: CellPosition, cfg: MatchingConfig) -> int | None:
    """Same column, row off by -1, +1, -2, +2 (in that order)."""
    for drift in cfg.row_drift:
        for delta in (-drift, drift):
            idx = match_exact(pool, CellPosition(target.row + delta, target.col), cfg)
            if idx is not None:
                return idx
    return None


def match_nearest_in_column(pool: ImagePool, target: CellPosition, cfg: MatchingConfig) -> int | None:
    """Closest unclaimed image in the column within `column_window` rows; upper one on ties."""
    free = pool.free_in_column(target.col)
    k = pool.first_at_or_below(target.col, target.row)
    best: int | None = None
    best_distance = cfg.column_window + 1
    # only the neighbours around the insertion point can be closest
    for idx in free[max(0, k - 1) : k + 1]:
        distance = abs(pool.row_of(idx) - target.row)
        if distance < best_distance:
            best, best_distance = idx, distance
    return best


def match_any_in_column(pool: ImagePool, target: CellPosition, cfg: MatchingConfig) -> int | None:
    free = pool.free_in_column(target.col)
    return free[0] if free else None


Tier = Callable[[ImagePool, CellPosition, MatchingConfig], "int | None"]

TIERS: tuple[tuple[MatchTier, Tier], ...] = (
    (MatchTier.EXACT, match_exact),
    (MatchTier.ROW_DRIFT, match_row_drift),
    (MatchTier.NEAREST_IN_COLUMN, match_nearest_in_column),
    (MatchTier.ANY_IN_COLUMN, match_any_in_column),
)


def match_images(
    rows: list[NormalizedRow],
    images: list[ExtractedImage],
    config: MatchingConfig | None = None,
) -> MatchResult:
    """Assign at most one image per row and at most one row per image.

    Rows without an expected image position take no part in matching.
    """
    cfg = config or MatchingConfig()
    pool = ImagePool.of(images)
    assignments: list[ImageAssignment] = []
    missing: list[NormalizedRow] = []
    for row in rows:
        target = row.image_position
        if target is None:
            continue
        for tier, find in TIERS:
            idx = find(pool, target, cfg)
            if idx is not None:
                assignments.append(ImageAssignment(row=row, image=pool.images[idx], tier=tier))
                pool = pool.claim(idx)
                break
        else:
            missing.append(row)
    result = MatchResult(assignments=assignments, rows_without_image=missing, unclaimed_images=pool.unclaimed())
    if missing or result.unclaimed_images:
        logger.info(
            f"image matching: assigned={len(assignments)} rows_without_image={len(missing)} "
            f"unclaimed_images={len(result.unclaimed_images)}"
        )
    return result
