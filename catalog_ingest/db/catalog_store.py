from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

from ..models.catalog import HistoricalProductRecord, ProductType, RecordStatus, VersionTarget
from ..models.processing_result import BatchStatsAccumulator

"""PostgreSQL persistence collaborator for catalogue versions.

Tables:
    catalog_versions (id, week_number, year, status, created_by, frozen_at)
        status: draft -> active -> frozen
    catalog_items (version_id, code, name, product_type, status, old_code, image_url)

The caller owns the transaction; nothing here commits. Item inserts use
psycopg2.extras.execute_values in fixed-size batches.
"""

__all__ = [
    "CatalogStoreError",
    "PublishResult",
    "load_current_snapshot",
    "load_history",
    "publish_version",
]

logger = logging.getLogger(__name__)

VERSIONS_TABLE = "catalog_versions"
ITEMS_TABLE = "catalog_items"
INSERT_BATCH_SIZE = 500

_ITEM_COLUMNS = ("version_id", "code", "name", "product_type", "status", "old_code", "image_url")
_SELECT_ITEMS = f"SELECT i.{', i.'.join(_ITEM_COLUMNS)} FROM {ITEMS_TABLE} i"


class CatalogStoreError(Exception):
    pass


@dataclass(frozen=True)
class PublishResult:
    version_id: str
    inserted_rows: int
    total_batches: int
    avg_batch_seconds: float
    p95_batch_seconds: float


def _to_record(row: Sequence[Any]) -> HistoricalProductRecord:
    version_id, code, name, product_type, status, old_code, image_url = row
    return HistoricalProductRecord(
        code=code,
        name=name,
        product_type=ProductType(product_type),
        version_id=str(version_id),
        status=RecordStatus(status),
        old_code=old_code,
        image_url=image_url,
    )


def load_current_snapshot(cursor: Any, product_type: ProductType) -> tuple[str | None, list[HistoricalProductRecord]]:
    """(active version id, its records of `product_type`); (None, []) before the first upload."""
    try:
        cursor.execute(
            f"SELECT id FROM {VERSIONS_TABLE} WHERE status = 'active' "
            "ORDER BY year DESC, week_number DESC LIMIT 1"
        )
        row = cursor.fetchone()
        if row is None:
            return None, []
        version_id = str(row[0])
        cursor.execute(
            f"{_SELECT_ITEMS} WHERE i.version_id = %s AND i.product_type = %s ORDER BY i.code",
            (version_id, product_type.value),
        )
        return version_id, [_to_record(r) for r in cursor.fetchall()]
    except psycopg2.Error as e:
        raise CatalogStoreError(f"loading current snapshot failed: {e}") from e


def load_history(cursor: Any, product_type: ProductType) -> list[HistoricalProductRecord]:
    """Records of every frozen version, oldest version first."""
    try:
        cursor.execute(
            f"{_SELECT_ITEMS} JOIN {VERSIONS_TABLE} v ON v.id = i.version_id "
            "WHERE v.status = 'frozen' AND i.product_type = %s "
            "ORDER BY v.year, v.week_number, i.code",
            (product_type.value,),
        )
        return [_to_record(r) for r in cursor.fetchall()]
    except psycopg2.Error as e:
        raise CatalogStoreError(f"loading history failed: {e}") from e


def publish_version(
    cursor: Any,
    *,
    target: VersionTarget,
    records: Sequence[HistoricalProductRecord],
    created_by: str | None = None,
    replace_existing: bool = False,
    batch_size: int = INSERT_BATCH_SIZE,
) -> PublishResult:
    """Create version `target` holding `records` and make it the active one.

    The records' own version_id is replaced by the id of the new version.

    Raises:
        CatalogStoreError: the week already exists (without replace_existing) or any DB error
    """
    stats = BatchStatsAccumulator()
    try:
        cursor.execute(
            f"SELECT id FROM {VERSIONS_TABLE} WHERE week_number = %s AND year = %s",
            (target.week, target.year),
        )
        existing = cursor.fetchone()
        if existing is not None:
            if not replace_existing:
                raise CatalogStoreError(f"version {target.label} already exists")
            cursor.execute(f"DELETE FROM {ITEMS_TABLE} WHERE version_id = %s", (existing[0],))
            cursor.execute(f"DELETE FROM {VERSIONS_TABLE} WHERE id = %s", (existing[0],))
            logger.info(f"replaced existing version {target.label}")

        cursor.execute(f"UPDATE {VERSIONS_TABLE} SET status = 'frozen', frozen_at = now() WHERE status = 'active'")
        cursor.execute(
            f"INSERT INTO {VERSIONS_TABLE} (week_number, year, status, created_by) "
            "VALUES (%s, %s, 'draft', %s) RETURNING id",
            (target.week, target.year, created_by),
        )
        version_id = str(cursor.fetchone()[0])

        rows = [
            (version_id, r.code, r.name, r.product_type.value, r.status.value, r.old_code, r.image_url)
            for r in records
        ]
        sql = f"INSERT INTO {ITEMS_TABLE} ({', '.join(_ITEM_COLUMNS)}) VALUES %s"
        for start in range(0, len(rows), batch_size):
            batch = rows[start : start + batch_size]
            t0 = time.perf_counter()
            execute_values(cursor, sql, batch, page_size=batch_size)
            stats.add_batch_time(time.perf_counter() - t0)

        cursor.execute(f"UPDATE {VERSIONS_TABLE} SET status = 'active' WHERE id = %s", (version_id,))
    except psycopg2.Error as e:
        raise CatalogStoreError(f"publishing {target.label} failed: {e}") from e

    total, avg, p95 = stats.get_stats()
    logger.info(f"published {target.label}: version_id={version_id} items={len(rows)} batches={total}")
    return PublishResult(
        version_id=version_id,
        inserted_rows=len(rows),
        total_batches=total,
        avg_batch_seconds=avg,
        p95_batch_seconds=p95,
    )
