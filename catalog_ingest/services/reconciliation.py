from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from ..models.catalog import (
    CodeChanged,
    Conflict,
    ConflictItem,
    HistoricalProductRecord,
    New,
    ProductType,
    ReconciliationOutcome,
    ReconciliationResult,
    ReconciliationSummary,
    RecordStatus,
    Unchanged,
    name_key,
)
from ..models.row_data import NormalizedRow

"""Version-to-version reconciliation.

Classifies each incoming row against the current version and the full
history of earlier versions. First matching rule wins:

1. first upload                          -> Unchanged
2. code in current, same name            -> Unchanged
   code in current, other name           -> Conflict (not in `records`)
3. (name, type) in current, other code   -> CodeChanged(old_code)
4. (name, type) in an earlier version    -> CodeChanged(old_code)
5. otherwise                             -> New

Pure function of its inputs; no storage access, no random ids.
"""

__all__ = [
    "build_history_index",
    "reconcile",
    "merge_rows",
]

logger = logging.getLogger(__name__)

NameKey = tuple[str, ProductType]


def build_history_index(
    history: Iterable[HistoricalProductRecord],
    exclude: set[NameKey] | frozenset[NameKey] = frozenset(),
) -> dict[NameKey, HistoricalProductRecord]:
    """name+type -> latest record; later entries win, keys in `exclude` are left out."""
    index: dict[NameKey, HistoricalProductRecord] = {}
    for record in history:
        key = record.name_key
        if key not in exclude:
            index[key] = record
    return index


def reconcile(
    incoming: Sequence[NormalizedRow],
    *,
    product_type: ProductType,
    current: Sequence[HistoricalProductRecord],
    history: Sequence[HistoricalProductRecord],
    new_version_id: str,
    is_first_upload: bool,
) -> ReconciliationResult:
    """Classify `incoming` rows for the new version `new_version_id`.

    Args:
        incoming: parsed rows, input order; duplicates by code are counted and dropped
        product_type: partition of the incoming rows
        current: records of the currently active version
        history: records of all earlier versions, oldest first
        new_version_id: id written into every produced record
        is_first_upload: no prior version exists
    """
    current_by_code: dict[str, HistoricalProductRecord] = {}
    current_by_name: dict[NameKey, HistoricalProductRecord] = {}
    for record in current:
        current_by_code[record.code] = record
        current_by_name[record.name_key] = record
    previous_by_name = build_history_index(history, exclude=set(current_by_name))

    unchanged: list[HistoricalProductRecord] = []
    code_changed: list[HistoricalProductRecord] = []
    new: list[HistoricalProductRecord] = []
    conflicts: list[ConflictItem] = []
    records: list[HistoricalProductRecord] = []
    outcomes: list[tuple[str, ReconciliationOutcome]] = []
    processed: set[str] = set()
    duplicates = 0

    for row in incoming:
        if row.code in processed:
            duplicates += 1
            continue
        processed.add(row.code)

        existing = current_by_code.get(row.code)
        image_url = row.image_url or (existing.image_url if existing is not None else None)
        record = HistoricalProductRecord(
            code=row.code,
            name=row.display_name,
            product_type=product_type,
            version_id=new_version_id,
            image_url=image_url,
        )

        outcome: ReconciliationOutcome
        if is_first_upload:
            outcome = Unchanged()
        elif existing is not None:
            if existing.name.lower() == row.display_name.lower():
                outcome = Unchanged()
            else:
                outcome = Conflict(incoming_name=row.display_name, existing_name=existing.name)
        else:
            key = name_key(row.display_name, product_type)
            previous = current_by_name.get(key) or previous_by_name.get(key)
            outcome = CodeChanged(old_code=previous.code) if previous is not None else New()
        outcomes.append((row.code, outcome))

        match outcome:
            case Unchanged():
                unchanged.append(record)
            case CodeChanged(old_code=old_code):
                record = replace(record, status=RecordStatus.CODE_CHANGED, old_code=old_code)
                code_changed.append(record)
            case New():
                record = replace(record, status=RecordStatus.NEW)
                new.append(record)
            case Conflict(incoming_name=incoming_name, existing_name=existing_name):
                conflicts.append(
                    ConflictItem(
                        code=row.code,
                        incoming_name=incoming_name,
                        existing_name=existing_name,
                        product_type=product_type,
                        image_url=image_url,
                    )
                )
                continue
        records.append(record)

    removed = [r for r in current if r.product_type is product_type and r.code not in processed]
    summary = ReconciliationSummary(
        total=len(records),
        unchanged=len(unchanged),
        code_changed=len(code_changed),
        new=len(new),
        removed=len(removed),
        conflicts=len(conflicts),
        duplicates_skipped=duplicates,
    )
    logger.debug(f"reconciled {len(incoming)} incoming rows against {len(current)} current records: {summary}")
    return ReconciliationResult(
        unchanged=unchanged,
        code_changed=code_changed,
        new=new,
        removed=removed,
        conflicts=conflicts,
        records=records,
        outcomes=outcomes,
        summary=summary,
    )


def merge_rows(row_sets: Iterable[Sequence[NormalizedRow]]) -> list[NormalizedRow]:
    """Merge the rows of several files; first occurrence of a code wins.

    A later occurrence replaces the first one in place only when it carries
    an image URL and the first does not.
    """
    merged: dict[str, NormalizedRow] = {}
    dropped = 0
    for rows in row_sets:
        for row in rows:
            first = merged.get(row.code)
            if first is None:
                merged[row.code] = row
                continue
            dropped += 1
            if first.image_url is None and row.image_url is not None:
                merged[row.code] = row
    if dropped:
        logger.debug(f"merge dropped {dropped} rows with a code already seen in an earlier file")
    return list(merged.values())
