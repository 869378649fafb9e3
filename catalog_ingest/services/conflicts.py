from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ..models.catalog import (
    ConflictDecision,
    ConflictItem,
    ConflictResolution,
    HistoricalProductRecord,
    ReconciliationResult,
    RecordStatus,
)

"""Operator conflict decisions -> final records.

replace keeps the incoming name, ignore keeps the existing one; both yield an
UNCHANGED record under the conflicting code. keep-both cannot be honoured
(two live records would share one code) and is rejected.
"""

__all__ = [
    "ConflictResolutionError",
    "UnsupportedDecisionError",
    "OutstandingConflictsError",
    "ResolutionResult",
    "resolve_conflicts",
    "finalize_records",
]

logger = logging.getLogger(__name__)


class ConflictResolutionError(Exception):
    """Base exception for conflict resolution errors."""
    pass


class UnsupportedDecisionError(ConflictResolutionError):
    def __init__(self, code: str, decision: str) -> None:
        super().__init__(f"decision '{decision}' is not supported for code {code}")
        self.code = code
        self.decision = decision


class OutstandingConflictsError(ConflictResolutionError):
    def __init__(self, codes: list[str]) -> None:
        super().__init__(f"{len(codes)} conflict(s) without a decision: {', '.join(codes)}")
        self.codes = codes


@dataclass(frozen=True)
class ResolutionResult:
    records: list[HistoricalProductRecord]
    resolutions: list[ConflictResolution]
    outstanding: list[ConflictItem]  # conflicts without a decision


def _as_decision(code: str, raw: ConflictDecision | str) -> ConflictDecision:
    if isinstance(raw, ConflictDecision):
        return raw
    try:
        return ConflictDecision(raw)
    except ValueError:
        raise UnsupportedDecisionError(code, str(raw)) from None


def resolve_conflicts(
    conflicts: Sequence[ConflictItem],
    decisions: Mapping[str, ConflictDecision | str],
    new_version_id: str,
) -> ResolutionResult:
    """Apply `decisions` (code -> decision) to `conflicts`.

    Raises:
        UnsupportedDecisionError: keep-both or an unknown decision value
    """
    records: list[HistoricalProductRecord] = []
    resolutions: list[ConflictResolution] = []
    outstanding: list[ConflictItem] = []
    for conflict in conflicts:
        raw = decisions.get(conflict.code)
        if raw is None:
            outstanding.append(conflict)
            continue
        decision = _as_decision(conflict.code, raw)
        if decision is ConflictDecision.REPLACE:
            chosen = conflict.incoming_name
        elif decision is ConflictDecision.IGNORE:
            chosen = conflict.existing_name
        else:
            raise UnsupportedDecisionError(conflict.code, decision.value)
        resolutions.append(ConflictResolution(code=conflict.code, chosen_name=chosen, decision=decision))
        records.append(
            HistoricalProductRecord(
                code=conflict.code,
                name=chosen,
                product_type=conflict.product_type,
                version_id=new_version_id,
                status=RecordStatus.UNCHANGED,
                image_url=conflict.image_url,
            )
        )
    if outstanding:
        logger.info(f"{len(outstanding)} conflict(s) still need an operator decision")
    return ResolutionResult(records=records, resolutions=resolutions, outstanding=outstanding)


def finalize_records(result: ReconciliationResult, resolution: ResolutionResult) -> list[HistoricalProductRecord]:
    """Publication record set: reconciled records plus resolved conflicts.

    Raises:
        OutstandingConflictsError: any conflict of `result` has no resolution
    """
    resolved = {r.code for r in resolution.resolutions}
    missing = [c.code for c in result.conflicts if c.code not in resolved]
    if missing:
        raise OutstandingConflictsError(missing)
    return [*result.records, *resolution.records]
