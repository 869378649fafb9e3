from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Catalogue version models: historical records, reconciliation outcomes and
operator conflict decisions.

HistoricalProductRecord is append-only: a later version creates new records
and never mutates the ones of an earlier version.
"""

__all__ = [
    "ProductType",
    "RecordStatus",
    "HistoricalProductRecord",
    "name_key",
    "Unchanged",
    "CodeChanged",
    "New",
    "Conflict",
    "ReconciliationOutcome",
    "ConflictItem",
    "ConflictDecision",
    "ConflictResolution",
    "ReconciliationSummary",
    "ReconciliationResult",
    "VersionTarget",
]


class ProductType(Enum):
    """Product type partition. Name lookups never cross partitions."""
    PIECE = "PIECE"
    WEIGHT = "WEIGHT"


class RecordStatus(Enum):
    UNCHANGED = "UNCHANGED"
    NEW = "NEW_PRODUCT"
    CODE_CHANGED = "CODE_CHANGED"


@dataclass(frozen=True)
class HistoricalProductRecord:
    """One product row as it exists in one published version."""
    code: str
    name: str
    product_type: ProductType
    version_id: str  # originating version
    status: RecordStatus = RecordStatus.UNCHANGED
    old_code: str | None = None  # set for CODE_CHANGED
    image_url: str | None = None

    @property
    def name_key(self) -> tuple[str, ProductType]:
        return name_key(self.name, self.product_type)


def name_key(name: str, product_type: ProductType) -> tuple[str, ProductType]:
    """Case-insensitive name key, partitioned by product type."""
    return (name.lower(), product_type)


@dataclass(frozen=True)
class Unchanged:
    pass


@dataclass(frozen=True)
class CodeChanged:
    old_code: str


@dataclass(frozen=True)
class New:
    pass


@dataclass(frozen=True)
class Conflict:
    incoming_name: str
    existing_name: str


ReconciliationOutcome = Unchanged | CodeChanged | New | Conflict


@dataclass(frozen=True)
class ConflictItem:
    """Incoming row whose code exists in the current version under another name."""
    code: str
    incoming_name: str
    existing_name: str
    product_type: ProductType
    image_url: str | None = None


class ConflictDecision(Enum):
    REPLACE = "replace"  # keep the incoming name
    IGNORE = "ignore"  # keep the existing name
    KEEP_BOTH = "keep-both"


@dataclass(frozen=True)
class ConflictResolution:
    code: str
    chosen_name: str
    decision: ConflictDecision


@dataclass(frozen=True)
class ReconciliationSummary:
    total: int  # records produced (conflicts excluded)
    unchanged: int
    code_changed: int
    new: int
    removed: int
    conflicts: int
    duplicates_skipped: int


@dataclass(frozen=True)
class ReconciliationResult:
    unchanged: list[HistoricalProductRecord]
    code_changed: list[HistoricalProductRecord]
    new: list[HistoricalProductRecord]
    removed: list[HistoricalProductRecord]
    conflicts: list[ConflictItem]
    records: list[HistoricalProductRecord]  # every produced record, input order
    outcomes: list[tuple[str, ReconciliationOutcome]]  # (code, outcome) per incoming row
    summary: ReconciliationSummary

    @property
    def publishable(self) -> bool:
        return not self.conflicts


@dataclass(frozen=True)
class VersionTarget:
    """Operator-entered target version: calendar week and year."""
    week: int
    year: int

    def __post_init__(self) -> None:
        if not 1 <= self.week <= 53:
            raise ValueError(f"calendar week out of range: {self.week}")

    @property
    def label(self) -> str:
        return f"KW{self.week:02d}/{self.year}"
