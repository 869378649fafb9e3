"""Domain models for the catalogue ingestion core.

Rows and skip diagnostics come out of the layout detector, images out of the
image extractor, and historical records / outcomes out of reconciliation.
"""

from .catalog import (
    CodeChanged,
    Conflict,
    ConflictDecision,
    ConflictItem,
    ConflictResolution,
    HistoricalProductRecord,
    New,
    ProductType,
    ReconciliationOutcome,
    ReconciliationResult,
    ReconciliationSummary,
    RecordStatus,
    Unchanged,
    VersionTarget,
)
from .config_models import IngestConfig, ImageConfig, LayoutConfig, MatchingConfig, UploadConfig
from .images import ExtractedImage, ExtractionTier, ImageAssignment, ImageExtractionResult, MatchResult, MatchTier
from .parse_result import ColumnLayout, LayoutKind, ParseResult
from .row_data import CellPosition, NormalizedRow, SameNameEntry, SkippedRowRecord, SkipReason

__all__ = [
    # Configuration models
    "IngestConfig",
    "LayoutConfig",
    "ImageConfig",
    "MatchingConfig",
    "UploadConfig",
    # Row extraction
    "CellPosition",
    "NormalizedRow",
    "SkipReason",
    "SkippedRowRecord",
    "SameNameEntry",
    "LayoutKind",
    "ColumnLayout",
    "ParseResult",
    # Images
    "ExtractedImage",
    "ExtractionTier",
    "ImageExtractionResult",
    "ImageAssignment",
    "MatchResult",
    "MatchTier",
    # Catalogue versions
    "ProductType",
    "RecordStatus",
    "HistoricalProductRecord",
    "ReconciliationOutcome",
    "Unchanged",
    "CodeChanged",
    "New",
    "Conflict",
    "ConflictItem",
    "ConflictDecision",
    "ConflictResolution",
    "ReconciliationSummary",
    "ReconciliationResult",
    "VersionTarget",
]
