"""
SSOT (Single Source of Truth) schemas for the pipeline.

These canonical schemas are the ONLY models used across all modules.
No duplicated "near-same" models allowed.
"""

from .fingerprint import (
    CANONICAL_SEPARATOR,
    LEDGER_TAG,
    RECEIPT_TAG,
    STABLE_RECEIPT_PREFIX,
    canonical_key,
    canonical_ledger_key,
    canonical_receipt_key,
    compute_ledger_fingerprint,
    compute_receipt_fingerprint,
    djb2_hash,
    fingerprint,
    is_fingerprint,
    normalize_amount,
    stable_receipt_internal_id,
)
from .layout import (
    FieldMapping,
    LayoutDescriptor,
    LayoutMode,
    LogicalField,
    RawMatrix,
    RecordKind,
    freeze_matrix,
    optional_fields_for,
    required_fields_for,
)
from .records import (
    IMPORT_ORIGIN,
    DraftRecord,
    EntryStatus,
    EntryType,
    FiscalReceipt,
    FiscalReceiptDraft,
    LedgerEntry,
    LedgerEntryDraft,
    PreviewSummary,
)

__all__ = [
    # Layout (structural half)
    "RawMatrix",
    "freeze_matrix",
    "LayoutMode",
    "LayoutDescriptor",
    "FieldMapping",
    "LogicalField",
    "RecordKind",
    "required_fields_for",
    "optional_fields_for",
    # Records (canonical output schema)
    "LedgerEntry",
    "FiscalReceipt",
    "EntryType",
    "EntryStatus",
    "IMPORT_ORIGIN",
    "PreviewSummary",
    "LedgerEntryDraft",
    "FiscalReceiptDraft",
    "DraftRecord",
    # Fingerprints
    "fingerprint",
    "compute_ledger_fingerprint",
    "compute_receipt_fingerprint",
    "stable_receipt_internal_id",
    "canonical_key",
    "canonical_ledger_key",
    "canonical_receipt_key",
    "djb2_hash",
    "normalize_amount",
    "is_fingerprint",
    "CANONICAL_SEPARATOR",
    "LEDGER_TAG",
    "RECEIPT_TAG",
    "STABLE_RECEIPT_PREFIX",
]
