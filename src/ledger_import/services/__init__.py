"""
Services for the import pipeline.

- reconciliation: ImportSession state machine (detect, map, parse, review, commit)
- receipt_linking: revenue ledger entries generated for committed receipts
"""

from .receipt_linking import build_linked_ledger_entry, describe_receipt, pick_receipt_amount
from .reconciliation import (
    CommitFailure,
    CommitResult,
    ImportSession,
    ImportState,
    ReviewResult,
)

__all__ = [
    "ImportSession",
    "ImportState",
    "ReviewResult",
    "CommitResult",
    "CommitFailure",
    "build_linked_ledger_entry",
    "describe_receipt",
    "pick_receipt_amount",
]
