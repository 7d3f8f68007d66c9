"""
Row parsing and validation.
"""

from .row_parser import (
    DEFAULT_LEDGER_DESCRIPTION,
    DEFAULT_RECEIPT_DESCRIPTION,
    REVENUE_SYNONYMS,
    RowParser,
    compute_receipt_taxes,
    describe_taxes,
    entry_type_from_text,
)

__all__ = [
    "RowParser",
    "compute_receipt_taxes",
    "describe_taxes",
    "entry_type_from_text",
    "REVENUE_SYNONYMS",
    "DEFAULT_LEDGER_DESCRIPTION",
    "DEFAULT_RECEIPT_DESCRIPTION",
]
