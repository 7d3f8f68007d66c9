"""
Column mapping.

Resolves logical record fields to layout columns by convention, synonym
matching, or an operator-supplied mapping.
"""

from .mapper import ColumnMapper, IncompleteMappingError, MappingDraft
from .synonyms import (
    LEDGER_POSITIONS,
    LEDGER_SYNONYMS,
    RECEIPT_POSITIONS,
    RECEIPT_SYNONYMS,
    positions_for,
    synonyms_for,
)

__all__ = [
    "ColumnMapper",
    "IncompleteMappingError",
    "MappingDraft",
    "LEDGER_POSITIONS",
    "LEDGER_SYNONYMS",
    "RECEIPT_POSITIONS",
    "RECEIPT_SYNONYMS",
    "positions_for",
    "synonyms_for",
]
