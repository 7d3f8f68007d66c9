"""
Canonical record schemas (SSOT).

LedgerEntry and FiscalReceipt are the ONLY record shapes handed to the
persistence layer. Draft records wrap them with their validation state and
are a tagged union over the record kind:

    DraftRecord = LedgerEntryDraft | FiscalReceiptDraft

Drafts are created once per source row and never mutated afterwards.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Optional, Union

IMPORT_ORIGIN = "IMPORT"


class EntryType(str, Enum):
    """Ledger entry direction."""

    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class EntryStatus(str, Enum):
    """Ledger entry payment status."""

    PAID = "PAID"
    PENDING = "PENDING"

    @classmethod
    def from_paid_flag(cls, is_paid: bool) -> "EntryStatus":
        return cls.PAID if is_paid else cls.PENDING


def _serialize(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class LedgerEntry:
    """
    A ledger entry (revenue or expense line).

    Amounts are Decimal with dot as decimal separator.
    Dates are ISO format YYYY-MM-DD.
    """

    id: str
    country: str
    type: EntryType
    accrual_date: str
    due_date: str
    description: str
    amount: Decimal
    status: EntryStatus
    payment_method_id: Optional[str] = None
    category_id: Optional[str] = None
    item_id: Optional[str] = None
    supplier_id: Optional[str] = None
    origin: str = IMPORT_ORIGIN
    linked_receipt_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {k: _serialize(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class FiscalReceipt:
    """
    A fiscal receipt issued to a supplier/client.

    `internal_id` is the stable persistence key; `external_id` is the
    receipt number printed on the document.
    Rates are percentages (23 means 23%).
    """

    internal_id: str
    external_id: str
    country: str
    issue_date: str
    supplier_id: Optional[str]
    category_id: Optional[str]
    item_id: Optional[str]
    base_amount: Decimal
    primary_rate: Decimal
    secondary_rate: Decimal
    primary_tax_amount: Decimal
    secondary_tax_amount: Decimal
    net_amount: Decimal
    received_amount: Decimal
    is_paid: bool
    description: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {k: _serialize(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class PreviewSummary:
    """Human-readable line shown in the review table."""

    date: str
    label: str
    category: str
    amount: Decimal
    detail: str = ""
    taxes: str = ""


@dataclass(frozen=True)
class LedgerEntryDraft:
    """Parsed, not yet committed ledger entry."""

    candidate_id: str
    row_number: int
    record: LedgerEntry
    summary: PreviewSummary
    errors: tuple[str, ...] = field(default_factory=tuple)
    kind: Literal["ledger"] = "ledger"

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class FiscalReceiptDraft:
    """Parsed, not yet committed fiscal receipt."""

    candidate_id: str
    row_number: int
    record: FiscalReceipt
    summary: PreviewSummary
    errors: tuple[str, ...] = field(default_factory=tuple)
    kind: Literal["receipt"] = "receipt"

    @property
    def is_valid(self) -> bool:
        return not self.errors


DraftRecord = Union[LedgerEntryDraft, FiscalReceiptDraft]
