"""
Receipt to ledger linking.

Every committed receipt produces exactly one REVENUE ledger entry that
references it. The linked entry id is derived from the receipt's stable
internal id, so re-committing a receipt updates the same entry.
"""

from decimal import Decimal
from typing import Optional

from ..schemas.records import (
    IMPORT_ORIGIN,
    EntryStatus,
    EntryType,
    FiscalReceipt,
    LedgerEntry,
)

LINKED_ENTRY_PREFIX = "TX_"


def linked_entry_id(receipt: FiscalReceipt) -> str:
    """Ledger entry id of the entry generated for a receipt."""
    return f"{LINKED_ENTRY_PREFIX}{receipt.internal_id}"


def pick_receipt_amount(receipt: FiscalReceipt) -> Decimal:
    """First finite of received, net and base amount.

    A computed zero is a real amount and is returned as is.
    """
    for amount in (receipt.received_amount, receipt.net_amount, receipt.base_amount):
        if amount is not None and amount.is_finite():
            return amount
    return Decimal("0")


def describe_receipt(receipt: FiscalReceipt) -> str:
    """Ledger description for a receipt: "Consulting (#REC-001)"."""
    base = (receipt.description or "").strip()
    number = (receipt.external_id or "").strip()
    if base and number:
        return f"{base} (#{number})"
    if base:
        return base
    if number:
        return f"Receipt (#{number})"
    return "Receipt"


def build_linked_ledger_entry(
    receipt: FiscalReceipt, payment_method_id: Optional[str]
) -> LedgerEntry:
    """
    Build the revenue ledger entry for a committed receipt.

    Args:
        receipt: Committed receipt
        payment_method_id: Default payment method of the receipt's country

    Returns:
        LedgerEntry with linked_receipt_id set to the receipt's internal id
    """
    return LedgerEntry(
        id=linked_entry_id(receipt),
        country=receipt.country,
        type=EntryType.REVENUE,
        accrual_date=receipt.issue_date,
        due_date=receipt.issue_date,
        description=describe_receipt(receipt),
        amount=pick_receipt_amount(receipt),
        status=EntryStatus.from_paid_flag(receipt.is_paid),
        payment_method_id=payment_method_id,
        category_id=receipt.category_id,
        item_id=receipt.item_id,
        supplier_id=receipt.supplier_id,
        origin=IMPORT_ORIGIN,
        linked_receipt_id=receipt.internal_id,
    )
