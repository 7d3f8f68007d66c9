"""
Fingerprint generation (CRITICAL).

This module defines THE deterministic deduplication keys.
This is the ONLY way to generate fingerprints or stable receipt ids.

Fingerprint Formats:
1. Ledger entries: TX|{hash}
   - hash = djb2(country|date|amount|category|item|payment_method|description)
2. Fiscal receipts: RC|{hash}
   - hash = djb2(country|receipt_id|issue_date|supplier|base|received)
3. Stable receipt id: RC_{hash}
   - hash = djb2(receipt_id|issue_date|supplier|received)
   - Used as the receipt's persistence key (no "/" allowed in store keys)

The fingerprint must be:
- Stable: Same inputs always produce same output
- Short: 32-bit hash rendered as unpadded lowercase hex
- Reproducible: Can be regenerated from stored records

Collisions between different canonical strings are possible with a 32-bit
hash. The canonical string is returned alongside so stores can keep it.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..cells.coercion import normalize_key, to_decimal_amount
from .records import DraftRecord, FiscalReceipt, LedgerEntry

# ============================================================================
# SSOT Constants for Fingerprint Generation
# ============================================================================

# Separator between canonical components
CANONICAL_SEPARATOR = "|"

# Kind tags
LEDGER_TAG = "TX|"
RECEIPT_TAG = "RC|"
STABLE_RECEIPT_PREFIX = "RC_"

_DJB2_SEED = 5381
_UINT32_MASK = 0xFFFFFFFF
_CENT = Decimal("0.01")


def djb2_hash(text: str) -> str:
    """
    32-bit djb2 (xor variant) of a string as unpadded lowercase hex.

    h = (h * 33) ^ char, truncated to 32 bits at each step.
    """
    h = _DJB2_SEED
    for ch in text:
        h = (((h << 5) + h) & _UINT32_MASK) ^ ord(ch)
    return format(h & _UINT32_MASK, "x")


def normalize_amount(amount: Decimal | str | float | int | None) -> str:
    """
    Normalize amount to a fixed 2-decimal string for hashing.

    Strings go through the cell coercion rule, so "1.234,56" and
    "1,234.56" produce the same key.
    """
    if amount is None:
        return "0.00"
    if not isinstance(amount, Decimal):
        amount = to_decimal_amount(amount)
    return f"{amount.quantize(_CENT, rounding=ROUND_HALF_UP)}"


def _canonical(parts: list[Any]) -> str:
    return CANONICAL_SEPARATOR.join(parts)


def canonical_ledger_key(
    country: str,
    date: str,
    amount: Decimal | str | float,
    category_id: str | None,
    item_id: str | None,
    payment_method_id: str | None,
    description: str | None,
) -> str:
    """Build the canonical identity string of a ledger entry."""
    return _canonical(
        [
            normalize_key(country),
            normalize_key(date),
            normalize_amount(amount),
            normalize_key(category_id),
            normalize_key(item_id),
            normalize_key(payment_method_id),
            normalize_key(description),
        ]
    )


def canonical_receipt_key(
    country: str,
    receipt_id: str,
    issue_date: str,
    supplier_id: str | None,
    base_amount: Decimal | str | float,
    received_amount: Decimal | str | float,
) -> str:
    """Build the canonical identity string of a fiscal receipt."""
    return _canonical(
        [
            normalize_key(country),
            normalize_key(receipt_id),
            normalize_key(issue_date),
            normalize_key(supplier_id),
            normalize_amount(base_amount),
            normalize_amount(received_amount),
        ]
    )


def compute_ledger_fingerprint(entry: LedgerEntry) -> str:
    """
    Compute the deduplication fingerprint of a ledger entry.

    Hash components (in order):
    - country, accrual date
    - amount: Normalized to 2 decimal places
    - category id, item id, payment method id
    - description (normalized)

    Examples:
        >>> compute_ledger_fingerprint(entry)
        'TX|5d41402a'
    """
    canonical = canonical_ledger_key(
        country=entry.country,
        date=entry.accrual_date,
        amount=entry.amount,
        category_id=entry.category_id,
        item_id=entry.item_id,
        payment_method_id=entry.payment_method_id,
        description=entry.description,
    )
    return f"{LEDGER_TAG}{djb2_hash(canonical)}"


def compute_receipt_fingerprint(receipt: FiscalReceipt) -> str:
    """
    Compute the deduplication fingerprint of a fiscal receipt.

    Hash components (in order):
    - country, receipt number, issue date, supplier id
    - base amount and received amount (2 decimal places)
    """
    canonical = canonical_receipt_key(
        country=receipt.country,
        receipt_id=receipt.external_id,
        issue_date=receipt.issue_date,
        supplier_id=receipt.supplier_id,
        base_amount=receipt.base_amount,
        received_amount=receipt.received_amount,
    )
    return f"{RECEIPT_TAG}{djb2_hash(canonical)}"


def stable_receipt_internal_id(
    receipt_id: str,
    issue_date: str,
    supplier_id: str | None,
    received_amount: Decimal | str | float,
) -> str:
    """
    Generate the stable persistence id of a receipt.

    Re-importing the same receipt always yields the same internal id,
    so a retried commit overwrites instead of duplicating.
    """
    canonical = _canonical(
        [
            normalize_key(receipt_id),
            normalize_key(issue_date),
            normalize_key(supplier_id),
            normalize_amount(received_amount),
        ]
    )
    return f"{STABLE_RECEIPT_PREFIX}{djb2_hash(canonical)}"


def canonical_key(draft: DraftRecord) -> str:
    """Canonical identity string of a draft (what the fingerprint hashes)."""
    if draft.kind == "receipt":
        r = draft.record
        return canonical_receipt_key(
            r.country, r.external_id, r.issue_date, r.supplier_id, r.base_amount, r.received_amount
        )
    e = draft.record
    return canonical_ledger_key(
        e.country,
        e.accrual_date,
        e.amount,
        e.category_id,
        e.item_id,
        e.payment_method_id,
        e.description,
    )


def fingerprint(draft: DraftRecord) -> str:
    """
    Compute the fingerprint of a draft record.

    Args:
        draft: LedgerEntryDraft or FiscalReceiptDraft

    Returns:
        "TX|<hex>" for ledger drafts, "RC|<hex>" for receipt drafts
    """
    if draft.kind == "receipt":
        return compute_receipt_fingerprint(draft.record)
    if draft.kind == "ledger":
        return compute_ledger_fingerprint(draft.record)
    raise ValueError(f"Unsupported draft kind: {draft.kind}")


def is_fingerprint(value: str | None) -> bool:
    """Check whether a string looks like a generated fingerprint."""
    if not value:
        return False
    for tag in (LEDGER_TAG, RECEIPT_TAG):
        if value.startswith(tag):
            body = value[len(tag):]
            return 0 < len(body) <= 8 and all(c in "0123456789abcdef" for c in body)
    return False
