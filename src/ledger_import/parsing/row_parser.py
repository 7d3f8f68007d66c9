"""
Row parser and validator.

Turns each data row of a RawMatrix into a draft record:
1. Reads the mapped cells (missing cells read as None)
2. Coerces them through `cells.coercion`
3. Resolves names against the reference snapshot
4. Derives status / tax amounts
5. Collects every validation problem as a string on the draft

Rows whose DATE cell is blank are skipped (separators, end of data).
Validation problems never raise; an invalid draft is still returned so the
operator can review it.
"""

import logging
import uuid
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from ..cells.coercion import (
    InvalidDateError,
    cell_text,
    is_blank,
    is_full_date,
    normalize_key,
    to_boolean_flag,
    to_decimal_amount,
    to_iso_date,
)
from ..config import Config, SecondaryTaxTreatment, TaxPolicy
from ..reference.catalog import Category, ReferenceData
from ..schemas.fingerprint import stable_receipt_internal_id
from ..schemas.layout import FieldMapping, LayoutDescriptor, LogicalField, RawMatrix, RecordKind
from ..schemas.records import (
    DraftRecord,
    EntryStatus,
    EntryType,
    FiscalReceipt,
    FiscalReceiptDraft,
    LedgerEntry,
    LedgerEntryDraft,
    PreviewSummary,
)

logger = logging.getLogger(__name__)

F = LogicalField

# Normalized type text containing any of these is a revenue entry
REVENUE_SYNONYMS = ("receita", "revenue", "income", "entrada", "credito")

DEFAULT_LEDGER_DESCRIPTION = "Imported entry"
DEFAULT_RECEIPT_DESCRIPTION = "Imported receipt"

_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _new_candidate_id() -> str:
    return uuid.uuid4().hex[:9]


def compute_receipt_taxes(
    base: Decimal, primary_rate: Decimal, secondary_rate: Decimal, policy: TaxPolicy
) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """
    Derive receipt tax amounts.

    The primary tax is always withheld. The secondary tax is either added to
    what the issuer receives (ADDITIVE) or withheld as well (WITHHELD).

    Returns:
        (primary_tax_amount, secondary_tax_amount, net_amount, received_amount)
    """
    primary_amount = _money(base * primary_rate / _HUNDRED)
    secondary_amount = _money(base * secondary_rate / _HUNDRED)

    if policy.secondary_treatment == SecondaryTaxTreatment.WITHHELD:
        net = _money(base - primary_amount - secondary_amount)
        received = net
    else:
        net = _money(base - primary_amount)
        received = _money(net + secondary_amount)

    return primary_amount, secondary_amount, net, received


def describe_taxes(policy: TaxPolicy, primary_amount: Decimal, secondary_amount: Decimal) -> str:
    """Tax breakdown using the jurisdiction labels, e.g. "IRS -115.00, IVA +230.00"."""
    secondary_sign = "-" if policy.secondary_treatment == SecondaryTaxTreatment.WITHHELD else "+"
    return (
        f"{policy.primary_label} -{primary_amount}, "
        f"{policy.secondary_label} {secondary_sign}{secondary_amount}"
    )


def entry_type_from_text(text: Any) -> EntryType:
    """REVENUE if the normalized text contains a revenue synonym, else EXPENSE."""
    normalized = normalize_key(text)
    if any(token in normalized for token in REVENUE_SYNONYMS):
        return EntryType.REVENUE
    return EntryType.EXPENSE


class RowParser:
    """
    Parses data rows for one record kind against one reference snapshot.

    The parser holds no per-row state; the same instance can parse any number
    of rows.
    """

    def __init__(
        self,
        kind: RecordKind,
        reference: ReferenceData,
        config: Optional[Config] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize the parser.

        Args:
            kind: Target record kind
            reference: Reference data snapshot for name resolution
            config: Configuration (tax policies, amount validation)
            id_factory: Candidate id generator (random by default)
        """
        self.kind = kind
        self.reference = reference
        self.config = config or Config()
        self.id_factory = id_factory or _new_candidate_id

        if kind.is_ledger:
            self.country = kind.ledger_country or ""
            self.tax_policy: Optional[TaxPolicy] = None
        else:
            self.country = self.config.imports.receipts_country.upper()
            self.tax_policy = self.config.tax_policy_for(self.country)

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    @staticmethod
    def _cell(
        row: tuple[Any, ...], mapping: FieldMapping, layout: LayoutDescriptor, field: LogicalField
    ) -> Any:
        column = mapping.column_for(field)
        if column is None:
            return None
        idx = layout.index_of(column)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def _parse_date(self, cell: Any, errors: list[str]) -> str:
        try:
            iso = to_iso_date(cell)
        except InvalidDateError:
            errors.append(f"Invalid date '{cell_text(cell)}'")
            return ""
        if not is_full_date(iso):
            errors.append(f"Invalid date '{cell_text(cell)}' (period without day)")
            return ""
        return iso

    def _check_max(self, amount: Decimal, label: str, errors: list[str]) -> None:
        max_amount = self.config.amount_validation.max_amount
        if abs(amount) > max_amount:
            errors.append(f"{label} exceeds maximum of {max_amount}")

    def _resolve_category_item(
        self, category_name: str, item_name: str, errors: list[str]
    ) -> tuple[Optional[Category], Optional[str]]:
        if not category_name:
            errors.append("Missing category")
        if not item_name:
            errors.append("Missing item")

        category = self.reference.lookup_category_by_name(category_name) if category_name else None
        if category_name and category is None:
            errors.append(f"Unresolved category '{category_name}'")

        item_id = None
        if category is not None and item_name:
            item = category.find_item(item_name)
            if item is None:
                errors.append(f"Unresolved item '{item_name}' in category '{category.name}'")
            else:
                item_id = item.id

        return category, item_id

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_row(
        self,
        raw_row: tuple[Any, ...],
        mapping: FieldMapping,
        layout: LayoutDescriptor,
        row_number: int,
    ) -> Optional[DraftRecord]:
        """
        Parse one data row.

        Args:
            raw_row: Row cells
            mapping: Confirmed field mapping
            layout: Layout the mapping refers to
            row_number: 1-based source row number (for review display)

        Returns:
            Draft record, or None if the DATE cell is blank
        """
        date_cell = self._cell(raw_row, mapping, layout, F.DATE)
        if is_blank(date_cell):
            return None

        if self.kind == RecordKind.RECEIPTS:
            draft: DraftRecord = self._parse_receipt(raw_row, mapping, layout, row_number, date_cell)
        else:
            draft = self._parse_ledger(raw_row, mapping, layout, row_number, date_cell)

        if draft.errors:
            logger.debug("Row %d invalid: %s", row_number, "; ".join(draft.errors))
        return draft

    def parse_rows(
        self, matrix: RawMatrix, layout: LayoutDescriptor, mapping: FieldMapping
    ) -> list[DraftRecord]:
        """Parse every data row from `layout.data_start_index`, in source order."""
        drafts: list[DraftRecord] = []
        start = layout.data_start_index
        for offset, row in enumerate(matrix[start:]):
            draft = self.parse_row(row, mapping, layout, row_number=start + offset + 1)
            if draft is not None:
                drafts.append(draft)

        invalid = sum(1 for d in drafts if not d.is_valid)
        logger.info(
            "Parsed %d %s rows (%d valid, %d invalid)",
            len(drafts),
            self.kind.value,
            len(drafts) - invalid,
            invalid,
        )
        return drafts

    # ------------------------------------------------------------------
    # Record kinds
    # ------------------------------------------------------------------

    def _parse_ledger(
        self,
        row: tuple[Any, ...],
        mapping: FieldMapping,
        layout: LayoutDescriptor,
        row_number: int,
        date_cell: Any,
    ) -> LedgerEntryDraft:
        errors: list[str] = []
        iso_date = self._parse_date(date_cell, errors)

        type_text = cell_text(self._cell(row, mapping, layout, F.TYPE))
        bank_name = cell_text(self._cell(row, mapping, layout, F.BANK))
        category_name = cell_text(self._cell(row, mapping, layout, F.CATEGORY))
        item_name = cell_text(self._cell(row, mapping, layout, F.ITEM))
        description = cell_text(self._cell(row, mapping, layout, F.DESCRIPTION))
        amount = to_decimal_amount(self._cell(row, mapping, layout, F.AMOUNT))
        is_paid = to_boolean_flag(self._cell(row, mapping, layout, F.PAID_FLAG))

        payment_method_id = None
        if not bank_name:
            errors.append("Missing bank/payment method")
        else:
            payment_method_id = self.reference.lookup_payment_method_by_name(bank_name)
            if payment_method_id is None:
                errors.append(f"Unresolved payment method '{bank_name}'")

        category, item_id = self._resolve_category_item(category_name, item_name, errors)

        if amount == 0:
            errors.append("Invalid amount (zero or unreadable)")
        elif amount < 0 and self.config.amount_validation.require_positive:
            errors.append("Amount must be positive")
        self._check_max(amount, "Amount", errors)

        candidate_id = self.id_factory()
        entry = LedgerEntry(
            id=candidate_id,
            country=self.country,
            type=entry_type_from_text(type_text),
            accrual_date=iso_date,
            due_date=iso_date,
            description=description or item_name or DEFAULT_LEDGER_DESCRIPTION,
            amount=amount,
            status=EntryStatus.from_paid_flag(is_paid),
            payment_method_id=payment_method_id,
            category_id=category.id if category else None,
            item_id=item_id,
        )

        return LedgerEntryDraft(
            candidate_id=candidate_id,
            row_number=row_number,
            record=entry,
            summary=PreviewSummary(
                date=iso_date,
                label=entry.description,
                category=category_name,
                amount=amount,
                detail=bank_name,
            ),
            errors=tuple(errors),
        )

    def _rate(self, cell: Any, default: Decimal) -> Decimal:
        if is_blank(cell):
            return default
        return to_decimal_amount(cell)

    def _parse_receipt(
        self,
        row: tuple[Any, ...],
        mapping: FieldMapping,
        layout: LayoutDescriptor,
        row_number: int,
        date_cell: Any,
    ) -> FiscalReceiptDraft:
        policy = self.tax_policy or self.config.tax_policy_for(self.country)

        errors: list[str] = []
        iso_date = self._parse_date(date_cell, errors)

        receipt_id = cell_text(self._cell(row, mapping, layout, F.RECEIPT_ID))
        supplier_name = cell_text(self._cell(row, mapping, layout, F.SUPPLIER))
        category_name = cell_text(self._cell(row, mapping, layout, F.CATEGORY))
        item_name = cell_text(self._cell(row, mapping, layout, F.ITEM))
        description = cell_text(self._cell(row, mapping, layout, F.DESCRIPTION))
        base = to_decimal_amount(self._cell(row, mapping, layout, F.BASE_AMOUNT))
        primary_rate = self._rate(
            self._cell(row, mapping, layout, F.RATE_PRIMARY), policy.primary_rate
        )
        secondary_rate = self._rate(
            self._cell(row, mapping, layout, F.RATE_SECONDARY), policy.secondary_rate
        )
        is_paid = to_boolean_flag(self._cell(row, mapping, layout, F.PAID_FLAG))

        if not receipt_id:
            errors.append("Missing receipt identifier")

        supplier_id = None
        if not supplier_name:
            errors.append("Missing supplier")
        else:
            supplier_id = self.reference.lookup_supplier_by_name(supplier_name)
            if supplier_id is None:
                errors.append(f"Unresolved supplier '{supplier_name}'")

        category, item_id = self._resolve_category_item(category_name, item_name, errors)

        if base <= 0:
            errors.append("Base amount must be positive")
        self._check_max(base, "Base amount", errors)
        if primary_rate < 0 or secondary_rate < 0:
            errors.append("Tax rates must not be negative")

        primary_amount, secondary_amount, net, received = compute_receipt_taxes(
            base, primary_rate, secondary_rate, policy
        )

        receipt = FiscalReceipt(
            internal_id=stable_receipt_internal_id(receipt_id, iso_date, supplier_id, received),
            external_id=receipt_id,
            country=self.country,
            issue_date=iso_date,
            supplier_id=supplier_id,
            category_id=category.id if category else None,
            item_id=item_id,
            base_amount=base,
            primary_rate=primary_rate,
            secondary_rate=secondary_rate,
            primary_tax_amount=primary_amount,
            secondary_tax_amount=secondary_amount,
            net_amount=net,
            received_amount=received,
            is_paid=is_paid,
            description=description or item_name or DEFAULT_RECEIPT_DESCRIPTION,
        )

        return FiscalReceiptDraft(
            candidate_id=self.id_factory(),
            row_number=row_number,
            record=receipt,
            summary=PreviewSummary(
                date=iso_date,
                label=f"REC #{receipt_id}",
                category=category_name,
                amount=received,
                detail=supplier_name,
                taxes=describe_taxes(policy, primary_amount, secondary_amount),
            ),
            errors=tuple(errors),
        )
