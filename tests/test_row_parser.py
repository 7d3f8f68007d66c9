"""Tests for row parsing and validation."""

from decimal import Decimal

import pytest

from ledger_import.config import AmountValidationConfig, Config, ImportConfig
from ledger_import.parsing import (
    RowParser,
    compute_receipt_taxes,
    describe_taxes,
    entry_type_from_text,
)
from ledger_import.schemas import (
    EntryStatus,
    EntryType,
    FieldMapping,
    LayoutDescriptor,
    LayoutMode,
    LogicalField,
    RecordKind,
    freeze_matrix,
)

F = LogicalField

RECEIPT_LAYOUT = LayoutDescriptor(
    mode=LayoutMode.POSITIONAL, data_start_index=0, columns=tuple("ABCDEFGHIJ")
)
RECEIPT_MAPPING = FieldMapping(
    columns={
        F.DATE: "A",
        F.RECEIPT_ID: "B",
        F.SUPPLIER: "C",
        F.CATEGORY: "D",
        F.ITEM: "E",
        F.DESCRIPTION: "F",
        F.BASE_AMOUNT: "G",
        F.RATE_PRIMARY: "H",
        F.RATE_SECONDARY: "I",
        F.PAID_FLAG: "J",
    },
    auto_detected=True,
)

LEDGER_LAYOUT = LayoutDescriptor(
    mode=LayoutMode.POSITIONAL, data_start_index=0, columns=tuple("ABCDEFGH")
)
LEDGER_MAPPING = FieldMapping(
    columns={
        F.DATE: "A",
        F.TYPE: "B",
        F.BANK: "C",
        F.CATEGORY: "D",
        F.ITEM: "E",
        F.DESCRIPTION: "F",
        F.AMOUNT: "G",
        F.PAID_FLAG: "H",
    },
    auto_detected=True,
)


@pytest.fixture
def receipt_parser(reference, config, sequential_ids) -> RowParser:
    return RowParser(RecordKind.RECEIPTS, reference, config, id_factory=sequential_ids)


@pytest.fixture
def ledger_parser(reference, config, sequential_ids) -> RowParser:
    return RowParser(RecordKind.LEDGER_PT, reference, config, id_factory=sequential_ids)


def parse_receipt(parser, row):
    return parser.parse_row(row, RECEIPT_MAPPING, RECEIPT_LAYOUT, row_number=4)


def parse_ledger(parser, row):
    return parser.parse_row(row, LEDGER_MAPPING, LEDGER_LAYOUT, row_number=2)


class TestReceiptRows:
    """Tests for fiscal receipt drafts."""

    def test_valid_receipt(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "ACME", "Services", "Consulting", "", 1000, "11.5", "23", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.kind == "receipt"
        assert draft.is_valid, draft.errors
        r = draft.record
        assert r.external_id == "REC-001"
        assert r.issue_date == "2024-03-10"
        assert r.country == "PT"
        assert r.supplier_id == "SUP-ACME"
        assert r.category_id == "CAT-SERV"
        assert r.item_id == "ITM-CONS"
        assert r.base_amount == Decimal("1000")
        assert r.primary_tax_amount == Decimal("115")
        assert r.secondary_tax_amount == Decimal("230")
        assert r.net_amount == Decimal("885")
        assert r.received_amount == Decimal("1115")
        assert r.is_paid is True
        assert r.description == "Consulting"

    def test_internal_id_is_stable(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "ACME", "Services", "Consulting", "", 1000, "11.5", "23", "S")
        first = parse_receipt(receipt_parser, row)
        second = parse_receipt(receipt_parser, row)

        assert first.candidate_id != second.candidate_id
        assert first.record.internal_id == second.record.internal_id
        assert first.record.internal_id.startswith("RC_")

    def test_summary(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "ACME", "Services", "Consulting", "Março", 1000, "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.summary.date == "2024-03-10"
        assert draft.summary.label == "REC #REC-001"
        assert draft.summary.category == "Services"
        assert draft.summary.amount == draft.record.received_amount
        assert draft.summary.detail == "ACME"
        assert draft.summary.taxes == "IRS -115.00, IVA +230.00"
        assert draft.record.description == "Março"

    def test_blank_rates_use_policy_defaults(self, receipt_parser):
        row = ("2024-03-10", "REC-002", "ACME", "Services", "Consulting", "", "500,00", "", None, "N")
        draft = parse_receipt(receipt_parser, row)

        assert draft.record.primary_rate == Decimal("11.5")
        assert draft.record.secondary_rate == Decimal("23")
        assert draft.record.primary_tax_amount == Decimal("57.50")
        assert draft.record.is_paid is False

    def test_explicit_zero_rate_is_kept(self, receipt_parser):
        row = ("2024-03-10", "REC-003", "ACME", "Services", "Consulting", "", 1000, 0, "0", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.record.primary_rate == Decimal("0")
        assert draft.record.secondary_rate == Decimal("0")
        assert draft.record.received_amount == Decimal("1000")

    def test_derived_amounts_rounded_to_cents(self, receipt_parser):
        row = ("2024-03-10", "REC-004", "ACME", "Services", "Consulting", "", "333,33", "11.5", "23", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.record.primary_tax_amount == Decimal("38.33")
        assert draft.record.secondary_tax_amount == Decimal("76.67")
        assert draft.record.net_amount == Decimal("295.00")
        assert draft.record.received_amount == Decimal("371.67")

    def test_unresolved_category(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "ACME", "Servicess", "Consulting", "", 1000, "11.5", "23", "S")
        draft = parse_receipt(receipt_parser, row)

        assert not draft.is_valid
        assert draft.errors == ("Unresolved category 'Servicess'",)
        assert draft.record.category_id is None

    def test_unresolved_item_in_category(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "ACME", "Services", "Supermercado", "", 1000, "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.errors == ("Unresolved item 'Supermercado' in category 'Services'",)

    def test_unresolved_supplier(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "Globex", "Services", "Consulting", "", 1000, "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.errors == ("Unresolved supplier 'Globex'",)

    def test_supplier_match_ignores_case_and_diacritics(self, receipt_parser):
        row = ("2024-03-10", "REC-001", "cafe central", "services", "CONSULTING", "", 1000, "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.is_valid
        assert draft.record.supplier_id == "SUP-CAFE"

    def test_missing_identifier_and_bad_amount(self, receipt_parser):
        row = ("2024-03-10", "", "ACME", "Services", "Consulting", "", "abc", "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert "Missing receipt identifier" in draft.errors
        assert "Base amount must be positive" in draft.errors
        assert len(draft.errors) == 2

    def test_invalid_date(self, receipt_parser):
        row = ("31/02/2024", "REC-1", "ACME", "Services", "Consulting", "", 100, "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert draft.errors == ("Invalid date '31/02/2024'",)
        assert draft.record.issue_date == ""

    def test_period_is_not_a_date(self, receipt_parser):
        row = ("2024-03", "REC-1", "ACME", "Services", "Consulting", "", 100, "", "", "S")
        draft = parse_receipt(receipt_parser, row)

        assert not draft.is_valid
        assert draft.errors[0].startswith("Invalid date '2024-03'")

    def test_short_row_reads_missing_cells_as_empty(self, receipt_parser):
        row = ("2024-03-10", "REC-1", "ACME", "Services", "Consulting", "", 100)
        draft = parse_receipt(receipt_parser, row)

        assert draft.is_valid
        assert draft.record.is_paid is False
        assert draft.record.primary_rate == Decimal("11.5")

    def test_blank_date_skips_row(self, receipt_parser):
        assert parse_receipt(receipt_parser, ("", "REC-1", "ACME")) is None
        assert parse_receipt(receipt_parser, (None, "REC-1", "ACME")) is None
        assert parse_receipt(receipt_parser, ()) is None

    def test_withheld_secondary_tax(self, reference):
        """BR policy: INSS and IRPF are both withheld; received equals net."""
        config = Config(imports=ImportConfig(receipts_country="BR"))
        parser = RowParser(RecordKind.RECEIPTS, reference, config)
        row = ("2024-03-10", "RPA-9", "ACME", "Services", "Consulting", "", 1000, "", "", "S")
        draft = parse_receipt(parser, row)

        r = draft.record
        assert r.country == "BR"
        assert r.primary_rate == Decimal("11")
        assert r.secondary_rate == Decimal("27.5")
        assert r.primary_tax_amount == Decimal("110")
        assert r.secondary_tax_amount == Decimal("275")
        assert r.net_amount == Decimal("615")
        assert r.received_amount == Decimal("615")
        assert draft.summary.taxes == "INSS -110.00, IRPF -275.00"


class TestLedgerRows:
    """Tests for ledger entry drafts."""

    def test_valid_expense(self, ledger_parser):
        row = ("05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "Compras", "1.234,56", "Sim")
        draft = parse_ledger(ledger_parser, row)

        assert draft.kind == "ledger"
        assert draft.is_valid, draft.errors
        e = draft.record
        assert e.id == draft.candidate_id
        assert e.country == "PT"
        assert e.type == EntryType.EXPENSE
        assert e.accrual_date == "2024-01-05"
        assert e.due_date == "2024-01-05"
        assert e.amount == Decimal("1234.56")
        assert e.status == EntryStatus.PAID
        assert e.payment_method_id == "PM-NB"
        assert e.category_id == "CAT-FOOD"
        assert e.item_id == "ITM-SUP"
        assert e.origin == "IMPORT"
        assert e.linked_receipt_id is None

    def test_revenue_and_pending(self, ledger_parser):
        row = ("31/01/2024", "RECEITA", "BB", "Salário", "Salário mensal", "", "3,500.00", "não pago")
        draft = parse_ledger(ledger_parser, row)

        assert draft.record.type == EntryType.REVENUE
        assert draft.record.status == EntryStatus.PENDING
        assert draft.record.description == "Salário mensal"

    def test_country_follows_kind(self, reference, config):
        parser = RowParser(RecordKind.LEDGER_BR, reference, config)
        row = ("05/01/2024", "Despesa", "BB", "Services", "Training", "Curso", 80, "S")
        draft = parse_ledger(parser, row)

        assert draft.record.country == "BR"

    def test_unresolved_payment_method(self, ledger_parser):
        row = ("05/01/2024", "Despesa", "Caixa Geral", "Alimentação", "Supermercado", "x", 10, "S")
        draft = parse_ledger(ledger_parser, row)

        assert draft.errors == ("Unresolved payment method 'Caixa Geral'",)

    def test_missing_fields(self, ledger_parser):
        row = ("05/01/2024", "Despesa", "", "", "", "x", 10, "S")
        draft = parse_ledger(ledger_parser, row)

        assert draft.errors == ("Missing bank/payment method", "Missing category", "Missing item")

    def test_zero_amount_is_invalid(self, ledger_parser):
        row = ("05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "x", "0,00", "S")
        draft = parse_ledger(ledger_parser, row)

        assert draft.errors == ("Invalid amount (zero or unreadable)",)

    def test_negative_amount_allowed_by_default(self, ledger_parser):
        row = ("05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "Estorno", "-12,50", "S")
        draft = parse_ledger(ledger_parser, row)

        assert draft.is_valid
        assert draft.record.amount == Decimal("-12.50")

    def test_negative_amount_rejected_when_positive_required(self, reference):
        config = Config(amount_validation=AmountValidationConfig(require_positive=True))
        parser = RowParser(RecordKind.LEDGER_PT, reference, config)
        row = ("05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "Estorno", "-12,50", "S")
        draft = parse_ledger(parser, row)

        assert draft.errors == ("Amount must be positive",)

    def test_amount_above_maximum(self, reference):
        config = Config(amount_validation=AmountValidationConfig(max_amount=Decimal("100")))
        parser = RowParser(RecordKind.LEDGER_PT, reference, config)
        row = ("05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "x", "150", "S")
        draft = parse_ledger(parser, row)

        assert draft.errors == ("Amount exceeds maximum of 100",)

    def test_multiple_errors_collected(self, ledger_parser):
        row = ("hoje", "Despesa", "Caixa", "Servicess", "Consulting", "x", "", "S")
        draft = parse_ledger(ledger_parser, row)

        assert len(draft.errors) == 4
        assert draft.errors[0] == "Invalid date 'hoje'"

    def test_default_description(self, ledger_parser):
        row = ("05/01/2024", "Despesa", "NB", "Alimentação", "", "", 10, "S")
        draft = parse_ledger(ledger_parser, row)

        assert draft.record.description == "Imported entry"


class TestParseRows:
    """Tests for whole-matrix parsing."""

    def test_row_numbers_and_blank_rows(self, ledger_parser):
        layout = LayoutDescriptor(
            mode=LayoutMode.POSITIONAL, data_start_index=2, columns=tuple("ABCDEFGH")
        )
        matrix = freeze_matrix(
            [
                ("Banner",),
                ("Banner",),
                ("05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "a", 10, "S"),
                (),
                ("", "Despesa", "NB"),
                ("06/01/2024", "Receita", "NB", "Services", "Consulting", "b", 20, "S"),
            ]
        )
        drafts = ledger_parser.parse_rows(matrix, layout, LEDGER_MAPPING)

        assert [d.row_number for d in drafts] == [3, 6]
        assert [d.record.description for d in drafts] == ["a", "b"]

    def test_labeled_matrix(self, reference, config, labeled_ledger_matrix):
        layout = LayoutDescriptor(
            mode=LayoutMode.LABELED,
            data_start_index=2,
            columns=("Descrição", "Data", "Tipo", "Banco", "Categoria", "Conta", "Valor", "Pago"),
            header_row_index=1,
        )
        mapping = FieldMapping(
            columns={
                F.DATE: "Data",
                F.TYPE: "Tipo",
                F.BANK: "Banco",
                F.CATEGORY: "Categoria",
                F.ITEM: "Conta",
                F.DESCRIPTION: "Descrição",
                F.AMOUNT: "Valor",
                F.PAID_FLAG: "Pago",
            }
        )
        drafts = RowParser(RecordKind.LEDGER_PT, reference, config).parse_rows(
            labeled_ledger_matrix, layout, mapping
        )

        assert len(drafts) == 3
        assert all(d.is_valid for d in drafts), [d.errors for d in drafts]
        assert [d.record.amount for d in drafts] == [
            Decimal("1234.56"),
            Decimal("3500.00"),
            Decimal("45.9"),
        ]
        assert drafts[2].record.status == EntryStatus.PENDING


class TestHelpers:
    """Tests for parser helpers."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Receita", EntryType.REVENUE),
            ("RECEITA FIXA", EntryType.REVENUE),
            ("Revenue", EntryType.REVENUE),
            ("Crédito", EntryType.REVENUE),
            ("Despesa", EntryType.EXPENSE),
            ("", EntryType.EXPENSE),
            (None, EntryType.EXPENSE),
        ],
    )
    def test_entry_type_from_text(self, text, expected):
        assert entry_type_from_text(text) == expected

    def test_compute_receipt_taxes_additive(self, config):
        policy = config.tax_policy_for("PT")
        assert compute_receipt_taxes(Decimal("1000"), Decimal("11.5"), Decimal("23"), policy) == (
            Decimal("115.00"),
            Decimal("230.00"),
            Decimal("885.00"),
            Decimal("1115.00"),
        )

    def test_describe_taxes_uses_labels(self, config):
        pt = config.tax_policy_for("PT")
        br = config.tax_policy_for("BR")

        assert describe_taxes(pt, Decimal("57.50"), Decimal("115.00")) == "IRS -57.50, IVA +115.00"
        assert describe_taxes(br, Decimal("55.00"), Decimal("137.50")) == "INSS -55.00, IRPF -137.50"
