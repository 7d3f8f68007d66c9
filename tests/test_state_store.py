"""Tests for state store."""

from decimal import Decimal

import pytest

from ledger_import.schemas import (
    EntryStatus,
    EntryType,
    FiscalReceipt,
    LedgerEntry,
    compute_ledger_fingerprint,
    compute_receipt_fingerprint,
)
from ledger_import.state_store import RecordStore, StateStore


def make_entry(**overrides) -> LedgerEntry:
    values = dict(
        id="c1",
        country="PT",
        type=EntryType.EXPENSE,
        accrual_date="2024-01-05",
        due_date="2024-01-05",
        description="Compras",
        amount=Decimal("12.50"),
        status=EntryStatus.PAID,
        payment_method_id="PM-NB",
        category_id="CAT-FOOD",
        item_id="ITM-SUP",
    )
    values.update(overrides)
    return LedgerEntry(**values)


def make_receipt(**overrides) -> FiscalReceipt:
    values = dict(
        internal_id="RC_abc123",
        external_id="REC-001",
        country="PT",
        issue_date="2024-03-10",
        supplier_id="SUP-ACME",
        category_id="CAT-SERV",
        item_id="ITM-CONS",
        base_amount=Decimal("1000"),
        primary_rate=Decimal("11.5"),
        secondary_rate=Decimal("23"),
        primary_tax_amount=Decimal("115.00"),
        secondary_tax_amount=Decimal("230.00"),
        net_amount=Decimal("885.00"),
        received_amount=Decimal("1115.00"),
        is_paid=True,
        description="Consulting",
    )
    values.update(overrides)
    return FiscalReceipt(**values)


class TestStateStore:
    """Tests for SQLite state store."""

    def test_init_creates_db(self, temp_db):
        """Initializing creates database file."""
        StateStore(temp_db)
        assert temp_db.exists()

    def test_init_creates_parent_directory(self, tmp_path):
        db = tmp_path / "nested" / "dir" / "state.db"
        StateStore(db)
        assert db.exists()

    def test_init_creates_tables(self, store):
        """All required tables are created."""
        conn = store._get_connection()
        try:
            tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
            table_names = [t[0] for t in tables]

            assert "ledger_entries" in table_names
            assert "fiscal_receipts" in table_names
            assert "import_runs" in table_names
            assert "schema_version" in table_names
        finally:
            conn.close()

    def test_reopen_is_idempotent(self, temp_db):
        """Opening an existing database keeps its data."""
        store = StateStore(temp_db)
        entry = make_entry()
        store.commit_ledger_entry(entry, compute_ledger_fingerprint(entry))

        reopened = StateStore(temp_db)
        assert reopened.get_stats()["ledger_entries"] == 1

    def test_is_record_store(self, store):
        assert isinstance(store, RecordStore)


class TestLedgerEntries:
    """Tests for ledger entry persistence."""

    def test_insert(self, store):
        entry = make_entry()
        fp = compute_ledger_fingerprint(entry)

        assert store.commit_ledger_entry(entry, fp) is True

        stored = store.get_ledger_entry(fp)
        assert stored["id"] == "c1"
        assert stored["amount"] == "12.50"
        assert stored["type"] == "EXPENSE"
        assert stored["status"] == "PAID"
        assert stored["origin"] == "IMPORT"

    def test_recommit_updates(self, store):
        """Same fingerprint overwrites instead of duplicating."""
        entry = make_entry()
        fp = compute_ledger_fingerprint(entry)
        store.commit_ledger_entry(entry, fp)

        again = make_entry(id="c2", status=EntryStatus.PENDING)
        assert store.commit_ledger_entry(again, fp) is False

        assert store.get_stats()["ledger_entries"] == 1
        assert store.get_ledger_entry(fp)["id"] == "c2"
        assert store.get_ledger_entry(fp)["status"] == "PENDING"

    def test_missing_entry(self, store):
        assert store.get_ledger_entry("TX|0") is None

    def test_canonical_key_stored(self, store):
        entry = make_entry()
        fp = compute_ledger_fingerprint(entry)
        store.commit_ledger_entry(entry, fp)

        assert store.get_canonical_key(fp) == "pt|2024-01-05|12.50|cat-food|itm-sup|pm-nb|compras"

    def test_linked_entries(self, store):
        linked = make_entry(id="TX_RC_abc123", linked_receipt_id="RC_abc123")
        plain = make_entry(description="Outra")
        store.commit_ledger_entry(linked, compute_ledger_fingerprint(linked))
        store.commit_ledger_entry(plain, compute_ledger_fingerprint(plain))

        entries = store.get_ledger_entries_for_receipt("RC_abc123")
        assert [e["id"] for e in entries] == ["TX_RC_abc123"]
        assert store.get_stats()["linked_ledger_entries"] == 1

    def test_linked_entry_keyed_by_receipt(self, store):
        """A receipt keeps one linked entry when its content changes."""
        first = make_entry(id="TX_RC_abc123", description="First", linked_receipt_id="RC_abc123")
        second = make_entry(id="TX_RC_abc123", description="Second", linked_receipt_id="RC_abc123")
        first_fp = compute_ledger_fingerprint(first)
        second_fp = compute_ledger_fingerprint(second)
        assert first_fp != second_fp

        assert store.commit_ledger_entry(first, first_fp) is True
        assert store.commit_ledger_entry(second, second_fp) is False

        entries = store.get_ledger_entries_for_receipt("RC_abc123")
        assert [e["description"] for e in entries] == ["Second"]
        assert store.existing_fingerprints() == {second_fp}
        assert store.get_ledger_entry(first_fp) is None

    def test_unlinked_entries_still_keyed_by_fingerprint(self, store):
        first = make_entry(description="First")
        second = make_entry(description="Second")
        store.commit_ledger_entry(first, compute_ledger_fingerprint(first))
        store.commit_ledger_entry(second, compute_ledger_fingerprint(second))

        assert store.get_stats()["ledger_entries"] == 2


class TestFiscalReceipts:
    """Tests for receipt persistence."""

    def test_insert(self, store):
        receipt = make_receipt()
        fp = compute_receipt_fingerprint(receipt)

        assert store.commit_fiscal_receipt(receipt, fp) is True

        stored = store.get_fiscal_receipt("RC_abc123")
        assert stored["external_id"] == "REC-001"
        assert stored["received_amount"] == "1115.00"
        assert stored["is_paid"] is True

    def test_recommit_keyed_by_internal_id(self, store):
        receipt = make_receipt()
        store.commit_fiscal_receipt(receipt, compute_receipt_fingerprint(receipt))

        edited = make_receipt(description="Consulting (March)", is_paid=False)
        assert store.commit_fiscal_receipt(edited, compute_receipt_fingerprint(edited)) is False

        assert store.get_stats()["fiscal_receipts"] == 1
        assert store.get_fiscal_receipt("RC_abc123")["is_paid"] is False

    def test_canonical_key_stored(self, store):
        receipt = make_receipt()
        fp = compute_receipt_fingerprint(receipt)
        store.commit_fiscal_receipt(receipt, fp)

        assert store.get_canonical_key(fp) == "pt|rec-001|2024-03-10|sup-acme|1000.00|1115.00"

    def test_missing_receipt(self, store):
        assert store.get_fiscal_receipt("RC_missing") is None


class TestDeduplication:
    """Tests for fingerprint lookups."""

    def test_empty_store(self, store):
        assert store.existing_fingerprints() == set()

    def test_includes_both_kinds(self, store):
        entry = make_entry()
        receipt = make_receipt()
        entry_fp = compute_ledger_fingerprint(entry)
        receipt_fp = compute_receipt_fingerprint(receipt)
        store.commit_ledger_entry(entry, entry_fp)
        store.commit_fiscal_receipt(receipt, receipt_fp)

        assert store.existing_fingerprints() == {entry_fp, receipt_fp}

    def test_unknown_canonical_key(self, store):
        assert store.get_canonical_key("TX|dead") is None


class TestImportRuns:
    """Tests for the import log."""

    def test_record_and_list(self, store):
        mapping = {"auto_detected": True, "columns": {"date": "A"}}
        first = store.record_import_run("receipts", mapping, True, {"committed": 1})
        second = store.record_import_run("ledger-PT", {"columns": {}}, False, {"committed": 3})

        assert second > first

        runs = store.get_import_runs()
        assert [r.id for r in runs] == [second, first]
        assert runs[0].kind == "ledger-PT"
        assert runs[0].auto_detected is False
        assert runs[0].totals == {"committed": 3}
        assert runs[1].mapping == mapping
        assert runs[1].created_at.endswith("Z")

    def test_limit(self, store):
        for i in range(5):
            store.record_import_run("receipts", {}, True, {"committed": i})

        assert len(store.get_import_runs(limit=2)) == 2
        assert store.get_stats()["import_runs"] == 5


@pytest.mark.parametrize("count", [0, 3])
def test_stats_counts(store, count):
    for i in range(count):
        entry = make_entry(description=f"entry {i}")
        store.commit_ledger_entry(entry, compute_ledger_fingerprint(entry))

    stats = store.get_stats()
    assert stats["ledger_entries"] == count
    assert stats["fiscal_receipts"] == 0
