"""
SQLite-based state store implementation.

Tables:
- ledger_entries: Committed ledger entries, keyed by fingerprint (receipt-linked
  entries by linked_receipt_id, at most one per receipt)
- fiscal_receipts: Committed receipts, keyed by stable internal id
- import_runs: One log row per commit (kind, mapping used, totals)

The canonical identity string is stored next to every fingerprint so that
hash collisions can be audited.
"""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..schemas.fingerprint import canonical_ledger_key, canonical_receipt_key
from ..schemas.records import FiscalReceipt, LedgerEntry
from .base import RecordStore


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ImportRunRecord:
    """Record of one committed import run."""

    id: int
    kind: str
    mapping: dict[str, Any]
    auto_detected: bool
    totals: dict[str, int]
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ImportRunRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            kind=row["kind"],
            mapping=json.loads(row["mapping_json"]) if row["mapping_json"] else {},
            auto_detected=bool(row["auto_detected"]),
            totals=json.loads(row["totals_json"]) if row["totals_json"] else {},
            created_at=row["created_at"],
        )


class StateStore(RecordStore):
    """
    SQLite-based record store.

    Provides persistent tracking of:
    - Committed ledger entries (including receipt-linked entries)
    - Committed fiscal receipts
    - Import runs (audit trail)

    Thread-safe for single-writer scenarios.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_entries (
                    fingerprint TEXT PRIMARY KEY,
                    canonical_key TEXT NOT NULL,
                    entry_id TEXT NOT NULL,
                    country TEXT NOT NULL,
                    type TEXT NOT NULL,
                    accrual_date TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    status TEXT NOT NULL,
                    linked_receipt_id TEXT,
                    payload_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS fiscal_receipts (
                    internal_id TEXT PRIMARY KEY,
                    fingerprint TEXT NOT NULL,
                    canonical_key TEXT NOT NULL,
                    external_id TEXT NOT NULL,
                    country TEXT NOT NULL,
                    issue_date TEXT NOT NULL,
                    received_amount TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS import_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    mapping_json TEXT NOT NULL,
                    auto_detected INTEGER NOT NULL DEFAULT 0,
                    totals_json TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_receipts_fingerprint ON fiscal_receipts(fingerprint)"
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_ledger_linked_receipt_unique
                ON ledger_entries(linked_receipt_id) WHERE linked_receipt_id IS NOT NULL
            """
            )

            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    # Ledger entries

    def commit_ledger_entry(self, entry: LedgerEntry, fingerprint: str) -> bool:
        """Insert or update a ledger entry.

        Receipt-linked entries are keyed by their receipt: re-committing a
        receipt rewrites its one linked entry even when the content (and so
        the fingerprint) changed. All other entries are keyed by fingerprint.
        """
        now = _now()
        canonical = canonical_ledger_key(
            entry.country,
            entry.accrual_date,
            entry.amount,
            entry.category_id,
            entry.item_id,
            entry.payment_method_id,
            entry.description,
        )
        payload = json.dumps(entry.to_dict())
        values = (
            fingerprint,
            canonical,
            entry.id,
            entry.country,
            entry.type.value,
            entry.accrual_date,
            str(entry.amount),
            entry.status.value,
            entry.linked_receipt_id,
            payload,
        )

        if entry.linked_receipt_id:
            where, key = "linked_receipt_id = ?", entry.linked_receipt_id
        else:
            where, key = "fingerprint = ?", fingerprint

        with self._transaction() as conn:
            cursor = conn.execute(
                f"""
                UPDATE ledger_entries
                SET fingerprint = ?, canonical_key = ?, entry_id = ?, country = ?, type = ?,
                    accrual_date = ?, amount = ?, status = ?, linked_receipt_id = ?,
                    payload_json = ?, updated_at = ?
                WHERE {where}
            """,
                (*values, now, key),
            )

            if cursor.rowcount > 0:
                return False

            conn.execute(
                """
                INSERT INTO ledger_entries
                (fingerprint, canonical_key, entry_id, country, type, accrual_date, amount,
                 status, linked_receipt_id, payload_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (*values, now, now),
            )
            return True

    def get_ledger_entry(self, fingerprint: str) -> dict[str, Any] | None:
        """Get a stored ledger entry payload by fingerprint."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT payload_json FROM ledger_entries WHERE fingerprint = ?", (fingerprint,)
            ).fetchone()
            return json.loads(row["payload_json"]) if row else None

    def get_ledger_entries_for_receipt(self, internal_id: str) -> list[dict[str, Any]]:
        """Get ledger entries linked to a receipt."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT payload_json FROM ledger_entries WHERE linked_receipt_id = ? ORDER BY created_at",
                (internal_id,),
            ).fetchall()
            return [json.loads(row["payload_json"]) for row in rows]

    # Fiscal receipts

    def commit_fiscal_receipt(self, receipt: FiscalReceipt, fingerprint: str) -> bool:
        """Insert or update a receipt keyed by its stable internal id."""
        now = _now()
        canonical = canonical_receipt_key(
            receipt.country,
            receipt.external_id,
            receipt.issue_date,
            receipt.supplier_id,
            receipt.base_amount,
            receipt.received_amount,
        )
        payload = json.dumps(receipt.to_dict())

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE fiscal_receipts
                SET fingerprint = ?, canonical_key = ?, external_id = ?, country = ?,
                    issue_date = ?, received_amount = ?, payload_json = ?, updated_at = ?
                WHERE internal_id = ?
            """,
                (
                    fingerprint,
                    canonical,
                    receipt.external_id,
                    receipt.country,
                    receipt.issue_date,
                    str(receipt.received_amount),
                    payload,
                    now,
                    receipt.internal_id,
                ),
            )

            if cursor.rowcount > 0:
                return False

            conn.execute(
                """
                INSERT INTO fiscal_receipts
                (internal_id, fingerprint, canonical_key, external_id, country, issue_date,
                 received_amount, payload_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    receipt.internal_id,
                    fingerprint,
                    canonical,
                    receipt.external_id,
                    receipt.country,
                    receipt.issue_date,
                    str(receipt.received_amount),
                    payload,
                    now,
                    now,
                ),
            )
            return True

    def get_fiscal_receipt(self, internal_id: str) -> dict[str, Any] | None:
        """Get a stored receipt payload by internal id."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT payload_json FROM fiscal_receipts WHERE internal_id = ?", (internal_id,)
            ).fetchone()
            return json.loads(row["payload_json"]) if row else None

    # Deduplication

    def existing_fingerprints(self) -> set[str]:
        """All ledger and receipt fingerprints currently stored."""
        with self._transaction() as conn:
            ledger = conn.execute("SELECT fingerprint FROM ledger_entries").fetchall()
            receipts = conn.execute("SELECT fingerprint FROM fiscal_receipts").fetchall()
            return {row["fingerprint"] for row in ledger} | {row["fingerprint"] for row in receipts}

    def get_canonical_key(self, fingerprint: str) -> str | None:
        """Canonical identity string stored for a fingerprint (collision audit)."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT canonical_key FROM ledger_entries WHERE fingerprint = ?", (fingerprint,)
            ).fetchone()
            if row is None:
                row = conn.execute(
                    "SELECT canonical_key FROM fiscal_receipts WHERE fingerprint = ?",
                    (fingerprint,),
                ).fetchone()
            return row["canonical_key"] if row else None

    # Import runs

    def record_import_run(
        self,
        kind: str,
        mapping: dict[str, Any],
        auto_detected: bool,
        totals: dict[str, int],
    ) -> int:
        """Write an import log entry."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO import_runs (kind, mapping_json, auto_detected, totals_json, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (kind, json.dumps(mapping), 1 if auto_detected else 0, json.dumps(totals), _now()),
            )
            return cursor.lastrowid or 0

    def get_import_runs(self, limit: int = 20) -> list[ImportRunRecord]:
        """Most recent import runs first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM import_runs ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [ImportRunRecord.from_row(row) for row in rows]

    # Statistics

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        with self._transaction() as conn:
            ledger = conn.execute("SELECT COUNT(*) as count FROM ledger_entries").fetchone()
            linked = conn.execute(
                "SELECT COUNT(*) as count FROM ledger_entries WHERE linked_receipt_id IS NOT NULL"
            ).fetchone()
            receipts = conn.execute("SELECT COUNT(*) as count FROM fiscal_receipts").fetchone()
            runs = conn.execute("SELECT COUNT(*) as count FROM import_runs").fetchone()

            return {
                "ledger_entries": ledger["count"] if ledger else 0,
                "linked_ledger_entries": linked["count"] if linked else 0,
                "fiscal_receipts": receipts["count"] if receipts else 0,
                "import_runs": runs["count"] if runs else 0,
            }
