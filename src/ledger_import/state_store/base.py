"""
Persistence collaborator interface.

The import session only talks to this interface. Commits must be idempotent:
re-committing the same record (same fingerprint / stable id) overwrites the
stored copy instead of creating a second one.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..schemas.records import FiscalReceipt, LedgerEntry


class RecordStore(ABC):
    """Write interface for committed records and import logs."""

    @abstractmethod
    def commit_ledger_entry(self, entry: LedgerEntry, fingerprint: str) -> bool:
        """
        Persist a ledger entry keyed by its fingerprint, or by its
        linked_receipt_id when it is generated from a receipt.

        Returns:
            True if a new record was created, False if an existing one was updated
        """
        pass

    @abstractmethod
    def commit_fiscal_receipt(self, receipt: FiscalReceipt, fingerprint: str) -> bool:
        """
        Persist a fiscal receipt keyed by its stable internal id.

        Returns:
            True if a new record was created, False if an existing one was updated
        """
        pass

    @abstractmethod
    def existing_fingerprints(self) -> set[str]:
        """All fingerprints of committed records (ledger and receipts)."""
        pass

    @abstractmethod
    def record_import_run(
        self,
        kind: str,
        mapping: dict[str, Any],
        auto_detected: bool,
        totals: dict[str, int],
    ) -> int:
        """
        Write an import log entry.

        Args:
            kind: Record kind value ("ledger-PT", "receipts", ...)
            mapping: Field -> column mapping used
            auto_detected: Whether the mapping came from auto detection
            totals: Counters (committed, linked, skipped, failed, ...)

        Returns:
            Import run id
        """
        pass
