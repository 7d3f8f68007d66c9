"""Spreadsheet import reconciliation service.

Drives one import run through a short state machine:

    TYPE_SELECT -> UPLOAD -> (MAPPING)? -> REVIEW -> COMMITTED | DISCARDED

- UPLOAD runs structure detection and auto mapping; if auto mapping fails
  the session waits in MAPPING for an operator mapping
- REVIEW holds every parsed draft, partitioned into valid / invalid, with
  fingerprints for the valid ones and duplicate marks against the store
- COMMITTED hands the valid, non-duplicate drafts to the store one at a time
  in source order; receipts also produce one linked ledger entry each

Everything before commit is in memory. Discarding has no external effects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Optional

from ..config import Config
from ..detectors.router import StructureDetector
from ..errors import InvalidTransitionError
from ..mapping.mapper import ColumnMapper, MappingDraft
from ..parsing.row_parser import RowParser
from ..readers.matrix_reader import read_matrix
from ..schemas.fingerprint import compute_ledger_fingerprint, fingerprint
from ..schemas.layout import (
    FieldMapping,
    LayoutDescriptor,
    LogicalField,
    RawMatrix,
    RecordKind,
    freeze_matrix,
)
from ..schemas.records import DraftRecord, LedgerEntry
from .receipt_linking import build_linked_ledger_entry

if TYPE_CHECKING:
    from ..reference.catalog import ReferenceData
    from ..state_store.base import RecordStore

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    """Possible states of an import session."""

    TYPE_SELECT = "TYPE_SELECT"
    UPLOAD = "UPLOAD"
    MAPPING = "MAPPING"
    REVIEW = "REVIEW"
    COMMITTED = "COMMITTED"
    DISCARDED = "DISCARDED"


PRE_COMMIT_STATES = (
    ImportState.TYPE_SELECT,
    ImportState.UPLOAD,
    ImportState.MAPPING,
    ImportState.REVIEW,
)


@dataclass(frozen=True)
class ReviewResult:
    """Parsed drafts of one upload, ready for operator review.

    `fingerprints` maps candidate id -> fingerprint for valid drafts only.
    `duplicate_ids` holds candidate ids whose fingerprint is already stored or
    appeared earlier in the same batch.
    """

    kind: RecordKind
    layout: LayoutDescriptor
    mapping: FieldMapping
    drafts: tuple[DraftRecord, ...]
    fingerprints: Mapping[str, str]
    duplicate_ids: frozenset[str]
    skip_existing: bool = True

    @property
    def valid(self) -> list[DraftRecord]:
        return [d for d in self.drafts if d.is_valid]

    @property
    def invalid(self) -> list[DraftRecord]:
        return [d for d in self.drafts if not d.is_valid]

    @property
    def duplicates(self) -> list[DraftRecord]:
        return [d for d in self.drafts if d.candidate_id in self.duplicate_ids]

    @property
    def to_commit(self) -> list[DraftRecord]:
        """Valid drafts that will be committed, in source order."""
        return [
            d
            for d in self.valid
            if not (self.skip_existing and d.candidate_id in self.duplicate_ids)
        ]

    def is_duplicate(self, draft: DraftRecord) -> bool:
        return draft.candidate_id in self.duplicate_ids

    def fingerprint_of(self, draft: DraftRecord) -> Optional[str]:
        return self.fingerprints.get(draft.candidate_id)

    def counts(self) -> dict[str, int]:
        """Totals for display and the import log."""
        return {
            "total": len(self.drafts),
            "valid": len(self.valid),
            "invalid": len(self.invalid),
            "duplicates": len(self.duplicate_ids),
            "to_commit": len(self.to_commit),
        }


@dataclass
class CommitFailure:
    """A draft the store failed to persist."""

    row_number: int
    candidate_id: str
    error: str


@dataclass
class CommitResult:
    """Result of committing a review."""

    kind: RecordKind
    committed: list[DraftRecord] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    linked_entries: list[LedgerEntry] = field(default_factory=list)
    skipped_invalid: int = 0
    skipped_duplicates: int = 0
    failures: list[CommitFailure] = field(default_factory=list)
    import_run_id: Optional[int] = None

    @property
    def success(self) -> bool:
        """Return True if every selected draft was persisted."""
        return not self.failures

    def totals(self) -> dict[str, int]:
        return {
            "committed": len(self.committed),
            "created": self.created,
            "updated": self.updated,
            "linked_entries": len(self.linked_entries),
            "skipped_invalid": self.skipped_invalid,
            "skipped_duplicates": self.skipped_duplicates,
            "failed": len(self.failures),
        }


class ImportSession:
    """Orchestrates one spreadsheet import.

    Usage:
        session = ImportSession(store, reference, config)
        session.select_kind(RecordKind.RECEIPTS)
        session.load_file(Path("receipts.xlsx"))
        if session.state == ImportState.MAPPING:
            session.apply_mapping({"date": "Emitido", ...})
        review = session.review
        result = session.commit()

    Operations called from the wrong state raise InvalidTransitionError.
    Structural failures (unreadable file, no rows, incomplete mapping) raise
    StructuralError and leave the session in the state it was in.
    """

    def __init__(
        self,
        store: RecordStore,
        reference: ReferenceData,
        config: Optional[Config] = None,
        detector: Optional[StructureDetector] = None,
        mapper: Optional[ColumnMapper] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        """Initialize the session.

        Args:
            store: Persistence collaborator
            reference: Reference data snapshot for this run
            config: Application configuration
            detector: Structure detector (default strategies if None)
            mapper: Column mapper
            id_factory: Candidate id generator passed to the row parser
        """
        self.store = store
        self.reference = reference
        self.config = config or Config()
        self.detector = detector or StructureDetector(self.config.detection)
        self.mapper = mapper or ColumnMapper()
        self.id_factory = id_factory

        self.skip_existing = self.config.imports.skip_existing
        self._clear()

    def _clear(self, state: ImportState = ImportState.TYPE_SELECT) -> None:
        self.state = state
        self.kind: Optional[RecordKind] = None
        self.matrix: Optional[RawMatrix] = None
        self.layout: Optional[LayoutDescriptor] = None
        self.mapping: Optional[FieldMapping] = None
        self.mapping_draft: dict[LogicalField, Optional[str]] = {}
        self.review: Optional[ReviewResult] = None
        self.result: Optional[CommitResult] = None

    def _require(self, operation: str, *allowed: ImportState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(operation, self.state.value, [s.value for s in allowed])

    def _transition(self, new_state: ImportState) -> None:
        logger.info("Import session: %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    # ------------------------------------------------------------------
    # TYPE_SELECT / UPLOAD
    # ------------------------------------------------------------------

    def select_kind(self, kind: RecordKind | str) -> None:
        """Declare the target record kind."""
        self._require("select record kind", ImportState.TYPE_SELECT, ImportState.UPLOAD)
        self.kind = RecordKind(kind)
        self._transition(ImportState.UPLOAD)

    def upload(self, matrix: RawMatrix | list) -> ImportState:
        """Supply the raw matrix; detect layout and try auto mapping.

        Returns:
            REVIEW if auto mapping succeeded, MAPPING otherwise

        Raises:
            StructuralError: If the matrix has no rows
        """
        self._require("upload", ImportState.UPLOAD)
        kind = RecordKind(self.kind)

        frozen = matrix if isinstance(matrix, tuple) else freeze_matrix(matrix)
        layout = self.detector.detect(frozen)

        self.matrix = frozen
        self.layout = layout

        mapping = self.mapper.auto_map(kind, layout)
        if mapping is None:
            self.mapping_draft = self.mapper.suggest_draft(kind, layout)
            logger.info("Auto mapping failed for %s; manual mapping required", kind.value)
            self._transition(ImportState.MAPPING)
            return self.state

        self.mapping = mapping
        self._build_review(kind, frozen, layout, mapping)
        self._transition(ImportState.REVIEW)
        return self.state

    def load_file(self, path: Path | str, sheet: Optional[str] = None) -> ImportState:
        """Read a spreadsheet file and upload its matrix.

        Raises:
            MatrixReadError: If the file cannot be read
        """
        self._require("upload", ImportState.UPLOAD)
        logger.info("Reading %s", path)
        return self.upload(read_matrix(path, sheet=sheet))

    # ------------------------------------------------------------------
    # MAPPING
    # ------------------------------------------------------------------

    def apply_mapping(self, draft: MappingDraft) -> None:
        """Accept an operator mapping and parse the rows.

        Raises:
            IncompleteMappingError: If the mapping is incomplete or ambiguous
        """
        self._require("apply mapping", ImportState.MAPPING)
        kind = RecordKind(self.kind)
        layout = self.layout
        matrix = self.matrix
        if layout is None or matrix is None:
            raise InvalidTransitionError("apply mapping", self.state.value, [ImportState.UPLOAD.value])

        self.mapping = self.mapper.apply_manual(kind, layout, draft)
        self._build_review(kind, matrix, layout, self.mapping)
        self._transition(ImportState.REVIEW)

    # ------------------------------------------------------------------
    # REVIEW
    # ------------------------------------------------------------------

    def set_skip_existing(self, flag: bool) -> None:
        """Toggle whether duplicates are excluded from commit."""
        self._require("change skip existing", *PRE_COMMIT_STATES)
        self.skip_existing = flag
        if self.review is not None:
            self.review = ReviewResult(
                kind=self.review.kind,
                layout=self.review.layout,
                mapping=self.review.mapping,
                drafts=self.review.drafts,
                fingerprints=self.review.fingerprints,
                duplicate_ids=self.review.duplicate_ids,
                skip_existing=flag,
            )

    def _build_review(
        self,
        kind: RecordKind,
        matrix: RawMatrix,
        layout: LayoutDescriptor,
        mapping: FieldMapping,
    ) -> None:
        parser = RowParser(kind, self.reference, self.config, id_factory=self.id_factory)
        drafts = parser.parse_rows(matrix, layout, mapping)

        existing = self.store.existing_fingerprints()
        fingerprints: dict[str, str] = {}
        duplicates: set[str] = set()
        seen: set[str] = set()

        for draft in drafts:
            if not draft.is_valid:
                continue
            fp = fingerprint(draft)
            fingerprints[draft.candidate_id] = fp
            if fp in existing or fp in seen:
                duplicates.add(draft.candidate_id)
                logger.debug("Row %d is a duplicate (%s)", draft.row_number, fp)
            seen.add(fp)

        self.review = ReviewResult(
            kind=kind,
            layout=layout,
            mapping=mapping,
            drafts=tuple(drafts),
            fingerprints=MappingProxyType(fingerprints),
            duplicate_ids=frozenset(duplicates),
            skip_existing=self.skip_existing,
        )

        counts = self.review.counts()
        logger.info(
            "Review ready: %d rows, %d valid, %d invalid, %d duplicates",
            counts["total"],
            counts["valid"],
            counts["invalid"],
            counts["duplicates"],
        )

    # ------------------------------------------------------------------
    # COMMITTED / DISCARDED
    # ------------------------------------------------------------------

    def commit(self) -> CommitResult:
        """Persist the reviewed drafts.

        Records are written one at a time in source order. A failing record is
        logged and reported in `CommitResult.failures`; records already
        written are kept.
        """
        self._require("commit", ImportState.REVIEW)
        review = self.review
        if review is None:
            raise InvalidTransitionError("commit", self.state.value, [ImportState.REVIEW.value])
        kind = review.kind

        to_commit = review.to_commit
        result = CommitResult(
            kind=kind,
            skipped_invalid=len(review.invalid),
            skipped_duplicates=len(review.valid) - len(to_commit),
        )

        payment_method_id = None
        if kind == RecordKind.RECEIPTS:
            country = self.config.imports.receipts_country.upper()
            payment_method_id = self.reference.default_payment_method_id(
                self.config.default_payment_methods.get(country, [])
            )

        for draft in to_commit:
            fp = review.fingerprints[draft.candidate_id]
            try:
                if draft.kind == "receipt":
                    # Linked entry first: a stored receipt marks the row as a duplicate.
                    linked = build_linked_ledger_entry(draft.record, payment_method_id)
                    self.store.commit_ledger_entry(linked, compute_ledger_fingerprint(linked))
                    created = self.store.commit_fiscal_receipt(draft.record, fp)
                    result.linked_entries.append(linked)
                else:
                    created = self.store.commit_ledger_entry(draft.record, fp)
            except Exception as e:
                logger.exception("Failed to commit row %d (%s): %s", draft.row_number, fp, e)
                result.failures.append(
                    CommitFailure(
                        row_number=draft.row_number,
                        candidate_id=draft.candidate_id,
                        error=str(e),
                    )
                )
                continue

            result.committed.append(draft)
            if created:
                result.created += 1
            else:
                result.updated += 1

        try:
            result.import_run_id = self.store.record_import_run(
                kind=kind.value,
                mapping=review.mapping.to_dict()["columns"],
                auto_detected=review.mapping.auto_detected,
                totals={**review.counts(), **result.totals()},
            )
        except Exception as e:
            logger.exception("Failed to record import run: %s", e)

        logger.info(
            "Committed %d %s records (%d created, %d updated, %d linked, %d failed)",
            len(result.committed),
            kind.value,
            result.created,
            result.updated,
            len(result.linked_entries),
            len(result.failures),
        )

        self.result = result
        self._transition(ImportState.COMMITTED)
        return result

    def discard(self) -> None:
        """Cancel the run; drops all in-memory state."""
        self._require("discard", *PRE_COMMIT_STATES)
        self._transition(ImportState.DISCARDED)
        self._clear(ImportState.DISCARDED)

    def reset(self) -> None:
        """Start over from TYPE_SELECT (any state)."""
        self._clear()
        logger.debug("Import session reset")
