"""
Column mapper.

Resolves every logical field of a record kind to a concrete column of a
detected layout, either automatically or from an operator-supplied draft.

Rules:
- POSITIONAL layouts use the fixed letters of `synonyms.positions_for`
- LABELED layouts try an exact normalized header match first, then substring
  containment, field by field
- Every required field must resolve to a distinct column; otherwise auto
  mapping returns None and the caller asks for a manual mapping
"""

import logging
from collections.abc import Mapping
from typing import Optional, Union

from ..cells.coercion import normalize_key
from ..errors import StructuralError
from ..schemas.layout import (
    FieldMapping,
    LayoutDescriptor,
    LayoutMode,
    LogicalField,
    RecordKind,
    optional_fields_for,
    required_fields_for,
)
from .synonyms import positions_for, synonyms_for

logger = logging.getLogger(__name__)

MappingDraft = Mapping[Union[LogicalField, str], Optional[str]]


class IncompleteMappingError(StructuralError):
    """Raised when a manual mapping misses required fields or reuses columns."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Incomplete column mapping: " + "; ".join(problems))


class ColumnMapper:
    """Maps logical fields to layout columns."""

    def auto_map(self, kind: RecordKind, layout: LayoutDescriptor) -> Optional[FieldMapping]:
        """
        Try to map all fields without operator input.

        Returns:
            FieldMapping with auto_detected=True, or None if any required field
            is missing or two required fields share a column
        """
        if layout.mode == LayoutMode.POSITIONAL:
            return self._map_positional(kind, layout)
        return self._map_labeled(kind, layout)

    def _map_positional(self, kind: RecordKind, layout: LayoutDescriptor) -> Optional[FieldMapping]:
        positions = positions_for(kind)
        missing = [f.value for f in required_fields_for(kind) if not layout.has_column(positions[f])]
        if missing:
            logger.info(
                "Positional layout has only %d columns, missing: %s",
                len(layout.columns),
                ", ".join(missing),
            )
            return None

        columns = {f: positions[f] for f in required_fields_for(kind)}
        for f in optional_fields_for(kind):
            if layout.has_column(positions[f]):
                columns[f] = positions[f]
        return FieldMapping(columns=columns, auto_detected=True)

    def _map_labeled(self, kind: RecordKind, layout: LayoutDescriptor) -> Optional[FieldMapping]:
        synonyms = synonyms_for(kind)
        normalized = [normalize_key(c) for c in layout.columns]

        chosen: dict[LogicalField, str] = {}
        for f in required_fields_for(kind):
            column = self._match(synonyms[f], layout.columns, normalized)
            if column is None:
                logger.info("Auto mapping failed: no column for required field '%s'", f.value)
                return None
            chosen[f] = column

        used = list(chosen.values())
        if len(set(used)) != len(used):
            logger.info("Auto mapping failed: required fields collide on the same column")
            return None

        for f in optional_fields_for(kind):
            column = self._match(synonyms[f], layout.columns, normalized)
            if column is None:
                continue
            if column in chosen.values():
                logger.debug("Dropping optional field '%s': column '%s' already used", f.value, column)
                continue
            chosen[f] = column

        return FieldMapping(columns=chosen, auto_detected=True)

    @staticmethod
    def _match(
        candidates: list[str], columns: tuple[str, ...], normalized: list[str]
    ) -> Optional[str]:
        """Exact normalized match first, then containment; first column wins."""
        keys = [k for k in (normalize_key(c) for c in candidates) if k]
        for column, header in zip(columns, normalized):
            if header in keys:
                return column
        for column, header in zip(columns, normalized):
            if any(k in header for k in keys):
                return column
        return None

    def suggest_draft(
        self, kind: RecordKind, layout: LayoutDescriptor
    ) -> dict[LogicalField, Optional[str]]:
        """
        Pre-fill a manual mapping draft for the operator.

        Uses containment matching only and does not check for collisions;
        fields without a candidate map to None.
        """
        fields = list(required_fields_for(kind)) + list(optional_fields_for(kind))
        if layout.mode == LayoutMode.POSITIONAL:
            positions = positions_for(kind)
            return {f: positions[f] if layout.has_column(positions[f]) else None for f in fields}

        synonyms = synonyms_for(kind)
        normalized = [normalize_key(c) for c in layout.columns]
        draft: dict[LogicalField, Optional[str]] = {}
        for f in fields:
            keys = [k for k in (normalize_key(c) for c in synonyms[f]) if k]
            draft[f] = next(
                (col for col, header in zip(layout.columns, normalized) if any(k in header for k in keys)),
                None,
            )
        return draft

    def apply_manual(
        self, kind: RecordKind, layout: LayoutDescriptor, draft: MappingDraft
    ) -> FieldMapping:
        """
        Validate an operator-supplied mapping.

        Args:
            kind: Target record kind
            layout: Detected layout (columns must exist in it)
            draft: Field -> column; keys may be LogicalField or its string value,
                empty values mean "not mapped"

        Raises:
            IncompleteMappingError: Unknown fields/columns, missing required
                fields, or a column used by more than one field
        """
        allowed = set(required_fields_for(kind)) | set(optional_fields_for(kind))
        problems: list[str] = []
        columns: dict[LogicalField, str] = {}

        for key, column in draft.items():
            try:
                logical = key if isinstance(key, LogicalField) else LogicalField(str(key).strip().lower())
            except ValueError:
                problems.append(f"unknown field '{key}'")
                continue
            if logical not in allowed:
                problems.append(f"field '{logical.value}' does not apply to {kind.value}")
                continue
            if column is None or str(column).strip() == "":
                continue
            column = str(column).strip()
            if not layout.has_column(column):
                problems.append(f"column '{column}' not found for field '{logical.value}'")
                continue
            columns[logical] = column

        for f in required_fields_for(kind):
            if f not in columns:
                problems.append(f"required field '{f.value}' is not mapped")

        seen: dict[str, LogicalField] = {}
        for f, column in columns.items():
            if column in seen:
                problems.append(
                    f"column '{column}' mapped to both '{seen[column].value}' and '{f.value}'"
                )
            else:
                seen[column] = f

        if problems:
            raise IncompleteMappingError(problems)

        logger.info("Manual mapping accepted for %s (%d fields)", kind.value, len(columns))
        return FieldMapping(columns=columns, auto_detected=False)
