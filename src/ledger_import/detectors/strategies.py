"""
Layout detection strategies.

Tried in priority order by the StructureDetector:
1. LegacyBannerDetector - header-less export, 3 banner rows, dated data rows
2. LabeledHeaderDetector - a header row with date/value hints in the first rows
3. PositionalFallbackDetector - letters from row 0, always matches
"""

import logging
from typing import Any, Optional

from ..cells.coercion import (
    InvalidDateError,
    cell_text,
    column_letter,
    is_full_date,
    normalize_key,
    to_iso_date,
)
from ..schemas.layout import LayoutDescriptor, LayoutMode, RawMatrix
from .base import BaseLayoutDetector

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "COL_"


def widest_row(rows: RawMatrix) -> int:
    """Length of the longest row (0 for no rows)."""
    return max((len(r) for r in rows), default=0)


def letter_columns(width: int) -> tuple[str, ...]:
    return tuple(column_letter(i) for i in range(width))


def _parses_as_date(cell: Any) -> bool:
    try:
        return is_full_date(to_iso_date(cell))
    except InvalidDateError:
        return False


class LegacyBannerDetector(BaseLayoutDetector):
    """
    Historical fixed-layout exports.

    No header row; an undocumented banner occupies rows 0-2 and data
    starts at row 3 with a date in the first cell.
    """

    @property
    def name(self) -> str:
        return "legacy_banner"

    @property
    def priority(self) -> int:
        return 30

    def detect(self, matrix: RawMatrix) -> Optional[LayoutDescriptor]:
        start = self.config.legacy_data_start
        if len(matrix) <= start:
            return None

        first_data_row = matrix[start]
        if len(first_data_row) < 3 or not _parses_as_date(first_data_row[0]):
            return None

        sample = matrix[start : start + self.config.legacy_sample_rows]
        width = min(self.config.max_columns, widest_row(sample))

        return LayoutDescriptor(
            mode=LayoutMode.POSITIONAL,
            data_start_index=start,
            columns=letter_columns(width),
            detector=self.name,
        )


class LabeledHeaderDetector(BaseLayoutDetector):
    """
    Self-describing exports.

    The first row within the scan window with enough non-empty cells and at
    least one date/value hint token is the header row.
    """

    @property
    def name(self) -> str:
        return "labeled_header"

    @property
    def priority(self) -> int:
        return 20

    def find_header_row(self, matrix: RawMatrix) -> Optional[int]:
        """Index of the header row within the scan window, or None."""
        hints = [normalize_key(t) for t in self.config.header_hint_tokens]
        for idx, row in enumerate(matrix[: self.config.header_scan_rows]):
            texts = [t for t in (normalize_key(c) for c in row) if t]
            if len(texts) < self.config.header_min_cells:
                continue
            if any(hint in text for text in texts for hint in hints):
                return idx
        return None

    def detect(self, matrix: RawMatrix) -> Optional[LayoutDescriptor]:
        header_idx = self.find_header_row(matrix)
        if header_idx is None:
            return None

        header = matrix[header_idx]
        sample = matrix[header_idx + 1 : header_idx + 1 + self.config.legacy_sample_rows]
        width = max(len(header), min(self.config.max_columns, widest_row(sample)))

        labels = [
            cell_text(header[i]) if i < len(header) else ""
            for i in range(width)
        ]
        columns = self._unique_labels(
            [label or f"{PLACEHOLDER_PREFIX}{i + 1}" for i, label in enumerate(labels)]
        )

        return LayoutDescriptor(
            mode=LayoutMode.LABELED,
            data_start_index=header_idx + 1,
            columns=columns,
            header_row_index=header_idx,
            detector=self.name,
        )

    @staticmethod
    def _unique_labels(labels: list[str]) -> tuple[str, ...]:
        """Disambiguate duplicate labels: "Valor", "Valor (2)", "Valor (3)"."""
        seen: dict[str, int] = {}
        used: set[str] = set()
        unique: list[str] = []
        for label in labels:
            count = seen.get(label, 0) + 1
            seen[label] = count
            candidate = label if count == 1 else f"{label} ({count})"
            while candidate in used:
                count += 1
                candidate = f"{label} ({count})"
            used.add(candidate)
            unique.append(candidate)
        return tuple(unique)


class PositionalFallbackDetector(BaseLayoutDetector):
    """Last resort: header-less sheet with data from row 0."""

    @property
    def name(self) -> str:
        return "positional_fallback"

    @property
    def priority(self) -> int:
        return 0

    def detect(self, matrix: RawMatrix) -> Optional[LayoutDescriptor]:
        window = self.config.legacy_data_start + self.config.legacy_sample_rows
        width = min(self.config.max_columns, widest_row(matrix[:window]))
        logger.debug("No banner or header found, falling back to %d letter columns", width)
        return LayoutDescriptor(
            mode=LayoutMode.POSITIONAL,
            data_start_index=0,
            columns=letter_columns(width),
            detector=self.name,
        )
