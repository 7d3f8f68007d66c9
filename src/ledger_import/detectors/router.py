"""
Structure detector - chooses and applies layout detection strategies.
"""

import logging
from typing import Optional

from ..config import DetectionConfig
from ..errors import StructuralError
from ..schemas.layout import LayoutDescriptor, RawMatrix
from .base import BaseLayoutDetector
from .strategies import (
    LabeledHeaderDetector,
    LegacyBannerDetector,
    PositionalFallbackDetector,
)

logger = logging.getLogger(__name__)


class StructureDetector:
    """
    Routes layout detection to the appropriate strategy.

    Tries detectors in priority order:
    1. Legacy banner layout (POSITIONAL, data at row 3)
    2. Labeled header row within the first rows (LABELED)
    3. Positional fallback (POSITIONAL, data at row 0)
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        detectors: Optional[list[BaseLayoutDetector]] = None,
    ):
        """Initialize with default detectors unless a list is given."""
        self.config = config or DetectionConfig()
        candidates = detectors or [
            LegacyBannerDetector(self.config),
            LabeledHeaderDetector(self.config),
            PositionalFallbackDetector(self.config),
        ]
        # Highest priority first; the caller's list is left as given
        self.detectors: list[BaseLayoutDetector] = sorted(candidates, key=lambda d: -d.priority)

    def detect(self, matrix: RawMatrix) -> LayoutDescriptor:
        """
        Classify a raw matrix.

        Raises:
            StructuralError: If the matrix has no non-empty rows or no
                detector recognises it
        """
        if not any(len(row) for row in matrix):
            raise StructuralError("No rows found in spreadsheet")

        for detector in self.detectors:
            layout = detector.detect(matrix)
            if layout is not None:
                logger.info(
                    "Detected %s layout via %s (data starts at row %d, %d columns)",
                    layout.mode.value,
                    detector.name,
                    layout.data_start_index,
                    len(layout.columns),
                )
                return layout

        raise StructuralError("Could not determine spreadsheet layout")
