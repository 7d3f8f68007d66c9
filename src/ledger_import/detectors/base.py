"""
Base layout detector interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..config import DetectionConfig
from ..schemas.layout import LayoutDescriptor, RawMatrix


class BaseLayoutDetector(ABC):
    """
    Base class for all layout detection strategies.

    Each detector recognises one family of spreadsheet layouts:
    - Legacy exports with a fixed banner and no header
    - Self-describing exports with a header row
    - Anything else (positional fallback)
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    @property
    @abstractmethod
    def name(self) -> str:
        """Detector name for logging and the layout descriptor."""
        pass

    @property
    @abstractmethod
    def priority(self) -> int:
        """
        Priority for detector selection.
        Higher = tried first.
        """
        pass

    @abstractmethod
    def detect(self, matrix: RawMatrix) -> Optional[LayoutDescriptor]:
        """
        Classify the matrix.

        Args:
            matrix: Raw row matrix

        Returns:
            LayoutDescriptor if this detector recognises the layout, else None
        """
        pass
