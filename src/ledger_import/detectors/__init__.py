"""
Structure detection.

Classifies a raw matrix as POSITIONAL or LABELED and emits a layout
descriptor through an ordered list of detector strategies.
"""

from .base import BaseLayoutDetector
from .router import StructureDetector
from .strategies import (
    LabeledHeaderDetector,
    LegacyBannerDetector,
    PositionalFallbackDetector,
)

__all__ = [
    "BaseLayoutDetector",
    "StructureDetector",
    "LegacyBannerDetector",
    "LabeledHeaderDetector",
    "PositionalFallbackDetector",
]
