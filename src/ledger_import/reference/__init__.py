"""
Reference data (categories, payment methods, suppliers).
"""

from .catalog import (
    Category,
    LineItemRef,
    NamedRef,
    ReferenceData,
    ReferenceDataError,
    load_reference_data,
)

__all__ = [
    "Category",
    "LineItemRef",
    "NamedRef",
    "ReferenceData",
    "ReferenceDataError",
    "load_reference_data",
]
