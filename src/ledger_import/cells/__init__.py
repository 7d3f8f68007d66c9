"""
Cell coercion library.

Pure conversions from raw spreadsheet cells to typed values.
"""

from .coercion import (
    InvalidDateError,
    cell_text,
    column_letter,
    is_blank,
    is_full_date,
    normalize_key,
    to_boolean_flag,
    to_decimal_amount,
    to_iso_date,
)

__all__ = [
    "InvalidDateError",
    "cell_text",
    "column_letter",
    "is_blank",
    "is_full_date",
    "normalize_key",
    "to_boolean_flag",
    "to_decimal_amount",
    "to_iso_date",
]
