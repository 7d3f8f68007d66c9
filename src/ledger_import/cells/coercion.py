"""
Cell coercion (SSOT).

Pure functions that turn untyped spreadsheet cells into typed values.
Every module that reads a cell value goes through these functions; no other
module may parse dates, amounts, or flags on its own.

Rules:
- Dates: spreadsheet serials (25569 = 1970-01-01), YYYY-MM-DD, DD/MM/YYYY,
  YYYY-MM and MM/YYYY periods; the 4-digit year token decides the order
- Amounts: the LAST occurring '.' or ',' is the decimal separator, every
  other separator is thousands grouping ("1.234,56" == "1,234.56")
- Amounts are best-effort: unparseable input yields 0, never an error
"""

import re
import unicodedata
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from openpyxl.utils import get_column_letter

# Days between the spreadsheet epoch (day 0) and 1970-01-01
SERIAL_EPOCH_OFFSET_DAYS = 25569
SECONDS_PER_DAY = 86400

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DATE_DELIMITERS = re.compile(r"[/\-.]")
_WHITESPACE = re.compile(r"\s+")
_AMOUNT_NOISE = re.compile(r"[^0-9,.\-]")

# Exact matches after normalization
PAID_EXACT = frozenset({"s", "sim", "y", "yes", "true", "1", "x", "ok"})
# Substring matches after normalization
PAID_CONTAINS = ("pago", "paid", "liquidado")
# Checked before the substring rule so that "nao pago" is not paid
PAID_NEGATIONS = ("nao pago", "not paid", "unpaid", "por pagar", "em aberto")


class InvalidDateError(ValueError):
    """Raised when a cell cannot be read as a date or accounting period."""

    def __init__(self, value: Any, reason: str = "no date pattern matched"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid date {value!r}: {reason}")


def normalize_key(text: Any) -> str:
    """
    Normalize text for name/label comparisons.

    Lower-cases, strips diacritics, and collapses whitespace.
    "  Serviços  Gerais " -> "servicos gerais"
    """
    if text is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped.casefold()).strip()


def is_blank(cell: Any) -> bool:
    """True for None and whitespace-only strings."""
    if cell is None:
        return True
    if isinstance(cell, str):
        return cell.strip() == ""
    return False


def cell_text(cell: Any) -> str:
    """Render a cell as stripped text ("" for None)."""
    if cell is None:
        return ""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell).strip()


def column_letter(index: int) -> str:
    """Zero-based column index to a letter label: 0 -> A, 25 -> Z, 26 -> AA."""
    if index < 0:
        raise ValueError(f"column index must be >= 0, got: {index}")
    return get_column_letter(index + 1)


def _serial_to_date(serial: float) -> date:
    seconds = round((serial - SERIAL_EPOCH_OFFSET_DAYS) * SECONDS_PER_DAY)
    try:
        return (_UNIX_EPOCH + timedelta(seconds=seconds)).date()
    except OverflowError as e:
        raise InvalidDateError(serial, "serial out of range") from e


def _build_date(year: str, month: str, day: str, original: Any) -> str:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError as e:
        raise InvalidDateError(original, str(e)) from e


def _build_period(year: str, month: str, original: Any) -> str:
    try:
        y, m = int(year), int(month)
    except ValueError as e:
        raise InvalidDateError(original, str(e)) from e
    if not 1 <= m <= 12 or not 1 <= y <= 9999:
        raise InvalidDateError(original, "month or year out of range")
    return f"{y:04d}-{m:02d}"


def to_iso_date(cell: Any) -> str:
    """
    Convert a cell to an ISO date (YYYY-MM-DD) or period (YYYY-MM).

    Accepted inputs:
    - datetime/date objects (XLSX readers)
    - numeric spreadsheet serial dates
    - "YYYY-MM-DD", "DD/MM/YYYY" (also '-' or '.' delimited)
    - "YYYY-MM" and "MM/YYYY" accounting periods

    Raises:
        InvalidDateError: If no pattern matches or components are out of range
    """
    if cell is None or isinstance(cell, bool):
        raise InvalidDateError(cell)

    if isinstance(cell, datetime):
        return cell.date().isoformat()
    if isinstance(cell, date):
        return cell.isoformat()

    if isinstance(cell, (int, float, Decimal)):
        if cell <= 0:
            raise InvalidDateError(cell, "serial must be positive")
        return _serial_to_date(float(cell)).isoformat()

    text = str(cell).strip()
    if not text:
        raise InvalidDateError(cell, "empty")

    # Drop a trailing time component ("2024-03-10 00:00:00", "2024-03-10T08:00")
    text = re.split(r"[\sT]", text, maxsplit=1)[0]

    parts = [p for p in _DATE_DELIMITERS.split(text) if p]
    if not all(p.isdigit() for p in parts):
        raise InvalidDateError(cell)

    if len(parts) == 3:
        if len(parts[0]) == 4:
            return _build_date(parts[0], parts[1], parts[2], cell)
        if len(parts[2]) == 4:
            return _build_date(parts[2], parts[1], parts[0], cell)
        raise InvalidDateError(cell, "no 4-digit year")

    if len(parts) == 2:
        if len(parts[0]) == 4:
            return _build_period(parts[0], parts[1], cell)
        if len(parts[1]) == 4:
            return _build_period(parts[1], parts[0], cell)
        raise InvalidDateError(cell, "no 4-digit year")

    raise InvalidDateError(cell)


def is_full_date(iso: str) -> bool:
    """True for YYYY-MM-DD, False for YYYY-MM periods."""
    return len(iso) == 10


def to_decimal_amount(cell: Any) -> Decimal:
    """
    Convert a cell to a Decimal amount ("last separator wins").

    Examples:
        "1.234,56" -> Decimal("1234.56")
        "1,234.56" -> Decimal("1234.56")
        "1234,5"   -> Decimal("1234.5")
        "€ 12,00"  -> Decimal("12.00")
        ""         -> Decimal("0")
    """
    if cell is None or isinstance(cell, bool):
        return Decimal("0")

    if isinstance(cell, Decimal):
        return cell if cell.is_finite() else Decimal("0")
    if isinstance(cell, int):
        return Decimal(cell)
    if isinstance(cell, float):
        if cell != cell or cell in (float("inf"), float("-inf")):
            return Decimal("0")
        return Decimal(str(cell))

    text = _AMOUNT_NOISE.sub("", str(cell))
    if not text:
        return Decimal("0")

    last = max(text.rfind("."), text.rfind(","))
    if last >= 0:
        integer_part = text[:last].replace(".", "").replace(",", "")
        text = f"{integer_part}.{text[last + 1:]}"

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


def to_boolean_flag(cell: Any) -> bool:
    """
    Read a paid/yes flag.

    True for native True, numeric 1, exact synonyms ("s", "sim", "yes", "true", "1")
    and text containing "pago"/"paid". Explicit negations ("não pago") are False.
    """
    if isinstance(cell, bool):
        return cell
    if isinstance(cell, (int, float, Decimal)):
        return cell == 1

    text = normalize_key(cell)
    if not text:
        return False
    if text in PAID_EXACT:
        return True
    if any(neg in text for neg in PAID_NEGATIONS):
        return False
    return any(token in text for token in PAID_CONTAINS)
