"""
Spreadsheet-to-matrix reader.

Loads a whole file into an immutable RawMatrix:
- .xlsx / .xlsm: openpyxl, cached values (data_only), first sheet unless named
- .csv / .tsv / .txt: csv module, delimiter sniffed from a sample

Trailing empty cells are trimmed from every row; fully empty rows are kept
so that row numbers match the source file.
"""

import csv
import io
import logging
from pathlib import Path
from typing import Any, Optional
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import StructuralError
from ..schemas.layout import RawMatrix, freeze_matrix

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm"})
DELIMITED_SUFFIXES = frozenset({".csv", ".tsv", ".txt"})
SNIFF_DELIMITERS = ",;\t|"


class MatrixReadError(StructuralError):
    """Raised when a file cannot be read into a matrix."""

    pass


def _trim(row: tuple[Any, ...]) -> tuple[Any, ...]:
    end = len(row)
    while end > 0 and (row[end - 1] is None or row[end - 1] == ""):
        end -= 1
    return row[:end]


def _decode(raw: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("latin-1")


def _detect_delimiter(text: str, suffix: str) -> str:
    if suffix == ".tsv":
        return "\t"
    sample = "\n".join([line for line in text.splitlines() if line.strip()][:25])
    if not sample:
        return ","
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS).delimiter
    except csv.Error:
        return ","


def _read_excel(path: Path, sheet: Optional[str]) -> RawMatrix:
    try:
        workbook = load_workbook(
            path, read_only=True, data_only=True, keep_vba=path.suffix.lower() == ".xlsm"
        )
    except (InvalidFileException, BadZipFile, OSError, KeyError, ValueError) as e:
        raise MatrixReadError(f"Cannot open workbook {path}: {e}") from e

    try:
        if sheet is not None:
            if sheet not in workbook.sheetnames:
                raise MatrixReadError(
                    f"Sheet '{sheet}' not found in {path.name} "
                    f"(available: {', '.join(workbook.sheetnames)})"
                )
            worksheet = workbook[sheet]
        else:
            worksheet = workbook.worksheets[0]

        rows = [_trim(tuple(row)) for row in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    logger.debug("Read %d rows from sheet '%s' of %s", len(rows), worksheet.title, path.name)
    return freeze_matrix(rows)


def _read_delimited(path: Path) -> RawMatrix:
    try:
        text = _decode(path.read_bytes())
    except OSError as e:
        raise MatrixReadError(f"Cannot read {path}: {e}") from e

    delimiter = _detect_delimiter(text, path.suffix.lower())
    try:
        rows = [_trim(tuple(row)) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as e:
        raise MatrixReadError(f"Malformed delimited file {path}: {e}") from e

    logger.debug("Read %d rows from %s (delimiter %r)", len(rows), path.name, delimiter)
    return freeze_matrix(rows)


def read_matrix(path: Path | str, sheet: Optional[str] = None) -> RawMatrix:
    """
    Read a spreadsheet file into a RawMatrix.

    Args:
        path: File path (.xlsx, .xlsm, .csv, .tsv, .txt)
        sheet: Worksheet name for workbooks (default: first sheet)

    Raises:
        MatrixReadError: Missing file, unsupported format, or unreadable content
    """
    path = Path(path)
    if not path.exists():
        raise MatrixReadError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        return _read_excel(path, sheet)
    if suffix in DELIMITED_SUFFIXES:
        return _read_delimited(path)

    raise MatrixReadError(
        f"Unsupported file type '{suffix}' (expected one of: "
        f"{', '.join(sorted(EXCEL_SUFFIXES | DELIMITED_SUFFIXES))})"
    )
