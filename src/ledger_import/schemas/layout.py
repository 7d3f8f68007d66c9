"""
Layout and mapping schemas.

RawMatrix -> LayoutDescriptor -> FieldMapping is the structural half of the
pipeline. These types carry no behaviour beyond lookups; detection and
mapping logic live in `detectors` and `mapping`.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

# Immutable row matrix as loaded from a spreadsheet
RawMatrix = tuple[tuple[Any, ...], ...]


def freeze_matrix(rows: Iterable[Iterable[Any] | None]) -> RawMatrix:
    """Build an immutable RawMatrix, dropping rows that are None."""
    return tuple(tuple(row) for row in rows if row is not None)


class LayoutMode(str, Enum):
    """How column identity is expressed in a sheet."""

    POSITIONAL = "POSITIONAL"  # header-less, columns by letter
    LABELED = "LABELED"  # a header row names the columns


class RecordKind(str, Enum):
    """Target record kind declared by the operator."""

    LEDGER_PT = "ledger-PT"
    LEDGER_BR = "ledger-BR"
    RECEIPTS = "receipts"

    @property
    def is_ledger(self) -> bool:
        return self in (RecordKind.LEDGER_PT, RecordKind.LEDGER_BR)

    @property
    def ledger_country(self) -> str | None:
        """Country implied by a ledger kind (None for receipts)."""
        if self == RecordKind.LEDGER_PT:
            return "PT"
        if self == RecordKind.LEDGER_BR:
            return "BR"
        return None


class LogicalField(str, Enum):
    """Logical fields a column can be mapped to."""

    DATE = "date"
    TYPE = "type"
    BANK = "bank"
    CATEGORY = "category"
    ITEM = "item"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    PAID_FLAG = "paid"
    RECEIPT_ID = "receipt_id"
    SUPPLIER = "supplier"
    BASE_AMOUNT = "base_amount"
    RATE_PRIMARY = "rate_primary"
    RATE_SECONDARY = "rate_secondary"


LEDGER_REQUIRED_FIELDS: tuple[LogicalField, ...] = (
    LogicalField.DATE,
    LogicalField.TYPE,
    LogicalField.BANK,
    LogicalField.CATEGORY,
    LogicalField.ITEM,
    LogicalField.DESCRIPTION,
    LogicalField.AMOUNT,
    LogicalField.PAID_FLAG,
)

RECEIPT_REQUIRED_FIELDS: tuple[LogicalField, ...] = (
    LogicalField.DATE,
    LogicalField.RECEIPT_ID,
    LogicalField.SUPPLIER,
    LogicalField.CATEGORY,
    LogicalField.ITEM,
    LogicalField.BASE_AMOUNT,
    LogicalField.PAID_FLAG,
)

RECEIPT_OPTIONAL_FIELDS: tuple[LogicalField, ...] = (
    LogicalField.DESCRIPTION,
    LogicalField.RATE_PRIMARY,
    LogicalField.RATE_SECONDARY,
)


def required_fields_for(kind: RecordKind) -> tuple[LogicalField, ...]:
    """Fields that must be mapped for a record kind."""
    if kind == RecordKind.RECEIPTS:
        return RECEIPT_REQUIRED_FIELDS
    return LEDGER_REQUIRED_FIELDS


def optional_fields_for(kind: RecordKind) -> tuple[LogicalField, ...]:
    """Fields that may be mapped for a record kind."""
    if kind == RecordKind.RECEIPTS:
        return RECEIPT_OPTIONAL_FIELDS
    return ()


@dataclass(frozen=True)
class LayoutDescriptor:
    """
    Detected structure of a RawMatrix.

    Invariants:
    - len(columns) equals the widest sampled row (capped)
    - data_start_index >= 0
    - column ids are unique
    """

    mode: LayoutMode
    data_start_index: int
    columns: tuple[str, ...]
    header_row_index: int | None = None
    detector: str = ""

    def __post_init__(self) -> None:
        if self.data_start_index < 0:
            raise ValueError(f"data_start_index must be >= 0, got: {self.data_start_index}")
        if len(set(self.columns)) != len(self.columns):
            raise ValueError("column ids must be unique")

    def index_of(self, column_id: str) -> int | None:
        """Zero-based cell index of a column id, or None if unknown."""
        try:
            return self.columns.index(column_id)
        except ValueError:
            return None

    def has_column(self, column_id: str) -> bool:
        return column_id in self.columns


@dataclass(frozen=True)
class FieldMapping:
    """
    Confirmed LogicalField -> ColumnId mapping.

    Immutable once built; `auto_detected` records whether it came from the
    auto-mapper or from an operator-supplied draft.
    """

    columns: Mapping[LogicalField, str] = field(default_factory=dict)
    auto_detected: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    def column_for(self, logical_field: LogicalField) -> str | None:
        return self.columns.get(logical_field)

    def to_dict(self) -> dict[str, Any]:
        """Serializable form (stored in the import log)."""
        return {
            "auto_detected": self.auto_detected,
            "columns": {f.value: col for f, col in self.columns.items()},
        }
