"""
Reference data snapshot.

Read-only lookup tables consulted while validating rows:
- Categories, each with an ordered list of line items
- Payment methods (banks, cards, cash)
- Suppliers

Name lookups are exact after `normalize_key` (case and diacritic
insensitive). There is no fuzzy matching: "Servicess" does not resolve to
"Services".
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from ..cells.coercion import normalize_key

logger = logging.getLogger(__name__)


class ReferenceDataError(Exception):
    """Raised when a reference snapshot cannot be loaded."""

    pass


@dataclass(frozen=True)
class NamedRef:
    """A reference entry identified by a stable id and a human label."""

    id: str
    name: str


@dataclass(frozen=True)
class LineItemRef:
    """A line item (account) within a category."""

    id: str
    name: str


@dataclass(frozen=True)
class Category:
    """A category and its ordered line items."""

    id: str
    name: str
    items: tuple[LineItemRef, ...] = ()

    def find_item(self, name: Any) -> Optional[LineItemRef]:
        """Find a line item of this category by normalized name."""
        key = normalize_key(name)
        if not key:
            return None
        for item in self.items:
            if normalize_key(item.name) == key:
                return item
        return None


def _index(entries: tuple) -> dict[str, Any]:
    """Build a normalized-name index; the first entry with a name wins."""
    index: dict[str, Any] = {}
    for entry in entries:
        key = normalize_key(entry.name)
        if not key:
            continue
        if key in index:
            logger.debug("Duplicate reference name '%s' (keeping id %s)", entry.name, index[key].id)
            continue
        index[key] = entry
    return index


@dataclass(frozen=True)
class ReferenceData:
    """Immutable snapshot of the reference tables for one import run."""

    categories: tuple[Category, ...] = ()
    payment_methods: tuple[NamedRef, ...] = ()
    suppliers: tuple[NamedRef, ...] = ()
    _category_index: dict[str, Category] = field(init=False, repr=False, compare=False)
    _payment_index: dict[str, NamedRef] = field(init=False, repr=False, compare=False)
    _supplier_index: dict[str, NamedRef] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", tuple(self.categories))
        object.__setattr__(self, "payment_methods", tuple(self.payment_methods))
        object.__setattr__(self, "suppliers", tuple(self.suppliers))
        object.__setattr__(self, "_category_index", _index(self.categories))
        object.__setattr__(self, "_payment_index", _index(self.payment_methods))
        object.__setattr__(self, "_supplier_index", _index(self.suppliers))

    def lookup_category_by_name(self, name: Any) -> Optional[Category]:
        return self._category_index.get(normalize_key(name))

    def lookup_payment_method_by_name(self, name: Any) -> Optional[str]:
        ref = self._payment_index.get(normalize_key(name))
        return ref.id if ref else None

    def lookup_supplier_by_name(self, name: Any) -> Optional[str]:
        ref = self._supplier_index.get(normalize_key(name))
        return ref.id if ref else None

    def default_payment_method_id(self, preferred_names: list[str]) -> Optional[str]:
        """
        Pick the default payment method for generated ledger entries.

        Preference order:
        1. Exact name match, in the order of `preferred_names`
        2. A method whose name starts with a preferred name ("NB VISA")
        3. A method whose name contains a preferred name
        4. The first configured method

        An exact "NB" therefore wins over "NB VISA D" even if the latter is
        listed first.

        Returns:
            Payment method id, or None if no methods are configured
        """
        if not self.payment_methods:
            return None

        names = [normalize_key(n) for n in preferred_names if normalize_key(n)]
        methods = [(normalize_key(m.name), m.id) for m in self.payment_methods]

        for wanted in names:
            for method_name, method_id in methods:
                if method_name == wanted:
                    return method_id

        for wanted in names:
            for method_name, method_id in methods:
                if method_name.startswith(wanted + " "):
                    return method_id

        for wanted in names:
            for method_name, method_id in methods:
                if wanted in method_name:
                    return method_id

        return self.payment_methods[0].id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReferenceData":
        """
        Build a snapshot from plain data.

        Expected shape:
            categories: [{id, name, items: [{id, name}]}]
            payment_methods: [{id, name}]
            suppliers: [{id, name}]
        """
        try:
            categories = tuple(
                Category(
                    id=str(c["id"]),
                    name=str(c["name"]),
                    items=tuple(
                        LineItemRef(id=str(i["id"]), name=str(i["name"]))
                        for i in c.get("items") or []
                    ),
                )
                for c in data.get("categories") or []
            )
            payment_methods = tuple(
                NamedRef(id=str(p["id"]), name=str(p["name"]))
                for p in data.get("payment_methods") or []
            )
            suppliers = tuple(
                NamedRef(id=str(s["id"]), name=str(s["name"])) for s in data.get("suppliers") or []
            )
        except (KeyError, TypeError) as e:
            raise ReferenceDataError(f"Malformed reference data: {e}") from e

        return cls(categories=categories, payment_methods=payment_methods, suppliers=suppliers)


def load_reference_data(path: Path) -> ReferenceData:
    """
    Load a reference snapshot from a YAML file.

    Raises:
        ReferenceDataError: If the file is missing or malformed
    """
    if not path.exists():
        raise ReferenceDataError(f"Reference data file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ReferenceDataError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ReferenceDataError(f"Reference data in {path} must be a mapping")

    reference = ReferenceData.from_dict(data)
    logger.info(
        "Loaded reference data: %d categories, %d payment methods, %d suppliers",
        len(reference.categories),
        len(reference.payment_methods),
        len(reference.suppliers),
    )
    return reference
