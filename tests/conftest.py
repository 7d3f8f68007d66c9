"""Test fixtures and utilities."""

import itertools
from pathlib import Path

import pytest
import yaml

from ledger_import.config import Config
from ledger_import.reference import ReferenceData
from ledger_import.schemas import freeze_matrix
from ledger_import.state_store import StateStore

REFERENCE_DICT = {
    "categories": [
        {
            "id": "CAT-SERV",
            "name": "Services",
            "items": [
                {"id": "ITM-CONS", "name": "Consulting"},
                {"id": "ITM-TRN", "name": "Training"},
            ],
        },
        {
            "id": "CAT-FOOD",
            "name": "Alimentação",
            "items": [
                {"id": "ITM-SUP", "name": "Supermercado"},
                {"id": "ITM-REST", "name": "Restaurante"},
            ],
        },
        {
            "id": "CAT-SAL",
            "name": "Salário",
            "items": [{"id": "ITM-SAL", "name": "Salário mensal"}],
        },
    ],
    "payment_methods": [
        {"id": "PM-NBV", "name": "NB VISA D"},
        {"id": "PM-NB", "name": "NB"},
        {"id": "PM-BB", "name": "BB"},
        {"id": "PM-MIL", "name": "Millennium"},
    ],
    "suppliers": [
        {"id": "SUP-ACME", "name": "ACME"},
        {"id": "SUP-CAFE", "name": "Café Central"},
    ],
}

# Scenario row: receipt REC-001 from ACME, base 1000, IRS 11.5%, IVA 23%, paid
RECEIPT_ROW = ("2024-03-10", "REC-001", "ACME", "Services", "Consulting", "", 1000, "11.5", "23", "S")

LEGACY_BANNER = (
    ("RECIBOS EMITIDOS 2024",),
    ("Empresa Exemplo Lda", None, None),
    ("Exportado em", "2024-04-01"),
)


@pytest.fixture
def reference() -> ReferenceData:
    """Reference data snapshot used across tests."""
    return ReferenceData.from_dict(REFERENCE_DICT)


@pytest.fixture
def reference_file(tmp_path) -> Path:
    """Reference data written as YAML."""
    path = tmp_path / "reference.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(REFERENCE_DICT, f, allow_unicode=True)
    return path


@pytest.fixture
def config() -> Config:
    """Default configuration."""
    return Config()


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """Fresh state store."""
    return StateStore(temp_db)


@pytest.fixture
def sequential_ids():
    """Deterministic candidate id factory: c1, c2, ..."""
    counter = itertools.count(1)
    return lambda: f"c{next(counter)}"


@pytest.fixture
def legacy_receipts_matrix():
    """Legacy export: 3 banner rows, then one receipt row at index 3."""
    return freeze_matrix([*LEGACY_BANNER, RECEIPT_ROW])


@pytest.fixture
def labeled_ledger_matrix():
    """Header-labeled ledger export with a title row above the header."""
    return freeze_matrix(
        [
            ("Lançamentos exportados",),
            ("Descrição", "Data", "Tipo", "Banco", "Categoria", "Conta", "Valor", "Pago"),
            ("Compras da semana", "05/01/2024", "Despesa", "NB", "Alimentação", "Supermercado", "1.234,56", "Sim"),
            ("Salário janeiro", "31/01/2024", "Receita", "BB", "Salário", "Salário mensal", "3,500.00", "pago"),
            ("", "", "", "", "", "", "", ""),
            ("Jantar", "2024-02-03", "Despesa", "Millennium", "Alimentação", "Restaurante", 45.9, "não pago"),
        ]
    )
