"""
Configuration management (SSOT).

This module defines ALL configuration for the import pipeline.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Tax defaults are jurisdiction policy, never literals inside the row parser
- Detection windows (banner offset, header scan depth) live here, not in detectors
- Environment variables override YAML values, YAML overrides defaults
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


class SecondaryTaxTreatment(str, Enum):
    """
    How the secondary tax of a receipt affects the received amount.

    ADDITIVE: charged on top of the base and handed over with the payment
              (PT: IVA is added to what the issuer receives)
    WITHHELD: retained at source like the primary tax
              (BR: IRPF is withheld together with INSS)
    """

    ADDITIVE = "ADDITIVE"
    WITHHELD = "WITHHELD"


@dataclass
class TaxPolicy:
    """Per-jurisdiction receipt tax policy.

    The primary tax is always withheld from the base amount. The secondary
    tax follows `secondary_treatment`.
    """

    country: str
    primary_rate: Decimal
    secondary_rate: Decimal
    secondary_treatment: SecondaryTaxTreatment = SecondaryTaxTreatment.ADDITIVE
    # Labels used in the review tax breakdown
    primary_label: str = "primary tax"
    secondary_label: str = "secondary tax"


def _default_tax_policies() -> dict[str, TaxPolicy]:
    return {
        "PT": TaxPolicy(
            country="PT",
            primary_rate=Decimal("11.5"),
            secondary_rate=Decimal("23"),
            secondary_treatment=SecondaryTaxTreatment.ADDITIVE,
            primary_label="IRS",
            secondary_label="IVA",
        ),
        "BR": TaxPolicy(
            country="BR",
            primary_rate=Decimal("11"),
            secondary_rate=Decimal("27.5"),
            secondary_treatment=SecondaryTaxTreatment.WITHHELD,
            primary_label="INSS",
            secondary_label="IRPF",
        ),
    }


def _default_payment_methods() -> dict[str, list[str]]:
    return {
        "PT": ["NB", "NOVO BANCO", "NOVOBANCO", "NOVO-BANCO"],
        "BR": ["BB", "BANCO DO BRASIL"],
    }


@dataclass
class DetectionConfig:
    """Structure detection windows."""

    # Legacy exports carry a 3-row banner; data starts at this row index
    legacy_data_start: int = 3
    # Rows sampled after the banner to size the column set
    legacy_sample_rows: int = 17
    # Hard cap on synthesized letter columns
    max_columns: int = 30
    # Rows scanned for a header row
    header_scan_rows: int = 10
    # Minimum non-empty cells for a header row
    header_min_cells: int = 3
    # Tokens that mark a row as a header (normalized, substring match)
    header_hint_tokens: list[str] = field(
        default_factory=lambda: ["data", "date", "valor", "issue", "amount"]
    )


@dataclass
class ImportConfig:
    """Import session behaviour."""

    # Exclude drafts whose fingerprint already exists in the store
    skip_existing: bool = True
    # Jurisdiction applied to receipt imports
    receipts_country: str = "PT"


@dataclass
class AmountValidationConfig:
    """Amount validation settings (SSOT)."""

    # Reject negative ledger amounts (zero is always rejected)
    require_positive: bool = False
    # Maximum amount value (sanity check)
    max_amount: Decimal = Decimal("1000000")


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    amount_validation: AmountValidationConfig = field(default_factory=AmountValidationConfig)
    tax_policies: dict[str, TaxPolicy] = field(default_factory=_default_tax_policies)
    default_payment_methods: dict[str, list[str]] = field(
        default_factory=_default_payment_methods
    )
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))
    reference_data_path: Path = field(default_factory=lambda: Path("data/reference.yaml"))

    def tax_policy_for(self, country: str) -> TaxPolicy:
        """Get the tax policy for a jurisdiction.

        Raises:
            ConfigValidationError: If no policy is configured for the country
        """
        policy = self.tax_policies.get(country.upper())
        if policy is None:
            raise ConfigValidationError(f"No tax policy configured for country '{country}'")
        return policy

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.imports.receipts_country.upper() not in self.tax_policies:
            errors.append(
                f"imports.receipts_country '{self.imports.receipts_country}' has no tax policy"
            )

        for country, policy in self.tax_policies.items():
            if policy.primary_rate < 0 or policy.secondary_rate < 0:
                errors.append(f"tax_policies.{country}: rates must be >= 0")

        if self.detection.legacy_data_start < 0:
            errors.append("detection.legacy_data_start must be >= 0")
        if self.detection.max_columns <= 0:
            errors.append("detection.max_columns must be > 0")
        if self.detection.header_min_cells <= 0:
            errors.append("detection.header_min_cells must be > 0")

        if self.amount_validation.max_amount <= 0:
            errors.append("amount_validation.max_amount must be > 0")

        return errors


def _parse_bool(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def _parse_tax_policies(data: dict) -> dict[str, TaxPolicy]:
    policies = _default_tax_policies()
    for country, raw in (data or {}).items():
        code = str(country).upper()
        base = policies.get(code)
        treatment_raw = raw.get(
            "secondary_treatment",
            base.secondary_treatment.value if base else SecondaryTaxTreatment.ADDITIVE.value,
        )
        try:
            treatment = SecondaryTaxTreatment(str(treatment_raw).upper())
        except ValueError as e:
            raise ConfigValidationError(
                f"tax_policies.{code}.secondary_treatment must be ADDITIVE or WITHHELD, "
                f"got: {treatment_raw}"
            ) from e

        policies[code] = TaxPolicy(
            country=code,
            primary_rate=Decimal(str(raw.get("primary_rate", base.primary_rate if base else 0))),
            secondary_rate=Decimal(
                str(raw.get("secondary_rate", base.secondary_rate if base else 0))
            ),
            secondary_treatment=treatment,
            primary_label=raw.get("primary_label", base.primary_label if base else "primary tax"),
            secondary_label=raw.get(
                "secondary_label", base.secondary_label if base else "secondary tax"
            ),
        )
    return policies


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - LEDGER_IMPORT_STATE_DB (state database path)
    - LEDGER_IMPORT_REFERENCE (reference data snapshot path)
    - LEDGER_IMPORT_SKIP_EXISTING (true/false)
    - LEDGER_IMPORT_RECEIPTS_COUNTRY (e.g. PT, BR)
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Detection windows
    detection_data = data.get("detection", {})
    defaults = DetectionConfig()
    detection = DetectionConfig(
        legacy_data_start=detection_data.get("legacy_data_start", defaults.legacy_data_start),
        legacy_sample_rows=detection_data.get("legacy_sample_rows", defaults.legacy_sample_rows),
        max_columns=detection_data.get("max_columns", defaults.max_columns),
        header_scan_rows=detection_data.get("header_scan_rows", defaults.header_scan_rows),
        header_min_cells=detection_data.get("header_min_cells", defaults.header_min_cells),
        header_hint_tokens=list(
            detection_data.get("header_hint_tokens", defaults.header_hint_tokens)
        ),
    )

    # Import behaviour
    imports_data = data.get("imports", {})
    skip_existing = imports_data.get("skip_existing", True)
    skip_env = os.environ.get("LEDGER_IMPORT_SKIP_EXISTING", "")
    if skip_env:
        skip_existing = _parse_bool(skip_env)

    imports = ImportConfig(
        skip_existing=_parse_bool(skip_existing),
        receipts_country=os.environ.get(
            "LEDGER_IMPORT_RECEIPTS_COUNTRY", imports_data.get("receipts_country", "PT")
        ).upper(),
    )

    # Amount validation
    amount_data = data.get("amount_validation", {})
    amount_validation = AmountValidationConfig(
        require_positive=_parse_bool(amount_data.get("require_positive", False)),
        max_amount=Decimal(str(amount_data.get("max_amount", "1000000"))),
    )

    tax_policies = _parse_tax_policies(data.get("tax_policies", {}))

    payment_methods = _default_payment_methods()
    for country, names in (data.get("default_payment_methods") or {}).items():
        payment_methods[str(country).upper()] = [str(n) for n in names]

    state_db = os.environ.get("LEDGER_IMPORT_STATE_DB", data.get("state_db_path", "data/state.db"))
    reference = os.environ.get(
        "LEDGER_IMPORT_REFERENCE", data.get("reference_data_path", "data/reference.yaml")
    )

    return Config(
        detection=detection,
        imports=imports,
        amount_validation=amount_validation,
        tax_policies=tax_policies,
        default_payment_methods=payment_methods,
        state_db_path=Path(state_db),
        reference_data_path=Path(reference),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Spreadsheet Ledger Import Configuration
#
# Environment overrides:
# - LEDGER_IMPORT_STATE_DB, LEDGER_IMPORT_REFERENCE
# - LEDGER_IMPORT_SKIP_EXISTING, LEDGER_IMPORT_RECEIPTS_COUNTRY

# Structure detection windows
detection:
  legacy_data_start: 3          # Legacy exports: 3 banner rows, data from row index 3
  legacy_sample_rows: 17        # Rows sampled to size the letter columns
  max_columns: 30               # Cap on synthesized letter columns
  header_scan_rows: 10          # Rows scanned for a header row
  header_min_cells: 3           # Minimum non-empty cells in a header row
  header_hint_tokens: ["data", "date", "valor", "issue", "amount"]

# Import session behaviour
imports:
  skip_existing: true           # Exclude rows whose fingerprint is already stored
  receipts_country: "PT"        # Jurisdiction for receipt imports

# Amount validation (SSOT)
amount_validation:
  require_positive: false       # Reject negative ledger amounts (zero always rejected)
  max_amount: 1000000           # Sanity check maximum

# Receipt tax policy per jurisdiction
# secondary_treatment: ADDITIVE (added to received) or WITHHELD (withheld like primary)
tax_policies:
  PT:
    primary_rate: 11.5          # IRS
    secondary_rate: 23          # IVA
    secondary_treatment: ADDITIVE
    primary_label: "IRS"
    secondary_label: "IVA"
  BR:
    primary_rate: 11            # INSS
    secondary_rate: 27.5        # IRPF
    secondary_treatment: WITHHELD
    primary_label: "INSS"
    secondary_label: "IRPF"

# Preferred payment method names for receipt-linked ledger entries
default_payment_methods:
  PT: ["NB", "NOVO BANCO"]
  BR: ["BB", "BANCO DO BRASIL"]

# Paths
state_db_path: "data/state.db"
reference_data_path: "data/reference.yaml"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
