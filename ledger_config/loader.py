"""
Configuration Loader (``ledger_config.loader``).

Loads a YAML settings file and parses it into ``LedgerSettings``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or non-numeric values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    # Floats are read through str so "0.01" and 0.01 parse identically
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: not a decimal: {value!r}") from exc


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """Build ``LedgerSettings`` from a parsed YAML mapping."""
    defaults = LedgerSettings()
    posting = data.get("posting") or {}
    reports = data.get("reports") or {}
    currency = data.get("currency") or {}

    return LedgerSettings(
        config_id=str(data.get("config_id", defaults.config_id)),
        version=int(data.get("version", defaults.version)),
        balance_tolerance=parse_decimal(
            posting.get("balance_tolerance", defaults.balance_tolerance),
            "posting.balance_tolerance",
        ),
        money_decimal_places=int(
            posting.get("money_decimal_places", defaults.money_decimal_places)
        ),
        report_round_default=int(reports.get("round_default", defaults.report_round_default)),
        report_round_max=int(reports.get("round_max", defaults.report_round_max)),
        line_limit_default=int(
            reports.get("line_limit_default", defaults.line_limit_default)
        ),
        line_limit_max=int(reports.get("line_limit_max", defaults.line_limit_max)),
        default_currency=str(currency.get("default", defaults.default_currency)).upper(),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed settings mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
