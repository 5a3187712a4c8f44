"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses produced by the loader.  Numeric limits are validated in
``__post_init__`` so an invalid YAML file fails at load time, not at the
first posting.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LedgerSettings:
    """Runtime settings for posting and report generation."""

    config_id: str = "default"
    version: int = 1
    balance_tolerance: Decimal = Decimal("0.01")
    money_decimal_places: int = 2
    report_round_default: int = 2
    report_round_max: int = 6
    line_limit_default: int = 200
    line_limit_max: int = 500
    default_currency: str = "IDR"

    def __post_init__(self) -> None:
        if self.balance_tolerance <= 0:
            raise ValueError("balance_tolerance must be positive")
        if not 0 <= self.money_decimal_places <= 9:
            raise ValueError("money_decimal_places must be between 0 and 9")
        if self.balance_tolerance > Decimal(1).scaleb(-self.money_decimal_places):
            raise ValueError("balance_tolerance must not exceed one unit of money precision")
        if not 0 <= self.report_round_default <= self.report_round_max:
            raise ValueError("report_round_default must be between 0 and report_round_max")
        if not 1 <= self.line_limit_default <= self.line_limit_max:
            raise ValueError("line_limit_default must be between 1 and line_limit_max")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter code")
