"""
Tests for ledger_config -- YAML settings loading and validation.
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config import (
    LedgerSettings,
    get_settings,
    load_settings,
    reset_settings_cache,
)
from ledger_config.loader import compute_checksum, parse_settings


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    reset_settings_cache()
    yield
    reset_settings_cache()


class TestDefaultSet:
    """The bundled default.yaml."""

    def test_defaults(self):
        settings = get_settings()
        assert settings.balance_tolerance == Decimal("0.01")
        assert settings.money_decimal_places == 2
        assert settings.report_round_default == 2
        assert settings.report_round_max == 6
        assert settings.line_limit_default == 200
        assert settings.line_limit_max == 500
        assert settings.default_currency == "IDR"

    def test_cached_per_path(self):
        assert get_settings() is get_settings()

    def test_load_is_logged(self, captured_logs):
        get_settings()
        records = [r for r in captured_logs() if r["message"] == "ledger_config_loaded"]
        assert len(records) == 1
        assert records[0]["config_id"] == "default"
        assert len(records[0]["checksum"]) == 64


class TestOverrides:

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        path = tmp_path / "strict.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "config_id": "strict",
                    "posting": {"balance_tolerance": "0.001"},
                    "reports": {"line_limit_default": 50},
                    "currency": {"default": "usd"},
                }
            )
        )
        monkeypatch.setenv("LEDGER_CONFIG_PATH", str(path))

        settings = get_settings()
        assert settings.config_id == "strict"
        assert settings.balance_tolerance == Decimal("0.001")
        assert settings.line_limit_default == 50
        assert settings.default_currency == "USD"
        # Untouched sections keep their defaults
        assert settings.report_round_max == 6

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("config_id: explicit\n")
        monkeypatch.setenv("LEDGER_CONFIG_PATH", str(tmp_path / "missing.yaml"))
        assert get_settings(explicit).config_id == "explicit"

    def test_empty_file_yields_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == LedgerSettings()


class TestValidation:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("posting: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_settings(path)

    @pytest.mark.parametrize(
        "data",
        [
            {"posting": {"balance_tolerance": "0"}},
            {"posting": {"balance_tolerance": "abc"}},
            {"posting": {"money_decimal_places": 12}},
            {"posting": {"balance_tolerance": "0.05"}},
            {"posting": {"money_decimal_places": 3}},
            {"reports": {"round_default": 7}},
            {"reports": {"line_limit_default": 501}},
            {"currency": {"default": "RUPIAH"}},
        ],
    )
    def test_out_of_range_values(self, data):
        with pytest.raises(ValueError):
            parse_settings(data)

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
