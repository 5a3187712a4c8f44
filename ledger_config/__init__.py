"""
ledger_config -- single entrypoint for ledger settings.

Responsibility:
    ``get_settings()`` is the only way services obtain configuration.  It
    reads a YAML settings set (``sets/default.yaml`` unless
    ``LEDGER_CONFIG_PATH`` or an explicit path says otherwise) and returns a
    frozen ``LedgerSettings``.

Audit relevance:
    Every load emits a ``ledger_config_loaded`` log entry with the config id,
    version, and checksum of the parsed file.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from ledger_config.loader import compute_checksum, load_yaml_file, parse_settings
from ledger_config.schema import LedgerSettings
from ledger_kernel.logging_config import get_logger

__all__ = ["LedgerSettings", "get_settings", "load_settings", "reset_settings_cache"]

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"


def load_settings(path: Path | str) -> LedgerSettings:
    """Load and validate settings from a specific YAML file."""
    path = Path(path)
    data = load_yaml_file(path)
    settings = parse_settings(data)
    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": settings.config_id,
            "version": settings.version,
            "path": str(path),
            "checksum": compute_checksum(data),
        },
    )
    return settings


@lru_cache(maxsize=8)
def _cached_settings(path: str) -> LedgerSettings:
    return load_settings(path)


def get_settings(path: Path | str | None = None) -> LedgerSettings:
    """
    The public configuration entrypoint.

    Resolution order: explicit ``path``, then ``LEDGER_CONFIG_PATH``, then the
    bundled default set.  Results are cached per resolved path.
    """
    resolved = path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH
    return _cached_settings(str(resolved))


def reset_settings_cache() -> None:
    """Forget cached settings. FOR TESTING ONLY."""
    _cached_settings.cache_clear()
