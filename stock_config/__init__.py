"""
stock_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Resolution order:
    1. ``path`` argument.
    2. ``STOCK_KERNEL_CONFIG`` environment variable.
    3. The packaged ``stock_config/sets/default.yaml``.
    ``DATABASE_URL``, when set, replaces ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- validation failures (all listed).

Audit relevance:
    Every call emits a ``stock_config_loaded`` log entry with the source
    path and the settings checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_settings
from stock_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    ProcurementSettings,
    ReconciliationSettings,
    Settings,
)

_logger = logging.getLogger("stock_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "STOCK_KERNEL_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_settings(path: Path | str | None = None) -> Settings:
    """The ONLY public settings entrypoint."""
    source = Path(path or os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_PATH)
    data = load_yaml_file(source)
    settings = parse_settings(
        data, database_url_override=os.environ.get(DATABASE_URL_ENV_VAR)
    )
    _logger.info(
        "stock_config_loaded",
        extra={"source": str(source), "checksum": settings.checksum},
    )
    return settings


__all__ = [
    "get_active_settings",
    "Settings",
    "DatabaseSettings",
    "LoggingSettings",
    "ProcurementSettings",
    "ReconciliationSettings",
]
