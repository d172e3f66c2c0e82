"""
Settings loader (``stock_config.loader``).

Responsibility
--------------
Reads a YAML settings file with ``yaml.safe_load``, validates it, and
builds the frozen ``stock_config.schema.Settings``.  Runtime callers go
through ``stock_config.get_active_settings()``.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` listing every problem found.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    DatabaseSettings,
    LoggingSettings,
    ProcurementSettings,
    ReconciliationSettings,
    Settings,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed settings."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping")
    return value


def _positive_int(section: dict[str, Any], key: str, default: int, path: str,
                  errors: list[str]) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        errors.append(f"{path}.{key} must be a positive integer, got {value!r}")
        return default
    return value


def parse_settings(
    data: dict[str, Any],
    database_url_override: str | None = None,
) -> Settings:
    """
    Build Settings from a parsed YAML dict.

    Args:
        data: Parsed YAML.
        database_url_override: Replaces database.url when given
            (DATABASE_URL environment variable).

    Raises:
        ValueError: With every validation problem, one per line.
    """
    errors: list[str] = []

    db = _section(data, "database")
    url = database_url_override or db.get("url")
    if not url or not isinstance(url, str):
        errors.append("database.url is required")
        url = ""
    database = DatabaseSettings(
        url=url,
        echo=bool(db.get("echo", False)),
        pool_size=_positive_int(db, "pool_size", 20, "database", errors),
        max_overflow=int(db.get("max_overflow", 10)),
        pool_timeout=_positive_int(db, "pool_timeout", 30, "database", errors),
    )

    log = _section(data, "logging")
    level = str(log.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        errors.append(f"logging.level must be one of {_LOG_LEVELS}, got {level!r}")
        level = "INFO"

    recon = _section(data, "reconciliation")
    keys = recon.get("revenue_metric_keys") or []
    if not isinstance(keys, list) or not all(isinstance(k, str) and k for k in keys):
        errors.append("reconciliation.revenue_metric_keys must be a list of names")
        keys = []
    if len(set(keys)) != len(keys):
        errors.append("reconciliation.revenue_metric_keys contains duplicates")

    proc = _section(data, "procurement")
    procurement = ProcurementSettings(
        velocity_window_days=_positive_int(
            proc, "velocity_window_days", 30, "procurement", errors
        ),
        coverage_days=_positive_int(proc, "coverage_days", 14, "procurement", errors),
    )

    if errors:
        raise ValueError("Invalid settings:\n" + "\n".join(errors))

    return Settings(
        database=database,
        logging=LoggingSettings(level=level),
        reconciliation=ReconciliationSettings(revenue_metric_keys=tuple(keys)),
        procurement=procurement,
        checksum=compute_checksum(data),
    )


def log_level(settings: Settings) -> int:
    return getattr(logging, settings.logging.level)
