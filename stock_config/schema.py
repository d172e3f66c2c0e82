"""
Settings schema (``stock_config.schema``).

Frozen dataclasses produced by ``stock_config.loader`` from a YAML
settings file.  Consumers receive a ``Settings`` instance and never read
files or environment variables themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class ReconciliationSettings:
    # Metrics catalog; empty accepts any target metric key
    revenue_metric_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcurementSettings:
    velocity_window_days: int = 30
    coverage_days: int = 14


@dataclass(frozen=True)
class Settings:
    """Complete runtime settings of a stock back-office deployment."""

    database: DatabaseSettings
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    reconciliation: ReconciliationSettings = field(
        default_factory=ReconciliationSettings
    )
    procurement: ProcurementSettings = field(default_factory=ProcurementSettings)
    checksum: str = ""

    @property
    def revenue_metric_keys(self) -> tuple[str, ...]:
        return self.reconciliation.revenue_metric_keys
