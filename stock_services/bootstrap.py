"""
Process startup wiring.

``bootstrap()`` turns settings into a ready StockBackOffice: logging
configured, engine initialized, tables present, immutability listeners
registered.
"""

from __future__ import annotations

from pathlib import Path

from stock_config import get_active_settings
from stock_config.loader import log_level
from stock_config.schema import Settings
from stock_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.logging_config import configure_logging, get_logger
from stock_services.back_office import StockBackOffice

logger = get_logger("bootstrap")


def bootstrap(
    settings: Settings | None = None,
    *,
    config_path: Path | str | None = None,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> StockBackOffice:
    """
    Build a StockBackOffice from settings.

    Args:
        settings: Pre-built settings; loaded via get_active_settings()
            (honouring ``config_path``) when omitted.
        clock: Time source; the system UTC clock by default.
        create_schema: Create missing tables.
    """
    settings = settings or get_active_settings(config_path)
    configure_logging(level=log_level(settings))

    db = settings.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
    if create_schema:
        create_tables()
    register_immutability_listeners()

    logger.info(
        "back_office_ready",
        extra={"settings_checksum": settings.checksum},
    )
    return StockBackOffice(get_session_factory(), clock or SystemClock(), settings)
