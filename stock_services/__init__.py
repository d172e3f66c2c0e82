"""
stock_services -- transaction-owning entry points of the stock back-office.

Dependency direction:
    stock_services/ -> stock_kernel/, stock_config/   (allowed)
    stock_kernel/   -> stock_services/                 (FORBIDDEN)
"""

from stock_services.back_office import StockBackOffice
from stock_services.bootstrap import bootstrap

__all__ = ["StockBackOffice", "bootstrap"]
