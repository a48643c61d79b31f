"""quotecache: cached stock prices with provider fallback."""

from quotecache.core.models import PriceError, PriceQuote, is_error
from quotecache.prices.service import StockPriceService, create_service

__version__ = "0.1.0"

__all__ = [
    "PriceError",
    "PriceQuote",
    "StockPriceService",
    "create_service",
    "is_error",
    "__version__",
]
