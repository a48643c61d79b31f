"""quotecache.core: foundation types, config, and exceptions."""

from quotecache.core.config import (
    AlphaVantageConfig,
    APIConfig,
    CacheConfig,
    ProvidersConfig,
    QuoteCacheConfig,
    StorageConfig,
    YahooConfig,
    load_config,
)
from quotecache.core.exceptions import (
    ConfigError,
    ProviderError,
    QuoteCacheError,
    StorageError,
    SymbolError,
)
from quotecache.core.models import (
    DEFAULT_CURRENCY,
    UNAVAILABLE_MESSAGE,
    CurrencyCode,
    PriceError,
    PriceQuote,
    PriceRecord,
    ProviderQuote,
    RefreshSummary,
    StockPriceResult,
    Symbol,
    is_error,
    normalize_symbol,
)

__all__ = [
    # Type aliases
    "CurrencyCode",
    "Symbol",
    "StockPriceResult",
    # Constants
    "DEFAULT_CURRENCY",
    "UNAVAILABLE_MESSAGE",
    # Models
    "PriceRecord",
    "ProviderQuote",
    "PriceQuote",
    "PriceError",
    "RefreshSummary",
    "is_error",
    "normalize_symbol",
    # Config
    "QuoteCacheConfig",
    "StorageConfig",
    "CacheConfig",
    "ProvidersConfig",
    "YahooConfig",
    "AlphaVantageConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "QuoteCacheError",
    "ConfigError",
    "SymbolError",
    "ProviderError",
    "StorageError",
]
