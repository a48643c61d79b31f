"""Stock price acquisition and caching.

Architecture
------------
    caller → StockPriceService → CacheStore (read)
                               → PriceProviderChain → Yahoo / Alpha Vantage
                               → CacheStore (append)

Key abstractions:

- ``PriceHistoryStore``: persistence contract for the append-only log.
- ``CacheStore``: latest / latest_batch / append over that log.
- ``QuoteFetcher``: one upstream source; returns None instead of raising.
- ``PriceProviderChain``: fetchers tried in order, first price wins.
- ``StockPriceService``: orchestration, TTL policy, stale fallback.
"""

from quotecache.prices.alpha_vantage import AlphaVantageQuoteFetcher
from quotecache.prices.cache import CacheStore
from quotecache.prices.chain import PriceProviderChain, QuoteFetcher, parse_price
from quotecache.prices.currency import SUFFIX_CURRENCIES, infer_currency
from quotecache.prices.service import StockPriceService, create_service
from quotecache.prices.store import (
    PriceHistoryStore,
    SqlitePriceHistoryStore,
    create_history_store,
)
from quotecache.prices.transport import HttpTransport, HttpxTransport, get_json
from quotecache.prices.yahoo import YahooQuoteFetcher

__all__ = [
    # Currency
    "SUFFIX_CURRENCIES",
    "infer_currency",
    # Storage
    "PriceHistoryStore",
    "SqlitePriceHistoryStore",
    "create_history_store",
    "CacheStore",
    # HTTP
    "HttpTransport",
    "HttpxTransport",
    "get_json",
    # Providers
    "QuoteFetcher",
    "PriceProviderChain",
    "parse_price",
    "YahooQuoteFetcher",
    "AlphaVantageQuoteFetcher",
    # Service
    "StockPriceService",
    "create_service",
]
