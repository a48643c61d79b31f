"""Shared pytest fixtures for quotecache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from quotecache.core.config import StorageConfig
from quotecache.core.models import ProviderQuote
from quotecache.prices.cache import CacheStore
from quotecache.prices.chain import PriceProviderChain
from quotecache.prices.service import StockPriceService
from quotecache.prices.store import SqlitePriceHistoryStore


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class FakeFetcher:
    """QuoteFetcher double that records calls and replays canned results."""

    def __init__(
        self,
        name: str,
        result: ProviderQuote | None = None,
        configured: bool = True,
    ) -> None:
        self.name = name
        self.result = result
        self.configured = configured
        self.calls: list[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        self.calls.append(symbol)
        return self.result


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now: datetime) -> FrozenClock:
    return FrozenClock(now)


@pytest.fixture
async def history_store():
    """An initialized in-memory price log."""
    store = SqlitePriceHistoryStore(StorageConfig(sqlite_path=":memory:"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def cache(history_store: SqlitePriceHistoryStore) -> CacheStore:
    return CacheStore(history_store)


@pytest.fixture
def make_fetcher():
    """Factory for FakeFetcher instances."""

    def _make(name: str, price: str | None = None, currency: str | None = None, **kwargs):
        result = (
            ProviderQuote(price=Decimal(price), currency=currency, source=name)
            if price is not None
            else None
        )
        return FakeFetcher(name, result=result, **kwargs)

    return _make


@pytest.fixture
def make_service(cache: CacheStore, clock: FrozenClock):
    """Factory for a StockPriceService over the in-memory cache."""

    def _make(*fetchers, batch_delay: float = 0.0) -> StockPriceService:
        return StockPriceService(
            cache,
            PriceProviderChain(list(fetchers)),
            batch_delay=batch_delay,
            clock=clock,
        )

    return _make
