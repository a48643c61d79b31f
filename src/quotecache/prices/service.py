"""Stock price service: cache first, then providers, then stale data.

Resolution order for one symbol:

1. Newest cached record, if younger than the TTL (no network call).
2. Provider chain (primary, then secondary). A hit is appended to the log.
3. Newest cached record regardless of age (stale fallback).
4. ``PriceError`` with a fixed, provider-neutral message.

Nothing below this layer raises for ordinary upstream failures; they are
folded into the returned ``StockPriceResult``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from quotecache.core.config import QuoteCacheConfig
from quotecache.core.exceptions import QuoteCacheError
from quotecache.core.models import (
    DEFAULT_CURRENCY,
    UNAVAILABLE_MESSAGE,
    PriceError,
    PriceQuote,
    PriceRecord,
    RefreshSummary,
    is_error,
    normalize_symbol,
)
from quotecache.prices.cache import CacheStore
from quotecache.prices.chain import PriceProviderChain
from quotecache.prices.currency import infer_currency
from quotecache.prices.store import create_history_store
from quotecache.prices.transport import HttpTransport, HttpxTransport

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=6)
DEFAULT_BATCH_DELAY = 0.2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockPriceService:
    """Serves stock prices from the price log and upstream providers.

    Parameters
    ----------
    cache : CacheStore
        View over the append-only price log.
    chain : PriceProviderChain
        Upstream fetchers in priority order.
    ttl : timedelta
        A cached record younger than this is served without a fetch.
    batch_delay : float
        Seconds to wait between consecutive provider-bound symbols in a
        batch, to avoid bursting the upstream APIs.
    clock : Callable[[], datetime] | None
        Source of "now" (timezone-aware). Defaults to UTC wall clock.
    transport : HttpTransport | None
        Closed together with the service when given.
    """

    is_error = staticmethod(is_error)

    def __init__(
        self,
        cache: CacheStore,
        chain: PriceProviderChain,
        *,
        ttl: timedelta = DEFAULT_TTL,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        clock: Callable[[], datetime] | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self._cache = cache
        self._chain = chain
        self._ttl = ttl
        self._batch_delay = batch_delay
        self._clock = clock or _utcnow
        self._transport = transport

    async def __aenter__(self) -> StockPriceService:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the price store connection and the HTTP transport."""
        await self._cache.store.close()
        if self._transport is not None:
            await self._transport.close()

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def chain(self) -> PriceProviderChain:
        return self._chain

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def is_fresh(self, record: PriceRecord, now: datetime | None = None) -> bool:
        """True while the record is strictly younger than the TTL."""
        now = now or self._clock()
        return now - record.timestamp < self._ttl

    # --- Single symbol ---

    async def get_price(self, symbol: str) -> PriceQuote | PriceError:
        """Resolve one symbol: fresh cache, providers, stale cache, error."""
        upper = normalize_symbol(symbol)

        record = await self._cache.latest(upper)
        if record is not None and self.is_fresh(record):
            logger.debug("Cache hit for %s", upper)
            return self._quote_from_record(record)

        return await self._resolve_live(upper)

    async def force_refresh(self, symbol: str) -> PriceQuote | PriceError:
        """Skip the freshness check and go straight to the providers.

        Still falls back to the newest cached record when every provider
        fails.
        """
        return await self._resolve_live(normalize_symbol(symbol))

    async def peek_latest(self, symbol: str) -> PriceQuote | None:
        """Newest cached price regardless of age; never fetches."""
        record = await self._cache.latest(normalize_symbol(symbol))
        if record is None:
            return None
        return self._quote_from_record(record)

    # --- Batch ---

    async def get_prices(
        self, symbols: Iterable[str]
    ) -> dict[str, PriceQuote | PriceError]:
        """Resolve many symbols with one cache read.

        Input is upper-cased and de-duplicated. Fresh hits are answered
        from the batch read; the rest go through ``get_price`` one at a
        time with ``batch_delay`` between them. Each symbol's result is
        independent of the others.
        """
        normalized = list(dict.fromkeys(normalize_symbol(s) for s in symbols))
        if not normalized:
            return {}

        cached = await self._cache.latest_batch(normalized)
        now = self._clock()

        results: dict[str, PriceQuote | PriceError] = {}
        queued: list[str] = []
        for symbol in normalized:
            record = cached.get(symbol)
            if record is not None and self.is_fresh(record, now):
                results[symbol] = self._quote_from_record(record)
            else:
                queued.append(symbol)

        logger.debug(
            "Batch of %d: %d cache hits, %d to fetch",
            len(normalized),
            len(normalized) - len(queued),
            len(queued),
        )

        for i, symbol in enumerate(queued):
            if i > 0:
                await self._pause()
            results[symbol] = await self.get_price(symbol)

        return {symbol: results[symbol] for symbol in normalized}

    async def refresh_many(self, symbols: Iterable[str]) -> RefreshSummary:
        """Force-refresh every symbol, for scheduled jobs.

        ``updated`` counts symbols that got a new provider price; anything
        else (stale fallback, error, invalid symbol) counts as ``failed``.
        One symbol's failure never stops the run.
        """
        summary = RefreshSummary()
        seen: set[str] = set()
        first = True

        for raw in symbols:
            key = raw.strip().upper() if isinstance(raw, str) else repr(raw)
            if key in seen:
                continue
            seen.add(key)

            if not first:
                await self._pause()
            first = False

            try:
                result = await self.force_refresh(raw)
            except QuoteCacheError as e:
                logger.error("Refresh failed for %r: %s", raw, e)
                summary.failed += 1
                continue

            if is_error(result) or result.from_cache:
                logger.warning("Failed to refresh price for %s", key)
                summary.failed += 1
            else:
                summary.updated += 1
                summary.symbols.append(result.symbol)

        logger.info(
            "Price refresh complete: %d updated, %d failed", summary.updated, summary.failed
        )
        return summary

    # --- Internals ---

    async def _resolve_live(self, symbol: str) -> PriceQuote | PriceError:
        fetched = await self._chain.fetch(symbol)
        if fetched is not None:
            now = self._clock()
            logger.info("Fetched %s from %s: %s", symbol, fetched.source, fetched.price)
            await self._cache.append(symbol, fetched.price, now)
            return PriceQuote(
                symbol=symbol,
                price=fetched.price,
                currency=fetched.currency or DEFAULT_CURRENCY,
                timestamp=now,
                from_cache=False,
            )

        fallback = await self._cache.latest(symbol)
        if fallback is not None:
            logger.warning(
                "All providers failed for %s; serving cached price from %s",
                symbol,
                fallback.timestamp.isoformat(),
            )
            return self._quote_from_record(fallback)

        logger.error("No price available for %s from any provider or cache", symbol)
        return PriceError(symbol=symbol, error=UNAVAILABLE_MESSAGE)

    async def _pause(self) -> None:
        if self._batch_delay > 0:
            await asyncio.sleep(self._batch_delay)

    @staticmethod
    def _quote_from_record(record: PriceRecord) -> PriceQuote:
        # The log stores no currency, so cached reads infer it from the suffix.
        return PriceQuote(
            symbol=record.symbol,
            price=record.price,
            currency=infer_currency(record.symbol),
            timestamp=record.timestamp,
            from_cache=True,
        )


async def create_service(
    config: QuoteCacheConfig,
    *,
    transport: HttpTransport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> StockPriceService:
    """Build the full stack (store, transport, chain, service) from config.

    A transport passed in stays owned by the caller.
    """
    store = await create_history_store(config.storage)
    owned: HttpTransport | None = None
    if transport is None:
        transport = owned = HttpxTransport(
            timeout=config.providers.request_timeout,
            user_agent=config.providers.user_agent,
        )
    chain = PriceProviderChain.from_config(config.providers, transport)
    return StockPriceService(
        CacheStore(store),
        chain,
        ttl=timedelta(seconds=config.cache.ttl_seconds),
        batch_delay=config.cache.batch_delay_seconds,
        clock=clock,
        transport=owned,
    )
