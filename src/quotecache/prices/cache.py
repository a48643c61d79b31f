"""Cache view over the append-only price log."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from quotecache.core.models import PriceRecord
from quotecache.prices.store import PriceHistoryStore

logger = logging.getLogger(__name__)


class CacheStore:
    """Reads and writes price records for one or many symbols.

    Symbols are upper-cased on the way in. Writes always append; concurrent
    refreshes of one symbol may insert near-identical rows, and reads
    resolve that by taking the newest timestamp.
    """

    def __init__(self, store: PriceHistoryStore) -> None:
        self._store = store

    @property
    def store(self) -> PriceHistoryStore:
        return self._store

    async def latest(self, symbol: str) -> PriceRecord | None:
        """Most recent record for ``symbol``, or None if never fetched."""
        return await self._store.find_latest_by_symbol(symbol.upper())

    async def latest_batch(self, symbols: Iterable[str]) -> dict[str, PriceRecord]:
        """Most recent record per symbol, in a single round trip.

        Symbols without history are absent from the result.
        """
        wanted = {s.upper() for s in symbols}
        if not wanted:
            return {}
        records = await self._store.find_latest_by_symbols(wanted)
        return {record.symbol: record for record in records}

    async def append(self, symbol: str, price: Decimal, timestamp: datetime) -> None:
        """Insert a new observation."""
        upper = symbol.upper()
        await self._store.insert(upper, price, timestamp)
        logger.debug("Cached %s at %s (%s)", upper, price, timestamp.isoformat())
