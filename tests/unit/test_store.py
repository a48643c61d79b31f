"""Tests for the SQLite price log and the cache view over it."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from quotecache.core.config import StorageConfig
from quotecache.core.exceptions import StorageError
from quotecache.prices.cache import CacheStore
from quotecache.prices.store import (
    PriceHistoryStore,
    SqlitePriceHistoryStore,
    create_history_store,
)

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class TestSqlitePriceHistoryStore:
    async def test_empty_store_has_no_latest(self, history_store):
        assert await history_store.find_latest_by_symbol("AAPL") is None

    async def test_insert_and_find_latest(self, history_store):
        await history_store.insert("AAPL", Decimal("150.50"), T0)
        record = await history_store.find_latest_by_symbol("AAPL")
        assert record is not None
        assert record.symbol == "AAPL"
        assert record.price == Decimal("150.50")
        assert record.timestamp == T0

    async def test_latest_is_max_timestamp(self, history_store):
        await history_store.insert("AAPL", Decimal("150"), T0)
        await history_store.insert("AAPL", Decimal("160"), T0 + timedelta(hours=1))
        await history_store.insert("AAPL", Decimal("140"), T0 - timedelta(hours=1))
        record = await history_store.find_latest_by_symbol("AAPL")
        assert record.price == Decimal("160")

    async def test_append_only_keeps_history(self, history_store):
        await history_store.insert("AAPL", Decimal("150"), T0)
        await history_store.insert("AAPL", Decimal("151"), T0 + timedelta(minutes=1))
        assert await history_store.count_records("AAPL") == 2

    async def test_full_decimal_precision(self, history_store):
        await history_store.insert("BTC-USD", Decimal("43210.123456789"), T0)
        record = await history_store.find_latest_by_symbol("BTC-USD")
        assert record.price == Decimal("43210.123456789")

    async def test_exact_duplicate_is_ignored(self, history_store):
        await history_store.insert("AAPL", Decimal("150"), T0)
        await history_store.insert("AAPL", Decimal("150"), T0)
        assert await history_store.count_records("AAPL") == 1

    async def test_non_utc_timestamp_normalized(self, history_store):
        eastern = timezone(timedelta(hours=-5))
        await history_store.insert("AAPL", Decimal("1"), T0.astimezone(eastern))
        await history_store.insert("AAPL", Decimal("2"), T0 + timedelta(seconds=1))
        record = await history_store.find_latest_by_symbol("AAPL")
        assert record.price == Decimal("2")
        assert record.timestamp.tzinfo == timezone.utc

    async def test_batch_returns_newest_per_symbol(self, history_store):
        await history_store.insert("AAPL", Decimal("150"), T0)
        await history_store.insert("AAPL", Decimal("155"), T0 + timedelta(hours=2))
        await history_store.insert("MSFT", Decimal("380"), T0)
        await history_store.insert("GOOGL", Decimal("175"), T0)

        records = await history_store.find_latest_by_symbols({"AAPL", "MSFT", "TSLA"})
        by_symbol = {r.symbol: r for r in records}
        assert set(by_symbol) == {"AAPL", "MSFT"}
        assert by_symbol["AAPL"].price == Decimal("155")
        assert by_symbol["MSFT"].price == Decimal("380")

    async def test_batch_empty_input(self, history_store):
        assert await history_store.find_latest_by_symbols([]) == []

    async def test_list_symbols(self, history_store):
        assert await history_store.list_symbols() == []
        await history_store.insert("MSFT", Decimal("1"), T0)
        await history_store.insert("AAPL", Decimal("1"), T0)
        await history_store.insert("AAPL", Decimal("2"), T0 + timedelta(seconds=1))
        assert await history_store.list_symbols() == ["AAPL", "MSFT"]
        assert await history_store.count_records() == 3

    async def test_health_check(self, history_store):
        assert await history_store.health_check() is True

    async def test_uninitialized_store_raises(self):
        store = SqlitePriceHistoryStore(StorageConfig(sqlite_path=":memory:"))
        with pytest.raises(StorageError, match="not initialized"):
            await store.find_latest_by_symbol("AAPL")
        assert await store.health_check() is False

    async def test_persists_across_connections(self, tmp_path: Path):
        config = StorageConfig(sqlite_path=str(tmp_path / "nested" / "prices.db"))
        store = await create_history_store(config)
        await store.insert("AAPL", Decimal("150.50"), T0)
        await store.close()

        reopened = await create_history_store(config)
        try:
            record = await reopened.find_latest_by_symbol("AAPL")
            assert record.price == Decimal("150.50")
        finally:
            await reopened.close()

    async def test_migrations_not_reapplied(self, tmp_path: Path):
        config = StorageConfig(sqlite_path=str(tmp_path / "prices.db"))
        for _ in range(2):
            store = await create_history_store(config)
            assert await store._get_schema_version() == 1
            await store.close()

    def test_protocol_conformance(self):
        store = SqlitePriceHistoryStore(StorageConfig(sqlite_path=":memory:"))
        assert isinstance(store, PriceHistoryStore)


class TestCacheStore:
    async def test_latest_normalizes_symbol(self, cache: CacheStore):
        await cache.append("aapl", Decimal("150.50"), T0)
        record = await cache.latest("AaPl")
        assert record is not None
        assert record.symbol == "AAPL"

    async def test_latest_none_when_never_fetched(self, cache: CacheStore):
        assert await cache.latest("NOPE") is None

    async def test_latest_batch_omits_unknown(self, cache: CacheStore):
        await cache.append("AAPL", Decimal("150"), T0)
        result = await cache.latest_batch({"aapl", "MSFT"})
        assert list(result) == ["AAPL"]
        assert result["AAPL"].price == Decimal("150")

    async def test_latest_batch_empty(self, cache: CacheStore):
        assert await cache.latest_batch(set()) == {}

    async def test_append_inserts_new_row_each_time(self, cache: CacheStore, history_store):
        await cache.append("AAPL", Decimal("150"), T0)
        await cache.append("AAPL", Decimal("150"), T0 + timedelta(seconds=5))
        assert await history_store.count_records("AAPL") == 2
