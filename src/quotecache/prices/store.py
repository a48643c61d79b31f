"""SQLite-backed append-only price log.

Provides the persistence contract the cache layer consumes. Rows are only
ever inserted; the current price of a symbol is its newest row.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from quotecache.core.config import StorageConfig
from quotecache.core.exceptions import StorageError
from quotecache.core.models import PriceRecord

logger = logging.getLogger(__name__)

_TABLE = "stock_price_history"


@runtime_checkable
class PriceHistoryStore(Protocol):
    """Persistence contract for the price log."""

    async def find_latest_by_symbol(self, symbol: str) -> PriceRecord | None: ...
    async def find_latest_by_symbols(
        self, symbols: Iterable[str]
    ) -> list[PriceRecord]: ...
    async def insert(self, symbol: str, price: Decimal, timestamp: datetime) -> None: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...


def _encode_timestamp(ts: datetime) -> str:
    """UTC ISO-8601 with fixed precision, so text order is time order."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SqlitePriceHistoryStore:
    """SQLite implementation of PriceHistoryStore.

    Uses aiosqlite for async access, WAL mode, and a version-tracked
    migration system. Prices are stored as decimal text to keep full
    precision.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                f"""CREATE TABLE IF NOT EXISTS {_TABLE} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    price TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )""",
                f"CREATE INDEX IF NOT EXISTS idx_price_history_symbol ON {_TABLE}(symbol)",
                f"""CREATE UNIQUE INDEX IF NOT EXISTS idx_price_history_symbol_ts
                    ON {_TABLE}(symbol, timestamp)""",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except aiosqlite.Error:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Price store is not initialized",
                context={"operation": "connect", "table": _TABLE},
            )
        return self._db

    # --- Price Log Operations ---

    async def find_latest_by_symbol(self, symbol: str) -> PriceRecord | None:
        """Return the newest row for one symbol, or None."""
        db = self._conn()
        try:
            async with db.execute(
                f"""SELECT symbol, price, timestamp FROM {_TABLE}
                    WHERE symbol = ?
                    ORDER BY timestamp DESC
                    LIMIT 1""",
                (symbol,),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to read latest price: {e}",
                context={"operation": "query", "table": _TABLE, "symbol": symbol},
            ) from e
        return self._row_to_record(row) if row is not None else None

    async def find_latest_by_symbols(
        self, symbols: Iterable[str]
    ) -> list[PriceRecord]:
        """Return the newest row for each symbol that has one, in one query."""
        wanted = sorted(set(symbols))
        if not wanted:
            return []

        db = self._conn()
        placeholders = ", ".join("?" for _ in wanted)
        try:
            async with db.execute(
                f"""SELECT symbol, price, timestamp FROM (
                        SELECT symbol, price, timestamp,
                               ROW_NUMBER() OVER (
                                   PARTITION BY symbol ORDER BY timestamp DESC
                               ) AS rn
                        FROM {_TABLE}
                        WHERE symbol IN ({placeholders})
                    )
                    WHERE rn = 1
                    ORDER BY symbol""",
                wanted,
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to read latest prices: {e}",
                context={"operation": "query", "table": _TABLE, "count": len(wanted)},
            ) from e
        return [self._row_to_record(row) for row in rows]

    async def insert(self, symbol: str, price: Decimal, timestamp: datetime) -> None:
        """Append one observation. Existing rows are never touched.

        An exact (symbol, timestamp) duplicate from a racing writer is
        ignored rather than raised.
        """
        db = self._conn()
        try:
            await db.execute(
                f"""INSERT OR IGNORE INTO {_TABLE} (symbol, price, timestamp)
                    VALUES (?, ?, ?)""",
                (symbol, str(price), _encode_timestamp(timestamp)),
            )
            await db.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to insert price: {e}",
                context={"operation": "insert", "table": _TABLE, "symbol": symbol},
            ) from e

    async def count_records(self, symbol: str | None = None) -> int:
        """Number of stored observations, optionally for one symbol."""
        db = self._conn()
        if symbol is None:
            sql, params = f"SELECT COUNT(*) FROM {_TABLE}", ()
        else:
            sql, params = f"SELECT COUNT(*) FROM {_TABLE} WHERE symbol = ?", (symbol,)
        async with db.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def list_symbols(self) -> list[str]:
        """Return all distinct symbols in the log."""
        db = self._conn()
        async with db.execute(
            f"SELECT DISTINCT symbol FROM {_TABLE} ORDER BY symbol"
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> PriceRecord:
        return PriceRecord(
            symbol=row["symbol"],
            price=Decimal(row["price"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )


async def create_history_store(config: StorageConfig) -> SqlitePriceHistoryStore:
    """Create and initialize the price log store."""
    store = SqlitePriceHistoryStore(config)
    await store.initialize()
    return store
