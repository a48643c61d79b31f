"""Integration test fixtures: real sqlite files and HTTP stack, no network."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from quotecache.core.config import (
    AlphaVantageConfig,
    CacheConfig,
    ProvidersConfig,
    QuoteCacheConfig,
    StorageConfig,
)
from quotecache.prices.store import create_history_store


def _config(tmp_path: Path, api_key: str | None) -> QuoteCacheConfig:
    return QuoteCacheConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "integration.db")),
        cache=CacheConfig(batch_delay_seconds=0),
        providers=ProvidersConfig(
            request_timeout=2.0,
            alpha_vantage=AlphaVantageConfig(api_key=api_key, rate_limit_per_minute=None),
        ),
    )


@pytest.fixture
def pipeline_config(tmp_path: Path) -> QuoteCacheConfig:
    """Config with both providers configured and a file-backed log."""
    return _config(tmp_path, api_key="integration-key")


@pytest.fixture
def keyless_config(tmp_path: Path) -> QuoteCacheConfig:
    return _config(tmp_path, api_key=None)


@pytest.fixture
def seed_record(pipeline_config: QuoteCacheConfig):
    """Write a record straight to the price log file."""

    async def _seed(symbol: str, price: str, timestamp: datetime) -> None:
        store = await create_history_store(pipeline_config.storage)
        try:
            await store.insert(symbol, Decimal(price), timestamp)
        finally:
            await store.close()

    return _seed
