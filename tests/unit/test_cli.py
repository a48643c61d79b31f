"""Tests for the CLI module."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import click
import pytest
from click.testing import CliRunner

from quotecache.cli import _resolve_symbols, cli
from quotecache.core.exceptions import SymbolError
from quotecache.core.models import (
    UNAVAILABLE_MESSAGE,
    PriceError,
    PriceQuote,
    RefreshSummary,
)

TS = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_config():
    """Minimal QuoteCacheConfig mock for CLI tests."""
    config = MagicMock()
    config.storage.sqlite_path = ":memory:"
    config.cache.ttl_seconds = 21600
    config.providers.alpha_vantage.has_credentials = False
    return config


@pytest.fixture
def mock_service():
    service = MagicMock()
    service.get_prices = AsyncMock()
    service.peek_latest = AsyncMock()
    service.refresh_many = AsyncMock()
    service.close = AsyncMock()
    return service


def _quote(symbol: str, price: str, from_cache: bool = False) -> PriceQuote:
    return PriceQuote(
        symbol=symbol,
        price=Decimal(price),
        currency="USD",
        timestamp=TS,
        from_cache=from_cache,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestResolveSymbols:
    def test_space_and_comma_separated(self):
        assert _resolve_symbols(("AAPL,MSFT", "GOOGL")) == ["AAPL", "MSFT", "GOOGL"]

    def test_strips_blanks(self):
        assert _resolve_symbols((" aapl , ", ",msft")) == ["aapl", "msft"]

    def test_empty_raises(self):
        with pytest.raises(click.UsageError):
            _resolve_symbols((",", " "))


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestCliGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "cached stock prices" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_command(self, runner):
        result = runner.invoke(cli, ["nonexistent"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# price
# ---------------------------------------------------------------------------


class TestPriceCommand:
    def test_requires_symbols(self, runner):
        result = runner.invoke(cli, ["price"])
        assert result.exit_code != 0

    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_table_output(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.get_prices.return_value = {
            "AAPL": _quote("AAPL", "150.25", from_cache=True),
            "MSFT": _quote("MSFT", "380.50"),
        }

        result = runner.invoke(cli, ["price", "aapl,msft"])

        assert result.exit_code == 0
        assert "AAPL" in result.output
        assert "150.25" in result.output
        assert "380.50" in result.output
        mock_service.get_prices.assert_awaited_once_with(["aapl", "msft"])
        mock_service.close.assert_awaited_once()

    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_json_output(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.get_prices.return_value = {"AAPL": _quote("AAPL", "150.25")}

        result = runner.invoke(cli, ["price", "AAPL", "--format", "json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["AAPL"]["kind"] == "quote"
        assert Decimal(payload["AAPL"]["price"]) == Decimal("150.25")
        assert payload["AAPL"]["from_cache"] is False

    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_error_exits_nonzero(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.get_prices.return_value = {
            "AAPL": _quote("AAPL", "150.25"),
            "ZZZZ": PriceError(symbol="ZZZZ", error=UNAVAILABLE_MESSAGE),
        }

        result = runner.invoke(cli, ["price", "AAPL", "ZZZZ"])

        assert result.exit_code == 1
        assert "unavailable" in result.output

    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_invalid_symbol(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.get_prices.side_effect = SymbolError("Invalid stock symbol: 'BAD!'")

        result = runner.invoke(cli, ["price", "BAD!"])

        assert result.exit_code == 2
        assert "Invalid stock symbol" in result.output
        mock_service.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# latest
# ---------------------------------------------------------------------------


class TestLatestCommand:
    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_shows_cached(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.peek_latest.return_value = _quote("AAPL", "120.00", from_cache=True)

        result = runner.invoke(cli, ["latest", "AAPL"])

        assert result.exit_code == 0
        assert "120.00" in result.output
        assert "cache" in result.output

    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_nothing_cached(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.peek_latest.return_value = None

        result = runner.invoke(cli, ["latest", "aapl"])

        assert result.exit_code == 1
        assert "No cached price for AAPL" in result.output


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


class TestRefreshCommand:
    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_all_updated(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.refresh_many.return_value = RefreshSummary(
            updated=2, failed=0, symbols=["AAPL", "MSFT"]
        )

        result = runner.invoke(cli, ["refresh", "AAPL", "MSFT"])

        assert result.exit_code == 0
        assert "Updated 2 of 2 symbols" in result.output

    @patch("quotecache.core.load_config")
    @patch("quotecache.cli._create_service_async")
    def test_failures_exit_nonzero(self, mock_create, mock_load, runner, mock_config, mock_service):
        mock_load.return_value = mock_config
        mock_create.return_value = mock_service
        mock_service.refresh_many.return_value = RefreshSummary(
            updated=1, failed=1, symbols=["AAPL"]
        )

        result = runner.invoke(cli, ["refresh", "AAPL,ZZZZ"])

        assert result.exit_code == 1
        assert "Updated 1 of 2 symbols" in result.output
        assert "1 failed" in result.output


# ---------------------------------------------------------------------------
# status / serve
# ---------------------------------------------------------------------------


class TestStatusCommand:
    @patch("quotecache.core.load_config")
    def test_status_reports_counts(self, mock_load, runner, mock_config):
        mock_load.return_value = mock_config
        store = MagicMock()
        store.count_records = AsyncMock(return_value=7)
        store.list_symbols = AsyncMock(return_value=["AAPL", "MSFT"])
        store.close = AsyncMock()

        with patch(
            "quotecache.prices.create_history_store", new=AsyncMock(return_value=store)
        ):
            result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Price records" in result.output
        assert "7" in result.output
        assert "missing" in result.output
        store.close.assert_awaited_once()


class TestServeCommand:
    def test_serve_help(self, runner):
        result = runner.invoke(cli, ["serve", "--help"])
        assert result.exit_code == 0
        assert "--port" in result.output

    @patch("quotecache.core.load_config")
    def test_serve_uses_configured_address(self, mock_load, runner, mock_config):
        mock_config.api.host = "127.0.0.1"
        mock_config.api.port = 9001
        mock_load.return_value = mock_config

        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(cli, ["serve"])

        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9001
        assert kwargs["factory"] is True

    @patch("quotecache.core.load_config")
    def test_serve_flags_override_config(self, mock_load, runner, mock_config):
        mock_config.api.host = "127.0.0.1"
        mock_config.api.port = 9001
        mock_load.return_value = mock_config

        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(cli, ["serve", "--host", "0.0.0.0", "--port", "8080"])

        assert result.exit_code == 0
        assert mock_run.call_args.kwargs["host"] == "0.0.0.0"
        assert mock_run.call_args.kwargs["port"] == 8080

    @patch("quotecache.core.load_config")
    def test_serve_passes_config_file_to_app(
        self, mock_load, runner, mock_config, tmp_path, monkeypatch
    ):
        config_file = tmp_path / "quotecache.yml"
        config_file.write_text("api:\n  api_key: secret\n")
        monkeypatch.setenv("QUOTECACHE_CONFIG", str(config_file))
        mock_load.return_value = mock_config

        with patch("uvicorn.run"):
            result = runner.invoke(cli, ["--config", str(config_file), "serve"])

        assert result.exit_code == 0
        assert os.environ["QUOTECACHE_CONFIG"] == os.path.abspath(str(config_file))
