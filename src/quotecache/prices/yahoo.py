"""Yahoo Finance quote fetcher (primary, keyless provider).

Uses the unauthenticated ``/v8/finance/chart/`` endpoint. The latest
price is ``chart.result[0].meta.regularMarketPrice`` and the quote
currency is ``meta.currency``.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from urllib.parse import quote

from aiolimiter import AsyncLimiter

from quotecache.core.exceptions import ProviderError
from quotecache.core.models import DEFAULT_CURRENCY, ProviderQuote
from quotecache.prices.chain import parse_price
from quotecache.prices.transport import HttpTransport, get_json

logger = logging.getLogger(__name__)

_BASE_URL = "https://query1.finance.yahoo.com"
_CHART_PATH = "/v8/finance/chart"
_USER_AGENT = "Mozilla/5.0 (compatible; quotecache/0.1)"
_PROVIDER = "yahoo"


class YahooQuoteFetcher:
    """Fetches the latest market price from Yahoo Finance's chart API.

    Parameters
    ----------
    transport : HttpTransport
        Carries the request and its timeout.
    base_url : str
        Override base URL (useful for testing).
    user_agent : str
        Sent on every request; Yahoo rejects anonymous clients.
    enabled : bool
        When False the chain skips this fetcher.
    rate_limit_per_minute : int | None
        Optional request ceiling. None disables throttling.
    """

    name = _PROVIDER

    def __init__(
        self,
        transport: HttpTransport,
        *,
        base_url: str = _BASE_URL,
        user_agent: str = _USER_AGENT,
        enabled: bool = True,
        rate_limit_per_minute: int | None = None,
    ) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._enabled = enabled
        self._limiter = (
            AsyncLimiter(max_rate=rate_limit_per_minute, time_period=60.0)
            if rate_limit_per_minute
            else None
        )

    @property
    def is_configured(self) -> bool:
        return self._enabled

    def chart_url(self, symbol: str) -> str:
        return f"{self._base_url}{_CHART_PATH}/{quote(symbol.upper(), safe='')}"

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        """Return price and currency for ``symbol``, or None on any failure."""
        try:
            async with self._limiter or nullcontext():
                return await self._fetch(symbol.upper())
        except ProviderError as e:
            logger.warning("%s", e)
            return None

    async def _fetch(self, symbol: str) -> ProviderQuote:
        data = await get_json(
            self._transport,
            self.chart_url(symbol),
            provider=_PROVIDER,
            symbol=symbol,
            params={"interval": "1d", "range": "1d"},
            headers={"User-Agent": self._user_agent},
        )

        chart = data.get("chart") or {}
        if not isinstance(chart, dict):
            raise _malformed(symbol, "chart")
        if chart.get("error"):
            err = chart["error"]
            code = err.get("code") if isinstance(err, dict) else err
            description = err.get("description") if isinstance(err, dict) else None
            raise ProviderError(
                f"Yahoo Finance API error for {symbol}: {code}: {description}",
                context={"provider": _PROVIDER, "symbol": symbol, "reason": "api_error"},
            )

        results = chart.get("result")
        if results is not None and not isinstance(results, list):
            raise _malformed(symbol, "chart.result")
        if not results:
            raise ProviderError(
                f"Yahoo Finance returned no results for {symbol}",
                context={"provider": _PROVIDER, "symbol": symbol, "reason": "no_results"},
            )
        if not isinstance(results[0], dict):
            raise _malformed(symbol, "chart.result[0]")

        meta = results[0].get("meta") or {}
        if not isinstance(meta, dict):
            raise _malformed(symbol, "meta")
        price = parse_price(meta.get("regularMarketPrice"), provider=_PROVIDER, symbol=symbol)
        currency = meta.get("currency") or DEFAULT_CURRENCY
        return ProviderQuote(price=price, currency=str(currency), source=_PROVIDER)


def _malformed(symbol: str, field: str) -> ProviderError:
    return ProviderError(
        f"Yahoo Finance returned an unexpected {field} shape for {symbol}",
        context={"provider": _PROVIDER, "symbol": symbol, "reason": "malformed"},
    )
