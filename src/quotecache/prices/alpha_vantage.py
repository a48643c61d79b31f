"""Alpha Vantage quote fetcher (secondary, key-gated provider).

Calls ``/query?function=GLOBAL_QUOTE``. Alpha Vantage answers HTTP 200
even when rate-limited or when the symbol is unknown; the only signal is
a missing ``"Global Quote"`` object. The price arrives as a string and
no currency is reported.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext

from aiolimiter import AsyncLimiter

from quotecache.core.exceptions import ProviderError
from quotecache.core.models import ProviderQuote
from quotecache.prices.chain import parse_price
from quotecache.prices.transport import HttpTransport, get_json

logger = logging.getLogger(__name__)

_BASE_URL = "https://www.alphavantage.co"
_QUERY_PATH = "/query"
_QUOTE_KEY = "Global Quote"
_PRICE_KEY = "05. price"
_PROVIDER = "alpha_vantage"


class AlphaVantageQuoteFetcher:
    """Fetches the latest price from Alpha Vantage's GLOBAL_QUOTE function.

    Without an API key the fetcher is unconfigured: the chain skips it
    and ``fetch`` returns None without making a request.
    """

    name = _PROVIDER

    def __init__(
        self,
        transport: HttpTransport,
        *,
        api_key: str | None,
        base_url: str = _BASE_URL,
        user_agent: str | None = None,
        rate_limit_per_minute: int | None = 5,
    ) -> None:
        self._transport = transport
        self._api_key = api_key or None
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        # Free tier allows 5 calls per minute.
        self._limiter = (
            AsyncLimiter(max_rate=rate_limit_per_minute, time_period=60.0)
            if rate_limit_per_minute
            else None
        )

    @property
    def is_configured(self) -> bool:
        return self._api_key is not None

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        """Return the price for ``symbol`` (currency unknown), or None."""
        if self._api_key is None:
            logger.debug("Alpha Vantage API key not configured; skipping %s", symbol)
            return None
        try:
            async with self._limiter or nullcontext():
                return await self._fetch(symbol.upper())
        except ProviderError as e:
            logger.warning("%s", e)
            return None

    async def _fetch(self, symbol: str) -> ProviderQuote:
        headers = {"User-Agent": self._user_agent} if self._user_agent else None
        data = await get_json(
            self._transport,
            f"{self._base_url}{_QUERY_PATH}",
            provider=_PROVIDER,
            symbol=symbol,
            params={"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self._api_key},
            headers=headers,
        )

        global_quote = data.get(_QUOTE_KEY)
        if not isinstance(global_quote, dict) or not global_quote.get(_PRICE_KEY):
            # "Note"/"Information" carry the rate-limit text when present.
            note = data.get("Note") or data.get("Information") or data.get("Error Message")
            raise ProviderError(
                f"Alpha Vantage returned no quote for {symbol}"
                + (f": {note}" if note else ""),
                context={"provider": _PROVIDER, "symbol": symbol, "reason": "no_data"},
            )

        price = parse_price(global_quote[_PRICE_KEY], provider=_PROVIDER, symbol=symbol)
        return ProviderQuote(price=price, currency=None, source=_PROVIDER)
