"""Quote fetcher protocol and the ordered provider chain.

Architecture
------------
Each upstream source is wrapped in a fetcher with the same contract:

    fetch(symbol) -> ProviderQuote | None

A fetcher never raises to its caller. Network errors, timeouts, non-2xx
responses, provider error payloads and malformed bodies are all logged
and reported as ``None``. ``PriceProviderChain`` tries fetchers in order
and stops at the first one that produces a price.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol, runtime_checkable

from quotecache.core.config import ProvidersConfig
from quotecache.core.exceptions import ProviderError
from quotecache.core.models import ProviderQuote
from quotecache.prices.transport import HttpTransport

logger = logging.getLogger(__name__)


@runtime_checkable
class QuoteFetcher(Protocol):
    """One upstream price source."""

    name: str

    @property
    def is_configured(self) -> bool:
        """False when the fetcher lacks what it needs (e.g. an API key)."""
        ...

    async def fetch(self, symbol: str) -> ProviderQuote | None: ...


def parse_price(raw: Any, *, provider: str, symbol: str) -> Decimal:
    """Convert a provider's price field (number or string) to Decimal.

    Floats go through ``str`` so 150.5 stays 150.5 rather than its binary
    expansion.

    Raises:
        ProviderError: Missing, non-numeric, non-finite or non-positive.
    """
    if raw is None or isinstance(raw, bool):
        raise ProviderError(
            f"{provider} returned no price for {symbol}",
            context={"provider": provider, "symbol": symbol, "reason": "missing_price"},
        )
    try:
        price = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise ProviderError(
            f"{provider} returned a non-numeric price for {symbol}: {raw!r}",
            context={"provider": provider, "symbol": symbol, "reason": "malformed"},
        ) from e
    if not price.is_finite() or price <= 0:
        raise ProviderError(
            f"{provider} returned an unusable price for {symbol}: {raw!r}",
            context={"provider": provider, "symbol": symbol, "reason": "malformed"},
        )
    return price


class PriceProviderChain:
    """Ordered upstream fetchers tried one after another.

    A fetcher that reports ``is_configured == False`` is skipped without
    any request. There are no retries; each fetcher gets one attempt.

    Parameters
    ----------
    fetchers : Sequence[QuoteFetcher]
        Fetchers in priority order (primary first).
    """

    def __init__(self, fetchers: Sequence[QuoteFetcher]) -> None:
        self._fetchers = list(fetchers)
        for fetcher in self._fetchers:
            if not fetcher.is_configured:
                logger.info(
                    "Quote provider %s is not configured; it will be skipped",
                    fetcher.name,
                )

    @classmethod
    def from_config(
        cls, config: ProvidersConfig, transport: HttpTransport
    ) -> PriceProviderChain:
        """Build the standard chain: Yahoo Finance, then Alpha Vantage."""
        from quotecache.prices.alpha_vantage import AlphaVantageQuoteFetcher
        from quotecache.prices.yahoo import YahooQuoteFetcher

        primary = YahooQuoteFetcher(
            transport,
            base_url=config.yahoo.base_url,
            user_agent=config.user_agent,
            enabled=config.yahoo.enabled,
            rate_limit_per_minute=config.yahoo.rate_limit_per_minute,
        )
        secondary = AlphaVantageQuoteFetcher(
            transport,
            api_key=config.alpha_vantage.api_key,
            base_url=config.alpha_vantage.base_url,
            user_agent=config.user_agent,
            rate_limit_per_minute=config.alpha_vantage.rate_limit_per_minute,
        )
        return cls([primary, secondary])

    @property
    def fetchers(self) -> list[QuoteFetcher]:
        return list(self._fetchers)

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        """Return the first price any configured fetcher produces."""
        for fetcher in self._fetchers:
            if not fetcher.is_configured:
                logger.debug("Skipping %s for %s: not configured", fetcher.name, symbol)
                continue
            quote = await fetcher.fetch(symbol)
            if quote is not None:
                return quote
            logger.info("No price from %s for %s", fetcher.name, symbol)
        return None
