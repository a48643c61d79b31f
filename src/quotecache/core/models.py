"""Pydantic data models: the price cache's type contracts."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, TypeGuard, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quotecache.core.exceptions import SymbolError

# --- Type Aliases ---

Symbol = str
CurrencyCode = str

DEFAULT_CURRENCY: CurrencyCode = "USD"
UNAVAILABLE_MESSAGE = "Unable to fetch stock price. Please try again later."

# Letters, digits and the punctuation Yahoo uses for indices (^GSPC),
# share classes (BRK-B), exchange suffixes (VOD.L) and FX pairs (EURUSD=X).
_SYMBOL_RE = re.compile(r"^[A-Z0-9.\-^=]{1,20}$")


def normalize_symbol(symbol: str) -> Symbol:
    """Return the canonical upper-case form of a ticker symbol.

    Raises:
        SymbolError: If the input is empty or contains characters no
            supported provider accepts.
    """
    if not isinstance(symbol, str):
        raise SymbolError(
            f"Symbol must be a string, got {type(symbol).__name__}",
            context={"symbol": repr(symbol)},
        )
    normalized = symbol.strip().upper()
    if not _SYMBOL_RE.match(normalized):
        raise SymbolError(
            f"Invalid stock symbol: {symbol!r}",
            context={"symbol": symbol},
        )
    return normalized


def _as_utc(v: datetime) -> datetime:
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def _positive_finite(v: Decimal) -> Decimal:
    if not v.is_finite() or v <= 0:
        raise ValueError(f"price must be a positive finite number, got {v}")
    return v


# --- Persisted ---


class PriceRecord(BaseModel):
    """One observation in the append-only price log.

    ``timestamp`` is the capture time of the observation, not market time.
    The current price of a symbol is the record with the greatest timestamp.
    """

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    price: Decimal
    timestamp: datetime

    @field_validator("symbol")
    @classmethod
    def symbol_upper(cls, v: str) -> str:
        return v.upper()

    @field_validator("price")
    @classmethod
    def price_positive(cls, v: Decimal) -> Decimal:
        return _positive_finite(v)

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


# --- Provider output ---


class ProviderQuote(BaseModel):
    """What a single upstream fetcher hands back on success.

    ``currency`` is None when the provider does not report one.
    """

    model_config = ConfigDict(frozen=True)

    price: Decimal
    currency: CurrencyCode | None = None
    source: str = "unknown"

    @field_validator("price")
    @classmethod
    def price_positive(cls, v: Decimal) -> Decimal:
        return _positive_finite(v)


# --- Service results ---


class PriceQuote(BaseModel):
    """A resolved price.

    ``from_cache`` is True both for a fresh cache hit and for a stale
    fallback served after every provider failed.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["quote"] = "quote"
    symbol: Symbol
    price: Decimal
    currency: CurrencyCode
    timestamp: datetime
    from_cache: bool

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class PriceError(BaseModel):
    """No price could be produced from any tier."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    symbol: Symbol
    error: str

    @field_validator("error")
    @classmethod
    def error_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("error message must not be empty")
        return v


StockPriceResult = Annotated[Union[PriceQuote, PriceError], Field(discriminator="kind")]


def is_error(result: PriceQuote | PriceError) -> TypeGuard[PriceError]:
    """Discriminant helper for StockPriceResult."""
    return isinstance(result, PriceError)


class RefreshSummary(BaseModel):
    """Outcome of a bulk refresh run."""

    updated: int = 0
    failed: int = 0
    symbols: list[Symbol] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.updated + self.failed
