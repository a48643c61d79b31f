"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from quotecache.core.models import PriceQuote


# -- Envelope --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    error: str


# -- Prices --


class PriceData(BaseModel):
    """A price in API response format. ``price`` serializes as a decimal string."""

    symbol: str
    price: Decimal
    currency: str
    timestamp: datetime
    from_cache: bool

    @classmethod
    def from_quote(cls, quote: PriceQuote) -> PriceData:
        return cls(
            symbol=quote.symbol,
            price=quote.price,
            currency=quote.currency,
            timestamp=quote.timestamp,
            from_cache=quote.from_cache,
        )


class PriceResponse(BaseModel):
    """Response for GET /api/stocks/price/{symbol}."""

    success: bool = True
    data: PriceData


class BatchItem(BaseModel):
    """One symbol's outcome inside a batch response."""

    data: PriceData | None = None
    error: str | None = None


class BatchPriceRequest(BaseModel):
    """Request body for POST /api/stocks/prices."""

    symbols: list[str] = Field(..., min_length=1, max_length=100)


class BatchPriceResponse(BaseModel):
    """Response for POST /api/stocks/prices, keyed by normalized symbol."""

    success: bool = True
    data: dict[str, BatchItem]


# -- Refresh --


class RefreshRequest(BaseModel):
    """Request body for POST /api/stocks/refresh."""

    symbols: list[str] = Field(..., min_length=1, max_length=500)


class RefreshResponse(BaseModel):
    """Summary of a refresh run."""

    success: bool = True
    updated: int
    failed: int
    symbols: list[str]


# -- Health --


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    providers: dict[str, bool]
    cache_ttl_seconds: int
