"""FastAPI route definitions for the quotecache API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

import quotecache
from quotecache.api.deps import get_service
from quotecache.api.schemas import (
    BatchItem,
    BatchPriceRequest,
    BatchPriceResponse,
    ErrorResponse,
    HealthResponse,
    PriceData,
    PriceResponse,
    RefreshRequest,
    RefreshResponse,
)
from quotecache.core.models import is_error
from quotecache.prices.service import StockPriceService

router = APIRouter()


def _not_found(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(error=message).model_dump(),
    )


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(service: StockPriceService = Depends(get_service)):
    """Service version and provider configuration."""
    return HealthResponse(
        status="ok",
        version=quotecache.__version__,
        providers={f.name: f.is_configured for f in service.chain.fetchers},
        cache_ttl_seconds=int(service.ttl.total_seconds()),
    )


# -- Prices --


@router.get(
    "/stocks/price/{symbol}",
    response_model=PriceResponse,
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)
async def get_stock_price(
    symbol: str,
    service: StockPriceService = Depends(get_service),
):
    """Current price for one symbol (served from cache for up to the TTL)."""
    result = await service.get_price(symbol)
    if is_error(result):
        return _not_found(result.error)
    return PriceResponse(data=PriceData.from_quote(result))


@router.get(
    "/stocks/price/{symbol}/latest",
    response_model=PriceResponse,
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)
async def get_latest_cached_price(
    symbol: str,
    service: StockPriceService = Depends(get_service),
):
    """Newest cached price regardless of age. Never calls a provider."""
    quote = await service.peek_latest(symbol)
    if quote is None:
        return _not_found(f"No cached price for '{symbol.strip().upper()}'")
    return PriceResponse(data=PriceData.from_quote(quote))


@router.post(
    "/stocks/prices",
    response_model=BatchPriceResponse,
    responses={400: {"model": ErrorResponse}},
)
async def get_stock_prices(
    body: BatchPriceRequest,
    service: StockPriceService = Depends(get_service),
):
    """Prices for many symbols; each symbol succeeds or fails on its own."""
    results = await service.get_prices(body.symbols)
    items: dict[str, BatchItem] = {}
    for symbol, result in results.items():
        if is_error(result):
            items[symbol] = BatchItem(error=result.error)
        else:
            items[symbol] = BatchItem(data=PriceData.from_quote(result))
    return BatchPriceResponse(data=items)


@router.post("/stocks/refresh", response_model=RefreshResponse)
async def refresh_stock_prices(
    body: RefreshRequest,
    service: StockPriceService = Depends(get_service),
):
    """Force a provider fetch for every symbol (scheduled refresh job)."""
    summary = await service.refresh_many(body.symbols)
    return RefreshResponse(
        updated=summary.updated,
        failed=summary.failed,
        symbols=summary.symbols,
    )
