"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quotecache.api.deps import AppState, api_key_middleware
from quotecache.api.routes import router
from quotecache.core.config import QuoteCacheConfig, load_config
from quotecache.core.exceptions import (
    ConfigError,
    QuoteCacheError,
    StorageError,
    SymbolError,
)
from quotecache.prices.service import StockPriceService, create_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    service = app.state._pending_service
    owned = service is None
    if owned:
        service = await create_service(config)

    app.state.app_state = AppState(config=config, service=service)

    yield

    if owned:
        await service.close()


def create_app(
    config: QuoteCacheConfig | None = None,
    service: StockPriceService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A ``service`` passed in is used as-is and left open on shutdown.
    """
    import quotecache

    app = FastAPI(
        title="quotecache API",
        description="Cached stock prices with provider fallback",
        version=quotecache.__version__,
        lifespan=lifespan,
    )

    # Stash config/service so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # No-op unless config.api.api_key is set.
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(QuoteCacheError)
    async def quotecache_exception_handler(request: Request, exc: QuoteCacheError):
        status_map = {
            SymbolError: 400,
            ConfigError: 500,
            StorageError: 500,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content={"success": False, "error": str(exc)},
        )

    return app
