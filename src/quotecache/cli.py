"""Click-based CLI for quotecache.

Thin wrapper around the price service. Zero business logic; every
command delegates to ``StockPriceService``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from quotecache.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


async def _create_service_async(config):
    """Create the price service from config."""
    from quotecache.prices import create_service

    return await create_service(config)


def _resolve_symbols(symbols: tuple[str, ...]) -> list[str]:
    """Accept space- and comma-separated symbols."""
    resolved = [s.strip() for arg in symbols for s in arg.split(",") if s.strip()]
    if not resolved:
        raise click.UsageError("At least one symbol is required")
    return resolved


def _quote_row(quote) -> tuple[str, str, str, str, str]:
    return (
        quote.symbol,
        str(quote.price),
        quote.currency,
        quote.timestamp.isoformat(timespec="seconds"),
        "cache" if quote.from_cache else "live",
    )


def _price_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("Symbol", style="bold")
    table.add_column("Price", justify="right")
    table.add_column("Currency")
    table.add_column("Captured")
    table.add_column("Source")
    return table


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="QUOTECACHE_CONFIG",
    default=None,
    help="Path to quotecache.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="quotecache")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """quotecache: cached stock prices with provider fallback."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# price
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def price(ctx: click.Context, symbols: tuple[str, ...], output_format: str) -> None:
    """Look up prices (cache first, then providers)."""
    from quotecache.core import SymbolError, is_error

    config = _load_config(ctx)
    symbol_list = _resolve_symbols(symbols)

    async def _run():
        service = await _create_service_async(config)
        try:
            return await service.get_prices(symbol_list)
        finally:
            await service.close()

    try:
        results = _run_async(_run())
    except SymbolError as exc:
        raise click.BadParameter(str(exc), param_hint="SYMBOLS") from exc

    if output_format == "json":
        payload = {sym: res.model_dump(mode="json") for sym, res in results.items()}
        click.echo(json.dumps(payload, indent=2))
    else:
        table = _price_table("Stock Prices")
        for sym, res in results.items():
            if is_error(res):
                table.add_row(sym, "[red]unavailable[/red]", "", "", "")
            else:
                table.add_row(*_quote_row(res))
        console.print(table)

    if any(is_error(r) for r in results.values()):
        ctx.exit(1)


# ---------------------------------------------------------------------------
# latest
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.pass_context
def latest(ctx: click.Context, symbol: str) -> None:
    """Show the newest cached price without fetching."""
    from quotecache.core import SymbolError

    config = _load_config(ctx)

    async def _run():
        service = await _create_service_async(config)
        try:
            return await service.peek_latest(symbol)
        finally:
            await service.close()

    try:
        quote = _run_async(_run())
    except SymbolError as exc:
        raise click.BadParameter(str(exc), param_hint="SYMBOL") from exc

    if quote is None:
        console.print(f"[yellow]No cached price for {symbol.upper()}[/yellow]")
        ctx.exit(1)

    table = _price_table("Latest Cached Price")
    table.add_row(*_quote_row(quote))
    console.print(table)


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbols", nargs=-1, required=True)
@click.pass_context
def refresh(ctx: click.Context, symbols: tuple[str, ...]) -> None:
    """Force a provider fetch for each symbol (scheduled job entry point)."""
    config = _load_config(ctx)
    symbol_list = _resolve_symbols(symbols)

    async def _run():
        service = await _create_service_async(config)
        try:
            return await service.refresh_many(symbol_list)
        finally:
            await service.close()

    summary = _run_async(_run())
    console.print(
        f"[green]✓[/green] Updated {summary.updated} of {summary.total} symbols"
        + (f" ([red]{summary.failed} failed[/red])" if summary.failed else "")
    )
    if summary.failed:
        ctx.exit(1)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default: api.host).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default: api.port).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    config = _load_config(ctx)
    if host is None:
        host = config.api.host
    if port is None:
        port = config.api.port
    # The app factory loads its own config; point it at the same file.
    if ctx.obj.get("config_path"):
        os.environ["QUOTECACHE_CONFIG"] = os.path.abspath(ctx.obj["config_path"])

    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]uvicorn not installed. Install with: "
            "pip install quotecache[api][/red]"
        )
        raise SystemExit(1)

    console.print(f"Starting quotecache API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "quotecache.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and price log coverage."""
    async def _run():
        from quotecache.prices import create_history_store

        config = _load_config(ctx)
        store = await create_history_store(config.storage)
        try:
            stats = await _gather_stats(store)
        finally:
            await store.close()

        table = Table(title="quotecache Status")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Database path", config.storage.sqlite_path)
        table.add_row("Cache TTL (s)", str(config.cache.ttl_seconds))
        table.add_row(
            "Alpha Vantage key",
            "configured" if config.providers.alpha_vantage.has_credentials else "missing",
        )
        table.add_section()
        table.add_row("Price records", str(stats["total_records"]))
        table.add_row("Tracked symbols", str(stats["unique_symbols"]))

        console.print(table)

    _run_async(_run())


async def _gather_stats(store) -> dict:
    """Gather basic statistics from the price log."""
    return {
        "total_records": await store.count_records(),
        "unique_symbols": len(await store.list_symbols()),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
