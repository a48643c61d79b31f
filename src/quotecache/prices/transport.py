"""Minimal HTTP transport used by the quote fetchers.

Fetchers depend on ``HttpTransport`` rather than on a global client so
tests can swap in a fake or an ``httpx.MockTransport``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import httpx

from quotecache.core.exceptions import ProviderError


@runtime_checkable
class HttpTransport(Protocol):
    """One-shot GET requests with a per-request timeout."""

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response: ...

    async def close(self) -> None: ...


class HttpxTransport:
    """``HttpTransport`` backed by a shared ``httpx.AsyncClient``.

    Parameters
    ----------
    timeout : float
        Per-request timeout in seconds. A timeout surfaces as
        ``httpx.TimeoutException`` (a ``httpx.RequestError``).
    user_agent : str | None
        Default User-Agent header for every request.
    client : httpx.AsyncClient | None
        Pre-built client (e.g. with a mock transport). When given, the
        caller keeps ownership and ``close`` leaves it open.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = client or httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return await self._client.get(url, params=params, headers=headers)

    async def close(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()


async def get_json(
    transport: HttpTransport,
    url: str,
    *,
    provider: str,
    symbol: str,
    params: Mapping[str, str] | None = None,
    headers: Mapping[str, str] | None = None,
) -> dict:
    """GET ``url`` and decode a JSON object body.

    Every failure (network, timeout, non-2xx status, undecodable or
    non-object body) is raised as ``ProviderError``.
    """
    try:
        resp = await transport.get(url, params=params, headers=headers)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise ProviderError(
            f"{provider} HTTP error for {symbol}: {e.response.status_code}",
            context={
                "provider": provider,
                "symbol": symbol,
                "reason": "http_status",
                "status_code": e.response.status_code,
                "body": e.response.text[:200],
            },
        ) from e
    except httpx.TimeoutException as e:
        raise ProviderError(
            f"{provider} request timed out for {symbol}",
            context={"provider": provider, "symbol": symbol, "reason": "timeout"},
        ) from e
    except httpx.RequestError as e:
        raise ProviderError(
            f"{provider} request error for {symbol}: {e}",
            context={"provider": provider, "symbol": symbol, "reason": "network"},
        ) from e
    except ValueError as e:
        raise ProviderError(
            f"{provider} returned a non-JSON body for {symbol}",
            context={"provider": provider, "symbol": symbol, "reason": "malformed"},
        ) from e

    if not isinstance(data, dict):
        raise ProviderError(
            f"{provider} returned unexpected JSON for {symbol}",
            context={"provider": provider, "symbol": symbol, "reason": "malformed"},
        )
    return data
