"""Custom exception hierarchy for quotecache."""

from typing import Any


class QuoteCacheError(Exception):
    """Base exception for all quotecache errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(QuoteCacheError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str, the config field that failed validation
        value: Any, the invalid value (redacted for secrets)
    """


class SymbolError(QuoteCacheError):
    """A ticker symbol failed the precondition check.

    Raised before any cache or network access. Callers should treat this
    as a bad request, not as a price lookup failure.

    Context keys:
        symbol: str, the rejected input
    """


class ProviderError(QuoteCacheError):
    """An upstream quote provider returned something unusable.

    Policy: never escapes a fetcher. Caught at the fetcher boundary,
    logged, and converted to "no data".

    Context keys:
        provider: str, "yahoo" or "alpha_vantage"
        symbol: str, the symbol being fetched
        reason: str, short machine-readable cause
    """


class StorageError(QuoteCacheError):
    """Database operation failed.

    Policy: raise immediately. The price log is the only shared state.

    Context keys:
        operation: str, "insert", "query", "migrate", etc.
        table: str, the table involved
    """
