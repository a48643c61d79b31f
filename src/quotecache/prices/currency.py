"""Quote currency inference from exchange suffixes.

The price log stores only the number, so any price read back from the
cache gets its currency from the ticker's exchange suffix.
"""

from __future__ import annotations

from quotecache.core.models import DEFAULT_CURRENCY, CurrencyCode

SUFFIX_CURRENCIES: dict[str, CurrencyCode] = {
    "L": "GBP",
    "TA": "ILS",
    "PA": "EUR",
    "DE": "EUR",
    "AS": "EUR",
    "MI": "EUR",
}


def infer_currency(symbol: str) -> CurrencyCode:
    """Map a ticker to its quote currency (``VOD.L`` -> GBP).

    Unknown or missing suffixes map to USD. Never raises.
    """
    _, dot, suffix = symbol.strip().rpartition(".")
    if not dot:
        return DEFAULT_CURRENCY
    return SUFFIX_CURRENCIES.get(suffix.upper(), DEFAULT_CURRENCY)
