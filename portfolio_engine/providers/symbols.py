"""Brokerage ticker to market-data symbol translation."""

from __future__ import annotations

# Tickers whose suffix rules give the wrong listing (share classes, cross-listings).
SYMBOL_OVERRIDES: dict[str, str] = {
    "BRK_B_US_EQ": "BRK-B",
    "ALVd_EQ": "ALV.DE",
    "ABNa_EQ": "ABN.AS",
}


def normalize_ticker(ticker: str) -> str:
    """Translate a brokerage ticker such as ``VUSAl_EQ`` into ``VUSA.L``.

    Tickers without a known suffix are returned unchanged, so the function is
    stable on symbols that are already in market-data form.
    """
    if ticker in SYMBOL_OVERRIDES:
        return SYMBOL_OVERRIDES[ticker]

    formatted = ticker
    if formatted.endswith("_EQ"):
        formatted = formatted[:-3]
    if formatted.endswith("l"):
        formatted = f"{formatted[:-1]}.L"
    if formatted.endswith("_US"):
        formatted = formatted[:-3]
    if formatted.endswith("1.L"):
        formatted = f"{formatted[:-3]}.L"
    return formatted
