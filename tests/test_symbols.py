from portfolio_engine.providers.symbols import normalize_ticker


def test_normalize_ticker_strips_equity_suffix() -> None:
    assert normalize_ticker("AAPL_US_EQ") == "AAPL"


def test_normalize_ticker_maps_london_lowercase_suffix() -> None:
    assert normalize_ticker("VUSAl_EQ") == "VUSA.L"


def test_normalize_ticker_maps_london_numbered_listing() -> None:
    assert normalize_ticker("IGLT1l_EQ") == "IGLT.L"


def test_normalize_ticker_uses_override_table() -> None:
    assert normalize_ticker("BRK_B_US_EQ") == "BRK-B"
    assert normalize_ticker("ALVd_EQ") == "ALV.DE"


def test_normalize_ticker_passes_unknown_suffix_through() -> None:
    assert normalize_ticker("SAPd") == "SAPd"


def test_normalize_ticker_is_stable_on_market_symbols() -> None:
    for symbol in ["AAPL", "VUSA.L", "BRK-B", "^GSPC", "ALV.DE"]:
        assert normalize_ticker(symbol) == symbol
        assert normalize_ticker(normalize_ticker(symbol)) == symbol
