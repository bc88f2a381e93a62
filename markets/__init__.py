"""Market index quotes."""

from .errors import InvalidQuoteError, NoMarketDataError, QuoteError, QuoteFetchError  # noqa: F401
from .models import MarketIndex, RawQuote  # noqa: F401
from .normalizer import calculate_change, normalize_quote, round_half_away  # noqa: F401
from .quotes import MarketIndexService, YahooChartFetcher  # noqa: F401

__all__ = [
    "InvalidQuoteError",
    "MarketIndex",
    "MarketIndexService",
    "NoMarketDataError",
    "QuoteError",
    "QuoteFetchError",
    "RawQuote",
    "YahooChartFetcher",
    "calculate_change",
    "normalize_quote",
    "round_half_away",
]
