"""Quote pipeline errors."""

from __future__ import annotations


class QuoteError(Exception):
    """Base quote error."""


class QuoteFetchError(QuoteError):
    """Upstream feed could not be reached or answered with an error."""


class InvalidQuoteError(QuoteError):
    """Upstream answered, but no usable price could be resolved."""


class NoMarketDataError(QuoteError):
    """Every requested symbol failed."""
