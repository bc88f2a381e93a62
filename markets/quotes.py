"""Quote fetching against the chart endpoint and the multi-symbol service."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ingestion.settings import Settings, get_settings

from .errors import NoMarketDataError, QuoteError, QuoteFetchError
from .models import MarketIndex, RawQuote
from .normalizer import normalize_quote

logger = logging.getLogger(__name__)


class QuoteFetcher(Protocol):
    def fetch_raw(self, symbol: str) -> RawQuote: ...  # noqa: D401


class YahooChartFetcher:
    """Fetches ``chart.result[0]`` for a symbol.

    - client injected: tests/offline (e.g. ``httpx.Client(transport=MockTransport(...))``)
    - client omitted: a short-lived ``httpx.Client`` per call
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = 10.0,
        user_agent: str | None = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._client = client
        self._headers = {
            "Accept": "application/json",
            "Referer": "https://finance.yahoo.com",
        }
        if user_agent:
            self._headers["User-Agent"] = user_agent

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "YahooChartFetcher":
        config = settings or get_settings()
        return cls(
            config.quote_endpoint,
            timeout_seconds=float(config.http_timeout_seconds),
            user_agent=config.http_user_agent,
        )

    def fetch_raw(self, symbol: str) -> RawQuote:
        url = self._endpoint.format(symbol=quote(symbol, safe=""))
        try:
            if self._client is not None:
                resp = self._client.get(url, headers=self._headers, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    resp = client.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            raise QuoteFetchError(f"error fetching data for {symbol}: {exc}") from exc

        if resp.status_code != 200:
            raise QuoteFetchError(f"received status {resp.status_code} for symbol {symbol}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise QuoteFetchError(f"error decoding response for {symbol}") from exc
        return parse_chart_payload(symbol, payload)


def parse_chart_payload(symbol: str, payload: dict) -> RawQuote:
    chart = (payload or {}).get("chart") or {}
    error = chart.get("error")
    if error:
        raise QuoteFetchError(
            f"upstream error for {symbol}: {error.get('code')} - {error.get('description')}"
        )
    results = chart.get("result") or []
    if not results:
        raise QuoteFetchError(f"no data received for symbol {symbol}")
    try:
        return RawQuote.model_validate(results[0])
    except ValidationError as exc:
        raise QuoteFetchError(f"malformed chart payload for {symbol}") from exc


class MarketIndexService:
    """Fetches symbols one after another with a fixed delay between calls."""

    def __init__(
        self,
        fetcher: QuoteFetcher,
        symbols: Sequence[str],
        *,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._symbols = list(symbols)
        self._delay = delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "MarketIndexService":
        config = settings or get_settings()
        return cls(
            YahooChartFetcher.from_settings(config),
            config.market_symbols,
            delay_seconds=float(config.quote_delay_seconds),
        )

    def fetch_one(self, symbol: str) -> MarketIndex:
        return normalize_quote(symbol, self._fetcher.fetch_raw(symbol))

    def fetch_all(self, symbols: Sequence[str] | None = None) -> List[MarketIndex]:
        """Return indices for every symbol that resolved.

        Raises ``NoMarketDataError`` only when none did.
        """
        targets = list(symbols) if symbols is not None else self._symbols
        indices: List[MarketIndex] = []
        errors: List[str] = []
        for position, symbol in enumerate(targets):
            if position > 0 and self._delay > 0:
                self._sleep(self._delay)
            try:
                indices.append(self.fetch_one(symbol))
            except QuoteError as exc:
                errors.append(f"{symbol}: {exc}")
                logger.warning("quotes.symbol_failed", extra={"symbol": symbol, "error": str(exc)})

        if targets and not indices:
            raise NoMarketDataError("no valid market indices data found: " + "; ".join(errors))
        return indices
