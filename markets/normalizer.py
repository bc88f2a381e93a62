"""Turn noisy upstream quote payloads into MarketIndex values.

Resolution rules:

* NaN/infinite numbers are treated as missing (0).
* The live ``regularMarketPrice`` wins. When it is missing, the last close
  of the historical series is used instead and the quote is flagged
  ``is_delayed``; the close before it then becomes the change baseline.
* Otherwise the baseline is ``previousClose``, then ``chartPreviousClose``.
* A price that is still 0 after all fallbacks is an ``InvalidQuoteError``.
* ``change`` and ``change_percent`` are rounded half away from zero to two
  places. Rounding operates on the decimal repr of the float difference, so
  ``101.005 - 100`` (stored as 1.00499999...) rounds to 1.0, and an exact
  tie such as 0.125 rounds to 0.13.
* ``updated_at`` comes from ``regularMarketTime``, then the last series
  timestamp, then the current time. Epochs outside the datetime range are
  skipped.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Sequence, Tuple

from .errors import InvalidQuoteError
from .models import MarketIndex, RawQuote, index_name

PERCENT_EPSILON = 1e-6


def finite_or_zero(value: Optional[float]) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def round_half_away(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def calculate_change(price: float, previous_close: float) -> Tuple[float, float]:
    """Return ``(change, change_percent)``, both finite and rounded."""
    if not (math.isfinite(price) and math.isfinite(previous_close)):
        return 0.0, 0.0
    change = price - previous_close
    if abs(previous_close) < PERCENT_EPSILON:
        percent = 0.0
    else:
        percent = change / previous_close * 100
        if not math.isfinite(percent):
            percent = 0.0
    return round_half_away(change), round_half_away(percent)


def _historical_fallback(closes: Sequence[Optional[float]]) -> Tuple[float, float]:
    """Return ``(last_close, close_before_it)``; zeros where unavailable."""
    if not closes:
        return 0.0, 0.0
    last = finite_or_zero(closes[-1])
    before = finite_or_zero(closes[-2]) if len(closes) > 1 else 0.0
    return last, before


def normalize_quote(
    symbol: str,
    raw: RawQuote,
    *,
    name: str | None = None,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> MarketIndex:
    meta = raw.meta
    price = finite_or_zero(meta.regular_market_price)
    previous_close = finite_or_zero(meta.previous_close) or finite_or_zero(meta.chart_previous_close)
    is_delayed = False

    if price == 0:
        last_close, close_before = _historical_fallback(raw.closes)
        if last_close != 0:
            price = last_close
            if close_before != 0:
                previous_close = close_before
            is_delayed = True

    if price == 0:
        raise InvalidQuoteError(f"no valid price data available for {symbol}")

    change, change_percent = calculate_change(price, previous_close)
    return MarketIndex(
        symbol=symbol,
        name=name or index_name(symbol),
        price=price,
        change=change,
        change_percent=change_percent,
        updated_at=_resolve_timestamp(raw, now),
        is_delayed=is_delayed,
    )


def _resolve_timestamp(raw: RawQuote, now: Callable[[], datetime]) -> datetime:
    candidates = []
    if raw.meta.regular_market_time and raw.meta.regular_market_time > 0:
        candidates.append(raw.meta.regular_market_time)
    if raw.timestamp:
        candidates.append(raw.timestamp[-1])
    for epoch in candidates:
        try:
            return datetime.fromtimestamp(epoch, timezone.utc)
        except (ValueError, OverflowError, OSError):
            # Out-of-range epochs (e.g. milliseconds) fall through to the next source
            continue
    return now()
