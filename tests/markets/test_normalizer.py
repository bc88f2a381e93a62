from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from markets.errors import InvalidQuoteError
from markets.models import RawQuote
from markets.normalizer import calculate_change, normalize_quote, round_half_away

FIXED_NOW = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def _raw(meta=None, closes=None, timestamps=None) -> RawQuote:
    payload = {"meta": meta or {}, "timestamp": timestamps or []}
    if closes is not None:
        payload["indicators"] = {"quote": [{"close": closes}]}
    return RawQuote.model_validate(payload)


def test_live_price_with_previous_close():
    raw = _raw({"regularMarketPrice": 22150.5, "previousClose": 22000.0, "regularMarketTime": 1740992400})

    index = normalize_quote("^NSEI", raw)

    assert index.name == "NIFTY 50"
    assert index.price == 22150.5
    assert index.change == 150.5
    assert index.change_percent == 0.68
    assert index.is_delayed is False
    assert index.updated_at == datetime.fromtimestamp(1740992400, timezone.utc)


@pytest.mark.parametrize("live", [0.0, float("nan"), float("inf"), None])
def test_historical_fallback_when_live_price_unusable(live):
    raw = _raw({"regularMarketPrice": live}, closes=[100.0, 105.0], timestamps=[1, 1740900000])

    index = normalize_quote("^BSESN", raw, now=lambda: FIXED_NOW)

    assert index.price == 105.0
    assert index.change == 5.0
    assert index.change_percent == 5.0
    assert index.is_delayed is True
    assert index.updated_at == datetime.fromtimestamp(1740900000, timezone.utc)


def test_historical_fallback_keeps_previous_close_when_series_has_one_point():
    raw = _raw({"regularMarketPrice": 0, "previousClose": 200.0}, closes=[210.0])

    index = normalize_quote("X", raw, now=lambda: FIXED_NOW)

    assert index.price == 210.0
    assert index.change == 10.0
    assert index.is_delayed is True
    assert index.updated_at == FIXED_NOW


def test_invalid_trailing_close_is_not_used():
    raw = _raw({"regularMarketPrice": None}, closes=[100.0, None])

    with pytest.raises(InvalidQuoteError):
        normalize_quote("X", raw)


def test_zero_price_everywhere_is_hard_failure():
    with pytest.raises(InvalidQuoteError):
        normalize_quote("X", _raw({"regularMarketPrice": 0, "previousClose": 10}))


def test_near_zero_previous_close_forces_zero_percent():
    change, percent = calculate_change(5.0, 0.0000001)

    assert percent == 0
    assert math.isfinite(change)
    assert change == 5.0


def test_missing_previous_close_still_finite():
    index = normalize_quote("X", _raw({"regularMarketPrice": 50.0}))

    assert index.change == 50.0
    assert index.change_percent == 0.0


def test_chart_previous_close_used_when_previous_close_missing():
    index = normalize_quote("X", _raw({"regularMarketPrice": 110.0, "chartPreviousClose": 100.0}))

    assert index.change == 10.0
    assert index.change_percent == 10.0


def test_rounding_of_binary_tie_follows_float_value():
    # 101.005 - 100 is 1.00499999... in binary floating point
    change, _ = calculate_change(101.005, 100.0)

    assert change == 1.0


@pytest.mark.parametrize(
    "value,expected",
    [(0.125, 0.13), (-0.125, -0.13), (2.675, 2.68), (1.994, 1.99), (-7.5, -7.5)],
)
def test_round_half_away_from_zero(value, expected):
    assert round_half_away(value) == expected


def test_non_finite_inputs_yield_zero_change():
    assert calculate_change(float("nan"), 100.0) == (0.0, 0.0)
    assert calculate_change(100.0, float("inf")) == (0.0, 0.0)


def test_timestamp_falls_back_to_now():
    index = normalize_quote("X", _raw({"regularMarketPrice": 1.5}), now=lambda: FIXED_NOW)

    assert index.updated_at == FIXED_NOW


def test_serialized_field_names():
    index = normalize_quote("^NSEI", _raw({"regularMarketPrice": 10.0, "previousClose": 8.0}), now=lambda: FIXED_NOW)

    payload = index.model_dump(by_alias=True)

    assert set(payload) == {"symbol", "name", "price", "change", "changePercentage", "updatedAt", "isDelayed"}
    assert payload["changePercentage"] == 25.0


def test_out_of_range_epochs_fall_back_to_now():
    raw = _raw({"regularMarketPrice": 1.5, "regularMarketTime": 10**13}, timestamps=[10**18])

    index = normalize_quote("X", raw, now=lambda: FIXED_NOW)

    assert index.updated_at == FIXED_NOW
