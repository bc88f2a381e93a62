"""Quote payload and market index models."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

INDEX_NAMES = {
    "^NSEI": "NIFTY 50",
    "^BSESN": "BSE SENSEX",
}


class ChartMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    symbol: Optional[str] = None
    regular_market_price: Optional[float] = Field(None, alias="regularMarketPrice")
    previous_close: Optional[float] = Field(None, alias="previousClose")
    chart_previous_close: Optional[float] = Field(None, alias="chartPreviousClose")
    regular_market_time: Optional[int] = Field(None, alias="regularMarketTime")


class ChartQuoteSeries(BaseModel):
    model_config = ConfigDict(extra="ignore")

    close: List[Optional[float]] = Field(default_factory=list)
    open: List[Optional[float]] = Field(default_factory=list)


class ChartIndicators(BaseModel):
    model_config = ConfigDict(extra="ignore")

    quote: List[ChartQuoteSeries] = Field(default_factory=list)


class RawQuote(BaseModel):
    """One result entry of the upstream chart payload."""

    model_config = ConfigDict(extra="ignore")

    meta: ChartMeta = Field(default_factory=ChartMeta)
    timestamp: List[int] = Field(default_factory=list)
    indicators: ChartIndicators = Field(default_factory=ChartIndicators)

    @property
    def closes(self) -> List[Optional[float]]:
        if not self.indicators.quote:
            return []
        return self.indicators.quote[0].close


class MarketIndex(BaseModel):
    """Normalized quote for one index symbol."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float = Field(..., alias="changePercentage")
    updated_at: datetime = Field(..., alias="updatedAt")
    is_delayed: bool = Field(False, alias="isDelayed")


def index_name(symbol: str) -> str:
    return INDEX_NAMES.get(symbol, symbol)
