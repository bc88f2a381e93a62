"""Built-in news source definitions and the connector factory."""

from __future__ import annotations

from typing import Dict, List, Optional

from ingestion.settings import Settings, get_settings

from .base import BaseConnector
from .html_listing import FetcherFn, HTMLListingConnector, SourceDefinition

_MARKET_KEYWORDS = ("stock", "market", "sensex", "nifty")


def _paged(base: str, pattern: str, pages: int) -> tuple[str, ...]:
    return (base,) + tuple(pattern.format(base=base, page=page) for page in range(2, pages + 1))


SOURCE_DEFINITIONS: Dict[str, SourceDefinition] = {
    "livemint": SourceDefinition(
        key="livemint",
        name="Livemint",
        base_url="https://www.livemint.com",
        pages=_paged("https://www.livemint.com/market/stock-market-news", "{base}/page-{page}", 5),
        item_selector="div.listingNew div.listtostory",
        title_selector="h2",
    ),
    "economic_times": SourceDefinition(
        key="economic_times",
        name="Economic Times",
        base_url="https://economictimes.indiatimes.com",
        pages=_paged("https://economictimes.indiatimes.com/markets/stocks/news", "{base}/{page}", 5),
        item_selector="div.eachStory",
        title_selector="h3",
    ),
    "moneycontrol": SourceDefinition(
        key="moneycontrol",
        name="MoneyControl",
        base_url="https://www.moneycontrol.com",
        pages=(
            _paged("https://www.moneycontrol.com/news/business/markets/", "{base}page-{page}.html", 5)
            + _paged("https://www.moneycontrol.com/news/business/stocks/", "{base}page-{page}.html", 5)
        ),
        item_selector="li.clearfix",
        title_selector="h2, h3",
        keywords=("markets", "stocks"),
    ),
    "groww": SourceDefinition(
        key="groww",
        name="Groww",
        base_url="https://groww.in",
        pages=("https://groww.in/market-news/stocks",),
        item_selector="div.newsCard, div.news-card, div.news-item",
        title_selector="h1, h2, h3, h4, .title, [class*='title']",
        description_selector="p, .description, [class*='description']",
        image_attrs=("src",),
    ),
    "business_standard": SourceDefinition(
        key="business_standard",
        name="Business Standard",
        base_url="https://www.business-standard.com",
        pages=("https://www.business-standard.com/markets/news",),
        item_selector="div[class*='article'], div[class*='listing'], .story-box",
        title_selector="h1, h2, h3, h4, .title, [class*='title']",
        description_selector="p, .description, [class*='description'], .story-excerpt",
        image_attrs=("src",),
    ),
    "india_today": SourceDefinition(
        key="india_today",
        name="India Today",
        base_url="https://www.indiatoday.in",
        pages=("https://www.indiatoday.in/business/market",),
        item_selector="div.story__grid, div.story-list-item",
        title_selector="h2, h3, .story__title",
        description_selector="p, .story__desc",
        image_attrs=("src",),
        keywords=_MARKET_KEYWORDS,
    ),
}


def build_connector(
    key: str,
    settings: Settings | None = None,
    *,
    fetcher: Optional[FetcherFn] = None,
) -> HTMLListingConnector:
    config = settings or get_settings()
    try:
        definition = SOURCE_DEFINITIONS[key]
    except KeyError as exc:
        raise ValueError(f"Unknown news source: {key}") from exc
    return HTMLListingConnector(
        definition,
        fetcher=fetcher,
        timeout_seconds=float(config.http_timeout_seconds),
        user_agent=config.http_user_agent,
        page_delay_seconds=float(config.scrape_page_delay_seconds),
    )


def build_default_connectors(settings: Settings | None = None) -> List[BaseConnector]:
    """Return one connector per enabled source, in configuration order."""
    config = settings or get_settings()
    return [build_connector(key, config) for key in config.news_sources]
