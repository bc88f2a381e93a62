from __future__ import annotations

import pytest

pytest.importorskip("pytest_httpx")

from ingestion.connectors.base import PermanentError, TransientError
from ingestion.connectors.html_listing import HTMLListingConnector, SourceDefinition

PAGE_ONE = "https://markets.test/news"
PAGE_TWO = "https://markets.test/news/page-2"

LISTING = """
<div class="story"><h2>Sensex climbs 400 points</h2><a href="/news/sensex-climbs">read</a>
  <p>Banks lead the rally.</p><img data-src="/img/sensex.jpg" src="/img/placeholder.gif"></div>
<div class="story"><h2>Nifty ends flat</h2><a href="https://markets.test/news/nifty-flat">read</a></div>
"""


def _connector(**kwargs) -> HTMLListingConnector:
    definition = SourceDefinition(
        key="markets_test",
        name="Markets Test",
        base_url="https://markets.test",
        pages=(PAGE_ONE, PAGE_TWO),
        item_selector="div.story",
        title_selector="h2",
    )
    return HTMLListingConnector(definition, user_agent="test-agent", **kwargs)


def test_real_http_path_stops_on_later_page_error(httpx_mock):
    httpx_mock.add_response(method="GET", url=PAGE_ONE, text=LISTING, status_code=200)
    httpx_mock.add_response(method="GET", url=PAGE_TWO, status_code=503)

    articles = _connector().fetch(max_attempts=1)

    assert [a.url for a in articles] == [
        "https://markets.test/news/sensex-climbs",
        "https://markets.test/news/nifty-flat",
    ]
    assert articles[0].image_url == "https://markets.test/img/sensex.jpg"
    assert articles[0].description == "Banks lead the rally."
    assert httpx_mock.get_requests()[0].headers["user-agent"] == "test-agent"


def test_first_page_rate_limit_is_transient(httpx_mock):
    httpx_mock.add_response(method="GET", url=PAGE_ONE, status_code=429)

    with pytest.raises(TransientError):
        _connector().fetch(max_attempts=1)


def test_first_page_not_found_is_permanent(httpx_mock):
    httpx_mock.add_response(method="GET", url=PAGE_ONE, status_code=404)

    with pytest.raises(PermanentError):
        _connector().fetch(max_attempts=3)
