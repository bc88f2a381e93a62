from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import List

import pytest
from fastapi.testclient import TestClient

from analysis.summarizer import SummarizationError
from api.main import create_app
from ingestion.services.orchestrator import IngestionOrchestrator
from ingestion.services.retrieval import BalancedRetriever
from markets.errors import NoMarketDataError
from markets.models import MarketIndex


class FakeMarketService:
    def __init__(self, indices: List[MarketIndex] | None = None, error: Exception | None = None):
        self._indices = indices or []
        self._error = error

    def fetch_all(self, symbols=None):
        if self._error is not None:
            raise self._error
        return list(self._indices)


class FakeSummarizer:
    def __init__(self, summary: str = "Short summary.", error: Exception | None = None):
        self.summary = summary
        self.error = error
        self.urls: List[str] = []

    def summarize_url(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.summary


class StaticAdapter:
    def __init__(self, source: str, articles):
        self.source = source
        self._articles = articles

    def fetch(self, *, max_attempts: int = 3):
        return list(self._articles)


class BusyOrchestrator:
    sources = ["Livemint"]
    is_running = True


def _client(settings, store, **overrides) -> TestClient:
    overrides.setdefault("market_service", FakeMarketService())
    overrides.setdefault("summarizer", FakeSummarizer())
    overrides.setdefault("retriever", BalancedRetriever(store, rng_factory=lambda: random.Random(7)))
    overrides.setdefault("enable_ingestion", False)
    app = create_app(settings, store=store, **overrides)
    return TestClient(app)


def _seed(store, article_factory):
    for minute in range(12):
        store.insert(article_factory(f"https://lm.com/{minute}", title=f"Livemint story {minute}", minutes=minute))
    for minute in range(3):
        store.insert(
            article_factory(
                f"https://groww.in/{minute}",
                title=f"Nifty outlook {minute}",
                source="Groww",
                minutes=20 + minute,
            )
        )


def test_healthz(settings, store):
    client = _client(settings, store)

    assert client.get("/healthz").json() == {"status": "ok"}


def test_legacy_news_newest_first(settings, store, article_factory):
    _seed(store, article_factory)
    client = _client(settings, store)

    resp = client.get("/api/news", params={"page": 1, "pageSize": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["totalCount"] == 15
    assert body["currentPage"] == 1
    assert body["pageSize"] == 5
    assert body["totalPages"] == 3
    titles = [article["title"] for article in body["articles"]]
    assert titles == ["Nifty outlook 2", "Nifty outlook 1", "Nifty outlook 0", "Livemint story 11", "Livemint story 10"]
    first = body["articles"][0]
    assert first["source"] == {"name": "Groww"}
    assert set(first) == {"title", "description", "content", "url", "urlToImage", "source", "publishedAt"}
    published = datetime.fromisoformat(first["publishedAt"].replace("Z", "+00:00"))
    assert published == datetime(2025, 3, 1, 9, 22, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "params,page,page_size",
    [
        ({"page": -3, "pageSize": 0}, 1, 10),
        ({"page": 0, "pageSize": 500}, 1, 50),
        ({}, 1, 10),
    ],
)
def test_legacy_news_clamps_parameters(settings, store, article_factory, params, page, page_size):
    _seed(store, article_factory)
    client = _client(settings, store)

    body = client.get("/api/news", params=params).json()

    assert body["currentPage"] == page
    assert body["pageSize"] == page_size
    assert len(body["articles"]) == min(page_size, 15)


def test_legacy_news_page_beyond_last_is_empty(settings, store, article_factory):
    _seed(store, article_factory)
    client = _client(settings, store)

    body = client.get("/api/news", params={"page": 9, "pageSize": 5}).json()

    assert body["articles"] == []
    assert body["totalCount"] == 15
    assert body["currentPage"] == 9


def test_legacy_news_empty_store(settings, store):
    body = _client(settings, store).get("/api/news").json()

    assert body["articles"] == []
    assert body["totalCount"] == 0
    assert body["totalPages"] == 0


def test_balanced_news_interleaves_sources(settings, store, article_factory):
    _seed(store, article_factory)
    client = _client(settings, store)

    body = client.get("/api/news/db", params={"page": 1, "pageSize": 4}).json()

    sources = [article["source"]["name"] for article in body["articles"]]
    assert sources == ["Groww", "Livemint", "Groww", "Livemint"]
    assert body["totalCount"] == 15
    assert body["totalPages"] == 4


def test_balanced_news_search_filters_total(settings, store, article_factory):
    _seed(store, article_factory)
    client = _client(settings, store)

    body = client.get("/api/news/db", params={"search": "  NIFTY ", "pageSize": 10}).json()

    assert body["totalCount"] == 3
    assert body["totalPages"] == 1
    assert {article["source"]["name"] for article in body["articles"]} == {"Groww"}


def test_balanced_news_clamps_page_size(settings, store, article_factory):
    _seed(store, article_factory)
    client = _client(settings, store)

    body = client.get("/api/news/db", params={"page": 0, "pageSize": 0}).json()

    assert body["currentPage"] == 1
    assert body["pageSize"] == 10
    assert len(body["articles"]) == 10


def _index(symbol: str, name: str) -> MarketIndex:
    return MarketIndex(
        symbol=symbol,
        name=name,
        price=22000.0,
        change=110.0,
        change_percent=0.5,
        updated_at=datetime(2025, 3, 3, 10, 0, tzinfo=timezone.utc),
        is_delayed=False,
    )


def test_market_indices_success(settings, store):
    service = FakeMarketService([_index("^NSEI", "NIFTY 50"), _index("^BSESN", "BSE SENSEX")])
    client = _client(settings, store, market_service=service)

    resp = client.get("/api/market-indices")

    assert resp.status_code == 200
    payload = resp.json()
    assert [item["symbol"] for item in payload] == ["^NSEI", "^BSESN"]
    assert payload[0]["changePercentage"] == 0.5
    assert payload[0]["isDelayed"] is False


def test_market_indices_all_failed(settings, store):
    service = FakeMarketService(error=NoMarketDataError("^NSEI: boom"))
    client = _client(settings, store, market_service=service)

    resp = client.get("/api/market-indices")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch market indices", "details": "^NSEI: boom"}


def test_market_indices_empty(settings, store):
    resp = _client(settings, store).get("/api/market-indices")

    assert resp.status_code == 404
    assert resp.json() == {"error": "No market data available"}


def test_summarize_returns_summary(settings, store):
    summarizer = FakeSummarizer("Lead. Point.")
    client = _client(settings, store, summarizer=summarizer)

    resp = client.post("/api/summarize", json={"url": "https://news.test/story"})

    assert resp.status_code == 200
    assert resp.json() == {"summary": "Lead. Point."}
    assert summarizer.urls == ["https://news.test/story"]


def test_summarize_failure_is_server_error(settings, store):
    client = _client(settings, store, summarizer=FakeSummarizer(error=SummarizationError("empty text provided")))

    resp = client.post("/api/summarize", json={"url": "https://news.test/story"})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "empty text provided"


def test_summarize_rejects_invalid_url(settings, store):
    resp = _client(settings, store).post("/api/summarize", json={"url": "not a url"})

    assert resp.status_code == 422


def test_manual_ingestion_run(settings, store, article_factory):
    orchestrator = IngestionOrchestrator(
        store,
        [StaticAdapter("Livemint", [article_factory("https://lm.com/a"), article_factory("https://lm.com/b")])],
    )
    client = _client(settings, store, orchestrator=orchestrator)

    first = client.post("/api/ingestion/run")
    second = client.post("/api/ingestion/run")

    assert first.status_code == 200
    assert first.json()["stored"] == 2
    assert first.json()["trace_id"]
    assert second.json()["stored"] == 0
    assert second.json()["skipped"] == 2


def test_manual_ingestion_run_while_busy(settings, store):
    client = _client(settings, store, orchestrator=BusyOrchestrator())

    resp = client.post("/api/ingestion/run")

    assert resp.status_code == 409


def test_manual_ingestion_without_orchestrator(settings, store):
    resp = _client(settings, store).post("/api/ingestion/run")

    assert resp.status_code == 503


def test_ingestion_runs_lists_ledger(settings, store, article_factory):
    orchestrator = IngestionOrchestrator(store, [StaticAdapter("Livemint", [article_factory("https://lm.com/a")])])
    client = _client(settings, store, orchestrator=orchestrator)
    client.post("/api/ingestion/run")

    resp = client.get("/api/ingestion/runs", params={"limit": 5})

    assert resp.status_code == 200
    runs = resp.json()
    assert len(runs) == 1
    assert runs[0]["status"] == "succeeded"
    assert runs[0]["trigger"] == "manual"
    assert runs[0]["stored"] == 1
