from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ingestion.db.session import create_db_engine, create_session_factory, init_schema  # noqa: E402
from ingestion.models.domain import ArticleDTO  # noqa: E402
from ingestion.repositories.articles import ArticleStore  # noqa: E402
from ingestion.settings import Settings, reset_settings_cache  # noqa: E402

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    # Keep a developer's .env / shell from leaking into tests
    for key in ("NEWS_DB_DSN", "NEWS_SOURCES", "MARKET_SYMBOLS", "LOG_JSON"):
        monkeypatch.delenv(key, raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_dsn=f"sqlite:///{tmp_path / 'news.db'}",
        scrape_page_delay_seconds=0,
        quote_delay_seconds=0,
        source_timeout_seconds=5,
    )


@pytest.fixture()
def store(settings: Settings) -> ArticleStore:
    engine = create_db_engine(settings)
    init_schema(engine)
    return ArticleStore(create_session_factory(engine))


def make_article(
    url: str,
    *,
    title: str | None = None,
    source: str = "Livemint",
    content: str = "",
    description: str = "",
    minutes: int = 0,
) -> ArticleDTO:
    return ArticleDTO(
        title=title or f"Headline for {url}",
        url=url,
        source=source,
        content=content,
        description=description,
        published_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture()
def article_factory():
    return make_article
