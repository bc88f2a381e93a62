from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analysis.summarizer import TextSummarizer
from ingestion.repositories.articles import ArticleStore
from ingestion.services.orchestrator import IngestionOrchestrator
from ingestion.services.retrieval import BalancedRetriever
from ingestion.settings import Settings, get_settings
from ingestion.tasks.collect import build_orchestrator, build_store
from ingestion.utils.logging import configure_logging
from markets.quotes import MarketIndexService

from .routes import router

logger = logging.getLogger(__name__)

# Load the project-root .env explicitly so `uvicorn --factory` works from any cwd
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"


def create_app(
    settings: Settings | None = None,
    *,
    store: ArticleStore | None = None,
    market_service: MarketIndexService | None = None,
    summarizer: TextSummarizer | None = None,
    orchestrator: IngestionOrchestrator | None = None,
    retriever: BalancedRetriever | None = None,
    enable_ingestion: bool = True,
) -> FastAPI:
    """Build the API with its collaborators held on ``app.state``.

    Run with ``uvicorn api.main:create_app --factory``.
    """
    if settings is None:
        if env_path.exists():
            load_dotenv(env_path)
        settings = get_settings()
    configure_logging(settings.log_level, json_enabled=settings.log_json)

    store = store or build_store(settings)
    if orchestrator is None and enable_ingestion:
        orchestrator = build_orchestrator(store, settings)

    app = FastAPI(title="Stock News Aggregator API", version="0.1.0")
    app.state.settings = settings
    app.state.store = store
    app.state.retriever = retriever or BalancedRetriever(store)
    app.state.market_service = market_service or MarketIndexService.from_settings(settings)
    app.state.summarizer = summarizer or TextSummarizer(
        settings.summary_max_sentences,
        timeout_seconds=float(settings.http_timeout_seconds),
        user_agent=settings.http_user_agent,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        allow_credentials=True,
        max_age=12 * 3600,
    )

    app.include_router(router)

    @app.get("/healthz", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    logger.info("api.ready", extra={"sources": orchestrator.sources if orchestrator else []})
    return app
