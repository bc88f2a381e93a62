from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from analysis.summarizer import SummarizationError, TextSummarizer
from ingestion.repositories.articles import ArticleStore, recent_runs
from ingestion.services.orchestrator import IngestionOrchestrator
from ingestion.services.retrieval import BalancedRetriever
from ingestion.tasks.collect import run_ingestion_core
from markets.errors import NoMarketDataError
from markets.models import MarketIndex
from markets.quotes import MarketIndexService

from .models import (
    ArticleOut,
    IngestionRunRecord,
    IngestionRunResponse,
    PaginatedResponse,
    SummarizeRequest,
    SummarizeResponse,
    clamp_page,
    clamp_page_size,
    total_pages,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Upper bound for the legacy in-memory view
LEGACY_WINDOW = 1000


def get_store(request: Request) -> ArticleStore:
    return request.app.state.store


def get_retriever(request: Request) -> BalancedRetriever:
    return request.app.state.retriever


def get_market_service(request: Request) -> MarketIndexService:
    return request.app.state.market_service


def get_summarizer(request: Request) -> TextSummarizer:
    return request.app.state.summarizer


def get_orchestrator(request: Request) -> IngestionOrchestrator | None:
    return request.app.state.orchestrator


StoreDep = Annotated[ArticleStore, Depends(get_store)]


@router.get("/news", response_model=PaginatedResponse)
def list_news_route(
    store: StoreDep,
    page: int = Query(1),
    page_size: int = Query(10, alias="pageSize"),
) -> PaginatedResponse:
    page = clamp_page(page)
    page_size = clamp_page_size(page_size)

    rows, _ = store.query(1, LEGACY_WINDOW, "")
    total = len(rows)
    start = (page - 1) * page_size
    window = rows[start : start + page_size]
    return PaginatedResponse(
        articles=[ArticleOut.from_row(row) for row in window],
        total_count=total,
        current_page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/news/db", response_model=PaginatedResponse)
def list_balanced_news_route(
    retriever: Annotated[BalancedRetriever, Depends(get_retriever)],
    page: int = Query(1),
    page_size: int = Query(10, alias="pageSize"),
    search: str = Query(""),
) -> PaginatedResponse:
    page = clamp_page(page)
    page_size = clamp_page_size(page_size)

    rows, total = retriever.balanced_page(page, page_size, search.strip())
    return PaginatedResponse(
        articles=[ArticleOut.from_row(row) for row in rows],
        total_count=total,
        current_page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/market-indices", response_model=list[MarketIndex])
def market_indices_route(
    service: Annotated[MarketIndexService, Depends(get_market_service)],
):
    try:
        indices = service.fetch_all()
    except NoMarketDataError as exc:
        logger.error("quotes.fetch_failed", extra={"error": str(exc)})
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch market indices", "details": str(exc)},
        )
    if not indices:
        logger.warning("quotes.empty")
        return JSONResponse(status_code=404, content={"error": "No market data available"})
    return indices


@router.post("/summarize", response_model=SummarizeResponse)
def summarize_route(
    payload: SummarizeRequest,
    summarizer: Annotated[TextSummarizer, Depends(get_summarizer)],
) -> SummarizeResponse:
    try:
        summary = summarizer.summarize_url(str(payload.url))
    except SummarizationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return SummarizeResponse(summary=summary)


@router.post("/ingestion/run", response_model=IngestionRunResponse)
def run_ingestion_route(
    store: StoreDep,
    orchestrator: Annotated[IngestionOrchestrator | None, Depends(get_orchestrator)],
) -> IngestionRunResponse:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Ingestion is not configured.")
    result = run_ingestion_core(orchestrator, store, trigger="manual")
    if not result.ran:
        raise HTTPException(status_code=409, detail="An ingestion run is already in progress.")
    return IngestionRunResponse(
        stored=result.stored,
        skipped=result.skipped,
        failed_sources=result.failed_sources,
        trace_id=result.trace_id,
    )


@router.get("/ingestion/runs", response_model=list[IngestionRunRecord])
def list_ingestion_runs_route(
    store: StoreDep,
    limit: int = Query(10, ge=1, le=100),
) -> list[IngestionRunRecord]:
    return [IngestionRunRecord.model_validate(run) for run in recent_runs(store.session_factory, limit)]
