"""Celery tasks for the ingestion workflow."""

from __future__ import annotations

import uuid
from typing import Callable, List

from celery import shared_task

from ingestion.connectors.base import BaseConnector
from ingestion.connectors.registry import build_default_connectors
from ingestion.db.session import create_db_engine, create_session_factory, init_schema
from ingestion.models.domain import IngestionResult
from ingestion.repositories.articles import ArticleStore, IngestionRunRecorder
from ingestion.services.orchestrator import IngestionOrchestrator
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger

# Connector factory is kept pluggable for tests; it must return the adapters for one cycle.
CONNECTOR_FACTORY: Callable[[Settings], List[BaseConnector]] = build_default_connectors

# One orchestrator per worker process so the single-flight guard spans task invocations
_ORCHESTRATOR: IngestionOrchestrator | None = None
_STORE: ArticleStore | None = None


def build_store(settings: Settings | None = None) -> ArticleStore:
    engine = create_db_engine(settings)
    init_schema(engine)
    return ArticleStore(create_session_factory(engine))


def build_orchestrator(store: ArticleStore, settings: Settings | None = None) -> IngestionOrchestrator:
    config = settings or get_settings()
    return IngestionOrchestrator(
        store,
        CONNECTOR_FACTORY(config),
        source_timeout_seconds=float(config.source_timeout_seconds),
        max_attempts=int(config.scrape_max_attempts),
    )


def _get_orchestrator() -> tuple[IngestionOrchestrator, ArticleStore]:
    global _ORCHESTRATOR, _STORE
    if _ORCHESTRATOR is None or _STORE is None:
        settings = get_settings()
        _STORE = build_store(settings)
        _ORCHESTRATOR = build_orchestrator(_STORE, settings)
    return _ORCHESTRATOR, _STORE


def reset_orchestrator() -> None:
    """Drop the cached orchestrator (for tests)."""
    global _ORCHESTRATOR, _STORE
    _ORCHESTRATOR = None
    _STORE = None


def run_ingestion_core(
    orchestrator: IngestionOrchestrator,
    store: ArticleStore,
    *,
    trigger: str = "schedule",
) -> IngestionResult:
    """Run one ingestion cycle and record it in ``ingestion_runs``; test-friendly."""
    logger = get_logger(__name__)
    if orchestrator.is_running:
        logger.info("ingestion.skip_overlap", extra={"trigger": trigger})
        return IngestionResult(ran=False)

    trace_id = str(uuid.uuid4())
    with IngestionRunRecorder(store.session_factory, trigger=trigger, trace_id=trace_id) as recorder:
        result = orchestrator.run(trace_id=trace_id)
        recorder.result = result
    logger.info(
        "ingestion.finished",
        extra={
            "trace_id": trace_id,
            "trigger": trigger,
            "ran": result.ran,
            "stored": result.stored,
            "skipped": result.skipped,
            "total_articles": store.count(),
        },
    )
    return result


@shared_task(name="ingestion.tasks.collect.run_ingestion")
def run_ingestion(trigger: str = "schedule") -> dict:  # pragma: no cover - wrapper
    orchestrator, store = _get_orchestrator()
    return run_ingestion_core(orchestrator, store, trigger=trigger).model_dump()
