"""Concurrent fan-out/fan-in over all news sources."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, List, Protocol, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ingestion.models.domain import ArticleDTO, IngestionResult, SourceFailure

logger = logging.getLogger(__name__)


class SourceAdapter(Protocol):
    source: str

    def fetch(self, *, max_attempts: int = ...) -> List[ArticleDTO]: ...  # noqa: D401


class ArticleSink(Protocol):
    def exists(self, url: str) -> bool: ...  # noqa: D401
    def insert(self, article: ArticleDTO) -> bool: ...  # noqa: D401


class IngestionOrchestrator:
    """Runs every source adapter concurrently and stores what comes back.

    Each adapter gets its own worker thread. The fan-in waits for every
    source against one shared deadline; a source that errors or misses the
    deadline contributes nothing and is reported in ``result.failures``.
    Successful batches are then written one article at a time, in source
    order, with a check-then-insert against the store.

    ``run`` is single-flight: a call made while another cycle is in progress
    returns immediately with ``ran=False``.
    """

    def __init__(
        self,
        store: ArticleSink,
        adapters: Sequence[SourceAdapter],
        *,
        source_timeout_seconds: float = 120.0,
        max_attempts: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._adapters = list(adapters)
        self._timeout = source_timeout_seconds
        self._max_attempts = max_attempts
        self._clock = clock
        self._run_lock = threading.Lock()

    @property
    def sources(self) -> List[str]:
        return [adapter.source for adapter in self._adapters]

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def run(self, *, trace_id: str | None = None) -> IngestionResult:
        trace_id = trace_id or str(uuid.uuid4())
        if not self._run_lock.acquire(blocking=False):
            logger.info("ingestion.already_running", extra={"trace_id": trace_id})
            return IngestionResult(ran=False, trace_id=trace_id)
        try:
            return self._run(trace_id)
        finally:
            self._run_lock.release()

    def _run(self, trace_id: str) -> IngestionResult:
        result = IngestionResult(trace_id=trace_id)
        if not self._adapters:
            logger.warning("ingestion.no_sources", extra={"trace_id": trace_id})
            return result

        logger.info(
            "ingestion.start",
            extra={"trace_id": trace_id, "sources": len(self._adapters)},
        )
        batches = self._collect(trace_id, result)
        for source, articles in batches:
            self._store_batch(source, articles, result, trace_id)

        logger.info(
            "ingestion.saved",
            extra={
                "trace_id": trace_id,
                "stored": result.stored,
                "skipped": result.skipped,
                "failed_inserts": result.failed_inserts,
                "failed_sources": result.failed_sources,
            },
        )
        return result

    def _collect(self, trace_id: str, result: IngestionResult) -> List[Tuple[str, List[ArticleDTO]]]:
        executor = ThreadPoolExecutor(
            max_workers=len(self._adapters),
            thread_name_prefix="ingest",
        )
        futures: List[Tuple[SourceAdapter, Future[List[ArticleDTO]]]] = []
        for adapter in self._adapters:
            logger.info("ingestion.source_start", extra={"trace_id": trace_id, "source": adapter.source})
            futures.append((adapter, executor.submit(adapter.fetch, max_attempts=self._max_attempts)))

        batches: List[Tuple[str, List[ArticleDTO]]] = []
        deadline = self._clock() + self._timeout
        try:
            for adapter, future in futures:
                remaining = max(0.0, deadline - self._clock())
                try:
                    articles = future.result(timeout=remaining)
                except FutureTimeoutError:
                    future.cancel()
                    self._record_failure(result, adapter.source, f"timed out after {self._timeout:g}s", trace_id)
                    continue
                except Exception as exc:  # noqa: BLE001
                    self._record_failure(result, adapter.source, str(exc) or type(exc).__name__, trace_id)
                    continue
                logger.info(
                    "ingestion.source_done",
                    extra={"trace_id": trace_id, "source": adapter.source, "fetched": len(articles)},
                )
                batches.append((adapter.source, list(articles or [])))
        finally:
            # Stalled adapters cannot be interrupted; abandon them instead of joining
            executor.shutdown(wait=False, cancel_futures=True)
        return batches

    def _record_failure(self, result: IngestionResult, source: str, error: str, trace_id: str) -> None:
        logger.warning(
            "ingestion.source_failed",
            extra={"trace_id": trace_id, "source": source, "error": error},
        )
        result.failures.append(SourceFailure(source=source, error=error))

    def _store_batch(
        self,
        source: str,
        articles: List[ArticleDTO],
        result: IngestionResult,
        trace_id: str,
    ) -> None:
        for article in articles:
            try:
                if self._store.exists(article.url):
                    # Refresh the scrape bookkeeping; content stays untouched
                    self._store.insert(article)
                    result.skipped += 1
                    continue
                if self._store.insert(article):
                    result.stored += 1
                    logger.debug(
                        "ingestion.article_stored",
                        extra={"trace_id": trace_id, "source": source, "url": article.url},
                    )
                else:
                    # Lost a race with a concurrent cycle; the unique constraint held
                    result.skipped += 1
            except SQLAlchemyError as exc:
                result.failed_inserts += 1
                logger.error(
                    "ingestion.article_failed",
                    extra={"trace_id": trace_id, "source": source, "url": article.url, "error": str(exc)},
                )
