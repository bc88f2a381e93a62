"""Repositories for persisting articles and ingestion runs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ingestion.db.models import Article, IngestionRun, RunStatus
from ingestion.db.session import session_scope
from ingestion.models.domain import ArticleDTO, IngestionResult

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ArticleStore:
    """Deduplicating article store keyed by URL.

    The unique constraint on ``articles.url`` is the final authority on
    identity: ``insert`` is safe to call concurrently for the same URL and
    never creates a second row. Content columns are written once; a repeated
    insert only refreshes ``last_scraped_at``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory

    def exists(self, url: str) -> bool:
        with session_scope(self._session_factory) as session:
            stmt = select(Article.id).where(Article.url == url).limit(1)
            return session.execute(stmt).first() is not None

    def insert(self, article: ArticleDTO) -> bool:
        """Insert ``article`` unless its URL is known.

        Returns True when a new row was created, False when the URL already
        existed (its ``last_scraped_at`` is refreshed instead).
        """
        now = self._clock()
        values = _row_values(article, now)
        with session_scope(self._session_factory) as session:
            inserted = self._insert_ignore(session, values)
            if not inserted:
                session.execute(
                    update(Article).where(Article.url == article.url).values(last_scraped_at=now)
                )
            return inserted

    def _insert_ignore(self, session: Session, values: Dict[str, Any]) -> bool:
        dialect = session.get_bind().dialect.name
        insert_fn = _UPSERT_DIALECTS.get(dialect)
        if insert_fn is not None:
            stmt = insert_fn(Article).values(**values).on_conflict_do_nothing(index_elements=["url"])
            result = session.execute(stmt)
            return bool(result.rowcount)
        try:
            with session.begin_nested():
                session.add(Article(**values))
        except IntegrityError:
            return False
        return True

    def query(self, page: int, page_size: int, search: str = "") -> Tuple[List[Article], int]:
        """Return one page of articles (newest first) and the filtered total."""
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")

        conditions = []
        term = (search or "").strip()
        if term:
            pattern = f"%{_escape_like(term)}%"
            conditions.append(
                or_(
                    Article.title.ilike(pattern, escape="\\"),
                    Article.content.ilike(pattern, escape="\\"),
                    Article.description.ilike(pattern, escape="\\"),
                )
            )

        with session_scope(self._session_factory) as session:
            total = session.scalar(select(func.count(Article.id)).where(*conditions)) or 0
            stmt = (
                select(Article)
                .where(*conditions)
                .order_by(Article.published_at.desc(), Article.id.desc())
                .limit(page_size)
                .offset((page - 1) * page_size)
            )
            rows = list(session.execute(stmt).scalars().all())
        return rows, int(total)

    def count(self) -> int:
        with session_scope(self._session_factory) as session:
            return int(session.scalar(select(func.count(Article.id))) or 0)


def _row_values(article: ArticleDTO, scraped_at: datetime) -> Dict[str, Any]:
    return {
        "title": article.title,
        "url": article.url,
        "source": article.source,
        "content": article.content,
        "description": article.description,
        "image_url": article.image_url,
        "published_at": article.published_at.astimezone(timezone.utc),
        "last_scraped_at": scraped_at,
    }


class IngestionRunRecorder:
    """Context manager that records one ingestion cycle in ``ingestion_runs``."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        trigger: str = "schedule",
        trace_id: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._run = IngestionRun(
            status=RunStatus.RUNNING,
            trigger=trigger,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
            stored=0,
            skipped=0,
            failed_sources=[],
        )
        self.result: IngestionResult | None = None

    def __enter__(self) -> "IngestionRunRecorder":
        # Persist the RUNNING state up front so a crashed cycle still leaves a row
        with session_scope(self._session_factory) as session:
            session.add(self._run)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc is None and self.result is not None and not self.result.ran:
            # Lost the single-flight race; no cycle ran, so no ledger row
            with session_scope(self._session_factory) as session:
                session.execute(delete(IngestionRun).where(IngestionRun.id == self._run.id))
            return
        if exc is None:
            self._run.status = RunStatus.SUCCEEDED
        else:
            self._run.status = RunStatus.FAILED
            self._run.error_message = str(exc)[:512]
        if self.result is not None:
            self._run.stored = self.result.stored
            self._run.skipped = self.result.skipped
            self._run.failed_sources = self.result.failed_sources
        self._run.finished_at = datetime.now(timezone.utc)
        with session_scope(self._session_factory) as session:
            session.merge(self._run)


def recent_runs(session_factory: sessionmaker[Session], limit: int = 10) -> Sequence[IngestionRun]:
    with session_scope(session_factory) as session:
        stmt = select(IngestionRun).order_by(IngestionRun.started_at.desc()).limit(limit)
        return list(session.execute(stmt).scalars().all())
