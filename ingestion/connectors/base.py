"""Connector abstraction, errors, and helpers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

from pydantic import ValidationError

from ingestion.models.domain import ArticleDTO

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """Base connector error."""


class TransientError(ConnectorError):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(ConnectorError):
    """Non-retryable error (e.g., 4xx semantics)."""


class BaseConnector(ABC):
    """Source adapter: turns one news site into a batch of ArticleDTOs.

    Subclasses implement ``_fetch_raw`` and return plain dicts with any of
    ``title``, ``url``/``link``, ``description``/``summary``, ``content``,
    ``image_url``/``urlToImage`` and ``published_at``. Records without a
    title or URL are dropped here, not in the store.
    """

    source: str
    base_url: str = ""

    def fetch(self, *, max_attempts: int = 3) -> List[ArticleDTO]:
        attempts = 0
        last_error: Optional[Exception] = None
        while attempts < max_attempts:
            attempts += 1
            try:
                raw = self._fetch_raw()
                return self._normalize_and_dedupe(raw)
            except TransientError as exc:  # retry
                last_error = exc
                logger.warning(
                    "connector.transient_error",
                    extra={"source": self.source, "attempt": attempts, "error": str(exc)},
                )
                if attempts >= max_attempts:
                    raise
            except PermanentError:
                raise
        assert last_error is not None
        raise last_error

    @abstractmethod
    def _fetch_raw(self) -> List[Dict[str, Any]]:
        """Return a list of raw item dicts from the upstream."""

    def _normalize_and_dedupe(self, items: Iterable[Dict[str, Any]]) -> List[ArticleDTO]:
        seen: set[str] = set()
        normalized: List[ArticleDTO] = []
        now = datetime.now(timezone.utc)
        for item in items:
            dto = self._normalize_item(item, now)
            if dto is None or dto.url in seen:
                continue
            seen.add(dto.url)
            normalized.append(dto)
        return normalized

    def _normalize_item(self, item: Dict[str, Any], scraped_at: datetime) -> Optional[ArticleDTO]:
        title = _clean(item.get("title"))
        url = _clean(item.get("url") or item.get("link"))
        if not title or not url:
            return None
        image_url = _clean(item.get("image_url") or item.get("urlToImage")) or None
        try:
            return ArticleDTO(
                title=title,
                url=self._absolute(url),
                source=self.source,
                content=_clean(item.get("content")),
                description=_clean(item.get("description") or item.get("summary")),
                image_url=self._absolute(image_url) if image_url else None,
                published_at=item.get("published_at") or item.get("publishedAt") or scraped_at,
            )
        except ValidationError:
            logger.debug("connector.invalid_item", extra={"source": self.source, "url": url})
            return None

    def _absolute(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self.base_url:
            return url
        return urljoin(self.base_url, url)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())
