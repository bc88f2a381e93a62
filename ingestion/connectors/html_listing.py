"""Selector-driven HTML listing connector (fetcher-injected for tests/offline)."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, Field

from .base import BaseConnector, PermanentError, TransientError

logger = logging.getLogger(__name__)

FetcherFn = Callable[[str], str]


class SourceDefinition(BaseModel):
    """Where and how to read one site's article listing."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    base_url: str
    pages: Tuple[str, ...]
    item_selector: str
    title_selector: str
    link_selector: str = "a"
    description_selector: str = "p"
    image_selector: str = "img"
    image_attrs: Tuple[str, ...] = ("data-src", "src")
    # When set, an item is kept only if one keyword appears in its title or URL
    keywords: Tuple[str, ...] = Field(default_factory=tuple)


class HTMLListingConnector(BaseConnector):
    """Connector that extracts articles from listing pages with CSS selectors.

    - fetcher injected: offline mode, returns HTML for a URL
    - fetcher omitted: real HTTP via httpx
    """

    def __init__(
        self,
        definition: SourceDefinition,
        *,
        fetcher: Optional[FetcherFn] = None,
        timeout_seconds: float = 10.0,
        user_agent: str | None = None,
        page_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.definition = definition
        self.source = definition.name
        self.base_url = definition.base_url
        self._fetcher = fetcher
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._page_delay = page_delay_seconds
        self._sleep = sleep

    def _fetch_raw(self) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for index, page_url in enumerate(self.definition.pages):
            if index > 0 and self._page_delay > 0:
                self._sleep(self._page_delay)
            try:
                html = self._get(page_url)
            except (TransientError, PermanentError) as exc:
                if index == 0:
                    raise
                # Later listing pages are optional; keep what the first ones gave
                logger.info(
                    "connector.page_failed",
                    extra={"source": self.source, "page_url": page_url, "error": str(exc)},
                )
                break
            page_items = self.parse(html)
            logger.debug(
                "connector.page_parsed",
                extra={"source": self.source, "page_url": page_url, "items": len(page_items)},
            )
            items.extend(page_items)
        logger.info("connector.fetched", extra={"source": self.source, "items": len(items)})
        return items

    def _get(self, url: str) -> str:
        if self._fetcher is not None:
            return self._fetcher(url)

        headers = {"Accept": "text/html,application/xhtml+xml"}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        try:
            resp = httpx.get(url, headers=headers, timeout=self._timeout, follow_redirects=True)
        except httpx.TimeoutException as exc:
            raise TransientError(f"{self.source} timeout: {url}") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"{self.source} request error: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientError(f"{self.source} temporary error: {resp.status_code}")
        if resp.status_code >= 400:
            raise PermanentError(f"{self.source} error: {resp.status_code}")
        return resp.text

    def parse(self, html: str) -> List[Dict[str, Any]]:
        soup = BeautifulSoup(html, "html.parser")
        items: List[Dict[str, Any]] = []
        for node in soup.select(self.definition.item_selector):
            item = self._extract(node)
            if item is None:
                continue
            if self.definition.keywords and not self._matches_keywords(item):
                continue
            items.append(item)
        return items

    def _extract(self, node: Tag) -> Optional[Dict[str, Any]]:
        title = _first_text(node, self.definition.title_selector)
        link = _first_attr(node, self.definition.link_selector, ("href",))
        if not title or not link:
            return None
        return {
            "title": title,
            "url": link,
            "description": _first_text(node, self.definition.description_selector),
            "image_url": _first_attr(node, self.definition.image_selector, self.definition.image_attrs),
        }

    def _matches_keywords(self, item: Dict[str, Any]) -> bool:
        haystack = f"{item['title']} {item['url']}".lower()
        return any(keyword in haystack for keyword in self.definition.keywords)


def _first_text(node: Tag, selector: str) -> str:
    found = node.select_one(selector)
    if found is None:
        return ""
    return found.get_text(" ", strip=True)


def _first_attr(node: Tag, selector: str, attrs: Sequence[str]) -> str:
    candidates = node.select(selector)
    if not candidates and node.name == selector:
        candidates = [node]
    for found in candidates:
        for attr in attrs:
            value = found.get(attr)
            if value:
                return str(value).strip()
    return ""
