"""Extractive article summarizer."""

from __future__ import annotations

import re
from collections import Counter
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

_SENTENCE_BREAK = re.compile(r"[.!?]+")
_WORD_STRIP = ".,!?\"'()[]{}"


class SummarizationError(Exception):
    """Raised when a text or URL cannot be summarized."""


def split_sentences(text: str) -> List[str]:
    sentences = []
    for chunk in _SENTENCE_BREAK.split(text.strip()):
        chunk = chunk.strip()
        if chunk:
            sentences.append(chunk + ".")
    return sentences


def _words(text: str) -> List[str]:
    words = []
    for raw in text.split():
        word = raw.strip(_WORD_STRIP).lower()
        if word:
            words.append(word)
    return words


class TextSummarizer:
    """Keeps the lead sentence plus the highest-scoring remaining ones.

    A sentence scores the mean corpus frequency of its words. Ties keep
    their original order.
    """

    def __init__(
        self,
        max_sentences: int = 5,
        *,
        timeout_seconds: float = 10.0,
        user_agent: str | None = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.max_sentences = max_sentences if max_sentences > 0 else 5
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._client = client

    def summarize(self, text: str) -> str:
        if not text or not text.strip():
            raise SummarizationError("empty text provided")
        sentences = split_sentences(text)
        if not sentences:
            raise SummarizationError("no sentences found in text")
        if len(sentences) <= self.max_sentences:
            return " ".join(sentences)

        frequencies = Counter(_words(text))

        def score(sentence: str) -> float:
            tokens = sentence.split()
            if not tokens:
                return 0.0
            return sum(frequencies[word] for word in _words(sentence)) / len(tokens)

        ranked = sorted(sentences[1:], key=score, reverse=True)
        return " ".join([sentences[0]] + ranked[: self.max_sentences - 1])

    def summarize_url(self, url: str) -> str:
        headers = {"User-Agent": self._user_agent} if self._user_agent else {}
        try:
            if self._client is not None:
                resp = self._client.get(url, headers=headers, timeout=self._timeout, follow_redirects=True)
            else:
                resp = httpx.get(url, headers=headers, timeout=self._timeout, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise SummarizationError(f"failed to fetch URL: {exc}") from exc
        if resp.status_code >= 400:
            raise SummarizationError(f"failed to fetch URL: status {resp.status_code}")

        soup = BeautifulSoup(resp.text, "html.parser")
        text = " ".join(p.get_text(" ", strip=True) for p in soup.find_all("p"))
        return self.summarize(text)
