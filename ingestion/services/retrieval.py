"""Source-balanced pagination over the article store."""

from __future__ import annotations

import random
import time
from collections import defaultdict
from typing import Callable, Dict, List, Protocol, Sequence, Tuple, TypeVar

OVERFETCH_MULTIPLIER = 3


class HasSource(Protocol):
    source: str


T = TypeVar("T", bound=HasSource)


class ArticleQuery(Protocol):
    def query(self, page: int, page_size: int, search: str = "") -> Tuple[List, int]: ...  # noqa: D401


def _time_seeded_rng() -> random.Random:
    return random.Random(time.time_ns())


def interleave_by_source(items: Sequence[T], limit: int, rng: random.Random) -> List[T]:
    """Round-robin ``items`` across their sources, at most ``limit`` long.

    Sources are visited in lexicographic order; each source's items are
    shuffled first, and exhausted sources are skipped.
    """
    groups: Dict[str, List[T]] = defaultdict(list)
    for item in items:
        groups[item.source].append(item)
    for group in groups.values():
        rng.shuffle(group)

    queues = [groups[name] for name in sorted(groups)]
    cursors = [0] * len(queues)
    selected: List[T] = []
    while len(selected) < limit:
        progressed = False
        for index, queue in enumerate(queues):
            if len(selected) >= limit:
                break
            if cursors[index] < len(queue):
                selected.append(queue[cursors[index]])
                cursors[index] += 1
                progressed = True
        if not progressed:
            break
    return selected


class BalancedRetriever:
    """Turns a source-skewed query window into a source-fair page."""

    def __init__(
        self,
        store: ArticleQuery,
        *,
        rng_factory: Callable[[], random.Random] = _time_seeded_rng,
        multiplier: int = OVERFETCH_MULTIPLIER,
    ) -> None:
        self._store = store
        self._rng_factory = rng_factory
        self._multiplier = multiplier

    def balanced_page(self, page: int, page_size: int, search: str = "") -> Tuple[List, int]:
        """Return up to ``page_size`` articles and the store-wide filtered total.

        The window is ``page_size * multiplier`` rows of the raw query at the
        same ``page``; fewer rows in the window means a short page.
        """
        window, total = self._store.query(page, page_size * self._multiplier, search)
        if not window:
            return [], total
        return interleave_by_source(window, page_size, self._rng_factory()), total
