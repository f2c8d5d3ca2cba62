"""Deterministic ordering of finished feed results."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from constants import BROKEN, HEALTHY, NOT_A_FEED
from models import FeedResult

__all__ = ["health_rank", "rank_results"]

_HEALTH_RANK = {
    HEALTHY: 0,
    NOT_A_FEED: 1,
    BROKEN: 2,
}


def health_rank(health: str) -> int:
    """Tier of a health label; unknown or empty labels rank with broken."""
    return _HEALTH_RANK.get(health, _HEALTH_RANK[BROKEN])


def _sort_key(result: FeedResult) -> Tuple[int, str, str]:
    return health_rank(result["health"]), result["domain"], result["feed_url"]


def rank_results(results: Iterable[FeedResult]) -> List[FeedResult]:
    """Return a new list ordered by health tier, then domain, then feed URL.

    ``sorted`` is stable, so results that tie on all three keys keep their
    incoming order. The results themselves are not modified.
    """
    return sorted(results, key=_sort_key)
