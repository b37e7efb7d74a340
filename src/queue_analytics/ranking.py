"""Sorting, ranking and paging of account scores."""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Sequence, Union

from src.queue_analytics.models import AccountScore, RankedAccountScore
from src.queue_analytics.stats import mean, round1

logger = logging.getLogger(__name__)


class SortCriteria(str, Enum):
    """Ranking criteria. Ascending order always means better-first."""

    PERCENTILE = "percentile"
    WEIGHTED_PERCENTILE = "weightedPercentile"
    CONSISTENCY = "consistency"
    EVENTS_ENTERED = "eventsEntered"
    RECENT_PERFORMANCE = "recentPerformance"
    IMPROVEMENT = "improvement"
    COMPOSITE_SCORE = "compositeScore"

    @classmethod
    def parse(cls, value: Union[str, "SortCriteria", None]) -> "SortCriteria":
        """Resolve *value* to a criterion, falling back to PERCENTILE.

        Accepts enum members, their values (``"compositeScore"``) and their
        names in any case (``"composite_score"``).
        """
        if isinstance(value, cls):
            return value
        if value is not None:
            text = str(value).strip()
            for member in cls:
                if text == member.value or text.upper() == member.name:
                    return member
        logger.warning(
            "Unknown sort criteria %r, falling back to %s",
            value, cls.PERCENTILE.value,
        )
        return cls.PERCENTILE


# Canonical criterion used by rank_account_scores()
CANONICAL_CRITERIA = SortCriteria.COMPOSITE_SCORE

# Sort keys where a smaller key is better. Higher-is-better metrics are negated.
_SORT_KEYS: Dict[SortCriteria, Callable[[AccountScore], float]] = {
    SortCriteria.PERCENTILE: lambda s: s.avg_percentile,
    SortCriteria.WEIGHTED_PERCENTILE: lambda s: s.weighted_percentile,
    SortCriteria.CONSISTENCY: lambda s: -s.consistency_score,
    SortCriteria.EVENTS_ENTERED: lambda s: -s.events_entered,
    SortCriteria.RECENT_PERFORMANCE: lambda s: s.recent_avg_percentile,
    SortCriteria.IMPROVEMENT: lambda s: -s.improvement_score,
    SortCriteria.COMPOSITE_SCORE: lambda s: -s.score_breakdown.composite_score,
}


def sort_account_scores(
    scores: Sequence[AccountScore],
    criteria: Union[str, SortCriteria] = SortCriteria.PERCENTILE,
    ascending: bool = True,
) -> List[AccountScore]:
    """Return a new list of *scores* ordered by *criteria*.

    ``ascending=True`` puts the best accounts first for every criterion.
    The sort is stable in both directions: ties keep their input order.
    Unknown criteria fall back to ``percentile``.
    """
    key = _SORT_KEYS[SortCriteria.parse(criteria)]
    return sorted(scores, key=key, reverse=not ascending)


def rank_account_scores(
    scores: Sequence[AccountScore],
    criteria: Union[str, SortCriteria] = CANONICAL_CRITERIA,
) -> List[RankedAccountScore]:
    """Sort best-first and assign contiguous 1-based ranks."""
    return [
        RankedAccountScore(rank=i, score=score)
        for i, score in enumerate(sort_account_scores(scores, criteria), start=1)
    ]


@dataclass(frozen=True)
class RankingPage:
    """One page of a ranking view."""

    accounts: List[RankedAccountScore]
    page: int
    limit: int
    total: int
    pages: int


def filter_min_events(
    scores: Sequence[AccountScore], min_events: int = 1
) -> List[AccountScore]:
    if min_events <= 1:
        return list(scores)
    return [s for s in scores if s.events_entered >= min_events]


def paginate_rankings(
    scores: Sequence[AccountScore],
    criteria: Union[str, SortCriteria] = CANONICAL_CRITERIA,
    ascending: bool = True,
    page: int = 1,
    limit: int = 100,
    min_events: int = 1,
) -> RankingPage:
    """Filter, sort and slice *scores* into a :class:`RankingPage`.

    Ranks continue across pages (page 2 with limit 10 starts at rank 11).
    """
    page = max(page, 1)
    limit = max(limit, 1)

    ordered = sort_account_scores(
        filter_min_events(scores, min_events), criteria, ascending
    )
    total = len(ordered)
    skip = (page - 1) * limit
    accounts = [
        RankedAccountScore(rank=skip + i + 1, score=score)
        for i, score in enumerate(ordered[skip: skip + limit])
    ]
    return RankingPage(
        accounts=accounts,
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )


def summarize_population(
    scores: Sequence[AccountScore], min_events: int = 1
) -> Dict[str, float]:
    """Headline statistics for a ranking view."""
    filtered = filter_min_events(scores, min_events)
    return {
        "total_accounts": len(scores),
        "filtered_accounts": len(filtered),
        "avg_percentile": round1(mean([s.avg_percentile for s in filtered])),
        "avg_composite_score": round1(mean([s.composite_score for s in filtered])),
        "avg_events_per_account": round1(mean([s.events_entered for s in filtered])),
        "accounts_with_multiple_events": sum(
            1 for s in scores if s.events_entered >= 2
        ),
    }
