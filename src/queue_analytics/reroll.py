"""Before/after reroll analysis.

A reroll reassigns queue positions platform-wide. Comparing each account's
mean percentile before and after the reroll timestamp shows whose standing
actually moved.
"""

import logging
from datetime import datetime
from typing import List, Sequence

from src.queue_analytics.config import (
    REROLL_MIN_EVENTS_EACH_SIDE,
    REROLL_SIGNIFICANT_CHANGE,
    REROLL_TOP_CHANGED_LIMIT,
)
from src.queue_analytics.models import (
    AccountScore,
    ChangeType,
    ConfigurationError,
    RerollAnalysis,
)
from src.queue_analytics.stats import mean

logger = logging.getLogger(__name__)


class RerollAnalyzer:
    """Classify per-account percentile shifts around a cutoff timestamp."""

    def __init__(
        self,
        min_events_each_side: int = REROLL_MIN_EVENTS_EACH_SIDE,
        significant_change_threshold: float = REROLL_SIGNIFICANT_CHANGE,
    ):
        if min_events_each_side < 1:
            raise ConfigurationError(
                f"min_events_each_side must be >= 1, got {min_events_each_side}"
            )
        if significant_change_threshold < 0:
            raise ConfigurationError(
                "significant_change_threshold must be >= 0, "
                f"got {significant_change_threshold}"
            )
        self.min_events_each_side = min_events_each_side
        self.significant_change_threshold = significant_change_threshold

    def analyze(
        self,
        scores: Sequence[AccountScore],
        cutoff: datetime,
    ) -> List[RerollAnalysis]:
        """Compare each account's mean percentile before and after *cutoff*.

        Performances tested strictly before *cutoff* are "before"; the rest
        are "after". Accounts with fewer than ``min_events_each_side``
        performances on either side are left out of the result entirely.
        """
        results: List[RerollAnalysis] = []
        for score in scores:
            before = [p.percentile for p in score.performances if p.tested_at < cutoff]
            after = [p.percentile for p in score.performances if p.tested_at >= cutoff]

            if (
                len(before) < self.min_events_each_side
                or len(after) < self.min_events_each_side
            ):
                continue

            before_pct = mean(before)
            after_pct = mean(after)
            change = after_pct - before_pct

            results.append(
                RerollAnalysis(
                    account_id=score.account_id,
                    email=score.email,
                    before_percentile=before_pct,
                    after_percentile=after_pct,
                    events_before_cutoff=len(before),
                    events_after_cutoff=len(after),
                    change=change,
                    change_type=self.classify(change),
                )
            )

        logger.info(
            "Reroll analysis at %s: %d of %d accounts had enough data",
            cutoff.isoformat(), len(results), len(scores),
        )
        return results

    def classify(self, change: float) -> ChangeType:
        """Lower percentile is better, so a large negative change is an improvement."""
        if change < -self.significant_change_threshold:
            return ChangeType.IMPROVED
        if change > self.significant_change_threshold:
            return ChangeType.DECLINED
        return ChangeType.STABLE

    @staticmethod
    def top_changed(
        analyses: Sequence[RerollAnalysis],
        limit: int = REROLL_TOP_CHANGED_LIMIT,
    ) -> List[RerollAnalysis]:
        """The *limit* analyses with the largest absolute change (stable)."""
        ranked = sorted(analyses, key=lambda a: abs(a.change), reverse=True)
        return ranked[:limit]
