"""Composite scoring of accounts across events.

Builds on the per-event percentiles from :mod:`src.queue_analytics.percentile`
and condenses an account's history into summary statistics plus a weighted,
explainable composite score.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from src.queue_analytics.config import (
    BASELINE_COMPOSITE,
    BASELINE_COMPOSITE_PURCHASED,
    BASELINE_CONSISTENCY_CONTRIBUTION,
    BASELINE_PURCHASE_CONTRIBUTION,
    CONSISTENCY_STDDEV_CALIBRATION,
    HIGH_CONFIDENCE_MIN_EVENTS,
    MAX_EVENTS_FOR_NORM,
    MEDIUM_CONFIDENCE_MIN_EVENTS,
    NO_DATA_REASON,
    RECENT_EVENT_COUNT,
)
from src.queue_analytics.models import (
    DEFAULT_SCORE_WEIGHTS,
    AccountScore,
    Confidence,
    ConfigurationError,
    EventPerformance,
    PositionObservation,
    ScoreBreakdown,
    ScoreWeights,
)
from src.queue_analytics.percentile import calculate_event_performances
from src.queue_analytics.stats import clamp, mean, population_std, round1

logger = logging.getLogger(__name__)


def confidence_for(events_entered: int) -> Tuple[Confidence, str]:
    """Confidence tier and explanation for a sample of *events_entered*."""
    if events_entered <= 0:
        return Confidence.LOW, NO_DATA_REASON
    if events_entered < MEDIUM_CONFIDENCE_MIN_EVENTS:
        return (
            Confidence.LOW,
            f"Only {events_entered} event - need more data for reliable ranking",
        )
    if events_entered < HIGH_CONFIDENCE_MIN_EVENTS:
        return (
            Confidence.MEDIUM,
            f"Based on {events_entered} events - moderate reliability",
        )
    return Confidence.HIGH, f"Based on {events_entered} events - high reliability"


def calculate_score_breakdown(
    avg_percentile: float,
    consistency_score: float,
    recent_avg_percentile: float,
    events_entered: int,
    has_purchased: bool,
    max_events_for_norm: int = MAX_EVENTS_FOR_NORM,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
) -> ScoreBreakdown:
    """Weight the five component scores into one composite.

    Percentiles are inverted (``100 - p``) so that every component reads
    "higher is better". Components are clamped to [0, 100] before weighting
    and every numeric output is rounded to one decimal.
    """
    percentile_score = clamp(100 - avg_percentile)
    consistency = clamp(consistency_score)
    recent_score = clamp(100 - recent_avg_percentile)
    if max_events_for_norm > 0:
        coverage_score = clamp(events_entered / max_events_for_norm * 100)
    else:
        coverage_score = 100.0 if events_entered > 0 else 0.0
    purchase_score = 100.0 if has_purchased else 0.0

    contributions = (
        percentile_score * weights.percentile,
        consistency * weights.consistency,
        recent_score * weights.recent_performance,
        coverage_score * weights.event_coverage,
        purchase_score * weights.purchase_success,
    )
    composite = clamp(sum(contributions))
    confidence, reason = confidence_for(events_entered)

    return ScoreBreakdown(
        percentile_score=round1(percentile_score),
        consistency_score=round1(consistency),
        recent_performance_score=round1(recent_score),
        event_coverage_score=round1(coverage_score),
        purchase_success_score=purchase_score,
        percentile_contribution=round1(contributions[0]),
        consistency_contribution=round1(contributions[1]),
        recent_performance_contribution=round1(contributions[2]),
        event_coverage_contribution=round1(contributions[3]),
        purchase_success_contribution=round1(contributions[4]),
        composite_score=round1(composite),
        confidence=confidence,
        confidence_reason=reason,
    )


def _baseline_breakdown(has_purchased: bool) -> ScoreBreakdown:
    """Fixed breakdown for accounts with no queue data.

    Not a measured score: unverified accounts get flat baseline credit for
    consistency, plus purchase credit when they have converted before.
    """
    return ScoreBreakdown(
        percentile_score=0.0,
        consistency_score=100.0,
        recent_performance_score=0.0,
        event_coverage_score=0.0,
        purchase_success_score=100.0 if has_purchased else 0.0,
        percentile_contribution=0.0,
        consistency_contribution=BASELINE_CONSISTENCY_CONTRIBUTION,
        recent_performance_contribution=0.0,
        event_coverage_contribution=0.0,
        purchase_success_contribution=(
            BASELINE_PURCHASE_CONTRIBUTION if has_purchased else 0.0
        ),
        composite_score=(
            BASELINE_COMPOSITE_PURCHASED if has_purchased else BASELINE_COMPOSITE
        ),
        confidence=Confidence.LOW,
        confidence_reason=NO_DATA_REASON,
    )


class AccountScorer:
    """Aggregate an account's event performances into an :class:`AccountScore`.

    The scorer only holds tuning parameters; every method is a pure function
    of its arguments, so one instance can be shared freely across threads.
    """

    def __init__(
        self,
        weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
        recent_event_count: int = RECENT_EVENT_COUNT,
        max_events_for_norm: int = MAX_EVENTS_FOR_NORM,
    ):
        if recent_event_count < 1:
            raise ConfigurationError(
                f"recent_event_count must be >= 1, got {recent_event_count}"
            )
        if max_events_for_norm < 1:
            raise ConfigurationError(
                f"max_events_for_norm must be >= 1, got {max_events_for_norm}"
            )
        self.weights = weights
        self.recent_event_count = recent_event_count
        self.max_events_for_norm = max_events_for_norm

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score_breakdown(
        self,
        avg_percentile: float,
        consistency_score: float,
        recent_avg_percentile: float,
        events_entered: int,
        has_purchased: bool,
    ) -> ScoreBreakdown:
        return calculate_score_breakdown(
            avg_percentile,
            consistency_score,
            recent_avg_percentile,
            events_entered,
            has_purchased,
            max_events_for_norm=self.max_events_for_norm,
            weights=self.weights,
        )

    def score_account(
        self,
        account_id: str,
        email: str,
        performances: Sequence[EventPerformance],
        has_purchased: bool,
    ) -> AccountScore:
        """Compute summary statistics and the composite score for one account.

        Args:
            account_id: Stable account identifier.
            email: Human-facing identity used in exports.
            performances: The account's per-event results.
            has_purchased: Whether the account has at least one successful
                purchase.

        Returns:
            An :class:`AccountScore`. With no performances this is the
            documented baseline record (composite 25, or 35 if purchased).
        """
        if not performances:
            return AccountScore(
                account_id=account_id,
                email=email,
                has_purchased=has_purchased,
                events_entered=0,
                avg_percentile=0.0,
                weighted_percentile=0.0,
                best_percentile=0.0,
                worst_percentile=0.0,
                percentile_range=0.0,
                percentile_std_dev=0.0,
                consistency_score=100.0,
                recent_avg_percentile=0.0,
                improvement_score=0.0,
                last_tested_at=None,
                score_breakdown=_baseline_breakdown(has_purchased),
                performances=(),
            )

        percentiles = [p.percentile for p in performances]
        events_entered = len(performances)

        avg_percentile = mean(percentiles)
        weighted_percentile = self._weighted_percentile(performances, avg_percentile)
        best_percentile = min(percentiles)
        worst_percentile = max(percentiles)

        std_dev = population_std(percentiles)
        consistency_score = clamp(
            100 * (1 - std_dev / CONSISTENCY_STDDEV_CALIBRATION)
        )

        # Most recent first; sorted() is stable so ties keep input order.
        by_recency = sorted(performances, key=lambda p: p.tested_at, reverse=True)
        recent = by_recency[: self.recent_event_count]
        older = by_recency[self.recent_event_count:]
        recent_avg_percentile = mean([p.percentile for p in recent])

        improvement_score = 0.0
        if events_entered >= 2 and older:
            # Positive = recent percentiles are lower, i.e. better
            improvement_score = mean([p.percentile for p in older]) - recent_avg_percentile

        breakdown = self.score_breakdown(
            avg_percentile,
            consistency_score,
            recent_avg_percentile,
            events_entered,
            has_purchased,
        )

        return AccountScore(
            account_id=account_id,
            email=email,
            has_purchased=has_purchased,
            events_entered=events_entered,
            avg_percentile=avg_percentile,
            weighted_percentile=weighted_percentile,
            best_percentile=best_percentile,
            worst_percentile=worst_percentile,
            percentile_range=worst_percentile - best_percentile,
            percentile_std_dev=std_dev,
            consistency_score=consistency_score,
            recent_avg_percentile=recent_avg_percentile,
            improvement_score=improvement_score,
            last_tested_at=by_recency[0].tested_at,
            score_breakdown=breakdown,
            performances=tuple(performances),
        )

    def score_population(
        self,
        observations: Iterable[PositionObservation],
        position_sets: Mapping[str, Sequence[int]],
        emails: Mapping[str, str],
        purchased_account_ids: Iterable[str] = (),
    ) -> List[AccountScore]:
        """Score every account that appears in *observations*.

        Excluded observations are skipped. Accounts are returned in order of
        first appearance so downstream stable sorts are deterministic.

        Args:
            observations: Raw queue tests for the whole population.
            position_sets: Per-event sorted positions (excluded rows removed).
            emails: ``account_id`` -> email; falls back to the account id.
            purchased_account_ids: Accounts with a successful purchase.
        """
        purchased = set(purchased_account_ids)
        by_account: Dict[str, List[PositionObservation]] = {}
        for obs in observations:
            if obs.excluded:
                continue
            by_account.setdefault(obs.account_id, []).append(obs)

        scores = []
        for account_id, account_obs in by_account.items():
            performances = calculate_event_performances(account_obs, position_sets)
            scores.append(
                self.score_account(
                    account_id,
                    emails.get(account_id, account_id),
                    performances,
                    account_id in purchased,
                )
            )

        logger.info(
            "Scored %d accounts (%d with purchases)",
            len(scores), sum(1 for s in scores if s.has_purchased),
        )
        return scores

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _weighted_percentile(
        performances: Sequence[EventPerformance],
        fallback: float,
    ) -> float:
        """Participant-count-weighted mean percentile.

        Larger events count for more. Falls back to *fallback* (the plain
        mean) when the total weight is zero.
        """
        total_weight = sum(p.total_participants for p in performances)
        if total_weight <= 0:
            return fallback
        return (
            sum(p.percentile * p.total_participants for p in performances)
            / total_weight
        )


def calculate_account_score(
    account_id: str,
    email: str,
    performances: Sequence[EventPerformance],
    has_purchased: bool,
    recent_event_count: int = RECENT_EVENT_COUNT,
    max_events_for_norm: int = MAX_EVENTS_FOR_NORM,
    weights: Optional[ScoreWeights] = None,
) -> AccountScore:
    """Functional shortcut for :meth:`AccountScorer.score_account`."""
    scorer = AccountScorer(
        weights=weights or DEFAULT_SCORE_WEIGHTS,
        recent_event_count=recent_event_count,
        max_events_for_norm=max_events_for_norm,
    )
    return scorer.score_account(account_id, email, performances, has_purchased)
