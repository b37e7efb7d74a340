"""Tests for src.queue_analytics.scoring and ScoreWeights."""

import dataclasses
import math

import pytest

from conftest import BASE_TIME, make_performance, make_performances
from src.queue_analytics.models import (
    DEFAULT_SCORE_WEIGHTS,
    Confidence,
    ConfigurationError,
    PositionObservation,
    ScoreWeights,
)
from src.queue_analytics.scoring import (
    AccountScorer,
    calculate_account_score,
    calculate_score_breakdown,
    confidence_for,
)


# ── ScoreWeights ──────────────────────────────────────────────────────


class TestScoreWeights:
    def test_defaults(self):
        w = DEFAULT_SCORE_WEIGHTS
        assert (w.percentile, w.consistency, w.recent_performance,
                w.event_coverage, w.purchase_success) == (0.40, 0.25, 0.15, 0.10, 0.10)
        assert w.total() == pytest.approx(1.0)

    def test_sum_of_one_is_accepted(self):
        ScoreWeights(0.2, 0.2, 0.2, 0.2, 0.2)

    @pytest.mark.parametrize("percentile", [0.39, 0.41])
    def test_sum_off_by_one_percent_is_rejected(self, percentile):
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            ScoreWeights(percentile=percentile)

    def test_negative_weight_rejected(self):
        with pytest.raises(ConfigurationError, match=">= 0"):
            ScoreWeights(0.5, 0.5, 0.2, -0.1, -0.1)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ScoreWeights(1.0, 1.0, 0, 0, 0)

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_SCORE_WEIGHTS.percentile = 0.9

    def test_from_mapping_partial(self):
        w = ScoreWeights.from_mapping({"percentile": 0.5, "consistency": 0.15})
        assert w.percentile == 0.5
        assert w.consistency == 0.15
        assert w.recent_performance == 0.15

    def test_from_mapping_unknown_key(self):
        with pytest.raises(ConfigurationError, match="Unknown score weight"):
            ScoreWeights.from_mapping({"speed": 1.0})


# ── Confidence ────────────────────────────────────────────────────────


class TestConfidence:
    @pytest.mark.parametrize(
        "events, expected",
        [(1, Confidence.LOW), (2, Confidence.MEDIUM), (3, Confidence.MEDIUM),
         (4, Confidence.HIGH), (25, Confidence.HIGH)],
    )
    def test_tiers(self, events, expected):
        assert confidence_for(events)[0] == expected

    def test_reason_mentions_count(self):
        assert "3 events" in confidence_for(3)[1]
        assert "Only 1 event" in confidence_for(1)[1]

    def test_zero_events_is_low(self):
        assert confidence_for(0) == (Confidence.LOW, "No queue data available")


# ── calculate_score_breakdown ─────────────────────────────────────────


class TestScoreBreakdown:
    def test_consistent_top_performer(self):
        b = calculate_score_breakdown(
            avg_percentile=10, consistency_score=100, recent_avg_percentile=10,
            events_entered=3, has_purchased=False,
        )
        assert b.percentile_score == 90.0
        assert b.consistency_score == 100.0
        assert b.recent_performance_score == 90.0
        assert b.event_coverage_score == 30.0
        assert b.purchase_success_score == 0.0

        assert b.percentile_contribution == 36.0
        assert b.consistency_contribution == 25.0
        assert b.recent_performance_contribution == 13.5
        assert b.event_coverage_contribution == 3.0
        assert b.purchase_success_contribution == 0.0
        assert b.composite_score == 77.5
        assert b.confidence == Confidence.MEDIUM

    def test_purchase_adds_full_component(self):
        without = calculate_score_breakdown(50, 50, 50, 5, False)
        with_purchase = calculate_score_breakdown(50, 50, 50, 5, True)
        assert with_purchase.purchase_success_score == 100.0
        assert with_purchase.composite_score - without.composite_score == pytest.approx(10.0)

    def test_components_clamped(self):
        b = calculate_score_breakdown(-20, 150, 130, 40, True)
        assert b.percentile_score == 100.0
        assert b.consistency_score == 100.0
        assert b.recent_performance_score == 0.0
        assert b.event_coverage_score == 100.0
        assert 0.0 <= b.composite_score <= 100.0

    def test_rounds_half_away_from_zero(self):
        b = calculate_score_breakdown(12.25, 100, 12.25, 4, False)
        assert b.percentile_score == 87.8

    def test_custom_weights_and_norm(self):
        weights = ScoreWeights(1.0, 0.0, 0.0, 0.0, 0.0)
        b = calculate_score_breakdown(
            30, 0, 90, 1, True, max_events_for_norm=5, weights=weights
        )
        assert b.composite_score == 70.0
        assert b.event_coverage_score == 20.0

    def test_bounds_over_grid(self):
        for avg in (0, 25, 50, 100):
            for consistency in (0, 60, 100):
                for events in (1, 4, 12):
                    for purchased in (False, True):
                        b = calculate_score_breakdown(avg, consistency, avg, events, purchased)
                        for value in (
                            b.percentile_score, b.consistency_score,
                            b.recent_performance_score, b.event_coverage_score,
                            b.purchase_success_score, b.composite_score,
                        ):
                            assert 0.0 <= value <= 100.0


# ── AccountScorer.score_account ───────────────────────────────────────


class TestScoreAccountEmpty:
    def test_purchased_baseline(self, scorer):
        score = scorer.score_account("a1", "a1@example.com", [], has_purchased=True)
        assert score.events_entered == 0
        assert score.composite_score == 35.0
        assert score.confidence == Confidence.LOW
        assert score.score_breakdown.confidence_reason == "No queue data available"

    def test_unpurchased_baseline(self, scorer):
        score = scorer.score_account("a1", "a1@example.com", [], has_purchased=False)
        assert score.composite_score == 25.0
        assert score.consistency_score == 100.0
        assert score.avg_percentile == 0.0
        assert score.last_tested_at is None
        assert score.performances == ()


class TestScoreAccount:
    def test_equal_percentiles_saturate_consistency(self, scorer):
        score = scorer.score_account(
            "a1", "a1@example.com", make_performances([10, 10, 10]), False
        )
        assert score.avg_percentile == pytest.approx(10)
        assert score.percentile_std_dev == 0.0
        assert score.consistency_score == 100.0
        assert score.score_breakdown.percentile_score == 90.0
        assert score.score_breakdown.event_coverage_score == 30.0
        assert score.composite_score == pytest.approx(
            90 * 0.40 + 100 * 0.25 + 90 * 0.15 + 30 * 0.10 + 0 * 0.10, abs=0.05
        )

    def test_summary_statistics(self, scorer):
        # Day 3 (80) is the most recent test
        perfs = make_performances([20, 40, 60, 80])
        score = scorer.score_account("a1", "a1@example.com", perfs, False)

        assert score.events_entered == 4
        assert score.avg_percentile == pytest.approx(50)
        assert score.best_percentile == 20
        assert score.worst_percentile == 80
        assert score.percentile_range == 60
        assert score.percentile_std_dev == pytest.approx(math.sqrt(500))
        assert score.consistency_score == pytest.approx(100 * (1 - math.sqrt(500) / 25))
        assert score.recent_avg_percentile == pytest.approx(60)
        # Older avg 20 - recent avg 60: getting worse
        assert score.improvement_score == pytest.approx(-40)
        assert score.last_tested_at == perfs[-1].tested_at
        assert score.confidence == Confidence.HIGH

    def test_improvement_positive_when_recent_is_better(self, scorer):
        score = scorer.score_account(
            "a1", "a1@example.com", make_performances([90, 80, 10, 10, 10]), False
        )
        assert score.improvement_score == pytest.approx(75)

    def test_no_improvement_without_older_events(self, scorer):
        score = scorer.score_account(
            "a1", "a1@example.com", make_performances([90, 10, 50]), False
        )
        assert score.improvement_score == 0.0

    def test_weighted_percentile_favours_large_events(self, scorer):
        perfs = [
            make_performance(10, day=0, participants=100),
            make_performance(50, day=1, participants=300),
        ]
        score = scorer.score_account("a1", "a1@example.com", perfs, False)
        assert score.avg_percentile == pytest.approx(30)
        assert score.weighted_percentile == pytest.approx(40)

    def test_consistency_floor(self, scorer):
        score = scorer.score_account(
            "a1", "a1@example.com", make_performances([0, 100, 0, 100]), False
        )
        assert score.percentile_std_dev == pytest.approx(50)
        assert score.consistency_score == 0.0

    def test_recent_window_ties_keep_input_order(self):
        scorer = AccountScorer(recent_event_count=1)
        perfs = [
            make_performance(10, day=5, event_id="first"),
            make_performance(90, day=5, event_id="second"),
        ]
        score = scorer.score_account("a1", "a1@example.com", perfs, False)
        assert score.recent_avg_percentile == 10
        assert score.improvement_score == pytest.approx(80)

    def test_deterministic(self, scorer):
        perfs = make_performances([12.5, 33.3, 71.0, 5.5, 48.2])
        first = scorer.score_account("a1", "a1@example.com", perfs, True)
        second = scorer.score_account("a1", "a1@example.com", perfs, True)
        assert first == second

    def test_functional_wrapper_matches_scorer(self, scorer):
        perfs = make_performances([20, 30, 40])
        assert calculate_account_score("a1", "e", perfs, False) == scorer.score_account(
            "a1", "e", perfs, False
        )

    @pytest.mark.parametrize("kwargs", [{"recent_event_count": 0}, {"max_events_for_norm": 0}])
    def test_invalid_tuning_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            AccountScorer(**kwargs)


# ── AccountScorer.score_population ────────────────────────────────────


class TestScorePopulation:
    def _obs(self, account_id, event_id, position, excluded=False):
        return PositionObservation(
            account_id=account_id, event_id=event_id, position=position,
            tested_at=BASE_TIME, excluded=excluded,
        )

    def test_scores_every_account_in_first_seen_order(self, scorer):
        observations = [
            self._obs("b", "e1", 20),
            self._obs("a", "e1", 10),
            self._obs("b", "e2", 5),
            self._obs("c", "e2", 1, excluded=True),
        ]
        position_sets = {"e1": [10, 20], "e2": [5]}
        scores = scorer.score_population(
            observations, position_sets, {"a": "a@example.com"}, purchased_account_ids=["b"]
        )

        assert [s.account_id for s in scores] == ["b", "a"]
        b, a = scores
        assert b.events_entered == 2
        assert b.has_purchased is True
        assert b.email == "b"  # falls back to the id
        assert a.email == "a@example.com"
        assert a.avg_percentile == 50.0
