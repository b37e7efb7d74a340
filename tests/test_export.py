"""Tests for src.queue_analytics.export."""

import pytest

from conftest import make_performance, make_score
from src.queue_analytics.export import (
    CSV_COLUMNS,
    CSV_NUMERIC_COLUMNS,
    account_score_to_dict,
    account_scores_to_frame,
    performances_summary,
    rankings_to_records,
    read_rankings_csv,
    reroll_to_dict,
    write_rankings_csv,
)
from src.queue_analytics.models import ChangeType, RerollAnalysis


@pytest.fixture
def scores(scorer):
    named = [
        make_performance(12.5, day=0, event_id="e1", event_name="Sale, Part 2"),
        make_performance(40, day=1, event_id="e2"),
    ]
    return [
        make_score("third", [100 / 3, 100 / 3], has_purchased=True),
        scorer.score_account("named", "named@example.com", named, False),
        scorer.score_account("ghost", "ghost@example.com", [], False),
    ]


class TestDicts:
    def test_account_values_rounded(self, scores):
        data = account_score_to_dict(scores[0], rank=1)
        assert data["rank"] == 1
        assert data["avg_percentile"] == 33.3
        assert data["has_purchased"] is True
        assert data["score_breakdown"]["confidence"] == "medium"
        assert data["performances"][0]["percentile"] == 33.3
        assert data["last_tested_at"] == "2025-01-02T00:00:00+00:00"

    def test_rank_omitted_by_default(self, scores):
        assert "rank" not in account_score_to_dict(scores[0])

    def test_no_data_account(self, scores):
        data = account_score_to_dict(scores[2])
        assert data["last_tested_at"] is None
        assert data["performances"] == []
        assert data["score_breakdown"]["composite_score"] == 25.0

    def test_rankings_to_records_numbers_from_start(self, scores):
        records = rankings_to_records(scores, start_rank=11)
        assert [r["rank"] for r in records] == [11, 12, 13]

    def test_reroll(self):
        analysis = RerollAnalysis(
            account_id="a1", email="a1@example.com",
            before_percentile=50.04, after_percentile=20.06,
            events_before_cutoff=2, events_after_cutoff=3,
            change=-29.98, change_type=ChangeType.IMPROVED,
        )
        data = reroll_to_dict(analysis)
        assert data["before_percentile"] == 50.0
        assert data["after_percentile"] == 20.1
        assert data["change"] == -30.0
        assert data["change_type"] == "improved"


class TestPerformancesSummary:
    def test_uses_name_then_id(self, scores):
        assert performances_summary(scores[1].performances) == "Sale, Part 2:12.5%; e2:40.0%"

    def test_empty(self):
        assert performances_summary([]) == ""


class TestCsv:
    def test_frame_columns(self, scores):
        df = account_scores_to_frame(scores)
        assert list(df.columns) == CSV_COLUMNS
        assert list(df["has_purchased"]) == ["Yes", "No", "No"]

    def test_round_trip(self, tmp_path, scores):
        path = write_rankings_csv(scores, tmp_path / "out" / "rankings.csv")
        df = read_rankings_csv(path)

        assert list(df.columns) == CSV_COLUMNS
        assert list(df["email"]) == [s.email for s in scores]
        assert list(df["has_purchased"]) == [True, False, False]
        assert list(df["confidence"]) == [s.confidence.value for s in scores]

        for col in CSV_NUMERIC_COLUMNS:
            for value, score in zip(df[col], scores):
                expected = (
                    score.composite_score if col == "composite_score" else getattr(score, col)
                )
                assert value == pytest.approx(expected, abs=0.051)

        assert df.loc[1, "performances"] == "Sale, Part 2:12.5%; e2:40.0%"
        assert df.loc[2, "last_tested_at"] == ""
        assert df.loc[2, "performances"] == ""

    def test_missing_columns_rejected(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("email,events_entered\na@example.com,2\n")
        with pytest.raises(ValueError, match="missing columns"):
            read_rankings_csv(path)
