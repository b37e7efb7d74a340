"""Shared fixtures and factories for the ranking test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from src.data_pipeline.cleaning import QueueDataCleaner
from src.queue_analytics.models import EventPerformance
from src.queue_analytics.reroll import RerollAnalyzer
from src.queue_analytics.scoring import AccountScorer

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ------------------------------------------------------------------
# Lightweight factories: cheap to construct, no I/O
# ------------------------------------------------------------------

def make_performance(
    percentile: float,
    day: int = 0,
    participants: int = 100,
    event_id: str | None = None,
    event_name: str | None = None,
) -> EventPerformance:
    """An EventPerformance tested *day* days after BASE_TIME."""
    return EventPerformance(
        event_id=event_id or f"event_{day}",
        position=max(int(percentile), 1),
        percentile=percentile,
        total_participants=participants,
        tested_at=BASE_TIME + timedelta(days=day),
        event_name=event_name,
    )


def make_performances(percentiles, start_day: int = 0):
    """One performance per percentile on consecutive days (last = most recent)."""
    return [
        make_performance(p, day=start_day + i, event_id=f"event_{start_day + i}")
        for i, p in enumerate(percentiles)
    ]


def make_score(account_id: str, percentiles, has_purchased: bool = False, start_day: int = 0):
    return AccountScorer().score_account(
        account_id,
        f"{account_id}@example.com",
        make_performances(percentiles, start_day=start_day),
        has_purchased,
    )


@pytest.fixture(scope="module")
def scorer():
    return AccountScorer()


@pytest.fixture(scope="module")
def analyzer():
    return RerollAnalyzer()


@pytest.fixture(scope="module")
def cleaner():
    return QueueDataCleaner()
