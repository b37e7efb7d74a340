from src.queue_analytics.distribution import (
    analyze_event_distribution,
    assign_tier,
    calculate_distribution_stats,
    detect_tiers,
    detect_tiers_gap_based,
    detect_tiers_jenks,
    histogram,
    scatter,
)
from src.queue_analytics.models import (
    DEFAULT_SCORE_WEIGHTS,
    AccountScore,
    ChangeType,
    Confidence,
    ConfigurationError,
    EventPerformance,
    PositionObservation,
    RankedAccountScore,
    RerollAnalysis,
    ScoreBreakdown,
    ScoreWeights,
)
from src.queue_analytics.percentile import (
    build_event_position_sets,
    calculate_event_performances,
    calculate_percentile,
)
from src.queue_analytics.ranking import (
    SortCriteria,
    paginate_rankings,
    rank_account_scores,
    sort_account_scores,
    summarize_population,
)
from src.queue_analytics.reroll import RerollAnalyzer
from src.queue_analytics.scoring import (
    AccountScorer,
    calculate_account_score,
    calculate_score_breakdown,
)

__all__ = [
    "AccountScore",
    "AccountScorer",
    "ChangeType",
    "Confidence",
    "ConfigurationError",
    "DEFAULT_SCORE_WEIGHTS",
    "EventPerformance",
    "PositionObservation",
    "RankedAccountScore",
    "RerollAnalysis",
    "RerollAnalyzer",
    "ScoreBreakdown",
    "ScoreWeights",
    "SortCriteria",
    "analyze_event_distribution",
    "assign_tier",
    "build_event_position_sets",
    "calculate_account_score",
    "calculate_distribution_stats",
    "calculate_event_performances",
    "calculate_percentile",
    "calculate_score_breakdown",
    "detect_tiers",
    "detect_tiers_gap_based",
    "detect_tiers_jenks",
    "histogram",
    "paginate_rankings",
    "rank_account_scores",
    "scatter",
    "sort_account_scores",
    "summarize_population",
]
