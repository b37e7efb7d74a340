"""Value objects for the queue-position analytics engine.

Everything here is immutable: results are recomputed from caller-supplied
observations on every request and never updated in place.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from src.queue_analytics.config import DEFAULT_WEIGHTS, WEIGHT_SUM_TOLERANCE


class ConfigurationError(ValueError):
    """Raised when tuning parameters are invalid (e.g. weights do not sum to 1)."""

    pass


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChangeType(str, Enum):
    IMPROVED = "improved"
    DECLINED = "declined"
    STABLE = "stable"


@dataclass(frozen=True)
class PositionObservation:
    """One recorded queue test: an account's position in one event."""

    account_id: str
    event_id: str
    position: int
    tested_at: datetime
    excluded: bool = False
    event_name: Optional[str] = None


@dataclass(frozen=True)
class EventPerformance:
    """An account's standing in a single event (lower percentile = better)."""

    event_id: str
    position: int
    percentile: float
    total_participants: int
    tested_at: datetime
    event_name: Optional[str] = None


@dataclass(frozen=True)
class ScoreWeights:
    """Weights for the five composite-score components.

    Validated once at construction: each weight >= 0, sum within 1e-6 of 1.
    """

    percentile: float = DEFAULT_WEIGHTS["percentile"]
    consistency: float = DEFAULT_WEIGHTS["consistency"]
    recent_performance: float = DEFAULT_WEIGHTS["recent_performance"]
    event_coverage: float = DEFAULT_WEIGHTS["event_coverage"]
    purchase_success: float = DEFAULT_WEIGHTS["purchase_success"]

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ConfigurationError(
                    f"Weight {f.name!r} must be >= 0, got {value}"
                )
        total = self.total()
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(
                f"Score weights must sum to 1.0, got {total:.4f}"
            )

    def total(self) -> float:
        return sum(getattr(self, f.name) for f in fields(self))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float]) -> "ScoreWeights":
        """Build weights from a config mapping; missing keys keep defaults."""
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown score weight(s): {sorted(unknown)}. "
                f"Expected a subset of {sorted(known)}."
            )
        return cls(**{k: float(v) for k, v in mapping.items()})

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_SCORE_WEIGHTS = ScoreWeights()


@dataclass(frozen=True)
class ScoreBreakdown:
    """Transparent decomposition of a composite score.

    Component scores are on a 0-100 scale where higher is better; each
    ``*_contribution`` is the component multiplied by its weight.
    """

    percentile_score: float
    consistency_score: float
    recent_performance_score: float
    event_coverage_score: float
    purchase_success_score: float

    percentile_contribution: float
    consistency_contribution: float
    recent_performance_contribution: float
    event_coverage_contribution: float
    purchase_success_contribution: float

    composite_score: float
    confidence: Confidence
    confidence_reason: str


@dataclass(frozen=True)
class AccountScore:
    """Cross-event aggregate for one account."""

    account_id: str
    email: str
    has_purchased: bool
    events_entered: int

    avg_percentile: float
    weighted_percentile: float
    best_percentile: float
    worst_percentile: float
    percentile_range: float

    percentile_std_dev: float
    consistency_score: float

    recent_avg_percentile: float
    improvement_score: float

    last_tested_at: Optional[datetime]
    score_breakdown: ScoreBreakdown
    performances: Tuple[EventPerformance, ...] = field(default_factory=tuple)

    @property
    def composite_score(self) -> float:
        return self.score_breakdown.composite_score

    @property
    def confidence(self) -> Confidence:
        return self.score_breakdown.confidence


@dataclass(frozen=True)
class RankedAccountScore:
    rank: int  # 1-based
    score: AccountScore


@dataclass(frozen=True)
class RerollAnalysis:
    """Before/after comparison of one account around a reroll cutoff."""

    account_id: str
    email: str
    before_percentile: float
    after_percentile: float
    events_before_cutoff: int
    events_after_cutoff: int
    change: float  # after - before; negative = improved
    change_type: ChangeType
