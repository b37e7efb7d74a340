"""Distribution analysis of a single event's queue positions.

Rather than fixed percentage cut-offs, tier detection looks for natural
breakpoints in the position data where account quality drops off:

* **Gap-based**: unusually large jumps between consecutive positions.
* **Jenks natural breaks**: the partition into *k* classes that minimises
  within-class variance.

Also produces histogram and rank-vs-position series for charting, and
bundles everything into a per-event report.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from src.queue_analytics.config import (
    DEFAULT_MAX_TIERS,
    HISTOGRAM_BUCKETS,
    JENKS_MIN_POSITIONS,
    SCATTER_MAX_POINTS,
    TIER_GAP_SIGNIFICANCE,
    TIER_LINEARITY_CUTOFF,
    TIER_MIN_POSITIONS,
)
from src.queue_analytics.stats import mean, median, population_std, round1

logger = logging.getLogger(__name__)

TIERED = "tiered"
LINEAR = "linear"
INSUFFICIENT_DATA = "insufficient_data"

GAP_METHOD = "gap"
JENKS_METHOD = "jenks"

_TIER_LABELS = {
    1: ("All",),
    2: ("Good", "Poor"),
    3: ("Top Tier", "Average", "Poor"),
    4: ("Elite", "Good", "Average", "Poor"),
    5: ("Elite", "Good", "Average", "Below Average", "Poor"),
}


@dataclass(frozen=True)
class DistributionStats:
    count: int
    min: int
    max: int
    mean: float
    median: float
    std_dev: float
    range: int
    positions: Tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TierBoundary:
    position: int        # First position of the tier
    gap_size: float      # Gap that created the boundary
    accounts_above: int  # Accounts with a better (lower) position


@dataclass(frozen=True)
class TierDetectionResult:
    distribution_type: str  # "tiered", "linear" or "insufficient_data"
    boundaries: Tuple[TierBoundary, ...]
    tier_labels: Tuple[str, ...]
    linearity_score: float  # 0-1, higher = more evenly spaced
    message: str = ""


@dataclass(frozen=True)
class Gap:
    index: int     # Index (in the sorted list) of the position after the gap
    gap: int
    position: int


def calculate_distribution_stats(positions: Sequence[int]) -> DistributionStats:
    """Basic descriptive statistics; all zeros for an empty input."""
    if not positions:
        return DistributionStats(
            count=0, min=0, max=0, mean=0.0, median=0.0,
            std_dev=0.0, range=0, positions=(),
        )

    ordered = sorted(positions)
    return DistributionStats(
        count=len(ordered),
        min=ordered[0],
        max=ordered[-1],
        mean=mean(ordered),
        median=median(ordered),
        std_dev=population_std(ordered),
        range=ordered[-1] - ordered[0],
        positions=tuple(ordered),
    )


def calculate_gaps(sorted_positions: Sequence[int]) -> List[Gap]:
    return [
        Gap(index=i, gap=sorted_positions[i] - sorted_positions[i - 1],
            position=sorted_positions[i])
        for i in range(1, len(sorted_positions))
    ]


def tier_labels(count: int) -> Tuple[str, ...]:
    if count in _TIER_LABELS:
        return _TIER_LABELS[count]
    return tuple(f"Tier {i}" for i in range(1, count + 1))


def _linearity_score(gaps: Sequence[Gap]) -> float:
    """1 = perfectly even spacing, 0 = highly clustered."""
    values = [g.gap for g in gaps]
    mean_gap = mean(values)
    if mean_gap <= 0:
        return 1.0
    return max(0.0, 1 - population_std(values) / mean_gap)


def detect_tiers_gap_based(
    positions: Sequence[int],
    max_tiers: int = DEFAULT_MAX_TIERS,
    significance_threshold: float = TIER_GAP_SIGNIFICANCE,
) -> TierDetectionResult:
    """Detect tier boundaries at gaps much larger than the typical gap.

    A gap is significant when it exceeds both ``significance_threshold``
    times the median gap and twice the mean gap. At most ``max_tiers - 1``
    of the largest significant gaps become boundaries.
    """
    if len(positions) < TIER_MIN_POSITIONS:
        return TierDetectionResult(
            distribution_type=INSUFFICIENT_DATA,
            boundaries=(),
            tier_labels=(),
            linearity_score=0.0,
            message=f"Need at least {TIER_MIN_POSITIONS} accounts for tier detection",
        )

    ordered = sorted(positions)
    gaps = calculate_gaps(ordered)

    gap_values = sorted(g.gap for g in gaps)
    median_gap = gap_values[len(gap_values) // 2]
    mean_gap = mean(gap_values)
    threshold = max(median_gap * significance_threshold, mean_gap * 2)

    significant = sorted(
        (g for g in gaps if g.gap > threshold),
        key=lambda g: g.gap,
        reverse=True,
    )[: max(max_tiers - 1, 0)]

    linearity = _linearity_score(gaps)

    if not significant or linearity > TIER_LINEARITY_CUTOFF:
        return TierDetectionResult(
            distribution_type=LINEAR,
            boundaries=(),
            tier_labels=("All accounts (no clear tiers)",),
            linearity_score=linearity,
            message="Distribution appears linear with no natural tier breaks",
        )

    boundaries = tuple(
        TierBoundary(position=g.position, gap_size=g.gap, accounts_above=g.index)
        for g in sorted(significant, key=lambda g: g.position)
    )
    tier_count = len(boundaries) + 1
    plural = "s" if len(boundaries) > 1 else ""

    logger.debug(
        "Gap-based tiers: %d boundaries (threshold=%.1f, linearity=%.2f)",
        len(boundaries), threshold, linearity,
    )
    return TierDetectionResult(
        distribution_type=TIERED,
        boundaries=boundaries,
        tier_labels=tier_labels(tier_count),
        linearity_score=linearity,
        message=(
            f"Detected {tier_count} natural tiers with "
            f"{len(boundaries)} significant break{plural}"
        ),
    )


def detect_tiers_jenks(
    positions: Sequence[int],
    num_classes: int = DEFAULT_MAX_TIERS,
) -> TierDetectionResult:
    """Jenks natural breaks via dynamic programming.

    Minimises the summed within-class squared deviation over all ways of
    cutting the sorted positions into *num_classes* contiguous classes.
    Small inputs fall back to :func:`detect_tiers_gap_based`.
    """
    if num_classes < 2 or len(positions) < num_classes * 2:
        return TierDetectionResult(
            distribution_type=INSUFFICIENT_DATA,
            boundaries=(),
            tier_labels=(),
            linearity_score=0.0,
            message=(
                f"Need at least {num_classes * 2} accounts for "
                f"{num_classes} classes"
            ),
        )

    if len(positions) < JENKS_MIN_POSITIONS:
        return detect_tiers_gap_based(positions, num_classes)

    ordered = sorted(positions)
    n = len(ordered)

    # Prefix sums give the squared deviation of any slice in O(1).
    prefix = [0.0] * (n + 1)
    prefix_sq = [0.0] * (n + 1)
    for i, value in enumerate(ordered, start=1):
        prefix[i] = prefix[i - 1] + value
        prefix_sq[i] = prefix_sq[i - 1] + value * value

    def ssd(start: int, end: int) -> float:
        """Squared deviation of ordered[start-1:end] (1-based, inclusive)."""
        count = end - start + 1
        total = prefix[end] - prefix[start - 1]
        return (prefix_sq[end] - prefix_sq[start - 1]) - total * total / count

    # cost[l][m]: best cost of splitting the first l values into m classes.
    # split[l][m]: number of values in the first m-1 classes of that split.
    inf = math.inf
    cost = [[inf] * (num_classes + 1) for _ in range(n + 1)]
    split = [[0] * (num_classes + 1) for _ in range(n + 1)]
    for l in range(1, n + 1):
        cost[l][1] = ssd(1, l)

    for m in range(2, num_classes + 1):
        for l in range(m, n + 1):
            for i in range(m - 1, l):
                candidate = cost[i][m - 1] + ssd(i + 1, l)
                if candidate < cost[l][m]:
                    cost[l][m] = candidate
                    split[l][m] = i

    breaks: List[int] = []
    k = n
    for m in range(num_classes, 1, -1):
        i = split[k][m]
        breaks.insert(0, ordered[i])  # first value of class m
        k = i

    boundaries = []
    for idx, pos in enumerate(breaks):
        previous = breaks[idx - 1] if idx > 0 else ordered[0]
        boundaries.append(
            TierBoundary(
                position=pos,
                gap_size=pos - previous,
                accounts_above=sum(1 for p in ordered if p < pos),
            )
        )

    linearity = _linearity_score(calculate_gaps(ordered))
    return TierDetectionResult(
        distribution_type=LINEAR if linearity > TIER_LINEARITY_CUTOFF else TIERED,
        boundaries=tuple(boundaries),
        tier_labels=tier_labels(num_classes),
        linearity_score=linearity,
        message=f"Jenks optimization found {num_classes} natural classes",
    )


def assign_tier(position: int, result: TierDetectionResult) -> Tuple[int, str]:
    """Map *position* to ``(tier_index, label)`` using detected boundaries."""
    if result.distribution_type != TIERED or not result.boundaries:
        label = result.tier_labels[0] if result.tier_labels else "Unknown"
        return 0, label

    tier = 0
    for boundary in result.boundaries:
        if position >= boundary.position:
            tier += 1
        else:
            break

    if tier < len(result.tier_labels):
        return tier, result.tier_labels[tier]
    return tier, f"Tier {tier + 1}"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def histogram(positions: Sequence[int], bucket_count: int = HISTOGRAM_BUCKETS) -> List[dict]:
    """Equal-width buckets over [min, max]; the last bucket is closed."""
    if not positions or bucket_count < 1:
        return []

    ordered = sorted(positions)
    low, high = ordered[0], ordered[-1]
    bucket_size = (high - low) / bucket_count

    buckets = []
    for i in range(bucket_count):
        start = low + i * bucket_size
        end = low + (i + 1) * bucket_size
        last = i == bucket_count - 1
        count = sum(1 for p in ordered if p >= start and (p <= end if last else p < end))
        buckets.append({
            "bucket": f"{_round_half_up(start / 1000)}k-{_round_half_up(end / 1000)}k",
            "count": count,
            "start": start,
            "end": end,
        })
    return buckets


def scatter(positions: Sequence[int]) -> List[dict]:
    """Rank (1-based) against position, best first."""
    return [
        {"rank": rank, "position": position}
        for rank, position in enumerate(sorted(positions), start=1)
    ]


def _downsample(points: List[dict], max_points: int) -> List[dict]:
    if len(points) <= max_points:
        return points
    step = math.ceil(len(points) / max_points)
    return [p for i, p in enumerate(points) if i % step == 0]


def detect_tiers(
    positions: Sequence[int],
    method: str = GAP_METHOD,
    max_tiers: int = DEFAULT_MAX_TIERS,
) -> TierDetectionResult:
    """Run the tier detector named by *method* (``"gap"`` or ``"jenks"``)."""
    if method == JENKS_METHOD:
        return detect_tiers_jenks(positions, max_tiers)
    if method != GAP_METHOD:
        logger.warning("Unknown tier method %r, using %s", method, GAP_METHOD)
    return detect_tiers_gap_based(positions, max_tiers)


def analyze_event_distribution(
    event_id: str,
    positions: Sequence[int],
    excluded_positions: Sequence[int] = (),
    method: str = GAP_METHOD,
    max_tiers: int = DEFAULT_MAX_TIERS,
    bucket_count: int = HISTOGRAM_BUCKETS,
    event_name: str | None = None,
) -> dict:
    """JSON-ready distribution report for one event.

    *positions* is the active population; *excluded_positions* are only
    plotted (``excluded_scatter``) and counted, never analysed.
    """
    if not positions and not excluded_positions:
        return {
            "event_id": event_id,
            "event_name": event_name,
            "stats": None,
            "tier_detection": None,
            "histogram": [],
            "scatter": [],
            "excluded_scatter": [],
            "excluded_count": 0,
            "message": "No queue positions found for this event",
        }

    stats = calculate_distribution_stats(positions)
    tiers = detect_tiers(positions, method, max_tiers)

    return {
        "event_id": event_id,
        "event_name": event_name,
        "stats": {
            "count": stats.count,
            "min": stats.min,
            "max": stats.max,
            "mean": round1(stats.mean),
            "median": round1(stats.median),
            "std_dev": round1(stats.std_dev),
            "range": stats.range,
        },
        "tier_detection": {
            "distribution_type": tiers.distribution_type,
            "linearity_score": round(tiers.linearity_score, 2),
            "message": tiers.message,
            "tier_labels": list(tiers.tier_labels),
            "boundaries": [
                {
                    "position": b.position,
                    "gap_size": b.gap_size,
                    "accounts_above": b.accounts_above,
                }
                for b in tiers.boundaries
            ],
        },
        "histogram": histogram(positions, bucket_count),
        "scatter": _downsample(scatter(positions), SCATTER_MAX_POINTS),
        "excluded_scatter": [
            {"rank": rank, "position": position, "excluded": True}
            for rank, position in enumerate(sorted(excluded_positions), start=1)
        ],
        "excluded_count": len(excluded_positions),
    }
