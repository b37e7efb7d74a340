"""Per-event percentile calculation.

A percentile here is the share of an event's participants whose queue
position was at or better than (numerically <=) the account's own, so a
*lower* percentile means a *better* standing:

    percentile = count(p <= position) / N * 100

Ties count fully, so every account sharing a position gets the same value.
"""

import logging
from bisect import bisect_right
from typing import Dict, Iterable, List, Mapping, Sequence

from src.queue_analytics.models import EventPerformance, PositionObservation
from src.queue_analytics.stats import clamp

logger = logging.getLogger(__name__)


def calculate_percentile(position: int, sorted_positions: Sequence[int]) -> float:
    """Percentile of *position* within an ascending-sorted population.

    Returns 0.0 for an empty population. *position* does not have to be a
    member of *sorted_positions*. A single-member population containing
    *position* yields 100.0 (the account is both best and worst).
    """
    total = len(sorted_positions)
    if total == 0:
        return 0.0
    at_or_better = bisect_right(sorted_positions, position)
    return clamp(at_or_better / total * 100)


def build_event_position_sets(
    observations: Iterable[PositionObservation],
) -> Dict[str, List[int]]:
    """Group non-excluded observations into per-event sorted position lists.

    This is the caller-side preparation step for
    :func:`calculate_event_performances`; excluded observations never enter
    a population.
    """
    position_sets: Dict[str, List[int]] = {}
    skipped = 0
    for obs in observations:
        if obs.excluded:
            skipped += 1
            continue
        position_sets.setdefault(obs.event_id, []).append(obs.position)

    for positions in position_sets.values():
        positions.sort()

    logger.debug(
        "Built position sets for %d events (%d excluded observations skipped)",
        len(position_sets), skipped,
    )
    return position_sets


def calculate_event_performances(
    observations: Iterable[PositionObservation],
    position_sets: Mapping[str, Sequence[int]],
) -> List[EventPerformance]:
    """Turn one account's observations into :class:`EventPerformance` records.

    Args:
        observations: The account's queue tests, one per event.
        position_sets: ``event_id`` -> ascending positions of all
            non-excluded participants (see :func:`build_event_position_sets`).

    Returns:
        One performance per observation, in input order. An event missing
        from *position_sets* is scored against ``[position]`` alone.
    """
    performances: List[EventPerformance] = []
    for obs in observations:
        population = position_sets.get(obs.event_id)
        if not population:
            logger.warning(
                "Event %s missing from position sets; scoring account %s "
                "as the only participant",
                obs.event_id, obs.account_id,
            )
            population = [obs.position]

        performances.append(
            EventPerformance(
                event_id=obs.event_id,
                position=obs.position,
                percentile=calculate_percentile(obs.position, population),
                total_participants=len(population),
                tested_at=obs.tested_at,
                event_name=obs.event_name,
            )
        )
    return performances
