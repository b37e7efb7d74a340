"""Run the complete account-ranking pipeline.

Usage:
    python -m src.data_pipeline.run_rankings [data_dir] [reroll_date]

Examples:
    python -m src.data_pipeline.run_rankings
    python -m src.data_pipeline.run_rankings /path/to/csvs 2025-03-01
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd

from src.data_pipeline.cleaning import QueueDataCleaner
from src.data_pipeline.config import (
    DEFAULT_SORT_BY,
    OUTPUT_PREFIX,
    PROCESSED_DATA_DIR,
    RAW_DATA_DIR,
)
from src.data_pipeline.ingestion import QueueDataIngester
from src.logging_config import setup_logging
from src.queue_analytics.distribution import GAP_METHOD, analyze_event_distribution
from src.queue_analytics.export import (
    rankings_to_records,
    reroll_to_dict,
    write_rankings_csv,
)
from src.queue_analytics.models import DEFAULT_SCORE_WEIGHTS, ScoreWeights
from src.queue_analytics.percentile import build_event_position_sets
from src.queue_analytics.ranking import (
    SortCriteria,
    filter_min_events,
    sort_account_scores,
    summarize_population,
)
from src.queue_analytics.reroll import RerollAnalyzer
from src.queue_analytics.scoring import AccountScorer

logger = logging.getLogger(__name__)


def _event_distributions(observations, position_sets, tier_method: str) -> list[dict]:
    """Distribution and tier report for every event, in first-seen order."""
    excluded: dict[str, list[int]] = {}
    names: dict[str, Optional[str]] = {}
    for obs in observations:
        if names.get(obs.event_id) is None:
            names[obs.event_id] = obs.event_name
        if obs.excluded:
            excluded.setdefault(obs.event_id, []).append(obs.position)

    return [
        analyze_event_distribution(
            event_id,
            position_sets.get(event_id, []),
            excluded_positions=excluded.get(event_id, []),
            method=tier_method,
            event_name=name,
        )
        for event_id, name in names.items()
    ]


def parse_cutoff(value: str) -> datetime:
    """Parse a reroll cutoff; naive values are taken as UTC.

    Raises:
        ValueError: if *value* is not a recognisable date.
    """
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(ts):
        raise ValueError(f"Invalid reroll date: {value!r}")
    return ts.to_pydatetime()


def run_pipeline(
    data_dir: Path | None = None,
    output_dir: Path | None = None,
    reroll_date: str | None = None,
    weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
    sort_by: str = DEFAULT_SORT_BY,
    min_events: int = 1,
    generated_at: Optional[datetime] = None,
    tier_method: str = GAP_METHOD,
) -> Path:
    """Score and rank every account found in the queue-position export.

    Args:
        data_dir: Directory containing ``queue_positions.csv`` and an
            optional ``purchases.csv``. Defaults to ``data/raw/``.
        output_dir: Directory for JSON/CSV output.
            Defaults to ``data/processed/``.
        reroll_date: Optional cutoff; when given, a reroll report is
            written alongside the rankings.
        weights: Composite score weights.
        sort_by: Ranking criterion (see :class:`SortCriteria`).
        min_events: Only rank accounts with at least this many events.
        generated_at: Timestamp recorded in the metadata (defaults to now).
        tier_method: Tier detector for the per-event distribution reports
            ("gap" or "jenks").

    Returns:
        Path to the generated rankings JSON file.

    Raises:
        FileNotFoundError: If the data directory doesn't exist.
        ValueError: If *reroll_date* cannot be parsed.
    """
    if data_dir is None:
        data_dir = RAW_DATA_DIR
    if output_dir is None:
        output_dir = PROCESSED_DATA_DIR
    data_dir = Path(data_dir)
    output_dir = Path(output_dir)

    if not data_dir.is_dir():
        raise FileNotFoundError(f"Data directory not found: {data_dir}")

    cutoff = parse_cutoff(reroll_date) if reroll_date else None
    criteria = SortCriteria.parse(sort_by)
    generated_at = generated_at or datetime.now(timezone.utc)

    logger.info("Starting ranking pipeline (data: %s)", data_dir)

    # 1. Ingest
    logger.info("Step 1/5: Ingesting CSV files...")
    raw = QueueDataIngester(data_dir).read_all()

    # 2. Clean
    logger.info("Step 2/5: Cleaning data...")
    cleaner = QueueDataCleaner()
    queue_df = cleaner.clean_queue_positions(raw["queue_positions"])
    purchasers = cleaner.successful_purchasers(raw["purchases"])
    observations = cleaner.to_observations(queue_df)
    emails = cleaner.email_map(queue_df)

    # 3. Score
    logger.info("Step 3/5: Scoring accounts...")
    position_sets = build_event_position_sets(observations)
    scorer = AccountScorer(weights=weights)
    scores = scorer.score_population(observations, position_sets, emails, purchasers)

    # 4. Rank
    logger.info("Step 4/5: Ranking by %s...", criteria.value)
    ranked = sort_account_scores(filter_min_events(scores, min_events), criteria)

    # 5. Output
    logger.info("Step 5/5: Writing output...")
    stamp = generated_at.strftime("%Y-%m-%d")
    output_dir.mkdir(parents=True, exist_ok=True)

    output_data = {
        "metadata": {
            "version": "1.0",
            "generated_at": generated_at.isoformat(),
            "sort_by": criteria.value,
            "min_events": min_events,
            "tier_method": tier_method,
            "weights": weights.to_dict(),
            "total_events": len(position_sets),
            "total_queue_tests": sum(1 for o in observations if not o.excluded),
        },
        "stats": summarize_population(scores, min_events),
        "accounts": rankings_to_records(ranked),
        "distributions": _event_distributions(observations, position_sets, tier_method),
    }

    if cutoff is not None:
        analyzer = RerollAnalyzer()
        analyses = analyzer.top_changed(analyzer.analyze(scores, cutoff))
        output_data["reroll_analysis"] = {
            "cutoff": cutoff.isoformat(),
            "accounts": [reroll_to_dict(a) for a in analyses],
        }

    output_file = output_dir / f"{OUTPUT_PREFIX}_{stamp}.json"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(output_data, f, indent=2)

    write_rankings_csv(ranked, output_dir / f"{OUTPUT_PREFIX}_{stamp}.csv")

    # Update latest symlink
    latest_link = output_dir / f"{OUTPUT_PREFIX}_latest.json"
    if latest_link.exists() or latest_link.is_symlink():
        latest_link.unlink()
    latest_link.symlink_to(output_file.name)

    # Summary
    confidence_counts: dict[str, int] = {}
    for s in ranked:
        key = s.confidence.value
        confidence_counts[key] = confidence_counts.get(key, 0) + 1

    logger.info("Pipeline complete! Output: %s", output_file)
    logger.info("  Ranked accounts: %d of %d", len(ranked), len(scores))
    logger.info(
        "  By confidence: %s",
        ", ".join(f"{k}={v}" for k, v in sorted(confidence_counts.items())),
    )

    return output_file


if __name__ == "__main__":
    setup_logging()

    data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    reroll_date = sys.argv[2] if len(sys.argv) > 2 else None

    try:
        output = run_pipeline(data_dir, reroll_date=reroll_date)
        print(f"Pipeline complete: {output}")
    except Exception:
        logger.exception("Pipeline failed")
        sys.exit(1)
