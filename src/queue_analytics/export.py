"""Serialization of account scores for JSON responses and CSV export.

In-memory results keep full precision; every serialized numeric value is
rounded to one decimal place here.
"""

import logging
from dataclasses import fields
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from src.queue_analytics.models import (
    AccountScore,
    EventPerformance,
    RerollAnalysis,
    ScoreBreakdown,
)
from src.queue_analytics.stats import round1

logger = logging.getLogger(__name__)

# Stable CSV column order
CSV_COLUMNS = [
    "email",
    "events_entered",
    "composite_score",
    "confidence",
    "avg_percentile",
    "weighted_percentile",
    "best_percentile",
    "worst_percentile",
    "percentile_range",
    "consistency_score",
    "recent_avg_percentile",
    "improvement_score",
    "has_purchased",
    "last_tested_at",
    "performances",
]

CSV_NUMERIC_COLUMNS = [
    "events_entered",
    "composite_score",
    "avg_percentile",
    "weighted_percentile",
    "best_percentile",
    "worst_percentile",
    "percentile_range",
    "consistency_score",
    "recent_avg_percentile",
    "improvement_score",
]


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def performance_to_dict(perf: EventPerformance) -> dict:
    return {
        "event_id": perf.event_id,
        "event_name": perf.event_name,
        "position": perf.position,
        "percentile": round1(perf.percentile),
        "total_participants": perf.total_participants,
        "tested_at": _iso(perf.tested_at),
    }


def breakdown_to_dict(breakdown: ScoreBreakdown) -> dict:
    out = {}
    for f in fields(breakdown):
        value = getattr(breakdown, f.name)
        if f.name == "confidence":
            value = value.value
        elif isinstance(value, float):
            value = round1(value)
        out[f.name] = value
    return out


def account_score_to_dict(score: AccountScore, rank: Optional[int] = None) -> dict:
    """JSON-ready view of *score*, optionally with its rank."""
    out: Dict[str, object] = {}
    if rank is not None:
        out["rank"] = rank
    out.update({
        "account_id": score.account_id,
        "email": score.email,
        "has_purchased": score.has_purchased,
        "events_entered": score.events_entered,
        "avg_percentile": round1(score.avg_percentile),
        "weighted_percentile": round1(score.weighted_percentile),
        "best_percentile": round1(score.best_percentile),
        "worst_percentile": round1(score.worst_percentile),
        "percentile_range": round1(score.percentile_range),
        "percentile_std_dev": round1(score.percentile_std_dev),
        "consistency_score": round1(score.consistency_score),
        "recent_avg_percentile": round1(score.recent_avg_percentile),
        "improvement_score": round1(score.improvement_score),
        "last_tested_at": _iso(score.last_tested_at),
        "score_breakdown": breakdown_to_dict(score.score_breakdown),
        "performances": [performance_to_dict(p) for p in score.performances],
    })
    return out


def reroll_to_dict(analysis: RerollAnalysis) -> dict:
    return {
        "account_id": analysis.account_id,
        "email": analysis.email,
        "before_percentile": round1(analysis.before_percentile),
        "after_percentile": round1(analysis.after_percentile),
        "events_before_cutoff": analysis.events_before_cutoff,
        "events_after_cutoff": analysis.events_after_cutoff,
        "change": round1(analysis.change),
        "change_type": analysis.change_type.value,
    }


def performances_summary(performances: Sequence[EventPerformance]) -> str:
    """``"Event A:12.5%; Event B:40.0%"`` (event id when no name is known)."""
    return "; ".join(
        f"{p.event_name or p.event_id}:{round1(p.percentile):.1f}%"
        for p in performances
    )


def _csv_row(score: AccountScore) -> dict:
    return {
        "email": score.email,
        "events_entered": score.events_entered,
        "composite_score": round1(score.composite_score),
        "confidence": score.confidence.value,
        "avg_percentile": round1(score.avg_percentile),
        "weighted_percentile": round1(score.weighted_percentile),
        "best_percentile": round1(score.best_percentile),
        "worst_percentile": round1(score.worst_percentile),
        "percentile_range": round1(score.percentile_range),
        "consistency_score": round1(score.consistency_score),
        "recent_avg_percentile": round1(score.recent_avg_percentile),
        "improvement_score": round1(score.improvement_score),
        "has_purchased": "Yes" if score.has_purchased else "No",
        "last_tested_at": _iso(score.last_tested_at) or "",
        "performances": performances_summary(score.performances),
    }


def account_scores_to_frame(scores: Sequence[AccountScore]) -> pd.DataFrame:
    """One row per account, columns in :data:`CSV_COLUMNS` order."""
    return pd.DataFrame([_csv_row(s) for s in scores], columns=CSV_COLUMNS)


def write_rankings_csv(scores: Sequence[AccountScore], path: Path) -> Path:
    """Write *scores* (already in display order) to *path* as CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    account_scores_to_frame(scores).to_csv(path, index=False)
    logger.info("Exported %d account rankings to %s", len(scores), path)
    return path


def read_rankings_csv(path: Path) -> pd.DataFrame:
    """Read a file produced by :func:`write_rankings_csv`.

    Numeric columns come back as numbers, ``has_purchased`` as bool, and
    missing text cells as empty strings.
    """
    df = pd.read_csv(path, dtype={"email": str, "confidence": str})

    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Rankings CSV {path} is missing columns: {missing}")

    for col in CSV_NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["events_entered"] = df["events_entered"].fillna(0).astype(int)
    df["has_purchased"] = df["has_purchased"].astype(str).str.strip().eq("Yes")
    for col in ("last_tested_at", "performances"):
        df[col] = df[col].fillna("").astype(str)

    return df[CSV_COLUMNS]


def rankings_to_records(scores: Sequence[AccountScore], start_rank: int = 1) -> List[dict]:
    return [
        account_score_to_dict(score, rank=start_rank + i)
        for i, score in enumerate(scores)
    ]
