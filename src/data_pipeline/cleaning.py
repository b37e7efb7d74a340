"""Data cleaning for queue-test exports.

Handles standardization before scoring:
- Normalize account emails and event names
- Parse positions and test timestamps, dropping unusable rows
- Interpret the moderation "excluded" flag
- Keep one queue test per (account, event): the most recent
- Reduce purchases to the set of converting accounts
"""

import logging
import math
from typing import List, Optional, Set

import pandas as pd

from src.data_pipeline.config import SUCCESS_STATUS, TRUTHY_VALUES
from src.queue_analytics.models import PositionObservation

logger = logging.getLogger(__name__)


class QueueDataCleaner:
    """Cleans and standardizes queue-test data for the scoring engine."""

    # ------------------------------------------------------------------
    # Value helpers
    # ------------------------------------------------------------------
    @staticmethod
    def normalize_email(email: str) -> Optional[str]:
        """Lower-case and strip an email; None for blanks.

        Examples:
            "  Jane.Doe@Example.COM " -> "jane.doe@example.com"
            ""                        -> None
        """
        if pd.isna(email):
            return None
        email = str(email).strip().strip('"').lower()
        return email or None

    @staticmethod
    def normalize_event_name(name: str) -> Optional[str]:
        """Collapse whitespace and standardize curly quotes/dashes."""
        if pd.isna(name):
            return None
        name = str(name).strip().strip('"')
        if name == "":
            return None

        name = name.replace("\u2019", "'")   # right single curly '
        name = name.replace("\u2018", "'")   # left single curly '
        name = name.replace("\u2013", "-")   # en dash
        name = name.replace("\u2014", "-")   # em dash

        return " ".join(name.split())

    @staticmethod
    def parse_excluded(value) -> bool:
        """Interpret a moderation flag cell ("true", "Yes", "1", ...)."""
        if pd.isna(value):
            return False
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in TRUTHY_VALUES

    @staticmethod
    def parse_position(value) -> Optional[int]:
        """Whole positions >= 1 only; anything else is unusable."""
        if pd.isna(value):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number) or number < 1 or number != int(number):
            return None
        return int(number)

    # ------------------------------------------------------------------
    # DataFrame-level cleaning
    # ------------------------------------------------------------------
    def clean_queue_positions(self, df: pd.DataFrame) -> pd.DataFrame:
        """Clean the queue-position DataFrame.

        Drops rows without an account, event, valid position or parseable
        timestamp, and keeps only the latest test per (account, event).
        Timestamps are parsed as UTC.
        """
        out = df.copy()
        start = len(out)

        out["account_id"] = out["account_id"].astype("string").str.strip()
        out["event_id"] = out["event_id"].astype("string").str.strip()
        out["email"] = out["email"].apply(self.normalize_email)
        out["event_name"] = out["event_name"].apply(self.normalize_event_name)
        out["position"] = out["position"].apply(self.parse_position)
        out["tested_at"] = pd.to_datetime(
            out["tested_at"], errors="coerce", utc=True, format="ISO8601"
        )
        out["excluded"] = out["excluded"].apply(self.parse_excluded)

        valid = (
            out["account_id"].fillna("").ne("")
            & out["event_id"].fillna("").ne("")
            & out["position"].notna()
            & out["tested_at"].notna()
        )
        if (~valid).any():
            logger.warning("Dropping %d unusable queue tests", int((~valid).sum()))
        out = out[valid]

        # Latest test wins for a repeated (account, event)
        before_dedupe = len(out)
        out = (
            out.sort_values("tested_at", kind="stable")
            .drop_duplicates(subset=["account_id", "event_id"], keep="last")
            .sort_index()
            .reset_index(drop=True)
        )
        if len(out) < before_dedupe:
            logger.info(
                "Collapsed %d repeated queue tests to the latest per event",
                before_dedupe - len(out),
            )

        out["position"] = out["position"].astype(int)
        logger.info(
            "Cleaned queue positions: %d of %d rows kept (%d excluded)",
            len(out), start, int(out["excluded"].sum()),
        )
        return out

    @staticmethod
    def successful_purchasers(df: pd.DataFrame) -> Set[str]:
        """Account ids with at least one SUCCESS purchase."""
        if df.empty:
            return set()
        status = df["status"].astype("string").str.strip().str.upper()
        ids = df.loc[status.eq(SUCCESS_STATUS).fillna(False), "account_id"]
        return {str(a).strip() for a in ids.dropna()}

    # ------------------------------------------------------------------
    # Conversion to engine inputs
    # ------------------------------------------------------------------
    @staticmethod
    def to_observations(df: pd.DataFrame) -> List[PositionObservation]:
        """Convert a cleaned DataFrame to engine observations, in row order."""
        return [
            PositionObservation(
                account_id=str(row.account_id),
                event_id=str(row.event_id),
                position=int(row.position),
                tested_at=row.tested_at.to_pydatetime(),
                excluded=bool(row.excluded),
                event_name=row.event_name if isinstance(row.event_name, str) else None,
            )
            for row in df.itertuples(index=False)
        ]

    @staticmethod
    def email_map(df: pd.DataFrame) -> dict[str, str]:
        """``account_id`` -> first non-blank email seen for it."""
        emails: dict[str, str] = {}
        for account_id, email in zip(df["account_id"], df["email"]):
            if isinstance(email, str) and email:
                emails.setdefault(str(account_id), email)
        return emails
