"""CSV ingestion for queue-test exports.

Handles the quirks of hand-maintained exports:
- Surrounding quotes and stray whitespace in text cells
- Comma-formatted numbers (e.g., "29,576")
- Blank placeholder rows
- An optional purchases file
"""

import logging
from pathlib import Path

import pandas as pd

from src.data_pipeline.config import (
    FILE_PATTERNS,
    OPTIONAL_QUEUE_POSITION_COLUMNS,
    PURCHASE_COLUMNS,
    QUEUE_POSITION_COLUMNS,
)

logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Raised when CSV ingestion fails."""


def _parse_numeric(value):
    """Parse a numeric string that may contain commas (e.g., '29,576' -> 29576.0)."""
    if pd.isna(value):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).replace(",", "").strip().strip('"')
    if s == "" or s.isspace():
        return float("nan")
    try:
        return float(s)
    except ValueError:
        return float("nan")


class QueueDataIngester:
    """Reads queue-position and purchase CSV exports from one directory.

    Each read method returns a pandas DataFrame with:
    - Lower-cased, stripped column names
    - Text cells stripped of quotes and whitespace
    - Fully blank rows removed
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _resolve_path(self, file_key: str) -> Path:
        return self.data_dir / FILE_PATTERNS[file_key]

    @staticmethod
    def _strip_frame(df: pd.DataFrame) -> pd.DataFrame:
        df.columns = [str(c).strip().strip('"').lower() for c in df.columns]
        # Read with dtype=str, so every column holds text or NaN
        for col in df.columns:
            df[col] = df[col].str.strip('"').str.strip()
        return df.dropna(how="all").reset_index(drop=True)

    # ------------------------------------------------------------------
    # Queue positions
    # ------------------------------------------------------------------
    def read_queue_positions(self) -> pd.DataFrame:
        """Read the queue-position export.

        Returns DataFrame with columns:
            account_id, email, event_id, event_name, position,
            tested_at, excluded

        Raises:
            FileNotFoundError: if the file is missing.
            IngestionError: if required columns are missing.
        """
        filepath = self._resolve_path("queue_positions")
        if not filepath.exists():
            raise FileNotFoundError(f"Expected file not found: {filepath}")
        logger.info("Reading queue positions: %s", filepath.name)

        df = pd.read_csv(filepath, quotechar='"', dtype=str)
        df = self._strip_frame(df)

        missing = [c for c in QUEUE_POSITION_COLUMNS if c not in df.columns]
        if missing:
            raise IngestionError(
                f"{filepath.name} is missing required columns: {missing}"
            )
        for col, default in OPTIONAL_QUEUE_POSITION_COLUMNS.items():
            if col not in df.columns:
                df[col] = default

        df["position"] = df["position"].apply(_parse_numeric)

        logger.info("Loaded %d queue tests", len(df))
        return df

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------
    def read_purchases(self) -> pd.DataFrame:
        """Read the purchases export; an absent file means no purchases.

        Returns DataFrame with columns: account_id, status
        """
        filepath = self._resolve_path("purchases")
        if not filepath.exists():
            logger.info("No purchases file at %s; assuming no purchases", filepath)
            return pd.DataFrame(columns=PURCHASE_COLUMNS)
        logger.info("Reading purchases: %s", filepath.name)

        df = pd.read_csv(filepath, quotechar='"', dtype=str)
        df = self._strip_frame(df)

        missing = [c for c in PURCHASE_COLUMNS if c not in df.columns]
        if missing:
            raise IngestionError(
                f"{filepath.name} is missing required columns: {missing}"
            )

        logger.info("Loaded %d purchases", len(df))
        return df

    def read_all(self) -> dict[str, pd.DataFrame]:
        """Read both exports.

        Returns:
            dict with keys: 'queue_positions', 'purchases'

        Raises:
            IngestionError: if any file cannot be read.
        """
        try:
            return {
                "queue_positions": self.read_queue_positions(),
                "purchases": self.read_purchases(),
            }
        except IngestionError:
            raise
        except Exception as e:
            raise IngestionError(f"Failed to read CSV files: {e}") from e
