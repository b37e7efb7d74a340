from pathlib import Path

# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"
PROCESSED_DATA_DIR = DATA_DIR / "processed"

# Input file names inside a data directory
FILE_PATTERNS = {
    "queue_positions": "queue_positions.csv",
    "purchases": "purchases.csv",
}

# Required columns per input file
QUEUE_POSITION_COLUMNS = [
    "account_id", "email", "event_id", "position", "tested_at",
]
OPTIONAL_QUEUE_POSITION_COLUMNS = {
    "event_name": "",
    "excluded": False,
}
PURCHASE_COLUMNS = ["account_id", "status"]

# Purchase status counted as a conversion
SUCCESS_STATUS = "SUCCESS"

# Values in the "excluded" column treated as true
TRUTHY_VALUES = {"true", "yes", "y", "1", "t"}

# Ranking output defaults
DEFAULT_SORT_BY = "compositeScore"
OUTPUT_PREFIX = "rankings"

# Logging
LOG_DIR = PROJECT_ROOT / "logs"
LOG_FILE_NAME = "queue_rankings.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
