import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from src.data_pipeline.config import (
    LOG_BACKUP_COUNT,
    LOG_DIR,
    LOG_FILE_NAME,
    LOG_MAX_BYTES,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_level: str = "INFO", log_dir: Optional[Path] = None) -> Optional[Path]:
    """Configure root logging for the ranking pipeline.

    Writes DEBUG and above to a rotating ``queue_rankings.log`` under
    *log_dir* (``logs/`` by default) and *log_level* and above to the
    console. Returns the log file path, or None when the root logger was
    already configured.
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return None  # Already configured

    log_dir = Path(log_dir) if log_dir is not None else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(min(level, logging.DEBUG))

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info(
        "Logging initialized (level=%s, file=%s)", log_level, log_file
    )
    return log_file
