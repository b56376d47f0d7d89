"""Centralized logging configuration for steadfast.

Sets up standard Python logging with a console handler and an optional
rotating file handler. Rotation is not size-triggered by the handler itself;
the scheduler's log-rotation job calls LogRotator.rotate_logs() instead.
"""

import logging
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MAX_LOG_BYTES = 5 * 1024 * 1024 # 5MB per file
MAX_LOG_FILES = 7               # rotated files kept next to the active one
DEFAULT_RETENTION_DAYS = 30

logger = logging.getLogger(__name__)


class LogRotator:
    """Size-based rotation and age-based cleanup for one log file."""

    def __init__(
        self,
        handler: RotatingFileHandler,
        max_bytes: int = MAX_LOG_BYTES,
    ):
        self.handler = handler
        self.max_bytes = max_bytes
        self.log_file = Path(handler.baseFilename)

    def rotate_logs(self) -> bool:
        """Rolls the active file over once it reaches max_bytes.

        Returns:
            True if a rollover happened.
        """
        try:
            size = self.log_file.stat().st_size
        except FileNotFoundError:
            return False
        if size < self.max_bytes:
            return False
        self.handler.doRollover()
        logger.info(f"Rotated log file {self.log_file} ({size} bytes)")
        return True

    def clean_old_logs(self, max_age_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Deletes rotated log files older than max_age_days.

        The active log file is never removed.

        Returns:
            Number of files deleted.
        """
        cutoff = time.time() - max_age_days * 24 * 60 * 60
        removed: List[Path] = []
        for path in self.log_file.parent.glob(f"{self.log_file.name}.*"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path)
            except OSError as e:
                logger.warning(f"Could not remove old log file {path}: {e}")
        if removed:
            logger.info(f"Removed {len(removed)} old log file(s)")
        return len(removed)


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[Path] = None,
    backup_count: int = MAX_LOG_FILES,
) -> Optional[LogRotator]:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
        backup_count: Rotated files to keep.

    Returns:
        A LogRotator for the file handler, or None when logging to console only.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers attached to the root logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    rotator = None
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            # maxBytes=0 disables automatic rollover
            file_handler = RotatingFileHandler(
                log_path, maxBytes=0, backupCount=backup_count, encoding='utf-8'
            )
            # The file keeps DEBUG detail regardless of the console level
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.setLevel(min(log_level, logging.DEBUG))
            rotator = LogRotator(file_handler)
            logging.info(f"Logging to file: {log_path}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    logging.info(f"Logging configured. Level={logging.getLevelName(log_level)}")
    return rotator
