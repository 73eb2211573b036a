"""
Logging configuration for sendemail.

Every command run appends to a rotating log file so that per-recipient
results of a bulk send can be reviewed afterwards. The console only shows
warnings and errors; the command's own progress lines are printed directly.
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from sendemail import config


LOG_FILE_NAME = "sendemail.log"

# Rotate at 10 MB, keep 5 old files
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty below WARNING
NOISY_LOGGERS = ("smtplib", "MARKDOWN", "bleach")


def _file_handler(log_file: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_file),
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _console_handler(debug: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT))
    return handler


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Configure the root logger for one sendemail run.

    Args:
        debug: Log at DEBUG and echo everything to the console.
        log_dir: Directory for sendemail.log. Defaults to config.LOG_DIR.

    Returns:
        The log file path, or None when the directory is not writable and
        only console logging is active.
    """
    level = logging.DEBUG if debug else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_console_handler(debug))

    logger = logging.getLogger(__name__)
    log_file: Optional[Path] = Path(log_dir or config.LOG_DIR) / LOG_FILE_NAME
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_file_handler(log_file, level))
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write to {log_file.parent}: {e}")
        log_file = None

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("=" * 60)
    logger.info(f"sendemail run started (level {logging.getLevelName(level)})")
    if log_file:
        logger.debug(f"Log file: {log_file}")
    return log_file
