import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config.settings import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s.%(funcName)s:%(lineno)d] - %(message)s"


def setup_logging(
    logger_name: str = Settings.LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    log_to_file: bool = True,
    console_output: bool = True,
) -> logging.Logger:
    """
    Configure the package logger.

    Child loggers (``sap_cpi_client.api.batch`` and friends) propagate to it,
    so configuring the package root once is enough.

    Args:
        logger_name: Logger to configure, the package root by default.
        log_level: Minimum level to capture.
        log_dir: Directory for the rotating log file; defaults to ``Settings.LOGS_DIR``.
        log_to_file: Whether to write a rotating log file.
        console_output: Whether to log to stderr.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    # Already configured (repeated CLI invocations in one process)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_to_file:
        log_dir = Settings.get_logs_dir(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        sanitized_logger_name = "".join(c if c.isalnum() or c in ["_", "-"] else "_" for c in logger_name)
        file_handler = RotatingFileHandler(
            log_dir / f"{sanitized_logger_name}.log",
            maxBytes=Settings.LOG_FILE_MAX_BYTES,
            backupCount=Settings.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
