# ppg_hrv/utils/logging_utils.py
"""
Central logging utilities for the project.

Purpose:
    - Consistent log format for every module.
    - Log files go to settings.paths.log_dir (default: "<project>/logs",
      overridable with PPG_HRV_LOG_DIR).
    - INFO for lifecycle events, DEBUG for per-tick analytics, ERROR for
      device failures.

Usage:
    from ppg_hrv.utils.logging_utils import get_logger

    logger = get_logger(module_name="ppg_scheduler", logfile_name="engine.log")
    logger.info("Signal loaded.")
    logger.error("Device connection failed", exc_info=True)
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ppg_hrv.config.settings import settings


def get_logger(
    module_name: str,
    logfile_name: str,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Return a file-backed logger for a module.

    Args:
        module_name:
            Logger name (e.g. "ppg_scheduler", "live_metrics", "hrv_api").
        logfile_name:
            Log file name (e.g. "engine.log"), written under the log dir.
        level:
            Log level (logging.INFO, logging.DEBUG, ...).
        max_bytes:
            Size at which the rotating log rolls over (default: 5 MB).
        backup_count:
            Number of rotated files kept (engine.log.1, engine.log.2, ...).
        log_dir:
            Directory override; defaults to settings.paths.log_dir.

    Returns:
        logging.Logger
    """
    logger = logging.getLogger(module_name)

    # Already configured: do not stack handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    target_dir = Path(log_dir) if log_dir is not None else settings.paths.log_dir
    target_dir.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        filename=target_dir / logfile_name,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(formatter)

    logger.addHandler(file_handler)

    # No propagation to parent loggers (avoid duplicate lines)
    logger.propagate = False

    return logger
