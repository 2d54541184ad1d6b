"""
Centralized logging configuration for the print fulfillment worker.

The worker runs two background loops (job poller, tray sync) next to the
Flask status API, so every record carries the name of the thread that
produced it.

Log Format:
    2025-12-03 10:15:30 [INFO    ] [MainThread] print_worker.app - Starting worker
    2025-12-03 10:15:31 [INFO    ] [JobPoller] print_worker.job.42 - Job completed
    2025-12-03 10:16:31 [INFO    ] [TraySync] print_worker.services.tray_sync_service - 4 trays synced

Usage:
    # At process startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    # In modules
    logger = get_logger(__name__)

    # Per job
    job_logger = get_job_logger(job.id)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


ROOT_LOGGER_NAME = "print_worker"


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Adds ``thread_name`` and ``thread_id`` to every log record.

    Never filters anything out.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    app_name: str = ROOT_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure worker logging with thread context.

    Sets up a console handler, and optionally a rotating application log
    plus a separate ERROR/CRITICAL log.

    Args:
        app_name: Name of the root logger (default: "print_worker")
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write to log files (default: True)

    Returns:
        Configured root logger instance
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration (app factory may run more than once in tests)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(thread_filter)
        logger.addHandler(file_handler)

        error_log_file = log_dir / f"{app_name}_error.log"
        error_handler = RotatingFileHandler(
            filename=error_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(thread_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the worker namespace.

    Example:
        get_logger("services.job_poller")
        # Logger name: "print_worker.services.job_poller"
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_job_logger(job_id: Union[int, str]) -> logging.Logger:
    """
    Get a logger for one print job.

    The job id is part of the logger name, so a single job's lifecycle can
    be grepped out of the worker log.
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.job.{job_id}")


def set_thread_name(name: str) -> None:
    """Set the name shown in the [thread_name] field for the current thread."""
    threading.current_thread().name = name
