"""
Configuration for the print fulfillment worker.

All values can be overridden through environment variables or a .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the worker and its status API."""

    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # ==========================================================================
    # Device
    # ==========================================================================
    # IPP endpoint of the physical printer. /ipp is the path accepted by the
    # Fiery/Konica controllers this worker was built against.
    PRINTER_URL = os.environ.get("PRINTER_URL", "http://192.168.1.123:631/ipp")

    # Upper bound for every single device call (seconds)
    DEVICE_TIMEOUT_SECONDS = float(os.environ.get("DEVICE_TIMEOUT_SECONDS", "30"))

    # requesting-user-name sent when a job has no submitter
    REQUESTING_USER_NAME = os.environ.get("REQUESTING_USER_NAME", "PrintServer")

    # ==========================================================================
    # Loops
    # ==========================================================================
    JOB_POLL_INTERVAL_SECONDS = float(os.environ.get("JOB_POLL_INTERVAL_SECONDS", "5"))
    TRAY_SYNC_INTERVAL_SECONDS = float(os.environ.get("TRAY_SYNC_INTERVAL_SECONDS", "60"))
    TRAY_SYNC_INITIAL_DELAY_SECONDS = float(
        os.environ.get("TRAY_SYNC_INITIAL_DELAY_SECONDS", "5")
    )

    # Start the poller and tray sync threads together with the app
    START_WORKERS = _env_bool("START_WORKERS", "1")

    # ==========================================================================
    # Storage
    # ==========================================================================
    DATABASE_PATH = os.environ.get(
        "DATABASE_PATH", str(BASE_DIR / "data" / "print_worker.db")
    )
    DATABASE_TIMEOUT_SECONDS = float(os.environ.get("DATABASE_TIMEOUT_SECONDS", "10"))

    # Root directory of the "print-jobs" bucket; job file references resolve here
    FILE_STORE_ROOT = os.environ.get(
        "FILE_STORE_ROOT", str(BASE_DIR / "data" / "print-jobs")
    )


class ProductionConfig(Config):
    """Production configuration."""
    ENVIRONMENT = "production"
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    START_WORKERS = False
    DATABASE_PATH = ":memory:"
    DEVICE_TIMEOUT_SECONDS = 2.0
