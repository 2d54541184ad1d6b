"""
Print worker - Flask Application Entry Point.

This is a slim app factory that:
1. Opens the job database and the device transport (fail-fast)
2. Wires stores, normalizer, encoder and job processor together
3. Starts the job poller and tray sync threads
4. Registers the status API blueprint

ARCHITECTURE:
    Main Thread
    ├── Database + device transport lifecycle
    ├── Flask request handling (status API)
    └── Cleanup on shutdown

    JobPoller Thread (background)
    └── 5-second poll, one job per tick, processed synchronously

    TraySync Thread (background)
    └── 60-second sync of device media into printer_trays

The two threads only contend on the device transport lock.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask

from logging_config import setup_logging, get_logger
from core.database import Database
from core.device_transport import DeviceTransport
from core.exceptions import PersistenceError
from core.file_store import LocalFileStore
from core.job_store import JobStore
from core.tray_store import TrayStore
from modules.format_normalizer import FormatNormalizer
from modules.job_processor import JobProcessor
from modules.protocol_encoder import ProtocolEncoder
from services.job_poller import JobPoller
from services.tray_sync_service import TraySyncService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Dict[str, Any]] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    FAIL-FAST: If the job database cannot be opened, the app will not start.

    Args:
        config_object: Import path of the config class
        overrides: Config values applied on top (used by tests)

    Returns:
        Configured Flask application

    Raises:
        PersistenceError: If the database cannot be opened
    """
    # Load .env from base path (next to executable in production)
    # Use override=True so .env file always takes precedence over shell environment
    base_path = _get_base_path()
    env_file = base_path / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    # Create Flask app
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting print worker in {app.config.get('ENVIRONMENT')} mode")

    # Ensure the file store bucket exists
    file_store_root = Path(app.config["FILE_STORE_ROOT"])
    file_store_root.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # CORE INITIALIZATION (FAIL-FAST)
    # =========================================================================

    database = Database(
        app.config["DATABASE_PATH"],
        timeout_seconds=app.config["DATABASE_TIMEOUT_SECONDS"],
    )
    try:
        database.open()
    except PersistenceError as e:
        logger.error(f"FATAL: Cannot start application - {e}")
        raise

    transport = DeviceTransport(
        app.config["PRINTER_URL"],
        timeout_seconds=app.config["DEVICE_TIMEOUT_SECONDS"],
        requesting_user_name=app.config["REQUESTING_USER_NAME"],
        session=app.config.get("DEVICE_SESSION"),
        logger=get_logger("core.device_transport"),
    )
    transport.open()

    job_store = JobStore(database)
    tray_store = TrayStore(database)
    file_store = LocalFileStore(file_store_root, logger=get_logger("core.file_store"))

    app.config["DATABASE"] = database
    app.config["DEVICE_TRANSPORT"] = transport
    app.config["JOB_STORE"] = job_store
    app.config["TRAY_STORE"] = tray_store
    app.config["FILE_STORE"] = file_store

    # =========================================================================
    # PROCESSING AND SERVICES
    # =========================================================================

    processor = JobProcessor(
        job_store=job_store,
        tray_store=tray_store,
        file_store=file_store,
        transport=transport,
        normalizer=FormatNormalizer(logger=get_logger("modules.format_normalizer")),
        encoder=ProtocolEncoder(default_user_name=app.config["REQUESTING_USER_NAME"]),
        logger=get_logger("modules.job_processor"),
    )
    app.config["JOB_PROCESSOR"] = processor

    job_poller = JobPoller(
        job_store,
        processor,
        poll_interval_seconds=app.config["JOB_POLL_INTERVAL_SECONDS"],
    )
    tray_sync_service = TraySyncService(
        transport,
        tray_store,
        sync_interval_seconds=app.config["TRAY_SYNC_INTERVAL_SECONDS"],
        initial_delay_seconds=app.config["TRAY_SYNC_INITIAL_DELAY_SECONDS"],
    )
    app.config["JOB_POLLER"] = job_poller
    app.config["TRAY_SYNC_SERVICE"] = tray_sync_service

    if app.config.get("START_WORKERS"):
        job_poller.start()
        tray_sync_service.start()
        logger.info("Job poller and tray sync started")
    else:
        logger.info("Background workers disabled (START_WORKERS is off)")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")

        # Stop loops first; a job in flight finishes before the poller exits
        job_poller.stop()
        tray_sync_service.stop()

        transport.close()
        database.close()

        logger.info("Shutdown complete")

    atexit.register(cleanup)
    app.config["SHUTDOWN"] = cleanup

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(404)
    def handle_not_found(e):
        return {"success": False, "error": "Not found"}, 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return {"success": False, "error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"success": False, "error": "Internal server error"}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second set of worker threads
    app.run(debug=debug_mode, use_reloader=False)
