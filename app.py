"""
Applicant Kiosk - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and validates the idle timings (fail-fast)
2. Builds the submission stack (reference numbers, backup store,
   uploader, notifier, renderer, pipeline, submission service)
3. Creates the idle session monitor and the operator retry service
4. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling
    └── Cleanup on shutdown (stop idle timers, join submission threads)

    Submission Threads (one per application)
    └── Upload deadline threads + detached notification thread

    Idle Timer Threads (threading.Timer)
    └── Warning / countdown callbacks, generation-checked

Any collaborator already present in the config (e.g. NETWORK_MONITOR or
UPLOADER passed through ``overrides``) is used instead of the default one.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import APP_NAMESPACE, setup_logging, get_logger
from core.exceptions import KioskError
from core.network import NetworkMonitor
from core.notifier import SlackNotifier
from core.upload_client import HttpUploadClient
from modules.pdf_renderer import ApplicationPDFRenderer
from modules.reference_number import JsonFileCounterStore, ReferenceNumberGenerator
from services.backup_retry import BackupRetryService
from services.backup_store import BackupStore
from services.session_monitor import SessionMonitor
from services.submission_pipeline import SubmissionPipeline, SubmissionSettings
from services.submission_service import SubmissionService
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


def _validate_idle_timings(config: Mapping[str, Any]) -> None:
    warning = float(config["IDLE_WARNING_SECONDS"])
    reset = float(config["IDLE_RESET_SECONDS"])
    if reset <= warning:
        raise ValueError(
            f"IDLE_RESET_SECONDS ({reset}) must be greater than IDLE_WARNING_SECONDS ({warning})"
        )


def create_app(
    config_object: str = "config.Config",
    overrides: Optional[Mapping[str, Any]] = None
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
        overrides: Extra config values (applied last)

    Returns:
        Configured Flask application

    Raises:
        ValueError: IDLE_RESET_SECONDS is not greater than IDLE_WARNING_SECONDS
    """
    # Load .env from base path (next to executable in production)
    # Use override=True so .env file always takes precedence over shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        app_name=APP_NAMESPACE,
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting applicant kiosk in {app.config.get('ENVIRONMENT')} mode")

    # FAIL-FAST: a reset threshold at or before the warning makes no sense
    try:
        _validate_idle_timings(app.config)
    except ValueError as e:
        logger.error(f"FATAL: Cannot start application - {e}")
        raise

    # =========================================================================
    # SUBMISSION STACK
    # =========================================================================

    reference_generator = app.config.get("REFERENCE_GENERATOR") or ReferenceNumberGenerator(
        JsonFileCounterStore(app.config["COUNTER_FILE"]),
        prefix=app.config["REFERENCE_PREFIX"],
    )

    backup_store = app.config.get("BACKUP_STORE") or BackupStore(
        app.config["BACKUP_DIR"],
        export_root=app.config.get("EXPORT_DIR"),
    )

    network_monitor = app.config.get("NETWORK_MONITOR") or NetworkMonitor(
        host=app.config["NETWORK_PROBE_HOST"],
        port=app.config["NETWORK_PROBE_PORT"],
        timeout_seconds=app.config["NETWORK_PROBE_TIMEOUT_SECONDS"],
    )

    uploader = app.config.get("UPLOADER") or HttpUploadClient(
        upload_url=app.config["UPLOAD_URL"],
        access_token=app.config["UPLOAD_ACCESS_TOKEN"],
        folder_id=app.config["UPLOAD_FOLDER_ID"],
        request_timeout_seconds=app.config["UPLOAD_TIMEOUT_SECONDS"],
    )
    if not app.config["UPLOAD_URL"] and "UPLOADER" not in app.config:
        logger.warning("UPLOAD_URL is not set - every submission will stay in the backup store")

    notifier = app.config.get("NOTIFIER") or SlackNotifier(app.config["SLACK_WEBHOOK_URL"])

    settings = SubmissionSettings.from_config(app.config)
    pipeline = SubmissionPipeline(
        reference_generator=reference_generator,
        backup_store=backup_store,
        network_monitor=network_monitor,
        uploader=uploader,
        notifier=notifier,
        renderer=app.config.get("RENDERER") or ApplicationPDFRenderer(),
        settings=settings,
    )
    submission_service = SubmissionService(pipeline)

    retry_service = BackupRetryService(
        backup_store=backup_store,
        uploader=uploader,
        network_monitor=network_monitor,
        upload_timeout_seconds=settings.upload_timeout_seconds,
        file_prefix=settings.file_prefix,
    )

    # =========================================================================
    # IDLE SESSION
    # =========================================================================

    session_monitor = SessionMonitor(
        idle_warning_seconds=app.config["IDLE_WARNING_SECONDS"],
        idle_reset_seconds=app.config["IDLE_RESET_SECONDS"],
        clock=app.config.get("IDLE_CLOCK"),
        scheduler=app.config.get("IDLE_SCHEDULER"),
    )

    # Store in app config for access by routes
    app.config["REFERENCE_GENERATOR"] = reference_generator
    app.config["BACKUP_STORE"] = backup_store
    app.config["NETWORK_MONITOR"] = network_monitor
    app.config["UPLOADER"] = uploader
    app.config["SUBMISSION_SERVICE"] = submission_service
    app.config["BACKUP_RETRY_SERVICE"] = retry_service
    app.config["SESSION_MONITOR"] = session_monitor

    pending = backup_store.list_pending()
    if pending:
        logger.warning(f"{len(pending)} application(s) pending upload from earlier sessions")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        session_monitor.session.stop()
        submission_service.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 8 * 1024 * 1024) / (1024 * 1024)
        return {"error": f"Request too large. Maximum size is {max_mb:.0f} MB."}, 413

    @app.errorhandler(KioskError)
    def handle_kiosk_error(e):
        logger.error(f"Unhandled kiosk error: {e}", exc_info=True)
        return {"error": e.message}, 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return {"error": e.description, "status_code": e.code}, e.code

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "An unexpected error occurred. Please try again."}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # Reloader would start a second idle session and counter writer
    app.run(debug=debug_mode, use_reloader=False)
