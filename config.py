"""
Configuration for the applicant kiosk.

All values can be overridden from the environment or a .env file next to
the application. Timing values are in seconds.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_NAME = "applicant_kiosk_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024  # 8 MB (signature image travels inline)

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Submission
    # ==========================================================================
    REFERENCE_PREFIX = os.environ.get("REFERENCE_PREFIX", "AFF")
    MAX_RETRY_ATTEMPTS = int(os.environ.get("MAX_RETRY_ATTEMPTS", "3"))
    UPLOAD_TIMEOUT_SECONDS = float(os.environ.get("UPLOAD_TIMEOUT_SECONDS", "30"))
    NOTIFICATION_TIMEOUT_SECONDS = float(
        os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "15")
    )

    # Remote storage. The token is handed over as-is in the Authorization
    # header; how it is obtained is outside this application.
    UPLOAD_URL = os.environ.get("UPLOAD_URL", "")
    UPLOAD_ACCESS_TOKEN = os.environ.get("UPLOAD_ACCESS_TOKEN", "")
    UPLOAD_FOLDER_ID = os.environ.get("UPLOAD_FOLDER_ID", "")

    # Side-channel notification (empty disables it)
    SLACK_WEBHOOK_URL = os.environ.get("SLACK_WEBHOOK_URL", "")

    # Connectivity probe
    NETWORK_PROBE_HOST = os.environ.get("NETWORK_PROBE_HOST", "www.googleapis.com")
    NETWORK_PROBE_PORT = int(os.environ.get("NETWORK_PROBE_PORT", "443"))
    NETWORK_PROBE_TIMEOUT_SECONDS = float(
        os.environ.get("NETWORK_PROBE_TIMEOUT_SECONDS", "3")
    )

    # ==========================================================================
    # Local durable state
    # ==========================================================================
    BACKUP_DIR = os.environ.get("BACKUP_DIR", str(BASE_DIR / "data" / "pending_uploads"))
    # Parent for operator exports (empty: system temp directory)
    EXPORT_DIR = os.environ.get("EXPORT_DIR", "")
    COUNTER_FILE = os.environ.get(
        "COUNTER_FILE", str(BASE_DIR / "data" / "reference_counter.json")
    )

    # ==========================================================================
    # Idle session
    # ==========================================================================
    # The warning appears after IDLE_WARNING_SECONDS without activity and the
    # session resets IDLE_RESET_SECONDS after the same anchor, so the
    # countdown shown to the user lasts IDLE_RESET_SECONDS - IDLE_WARNING_SECONDS.
    IDLE_WARNING_SECONDS = float(os.environ.get("IDLE_WARNING_SECONDS", "600"))
    IDLE_RESET_SECONDS = float(os.environ.get("IDLE_RESET_SECONDS", "630"))

    # Operator surface
    ADMIN_PIN = os.environ.get("ADMIN_PIN", "000000")


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    SLACK_WEBHOOK_URL = ""
