"""
API routes.

Handles:
- /health - Health check endpoint
"""

from flask import (
    Blueprint,
    current_app,
)

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Check backup store
    backup_store = current_app.config.get("BACKUP_STORE")
    if backup_store:
        health_status["checks"]["pending_uploads"] = len(backup_store.list_pending())
    else:
        health_status["checks"]["pending_uploads"] = "not_available"
        health_status["status"] = "degraded"

    # Check submission service
    if current_app.config.get("SUBMISSION_SERVICE"):
        health_status["checks"]["submission_service"] = "ok"
    else:
        health_status["checks"]["submission_service"] = "not_available"
        health_status["status"] = "degraded"

    # Check idle session
    monitor = current_app.config.get("SESSION_MONITOR")
    if monitor:
        health_status["checks"]["idle_session"] = monitor.session.state.value
    else:
        health_status["checks"]["idle_session"] = "not_available"
        health_status["status"] = "degraded"

    # Connectivity is informational; the kiosk keeps working offline
    network_monitor = current_app.config.get("NETWORK_MONITOR")
    if network_monitor:
        health_status["checks"]["network"] = "reachable" if network_monitor.is_available() else "unreachable"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
