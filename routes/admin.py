"""
Operator routes for pending backups.

Everything except /admin/login requires an admin session. Logging in
pauses the idle session so the kiosk does not reset under the operator;
logging out resumes it.
"""

import hmac
from functools import wraps

from flask import (
    Blueprint,
    current_app,
    request,
    session,
)

from core.exceptions import BackupError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def admin_required(view):
    """Reject requests without an admin session."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not session.get("is_admin"):
            return {"error": "Admin login required"}, 401
        return view(*args, **kwargs)

    return wrapper


@admin_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    pin = str(payload.get("pin", ""))
    expected = str(current_app.config.get("ADMIN_PIN", ""))

    if not expected or not hmac.compare_digest(pin, expected):
        logger.warning("Admin login rejected")
        return {"error": "Invalid PIN"}, 403

    session["is_admin"] = True
    session.modified = True

    monitor = current_app.config.get("SESSION_MONITOR")
    if monitor:
        monitor.session.pause()

    logger.info("Admin logged in")
    return {"status": "ok"}


@admin_bp.route("/logout", methods=["POST"])
@admin_required
def logout():
    session.pop("is_admin", None)
    session.modified = True

    monitor = current_app.config.get("SESSION_MONITOR")
    if monitor:
        monitor.session.resume()

    logger.info("Admin logged out")
    return {"status": "ok"}


@admin_bp.route("/pending", methods=["GET"])
@admin_required
def pending():
    """List pending backups with metadata."""
    store = current_app.config["BACKUP_STORE"]
    return {
        "pending": [entry.to_dict() for entry in store.list_metadata()],
        "count": len(store.list_pending()),
        "total_size": store.total_pending_size(),
        "formatted_total_size": store.formatted_total_pending_size(),
    }


@admin_bp.route("/retry", methods=["POST"])
@admin_required
def retry():
    """Retry every pending upload (blocks until the run finishes)."""
    retry_service = current_app.config["BACKUP_RETRY_SERVICE"]
    report = retry_service.retry_all()
    status_code = 200 if report.network_available else 503
    return report.to_dict(), status_code


@admin_bp.route("/export", methods=["POST"])
@admin_required
def export():
    store = current_app.config["BACKUP_STORE"]
    try:
        export_dir = store.export_all()
    except BackupError as e:
        logger.error(f"Export failed: {e}")
        return {"error": e.message}, 500

    if export_dir is None:
        return {"status": "empty", "message": "Nothing to export"}
    return {"status": "ok", "export_path": str(export_dir)}


@admin_bp.route("/pending/<reference_number>", methods=["DELETE"])
@admin_required
def delete_pending(reference_number: str):
    store = current_app.config["BACKUP_STORE"]
    try:
        store.remove(reference_number)
    except BackupError as e:
        logger.error(f"Delete failed: {e}")
        return {"error": e.message}, 500
    logger.warning(f"Operator deleted pending backup {reference_number}")
    return {"status": "ok", "remaining": len(store.list_pending())}


@admin_bp.route("/pending", methods=["DELETE"])
@admin_required
def delete_all_pending():
    store = current_app.config["BACKUP_STORE"]
    try:
        removed = store.remove_all()
    except BackupError as e:
        logger.error(f"Purge failed: {e}")
        return {"error": e.message}, 500
    return {"status": "ok", "removed": removed}
