"""
Idle session routes.

The kiosk front end reports activity and lifecycle events here and polls
the session state to know when to show the warning overlay or reset.

- POST /api/session/start
- POST /api/session/stop
- POST /api/session/activity     (touch, keypress, scroll)
- POST /api/session/confirm      ("I'm still here" on the warning overlay)
- POST /api/session/background   (page hidden / device locked)
- POST /api/session/foreground
- GET  /api/session/state
"""

from flask import Blueprint, current_app

from logging_config import get_logger


logger = get_logger(__name__)

session_bp = Blueprint("session", __name__, url_prefix="/api/session")


def _monitor():
    return current_app.config.get("SESSION_MONITOR")


def _unavailable():
    return {"error": "Session monitor unavailable"}, 503


@session_bp.route("/state", methods=["GET"])
def state():
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    return monitor.state()


@session_bp.route("/start", methods=["POST"])
def start():
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    monitor.session.start()
    return monitor.state()


@session_bp.route("/stop", methods=["POST"])
def stop():
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    monitor.session.stop()
    return monitor.state()


@session_bp.route("/activity", methods=["POST"])
def activity():
    """Report user activity. Throttled calls are acknowledged but not honoured."""
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    honoured = monitor.session.reset_activity()
    data = monitor.state()
    data["honoured"] = honoured
    return data


@session_bp.route("/confirm", methods=["POST"])
def confirm():
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    honoured = monitor.session.user_confirmed_presence()
    data = monitor.state()
    data["honoured"] = honoured
    return data


@session_bp.route("/background", methods=["POST"])
def background():
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    monitor.session.enter_background()
    return monitor.state()


@session_bp.route("/foreground", methods=["POST"])
def foreground():
    monitor = _monitor()
    if not monitor:
        return _unavailable()
    monitor.session.enter_foreground()
    return monitor.state()
