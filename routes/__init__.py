"""
Flask route blueprints for the applicant kiosk.

This module contains all route handlers organized by functionality:
- submit: Application submission and status polling
- session: Idle session events and state
- admin: Operator surface for pending backups
- api: Health check

Each blueprint is registered with the Flask app in create_app().
"""

from .submit import submit_bp
from .session import session_bp
from .admin import admin_bp
from .api import api_bp

__all__ = [
    "submit_bp",
    "session_bp",
    "admin_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(submit_bp)
    app.register_blueprint(session_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)
