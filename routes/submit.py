"""
Application submission routes.

POST /submit hands the form data to the SubmissionService, which runs the
pipeline on its own thread, and answers immediately with a submission id.
The kiosk UI then polls GET /status/<submission_id>.
"""

import base64
import binascii

from flask import (
    Blueprint,
    current_app,
    request,
)

from models.applicant import ApplicantRecord
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

submit_bp = Blueprint("submit", __name__)


@submit_bp.route("/submit", methods=["POST"])
def submit():
    """
    Start a submission.

    Body: the applicant record as JSON (camelCase keys, as in the JSON
    artifact), optionally with "signaturePng" holding a base64 PNG.

    Returns:
        202 {"submission_id": ...}
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Request body must be a JSON object"}, 400

    submission_service = current_app.config.get("SUBMISSION_SERVICE")
    if not submission_service:
        return {"error": "Submission service unavailable"}, 503

    try:
        record = ApplicantRecord.from_dict(payload)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Rejected malformed application payload: {e}")
        return {"error": f"Invalid application data: {e}"}, 400

    signature = payload.get("signaturePng")
    if signature:
        try:
            record.signature_png = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            return {"error": "signaturePng must be base64-encoded"}, 400

    submission_id = submission_service.submit(record)
    logger.info(f"Accepted submission {submission_id[:8]}")

    return {"submission_id": submission_id, "status": "pending"}, 202


@submit_bp.route("/status/<submission_id>", methods=["GET"])
def status(submission_id: str):
    """
    Poll a submission.

    The finished result is handed out once and then dropped from the
    result store, so a second poll for the same id answers 404.

    Returns:
        {"status": "pending"} while running, the result dict when done,
        404 for unknown or already collected ids
    """
    submission_service = current_app.config.get("SUBMISSION_SERVICE")
    if not submission_service:
        return {"error": "Submission service unavailable"}, 503

    # Results are stored before the thread leaves the active set
    pending = submission_service.is_pending(submission_id)
    result = submission_service.get_result(submission_id)
    if result is not None:
        return result.to_dict()

    if pending:
        return {"status": "pending"}

    return {"status": "unknown", "error": "Submission not found"}, 404
