"""
Slack webhook notification for new applications.

Best-effort only: the submission pipeline fires this on a detached thread
and ignores the outcome. An empty webhook URL disables notifications.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from logging_config import get_logger

from .exceptions import NotificationError


class SlackNotifier:
    """Posts a short summary of each application to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.webhook_url = webhook_url
        self._session = session or requests.Session()
        self._logger = logger or get_logger(__name__)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def build_payload(self, record) -> Dict[str, Any]:
        """Build the Slack blocks payload for an ApplicantRecord."""
        positions = ", ".join(record.positions_applied_for) or "Not specified"
        salary = f"SGD ${record.expected_salary}" if record.expected_salary else "Not specified"
        start = record.earliest_start_date.strftime("%d %b %Y") if record.earliest_start_date else "Not specified"

        summary = "\n".join([
            f"*Name:* {record.full_name} ({record.preferred_name})",
            f"*Position(s):* {positions}",
            f"*Contact:* {record.contact_number} | {record.email_address}",
            f"*Nationality:* {record.nationality}",
            f"*Experience:* {record.total_experience}",
            f"*Expected Salary:* {salary}",
            f"*Available From:* {start}",
            f"*Referral Source:* {record.how_did_you_hear}",
            f"*Reference:* `{record.reference_number}`",
        ])

        return {
            "blocks": [
                {"type": "section", "text": {"type": "mrkdwn", "text": "*New Walk-In Applicant Registration*"}},
                {"type": "section", "text": {"type": "mrkdwn", "text": summary}},
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": "PDF and JSON queued for upload."}],
                },
            ]
        }

    def send(self, record, timeout_seconds: float = 15.0) -> None:
        """
        Send the notification.

        Raises:
            NotificationError: Webhook rejected the message or was unreachable
        """
        if not self.enabled:
            self._logger.debug("Slack webhook not configured - notification skipped")
            return

        try:
            response = self._session.post(
                self.webhook_url,
                json=self.build_payload(record),
                timeout=timeout_seconds,
            )
        except requests.RequestException as e:
            raise NotificationError(f"Failed to reach Slack webhook: {e}") from e

        if not 200 <= response.status_code <= 299:
            raise NotificationError("Failed to send Slack notification", status_code=response.status_code)

        self._logger.info(f"Slack notification sent for {record.reference_number}")
