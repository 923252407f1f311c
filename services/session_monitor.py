"""
Kiosk-side owner of the idle session.

Wires the IdleSession's reset callback to the kiosk reset and keeps what
the UI polls: the current snapshot, how many resets happened and when the
last one was. The kiosk front end calls GET /api/session/state and, when
``reset_count`` changes, clears the form and returns to the welcome screen.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from logging_config import get_logger
from services.idle_session import IdleSession, IdleSnapshot


logger = get_logger(__name__)


class SessionMonitor:
    """
    Owns one IdleSession and records its resets.

    Attributes:
        session: The managed IdleSession
    """

    def __init__(
        self,
        idle_warning_seconds: float = 600.0,
        idle_reset_seconds: float = 630.0,
        clock=None,
        scheduler=None,
        on_reset: Optional[Callable[[], None]] = None,
        history_size: int = 20
    ):
        self._lock = threading.Lock()
        self._reset_count = 0
        self._last_reset_at: Optional[datetime] = None
        self._extra_on_reset = on_reset
        self._history: List[Dict[str, Any]] = []
        self._history_size = history_size

        self.session = IdleSession(
            on_reset=self._handle_reset,
            idle_warning_seconds=idle_warning_seconds,
            idle_reset_seconds=idle_reset_seconds,
            clock=clock,
            scheduler=scheduler,
        )
        self.session.subscribe(self._record_transition)

    @property
    def reset_count(self) -> int:
        with self._lock:
            return self._reset_count

    def state(self) -> Dict[str, Any]:
        """Polled view for the kiosk UI."""
        snapshot = self.session.snapshot()
        with self._lock:
            data = snapshot.to_dict()
            data["reset_count"] = self._reset_count
            data["last_reset_at"] = self._last_reset_at.isoformat() if self._last_reset_at else None
            data["grace_period_seconds"] = self.session.grace_period_seconds
            return data

    def recent_transitions(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._history)

    def _record_transition(self, snapshot: IdleSnapshot) -> None:
        with self._lock:
            self._history.append(snapshot.to_dict())
            if len(self._history) > self._history_size:
                self._history.pop(0)

    def _handle_reset(self) -> None:
        with self._lock:
            self._reset_count += 1
            self._last_reset_at = datetime.now(timezone.utc)
            count = self._reset_count
        logger.info(f"Kiosk session reset (#{count})")

        if self._extra_on_reset is not None:
            self._extra_on_reset()
