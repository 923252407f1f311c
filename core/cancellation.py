"""
Cooperative cancellation and deadline helpers.

A deadline is a race between the operation (running on its own daemon
thread) and the caller waiting on a completion event. Whichever finishes
first wins; when the deadline wins, the operation's CancellationToken is
cancelled so the loser can stop at its next checkpoint. Python threads
cannot be killed, so cancellation is cooperative.

Usage:
    def upload(token):
        token.raise_if_cancelled()
        ...

    try:
        run_with_timeout(upload, 30.0, operation="upload")
    except OperationTimeoutError:
        ...
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional

from .exceptions import KioskError, OperationTimeoutError


class OperationCancelledError(KioskError):
    """Raised inside an operation that noticed its token was cancelled."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(f"Operation cancelled: {reason}")
        self.reason = reason


class CancellationToken:
    """
    Thread-safe, one-way cancellation flag.

    Once cancelled a token stays cancelled. Registered callbacks run exactly
    once, on the thread that cancels.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self._callbacks = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Cancel the token.

        Returns:
            True if this call cancelled the token, False if it already was
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            callback()
        return True

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback; runs immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True if cancelled."""
        return self._event.wait(timeout)


def run_with_timeout(
    func: Callable[[CancellationToken], Any],
    timeout_seconds: float,
    operation: str = "operation",
    token: Optional[CancellationToken] = None,
    thread_name: Optional[str] = None,
) -> Any:
    """
    Run func(token) on a daemon thread and wait at most timeout_seconds.

    Args:
        func: Callable receiving the CancellationToken
        timeout_seconds: Deadline for the whole call
        operation: Name used in the timeout error and thread name
        token: Token to hand to func (a fresh one is created if omitted)
        thread_name: Name of the worker thread (for log context)

    Returns:
        Whatever func returned

    Raises:
        OperationTimeoutError: Deadline passed; the token is cancelled first
        Exception: Any exception raised by func is re-raised here
    """
    token = token or CancellationToken()
    outcome: Dict[str, Any] = {}
    done = threading.Event()

    def _target():
        try:
            outcome["result"] = func(token)
        except BaseException as exc:  # re-raised on the waiting thread
            outcome["error"] = exc
        finally:
            done.set()

    worker = threading.Thread(
        target=_target,
        name=thread_name or f"Deadline-{operation}",
        daemon=True,
    )
    worker.start()

    if not done.wait(timeout_seconds):
        token.cancel(f"{operation} exceeded {timeout_seconds:.1f}s")
        raise OperationTimeoutError(operation, timeout_seconds)

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")
