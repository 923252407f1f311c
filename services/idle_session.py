"""
Idle-session state machine for the kiosk.

Resets the kiosk when the applicant walks away:

    ACTIVE --(idle_warning_seconds)--> WARNING --(countdown hits 0)--> STOPPED + reset callback
       ^                                  |
       +------ activity / confirm --------+

    PAUSED: admin surface open, no timers run
    STOPPED: not tracking (before start() or after a reset)

Backgrounding is a flag on top of ACTIVE/WARNING. While in the background
no timers run; on returning to the foreground the elapsed wall-clock time
is reconstructed and the session jumps straight to the state it would have
reached:

    total = elapsed_before_background + (now - background_entered_at)
    total >= reset     -> reset callback fires before enter_foreground() returns
    total >= warning   -> WARNING with seconds_remaining = ceil(reset - total)
    otherwise          -> ACTIVE, warning rescheduled for (warning - total)

The grace period after the warning is ``idle_reset_seconds -
idle_warning_seconds``; both are measured from the same window anchor.

Thread Safety:
    One re-entrant lock guards all state. Every scheduled callback carries
    the generation number it was scheduled under and does nothing if the
    generation has moved on, so once a call such as reset_activity()
    returns, no timer scheduled before it can fire.

Usage:
    session = IdleSession(on_reset=kiosk.reset, idle_warning_seconds=600, idle_reset_seconds=630)
    session.subscribe(lambda snap: print(snap.state))
    session.start()
    session.reset_activity()      # on every touch
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.scheduling import Clock, Scheduler, SystemClock, ThreadingScheduler, TimerHandle
from logging_config import get_logger


logger = get_logger(__name__)


class IdleState(Enum):
    """State of the idle session."""

    STOPPED = "stopped"
    """Not tracking inactivity."""

    ACTIVE = "active"
    """Tracking inactivity, no warning shown."""

    WARNING = "warning"
    """Warning shown, countdown to reset running."""

    PAUSED = "paused"
    """Suspended while the admin surface is open."""


@dataclass(frozen=True)
class IdleSnapshot:
    """Immutable view of the session, published to listeners and pollers."""

    state: IdleState
    is_warning_shown: bool
    seconds_remaining: int
    in_background: bool
    window_started_at: Optional[float]
    background_entered_at: Optional[float]
    elapsed_before_background: float
    warning_shown_before_pause: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_warning_shown": self.is_warning_shown,
            "seconds_remaining": self.seconds_remaining,
            "in_background": self.in_background,
            "warning_shown_before_pause": self.warning_shown_before_pause,
        }


Listener = Callable[[IdleSnapshot], None]


class IdleSession:
    """
    Drives warning and reset from activity and lifecycle events.

    Attributes:
        idle_warning_seconds: Inactivity before the warning is shown
        idle_reset_seconds: Inactivity before the reset (same anchor as the warning)
        throttle_seconds: Minimum spacing between honoured reset_activity() calls
    """

    COUNTDOWN_INTERVAL_SECONDS = 1.0

    def __init__(
        self,
        on_reset: Callable[[], None],
        idle_warning_seconds: float = 600.0,
        idle_reset_seconds: float = 630.0,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        throttle_seconds: float = 2.0
    ):
        """
        Initialize the session (in STOPPED state).

        Raises:
            ValueError: idle_reset_seconds is not greater than idle_warning_seconds
        """
        if idle_warning_seconds <= 0:
            raise ValueError("idle_warning_seconds must be positive")
        if idle_reset_seconds <= idle_warning_seconds:
            raise ValueError(
                f"idle_reset_seconds ({idle_reset_seconds}) must be greater than "
                f"idle_warning_seconds ({idle_warning_seconds})"
            )

        self.idle_warning_seconds = float(idle_warning_seconds)
        self.idle_reset_seconds = float(idle_reset_seconds)
        self.throttle_seconds = throttle_seconds

        self._on_reset = on_reset
        self._clock = clock or SystemClock()
        self._scheduler = scheduler or ThreadingScheduler(thread_name_prefix="IdleTimer")
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self._state = IdleState.STOPPED
        self._warning_shown = False
        self._seconds_remaining = 0
        self._window_started_at: Optional[float] = None
        self._background_entered_at: Optional[float] = None
        self._elapsed_before_background = 0.0
        self._warning_before_pause = False
        self._last_activity_at: Optional[float] = None

        self._generation = 0
        self._timer: Optional[TimerHandle] = None

    @property
    def grace_period_seconds(self) -> int:
        """Length of the countdown shown with the warning."""
        return int(math.ceil(self.idle_reset_seconds - self.idle_warning_seconds))

    @property
    def state(self) -> IdleState:
        with self._lock:
            return self._state

    @property
    def is_warning_shown(self) -> bool:
        with self._lock:
            return self._warning_shown

    @property
    def seconds_remaining(self) -> int:
        with self._lock:
            return self._seconds_remaining

    @property
    def in_background(self) -> bool:
        with self._lock:
            return self._background_entered_at is not None

    def snapshot(self) -> IdleSnapshot:
        with self._lock:
            return IdleSnapshot(
                state=self._state,
                is_warning_shown=self._warning_shown,
                seconds_remaining=self._seconds_remaining,
                in_background=self._background_entered_at is not None,
                window_started_at=self._window_started_at,
                background_entered_at=self._background_entered_at,
                elapsed_before_background=self._elapsed_before_background,
                warning_shown_before_pause=self._warning_before_pause,
            )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a state-change listener.

        Listeners run with the session lock held and must not block.

        Returns:
            Function that unsubscribes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # =========================================================================
    # PUBLIC TRANSITIONS
    # =========================================================================

    def start(self) -> None:
        """STOPPED -> ACTIVE. No-op in any other state."""
        with self._lock:
            if self._state is not IdleState.STOPPED:
                return
            self._state = IdleState.ACTIVE
            self._last_activity_at = None
            self._restart_window_locked()
            logger.info("Idle session started")
            self._publish_locked()

    def stop(self) -> None:
        """Any state -> STOPPED. Cancels timers and clears background accounting."""
        with self._lock:
            self._cancel_timers_locked()
            changed = self._state is not IdleState.STOPPED or self._warning_shown
            self._state = IdleState.STOPPED
            self._warning_shown = False
            self._seconds_remaining = 0
            self._window_started_at = None
            self._clear_background_locked()
            self._warning_before_pause = False
            if changed:
                logger.info("Idle session stopped")
                self._publish_locked()

    def pause(self) -> None:
        """ACTIVE/WARNING -> PAUSED. Remembers whether the warning was showing."""
        with self._lock:
            if self._state not in (IdleState.ACTIVE, IdleState.WARNING):
                return
            self._cancel_timers_locked()
            self._warning_before_pause = self._warning_shown
            self._warning_shown = False
            self._seconds_remaining = 0
            self._clear_background_locked()
            self._state = IdleState.PAUSED
            logger.info(f"Idle session paused (warning was shown: {self._warning_before_pause})")
            self._publish_locked()

    def resume(self) -> None:
        """PAUSED -> ACTIVE with a fresh idle window."""
        with self._lock:
            if self._state is not IdleState.PAUSED:
                return
            self._state = IdleState.ACTIVE
            self._warning_before_pause = False
            self._last_activity_at = None
            self._restart_window_locked()
            logger.info("Idle session resumed")
            self._publish_locked()

    def reset_activity(self) -> bool:
        """
        Record user activity and restart the idle window.

        Ignored outside ACTIVE/WARNING, while in the background, and within
        throttle_seconds of the previous honoured call.

        Returns:
            True if the call was honoured
        """
        with self._lock:
            if not self._accepts_activity_locked():
                return False
            now = self._clock.now()
            if self._last_activity_at is not None and now - self._last_activity_at < self.throttle_seconds:
                return False
            self._last_activity_at = now
            self._restart_after_activity_locked()
            return True

    def user_confirmed_presence(self) -> bool:
        """
        Explicit "I'm still here": like reset_activity() but never throttled.

        Returns:
            True if the call was honoured
        """
        with self._lock:
            if not self._accepts_activity_locked():
                return False
            self._last_activity_at = self._clock.now()
            self._restart_after_activity_locked()
            return True

    def enter_background(self) -> None:
        """Freeze timers and record how far into the idle window we are. Idempotent."""
        with self._lock:
            if self._state not in (IdleState.ACTIVE, IdleState.WARNING):
                return
            if self._background_entered_at is not None:
                return
            self._cancel_timers_locked()
            now = self._clock.now()
            anchor = self._window_started_at if self._window_started_at is not None else now
            self._elapsed_before_background = max(0.0, now - anchor)
            self._background_entered_at = now
            logger.info(f"Entered background after {self._elapsed_before_background:.1f}s idle")
            self._publish_locked()

    def enter_foreground(self) -> None:
        """
        Reconstruct idle time spent in the background and re-derive the state.

        If the reset threshold has passed, the reset callback runs before this
        method returns. Idempotent.
        """
        with self._lock:
            if self._background_entered_at is None:
                return
            now = self._clock.now()
            total = self._elapsed_before_background + max(0.0, now - self._background_entered_at)
            self._clear_background_locked()

            if total >= self.idle_reset_seconds:
                logger.info(f"Returned from background after {total:.1f}s idle - resetting")
                self._enter_stopped_for_reset_locked()
                fire_reset = True
            else:
                fire_reset = False
                self._window_started_at = now - total
                if total >= self.idle_warning_seconds:
                    self._state = IdleState.WARNING
                    self._warning_shown = True
                    self._seconds_remaining = int(math.ceil(self.idle_reset_seconds - total))
                    self._schedule_locked(self.COUNTDOWN_INTERVAL_SECONDS, self._on_countdown_tick)
                    logger.info(
                        f"Returned from background after {total:.1f}s idle - "
                        f"warning with {self._seconds_remaining}s remaining"
                    )
                else:
                    self._state = IdleState.ACTIVE
                    self._warning_shown = False
                    self._seconds_remaining = 0
                    self._schedule_locked(self.idle_warning_seconds - total, self._on_warning_due)
                    logger.debug(f"Returned from background after {total:.1f}s idle")
                self._publish_locked()

        if fire_reset:
            self._invoke_reset_callback()

    # =========================================================================
    # TIMER CALLBACKS
    # =========================================================================

    def _on_warning_due(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not IdleState.ACTIVE:
                return
            self._state = IdleState.WARNING
            self._warning_shown = True
            self._seconds_remaining = self.grace_period_seconds
            logger.info(f"Idle warning shown ({self._seconds_remaining}s until reset)")
            self._schedule_locked(self.COUNTDOWN_INTERVAL_SECONDS, self._on_countdown_tick, generation)
            self._publish_locked()

    def _on_countdown_tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not IdleState.WARNING:
                return
            self._seconds_remaining -= 1
            if self._seconds_remaining > 0:
                self._schedule_locked(self.COUNTDOWN_INTERVAL_SECONDS, self._on_countdown_tick, generation)
                self._publish_locked()
                return
            logger.info("Idle countdown reached zero - resetting session")
            self._enter_stopped_for_reset_locked()

        self._invoke_reset_callback()

    # =========================================================================
    # INTERNALS (callers hold self._lock)
    # =========================================================================

    def _accepts_activity_locked(self) -> bool:
        return (
            self._state in (IdleState.ACTIVE, IdleState.WARNING)
            and self._background_entered_at is None
        )

    def _restart_after_activity_locked(self) -> None:
        was_warning = self._warning_shown
        self._state = IdleState.ACTIVE
        self._warning_shown = False
        self._seconds_remaining = 0
        self._restart_window_locked()
        if was_warning:
            logger.info("Activity detected - idle warning dismissed")
            self._publish_locked()

    def _restart_window_locked(self) -> None:
        self._cancel_timers_locked()
        self._window_started_at = self._clock.now()
        self._schedule_locked(self.idle_warning_seconds, self._on_warning_due)

    def _enter_stopped_for_reset_locked(self) -> None:
        self._cancel_timers_locked()
        self._state = IdleState.STOPPED
        self._warning_shown = False
        self._seconds_remaining = 0
        self._window_started_at = None
        self._clear_background_locked()
        self._publish_locked()

    def _clear_background_locked(self) -> None:
        self._background_entered_at = None
        self._elapsed_before_background = 0.0

    def _schedule_locked(
        self,
        delay_seconds: float,
        callback: Callable[[int], None],
        generation: Optional[int] = None
    ) -> None:
        generation = self._generation if generation is None else generation
        self._timer = self._scheduler.call_later(delay_seconds, lambda: callback(generation))

    def _cancel_timers_locked(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish_locked(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Idle session listener failed: {e}", exc_info=True)

    def _invoke_reset_callback(self) -> None:
        try:
            self._on_reset()
        except Exception as e:
            logger.error(f"Session reset callback failed: {e}", exc_info=True)
