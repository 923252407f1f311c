"""
Reference number generation.

Reference numbers look like ``AFF-20261019-0007``: a prefix, the local
calendar date and a per-day sequence that starts at 1 and increases by one
for every number handed out that day.

The counter (last date + last sequence) lives behind a CounterStore so
production can persist it in a JSON file while tests use memory. Date and
sequence are always saved together, so a crash can never leave a new date
paired with an old sequence.

Usage:
    generator = ReferenceNumberGenerator(JsonFileCounterStore(path), prefix="AFF")
    ref = generator.generate()
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from core.exceptions import ReferenceExhaustedError
from logging_config import get_logger


logger = get_logger(__name__)

MAX_SEQUENCE = 9999


@dataclass(frozen=True)
class CounterState:
    """Persisted counter: the date string (YYYYMMDD) and the last sequence issued on it."""

    last_date: str = ""
    last_sequence: int = 0


class CounterStore(Protocol):
    """Persistence port for the reference counter."""

    def load(self) -> CounterState:
        ...

    def save(self, state: CounterState) -> None:
        ...


class InMemoryCounterStore:
    """Counter store for tests and ephemeral runs."""

    def __init__(self, initial: Optional[CounterState] = None):
        self.state = initial or CounterState()

    def load(self) -> CounterState:
        return self.state

    def save(self, state: CounterState) -> None:
        self.state = state


class JsonFileCounterStore:
    """
    Counter store backed by a small JSON file.

    Writes go to a temp file in the same directory followed by os.replace(),
    so the file always holds a complete (date, sequence) pair.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> CounterState:
        if not self.path.exists():
            return CounterState()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return CounterState(
                last_date=str(data.get("lastDate", "")),
                last_sequence=int(data.get("lastSequence", 0)),
            )
        except (OSError, ValueError, TypeError) as e:
            # Unreadable counter restarts the day's sequence
            logger.error(f"Reference counter at {self.path} is unreadable, starting fresh: {e}")
            return CounterState()

    def save(self, state: CounterState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"lastDate": state.last_date, "lastSequence": state.last_sequence})

        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".counter-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class ReferenceNumberGenerator:
    """
    Hands out unique, day-scoped sequential reference numbers.

    Thread Safety:
        The read-increment-save cycle runs under a lock shared by every
        generator in the process, so concurrent callers never receive the
        same number and same-day sequences are contiguous in lock order.
    """

    _lock = threading.Lock()

    def __init__(
        self,
        store: CounterStore,
        prefix: str = "AFF",
        today: Callable[[], date] = date.today
    ):
        """
        Initialize the generator.

        Args:
            store: Where the counter is persisted
            prefix: Reference prefix
            today: Local-date provider (injectable for tests)
        """
        self.store = store
        self.prefix = prefix
        self._today = today

    def generate(self) -> str:
        """
        Generate the next reference number.

        Returns:
            Reference in the form PREFIX-YYYYMMDD-NNNN

        Raises:
            ReferenceExhaustedError: All four-digit sequences for today are used
        """
        with self._lock:
            today_str = self._today().strftime("%Y%m%d")
            state = self.store.load()

            if state.last_date == today_str:
                sequence = state.last_sequence + 1
            else:
                sequence = 1

            if sequence > MAX_SEQUENCE:
                logger.error(f"Reference sequence exhausted for {today_str}")
                raise ReferenceExhaustedError(today_str, MAX_SEQUENCE)

            self.store.save(CounterState(last_date=today_str, last_sequence=sequence))

        reference = f"{self.prefix}-{today_str}-{sequence:04d}"
        logger.debug(f"Generated reference number {reference}")
        return reference
