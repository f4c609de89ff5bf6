"""
Replay-protection nonces.

Every nonce policy exposes ``next() -> int``:

  - TimestampNonce   wall-clock seconds (default).  Two calls within the same
                     second return the same value.
  - MonotonicNonce   wall-clock seconds, bumped so it never repeats within
                     the process.  Thread-safe.
  - CounterNonce     strictly incrementing counter, optionally persisted to a
                     JSON file so restarts continue the sequence.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("starksign.nonce")


class NonceProvider(Protocol):

    def next(self) -> int:
        ...


class TimestampNonce:
    """Current time in whole seconds."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def next(self) -> int:
        return int(self._clock())


class MonotonicNonce:
    """Clock-seeded nonce that is strictly increasing within the process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._last = max(int(self._clock()), self._last + 1)
            return self._last


class CounterNonce:
    """Strictly incrementing counter starting at ``start``."""

    def __init__(self, start: int = 1, path: str | Path | None = None):
        if start < 0:
            raise ValueError("Counter start must be non-negative")
        self._path = Path(path) if path else None
        self._next = start
        self._lock = threading.Lock()
        if self._path is not None and self._path.exists():
            with open(self._path) as f:
                data = json.load(f)
            self._next = max(start, int(data["last"]) + 1)
            logger.debug("Resuming nonce counter at %d from %s", self._next, self._path)

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            if self._path is not None:
                self._persist(value)
            return value

    def _persist(self, value: int) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump({"last": value}, f)
        tmp.replace(self._path)
