"""A bounded envelope buffer that drops the oldest entries instead of blocking writers."""

from __future__ import annotations

import collections
import threading
import time
from collections.abc import Callable
from typing import Any


class EnvelopeDiode:
    """Many writers, one reader; when full, the oldest envelopes are overwritten.

    Dropped envelopes are reported to the alerter, with their count, on the next read.
    """

    def __init__(self, size: int, alerter: Callable[[int], Any] | None = None) -> None:
        if size < 1:
            raise ValueError("diode size must be positive")
        self._size = size
        self._alerter = alerter
        self._buffer: collections.deque[Any] = collections.deque()
        self._dropped = 0
        self._ready = threading.Condition()

    def __len__(self) -> int:
        with self._ready:
            return len(self._buffer)

    def set(self, data: Any) -> None:
        """Insert an envelope, dropping the oldest one if the buffer is full."""
        if data is None:
            raise ValueError("cannot store None in a diode")
        with self._ready:
            self._buffer.append(data)
            if len(self._buffer) > self._size:
                self._buffer.popleft()
                self._dropped += 1
            self._ready.notify()

    def _take(self) -> tuple[Any, int]:
        missed, self._dropped = self._dropped, 0
        item = self._buffer.popleft() if self._buffer else None
        return item, missed

    def _report(self, missed: int) -> None:
        if missed and self._alerter is not None:
            self._alerter(missed)

    def try_next(self) -> Any:
        """Return the next envelope, or None when the buffer is empty."""
        with self._ready:
            item, missed = self._take()
        self._report(missed)
        return item

    def next(self, timeout: float | None = None) -> Any:
        """Return the next envelope, waiting for one; raise TimeoutError after timeout seconds."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._ready:
            while not self._buffer:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise TimeoutError("no envelope available")
                self._ready.wait(remaining)
            item, missed = self._take()
        self._report(missed)
        return item