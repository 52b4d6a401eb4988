"""Concurrency limiter for calls to the Cloud Foundry API."""

from __future__ import annotations

import contextlib
import threading
import time
from collections.abc import Iterator


class RateLimitTimeout(TimeoutError):
    """No slot became free in time, or the limiter was closed."""


class RateManager:
    """Hands out API call slots, blocking callers while the burst limit is in use.

    A new slot is granted while the number of active holders is at most
    ``burst_limit``, so up to ``burst_limit + 1`` calls may run at once.
    """

    def __init__(self, burst_limit: int, timeout: float) -> None:
        self.burst_limit = burst_limit
        self.timeout = timeout
        self._active = 0
        self._queued = 0
        self._closed = False
        self._cond = threading.Condition()

    def wait(self) -> None:
        """Block until a slot is free; raise RateLimitTimeout after the timeout."""
        deadline = time.monotonic() + self.timeout
        with self._cond:
            if self._closed:
                raise RateLimitTimeout("rate manager closed")
            self._queued += 1
            try:
                while self._active > self.burst_limit:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise RateLimitTimeout("rate-limiter timeout")
                    self._cond.wait(remaining)
                    if self._closed:
                        raise RateLimitTimeout("rate manager closed")
                self._active += 1
            finally:
                self._queued -= 1

    def done(self) -> None:
        """Release a slot taken by wait()."""
        with self._cond:
            if self._active <= 0:
                raise ValueError("done() called without a matching wait()")
            self._active -= 1
            self._cond.notify()

    def has_queue(self) -> bool:
        """Return True while any caller is waiting for a slot."""
        with self._cond:
            return self._queued > 0

    @contextlib.contextmanager
    def slot(self) -> Iterator[None]:
        """Hold a slot for the duration of the block."""
        self.wait()
        try:
            yield
        finally:
            self.done()

    def close(self) -> None:
        """Refuse new slots and wake every waiting caller with RateLimitTimeout."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()