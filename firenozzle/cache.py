"""Thread-safe store of known applications keyed by GUID."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from firenozzle.cfapp import CFApp


class AppCache:
    """Applications by GUID; stale entries are dropped by purge_stale()."""

    def __init__(self, max_age: float, on_added: Callable[[CFApp], Any] | None = None) -> None:
        self.max_age = max_age
        self._on_added = on_added
        self._apps: dict[str, CFApp] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._apps)

    def get(self, guid: str) -> CFApp | None:
        """Return the cached application, or None."""
        with self._lock:
            return self._apps.get(guid)

    def put(self, app: CFApp) -> CFApp:
        """Add an application unless its GUID is present; return the cached one."""
        with self._lock:
            existing = self._apps.get(app.guid)
            if existing is not None:
                return existing
            self._apps[app.guid] = app
        if self._on_added is not None:
            self._on_added(app)
        return app

    def purge_stale(self, now: float | None = None) -> int:
        """Drop applications not pulled within max_age seconds; return how many went."""
        moment = time.time() if now is None else now
        with self._lock:
            fresh = {
                guid: app
                for guid, app in self._apps.items()
                if moment - app.last_pull < self.max_age
            }
            removed = len(self._apps) - len(fresh)
            self._apps = fresh
        return removed

    def apps(self) -> list[CFApp]:
        """Return a snapshot of the cached applications."""
        with self._lock:
            return list(self._apps.values())