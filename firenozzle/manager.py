"""Keeps application details current by querying the Cloud Foundry API."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Protocol

from firenozzle.cache import AppCache
from firenozzle.cfapp import AttributeNames, CFApp
from firenozzle.config import Config
from firenozzle.limiter import RateLimitTimeout, RateManager
from firenozzle.logger import NozzleLogger, new_logger

_UNAUTHORIZED = "401 Unauthorized"
_MAX_RETRIES = 2


class CFClientError(Exception):
    """A Cloud Foundry API call failed."""


@dataclass(frozen=True)
class AppDetails:
    """The application details the nozzle needs from the API."""

    name: str
    space_name: str
    org_name: str
    instances: int


class CFClient(Protocol):
    def get_app(self, guid: str) -> AppDetails: ...

    def get_app_instances(self, guid: str) -> Mapping[str, str]: ...

    def get_app_env(self, guid: str) -> Mapping[str, Any]: ...


class _Executor(Protocol):
    def submit(self, fn: Callable[..., Any], *args: Any) -> Any: ...


class CFAppManager:
    """Caches applications and refreshes their details, instances and environment."""

    def __init__(
        self,
        client_factory: Callable[[], CFClient],
        config: Config,
        *,
        log: NozzleLogger | None = None,
        executor: _Executor | None = None,
        background: bool = True,
    ) -> None:
        self._log = log if log is not None else new_logger(config)
        self._client_factory = client_factory
        self._client_lock = threading.Lock()
        self._client = client_factory()
        self.names = AttributeNames.from_config(config)
        duration_mins = config.get_int("FIREHOSE_CACHE_DURATION_MINS")
        self.cache = AppCache(duration_mins * 60.0, on_added=self._update_app_async)
        self._rate = RateManager(
            config.get_int("FIREHOSE_RATE_BURST"),
            config.get_int("FIREHOSE_RATE_TIMEOUT_SECS"),
        )
        self._owns_executor = executor is None
        self._executor: _Executor = (
            executor if executor is not None
            else ThreadPoolExecutor(max_workers=16, thread_name_prefix="cfapps")
        )
        self._closing = threading.Event()
        self._updating = threading.Lock()
        self._thread: threading.Thread | None = None
        if background:
            # Stagger purges across nozzle instances.
            index = config.get_int("CF_INSTANCE_INDEX")
            purge_every = (duration_mins + index * 2) * 60.0
            update_every = float(config.get_int("FIREHOSE_CACHE_UPDATE_INTERVAL_SECS"))
            if purge_every <= 0 or update_every <= 0:
                raise ValueError("cache intervals must be positive")
            self._thread = threading.Thread(
                target=self._run, args=(purge_every, update_every), daemon=True
            )
            self._thread.start()
        self._log.info("started CFAppManager")

    def _submit(self, fn: Callable[..., Any], *args: Any) -> None:
        if not self._closing.is_set():
            self._executor.submit(fn, *args)

    def _current_client(self) -> CFClient:
        with self._client_lock:
            return self._client

    def _note_unauthorized(self, message: str) -> None:
        if _UNAUTHORIZED in message:
            self._log.warning(
                "cfClient 401 error. Refreshing client due to this error: %s", message
            )
            self._submit(self.update_client)

    def _run(self, purge_every: float, update_every: float) -> None:
        clock = time.monotonic
        next_purge = clock() + purge_every
        next_update = clock() + update_every
        while not self._closing.wait(max(0.0, min(next_purge, next_update) - clock())):
            now = clock()
            if now >= next_purge:
                self._log.debug("Cleaning Cache")
                self._log.debug("Cache length before cleaning: %d", len(self.cache))
                self.cache.purge_stale()
                self._log.debug("Cache length after cleaning: %d", len(self.cache))
                next_purge = now + purge_every
            if now >= next_update:
                if not self._updating.locked():
                    self._submit(self.update_all_instances)
                next_update = now + update_every

    def get_app(self, guid: str) -> CFApp:
        """Return the cached application, adding and fetching it if new."""
        cached = self.cache.get(guid)
        if cached is not None:
            return cached
        self._log.debug("Adding new app: %s", guid)
        return self.cache.put(CFApp(guid, self.names))

    def get_app_instance_attributes(self, app_id: str, instance_id: int) -> dict[str, Any]:
        return self.get_app(app_id).instance_attributes(instance_id)

    def _update_app_async(self, app: CFApp) -> None:
        self._submit(self._fetch_with_retry, app)

    def _fetch_with_retry(self, app: CFApp) -> None:
        try:
            self.fetch_app(app)
        except CFClientError:
            if app.retry_count > _MAX_RETRIES:
                self._log.warning("Max retries trying to fetch app: %s", app.guid)
                return
            app.retry_count += 1
            self._update_app_async(app)
        else:
            app.retry_count = 0

    def fetch_app(self, app: CFApp) -> None:
        """Fetch the app's details, then queue updates of its instances and environment."""
        self._log.tracer("å")
        try:
            with self._rate.slot():
                try:
                    details = self._current_client().get_app(app.guid)
                except Exception as exc:
                    error = CFClientError(f"CF api error {exc} on GUID {app.guid}")
                    self._log.warning("%s", error)
                    self._note_unauthorized(str(error))
                    raise error from exc
        except RateLimitTimeout as exc:
            error = CFClientError(f"timeout on update container app details: {app.guid}")
            self._log.warning("%s", error)
            raise error from exc
        self._log.tracer("^")

        app.apply_app_details(
            details.name, details.space_name, details.org_name, details.instances
        )
        self._log.tracer("Å")
        self._submit(self.update_instances, app)
        self._submit(self.fetch_app_env, app)

    def update_instances(self, app: CFApp) -> None:
        """Refresh the states of the app's instances."""
        try:
            with self._rate.slot():
                try:
                    states = self._current_client().get_app_instances(app.guid)
                except Exception as exc:
                    self._note_unauthorized(str(exc))
                    app.apply_error(str(exc))
                    return
        except RateLimitTimeout:
            self._log.error("API timeout, app instances failed to update states")
            return
        app.apply_instance_states(states)

    def fetch_app_env(self, app: CFApp) -> None:
        """Refresh the app's VCAP_SERVICES from its system environment."""
        try:
            with self._rate.slot():
                try:
                    env = self._current_client().get_app_env(app.guid)
                except Exception as exc:
                    self._log.error("GetAppEnv failed: %s", exc)
                    self._note_unauthorized(str(exc))
                    return
        except RateLimitTimeout:
            self._log.error("api timeout, GetAppEnv failed to update")
            return
        app.apply_env(env)
        self._log.tracer("V")

    def update_all_instances(self) -> None:
        """Refresh instance states of every cached app; skipped if a refresh is running."""
        if not self._updating.acquire(blocking=False):
            return
        try:
            self._log.debug("Updating status of applications")
            started = time.monotonic()
            for app in self.cache.apps():
                self.update_instances(app)
            self._log.debug("Finish cache updating %.3fs", time.monotonic() - started)
        finally:
            self._updating.release()

    def update_client(self) -> None:
        """Replace the API client, e.g. after its token expired."""
        client = self._client_factory()
        with self._client_lock:
            self._client = client

    def close(self) -> None:
        """Stop background work and refuse further API calls."""
        self._closing.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._rate.close()
        if self._owns_executor and isinstance(self._executor, ThreadPoolExecutor):
            self._executor.shutdown(wait=False, cancel_futures=True)
        self._log.info("closed CFAppManager")