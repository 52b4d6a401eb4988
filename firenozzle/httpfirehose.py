"""HTTP session for the log stream gateway that authorizes every request."""

from __future__ import annotations

import logging
from collections.abc import Callable

import requests

from firenozzle.config import Config

_log = logging.getLogger(__name__)


class AuthorizedSession:
    """Sends requests with a fresh Authorization token and no connection reuse."""

    def __init__(
        self,
        token_source: Callable[[], str],
        *,
        timeout: float | None = None,
        verify: bool = True,
        session: requests.Session | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.token_source = token_source
        self.timeout = timeout
        self.verify = verify
        self._session = session if session is not None else requests.Session()
        self._log = log if log is not None else _log

    def send(self, request: requests.Request | requests.PreparedRequest) -> requests.Response:
        """Add the current token and send the request, streaming the response."""
        token = self.token_source()
        prepared = request.prepare() if isinstance(request, requests.Request) else request
        prepared.headers["Authorization"] = token
        prepared.headers["Connection"] = "close"
        self._log.debug("Issuing new HTTP firehose request")
        return self._session.send(
            prepared, timeout=self.timeout, verify=self.verify, stream=True
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> AuthorizedSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def session_from_config(token_source: Callable[[], str], config: Config) -> AuthorizedSession:
    """Build a session with the configured timeout and TLS verification."""
    return AuthorizedSession(
        token_source,
        timeout=config.get_int("FIREHOSE_HTTP_TIMEOUT_MINS") * 60.0,
        verify=not config.get_bool("CF_SKIP_SSL"),
    )