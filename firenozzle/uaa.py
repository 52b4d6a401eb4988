"""OAuth client-credentials tokens from the UAA server."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import requests

from firenozzle.config import Config

_log = logging.getLogger(__name__)


class UAAError(Exception):
    """The UAA server could not be reached or refused to issue a token."""


class UAATokenRefresher:
    """Fetches fresh authorization tokens with the client-credentials grant."""

    def __init__(
        self,
        url: str,
        client_id: str,
        client_secret: str,
        skip_ssl_validation: bool = False,
        *,
        timeout: float = 60.0,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        if not url:
            raise UAAError("missing UAA URL")
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise UAAError(f"invalid UAA URL: {url}")
        self.url = url
        self.client_id = client_id
        self.client_secret = client_secret
        self.skip_ssl_validation = skip_ssl_validation
        self.timeout = timeout
        self._log = log if log is not None else _log

    def _request_token(self) -> str:
        try:
            response = requests.post(
                f"{self.url.rstrip('/')}/oauth/token",
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
                verify=not self.skip_ssl_validation,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UAAError(str(exc)) from exc
        if response.status_code != 200:
            raise UAAError(f"received a status code {response.status_code} from UAA")
        try:
            body = response.json()
        except ValueError as exc:
            raise UAAError("UAA response is not JSON") from exc
        if not isinstance(body, dict):
            raise UAAError("UAA response is not a JSON object")
        token_type = body.get("token_type")
        access_token = body.get("access_token")
        if not access_token:
            raise UAAError("UAA response holds no access token")
        return f"{token_type} {access_token}"

    def refresh_auth_token(self) -> str:
        """Return a token in the form "<type> <token>", ready for an Authorization header."""
        try:
            return self._request_token()
        except UAAError as exc:
            self._log.error(
                "Error getting oauth token: %s. Please check your Client ID and Secret.", exc
            )
            raise


def refresher_from_config(config: Config) -> UAATokenRefresher:
    """Build a token refresher from the UAA URL and client credentials in config."""
    return UAATokenRefresher(
        config.get_string("CF_API_UAA_URL"),
        config.get_string("CF_CLIENT_ID"),
        config.get_string("CF_CLIENT_SECRET"),
        config.get_bool("CF_SKIP_SSL"),
    )