"""Nozzle settings read from NRF_-prefixed environment variables with defaults."""

from __future__ import annotations

import enum
import os
from collections.abc import Mapping
from typing import Any

ENV_PREFIX = "NRF"

ENV_FIREHOSE_ID = "FIREHOSE_ID"
ENV_CF_API_URL = "CF_API_URL"
ENV_RABBITMQ_TAGS = "CF_RABBITMQ_TAGS"
ENV_DOMAIN = "ATTR_DOMAIN"
ENV_DOMAIN_ALIAS = "ATTR_DOMAIN_ALIAS"
ENV_ENVELOPE_TYPE = "ATTR_ENVELOPE_TYPE"
ENV_ORIGIN = "ATTR_ORIGIN"
ENV_DEPLOYMENT = "ATTR_DEPLOYMENT"
ENV_JOB = "ATTR_JOB"
ENV_INDEX = "ATTR_INDEX"
ENV_IP = "ATTR_IP"
ENV_APP_ID = "ATTR_APP_ID"
ENV_APP_NAME = "ATTR_APP_NAME"
ENV_APP_SPACE_NAME = "ATTR_APP_SPACE_NAME"
ENV_APP_ORG_NAME = "ATTR_APP_ORG_NAME"
ENV_APP_INSTANCE_INDEX = "ATTR_APP_INSTANCE_INDEX"
ENV_APP_INSTANCE_UID = "ATTR_APP_INSTANCE_UID"
ENV_APP_INSTANCE_STATE = "ATTR_APP_INSTANCE_STATE"
ENV_APP_INSTANCES_DESIRED = "ATTR_APP_INSTANCES_DESIRED"
ENV_APP_RPM_ID = "ATTR_APP_RPM_ID"
ENV_APP_INSERT_KEY = "ATTR_APP_INSERT_KEY"
EVENT_TYPE_CONTAINER = "NEWRELIC_EVENT_TYPE_CONTAINER"
EVENT_TYPE_VALUE_METRIC = "NEWRELIC_EVENT_TYPE_VALUE"
EVENT_TYPE_COUNTER_EVENT = "NEWRELIC_EVENT_TYPE_COUNTER"
EVENT_TYPE_LOG_MESSAGE = "NEWRELIC_EVENT_TYPE_LOG"
EVENT_TYPE_HTTP_START_STOP = "NEWRELIC_EVENT_TYPE_HTTPSTARTSTOP"

REQUIRED_SETTINGS = (
    "CF_API_URL",
    "CF_API_UAA_URL",
    "CF_CLIENT_ID",
    "CF_CLIENT_SECRET",
    "CF_API_USERNAME",
    "CF_API_PASSWORD",
    "NEWRELIC_INSERT_KEY",
    "NEWRELIC_ACCOUNT_ID",
)

# Settings that may also be read from an environment variable without the prefix.
_UNPREFIXED = frozenset({"CF_INSTANCE_INDEX", "CF_INSTANCE_IP"})

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})

_DEFAULTS: dict[str, Any] = {
    "VERSION": "dev",
    "CF_SKIP_SSL": True,
    "HEALTH_PORT": 8080,
    "FIREHOSE_CACHE_DURATION_MINS": 30,
    "FIREHOSE_CACHE_UPDATE_INTERVAL_SECS": 60,
    "FIREHOSE_CACHE_WRITE_BUFFER_SIZE": 2048,
    "FIREHOSE_RATE_BURST": 5,
    "FIREHOSE_RATE_TIMEOUT_SECS": 60,
    "LOG_LEVEL": "INFO",
    "TRACER": False,
    ENV_RABBITMQ_TAGS: True,
    ENV_FIREHOSE_ID: "newrelic-firehose",
    "FIREHOSE_DIODE_BUFFER": 8192,
    "FIREHOSE_HTTP_TIMEOUT_MINS": 20,
    "FIREHOSE_RESTART_THRESH_SECS": 15,
    "NEWRELIC_DRAIN_INTERVAL": "59s",
    "NEWRELIC_ENQUEUE_TIMEOUT": "1s",
    EVENT_TYPE_CONTAINER: "PCFContainerMetric",
    EVENT_TYPE_VALUE_METRIC: "PCFValueMetric",
    EVENT_TYPE_COUNTER_EVENT: "PCFCounterEvent",
    EVENT_TYPE_LOG_MESSAGE: "PCFLogMessage",
    EVENT_TYPE_HTTP_START_STOP: "PCFHttpStartStop",
    "ATTR_PREFIX": "pcf",
    ENV_ENVELOPE_TYPE: "envelope.type",
    ENV_DOMAIN: "domain",
    ENV_DOMAIN_ALIAS: "bosh.domain",
    ENV_ORIGIN: "origin",
    ENV_DEPLOYMENT: "deployment",
    ENV_JOB: "job",
    ENV_INDEX: "index",
    ENV_IP: "IP",
    ENV_APP_ID: "app.id",
    ENV_APP_NAME: "app.name",
    ENV_APP_SPACE_NAME: "app.space.name",
    ENV_APP_ORG_NAME: "app.org.name",
    ENV_APP_INSTANCE_INDEX: "app.instance.index",
    ENV_APP_INSTANCE_STATE: "app.instance.state",
    ENV_APP_INSTANCE_UID: "app.instance.uid",
    ENV_APP_INSTANCES_DESIRED: "app.instances.desired",
    ENV_APP_RPM_ID: "app.rpm.id",
    ENV_APP_INSERT_KEY: "app.insert.key",
    # Log message filters: "," or "|" separated values.
    "LOGMESSAGE_SOURCE_INCLUDE": "",
    "LOGMESSAGE_SOURCE_EXCLUDE": "",
    "LOGMESSAGE_MESSAGE_INCLUDE": "",
    "LOGMESSAGE_MESSAGE_EXCLUDE": "",
    "ENABLED_ENVELOPE_TYPES": "ContainerMetric|CounterEvent|HttpStartStop|LogMessage|ValueMetric",
    "NEWRELIC_ACCOUNT_REGION": "US",
    "NEWRELIC_EU_BASE_URL": "https://insights-collector.eu01.nr-data.net/v1/",
    "LOGS_LOGMESSAGE": False,
    "LOGS_HTTP": False,
}


class MissingSettingError(LookupError):
    """A required environment variable is missing or empty."""

    def __init__(self, variable: str) -> None:
        super().__init__(f"missing required env variable {variable}")
        self.variable = variable


class Selector(enum.Enum):
    """Envelope kinds that can be requested from the log stream gateway."""

    GAUGE = "gauge"
    COUNTER = "counter"
    TIMER = "timer"
    LOG = "log"


class Config:
    """Layered settings: explicit overrides, then environment, then defaults."""

    def __init__(self, environ: Mapping[str, str], defaults: Mapping[str, Any]) -> None:
        self._environ = environ
        self._defaults = {key.upper(): value for key, value in defaults.items()}
        self._overrides: dict[str, Any] = {}

    def _from_environ(self, key: str) -> str | None:
        value = self._environ.get(f"{ENV_PREFIX}_{key}")
        if value:
            return value
        if key in _UNPREFIXED:
            value = self._environ.get(key)
            if value:
                return value
        return None

    def get(self, key: str) -> Any:
        """Return the raw value of a setting, or None if it has none."""
        name = key.upper()
        if name in self._overrides:
            return self._overrides[name]
        value = self._from_environ(name)
        if value is not None:
            return value
        return self._defaults.get(name)

    def get_string(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, (bool, int)):
            return int(value)
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            try:
                return int(value, 0)
            except ValueError:
                return 0
        return 0

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value in _TRUE_STRINGS
        return False

    def override(self, key: str, value: Any) -> None:
        """Set a value that takes precedence over environment and defaults."""
        self._overrides[key.upper()] = value

    def newrelic_credentials(self) -> tuple[str, str, str]:
        """Return the insert key, account id and account region."""
        return (
            self.get_string("NEWRELIC_INSERT_KEY"),
            self.get_string("NEWRELIC_ACCOUNT_ID"),
            self.get_string("NEWRELIC_ACCOUNT_REGION"),
        )

    def attribute_name(self, name: str) -> str:
        """Return the configured attribute name with the attribute prefix."""
        return f"{self.get_string('ATTR_PREFIX')}.{self.get_string(name)}"

    def selectors(self) -> list[Selector]:
        """Return the gateway selectors for the enabled envelope types."""
        enabled = self.get_string("ENABLED_ENVELOPE_TYPES").lower().replace(" ", "")
        chosen = []
        # Value and container metrics both arrive as gauge envelopes.
        if "valuemetric" in enabled or "containermetric" in enabled:
            chosen.append(Selector.GAUGE)
        if "counterevent" in enabled:
            chosen.append(Selector.COUNTER)
        if "httpstartstop" in enabled:
            chosen.append(Selector.TIMER)
        if "logmessage" in enabled:
            chosen.append(Selector.LOG)
        return chosen

    def envelope_types(self) -> list[str]:
        """Return the enabled envelope types in their stream names."""
        enabled = self.get_string("ENABLED_ENVELOPE_TYPES").lower()
        enabled = enabled.replace("logmessage", "log", 1)
        enabled = enabled.replace("counterevent", "counter", 1)
        enabled = enabled.replace("httpstartstop", "timer", 1)
        enabled = enabled.replace(",", "|").replace(" ", "")
        return enabled.split("|")

    def get_filter(self, name: str) -> list[str] | None:
        """Split a filter setting on "|" (or "," if no "|"); None if unset."""
        value = self.get_string(name)
        if not value:
            return None
        if "|" in value:
            return value.split("|")
        return value.split(",")


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Build the configuration, raising MissingSettingError for absent required settings."""
    env = os.environ if environ is None else environ
    for setting in REQUIRED_SETTINGS:
        variable = f"{ENV_PREFIX}_{setting}"
        if not env.get(variable):
            raise MissingSettingError(variable)
    defaults = dict(_DEFAULTS)
    uaa_url = env.get(f"{ENV_PREFIX}_CF_API_UAA_URL", "")
    defaults["CF_API_RLPG_URL"] = uaa_url.replace("uaa", "log-stream", 1)
    return Config(env, defaults)