"""A Cloud Foundry application as seen by the nozzle, with per-instance state."""

from __future__ import annotations

import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from firenozzle.config import (
    ENV_APP_ID,
    ENV_APP_INSTANCE_INDEX,
    ENV_APP_INSTANCE_STATE,
    ENV_APP_INSTANCE_UID,
    ENV_APP_INSTANCES_DESIRED,
    ENV_APP_NAME,
    ENV_APP_ORG_NAME,
    ENV_APP_SPACE_NAME,
    Config,
)

START_VALUE = "WAITING ON DATA"

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class AttributeNames:
    """Attribute names used for application details."""

    app_name: str = "app.name"
    space_name: str = "app.space.name"
    org_name: str = "app.org.name"
    app_id: str = "app.id"
    instance_index: str = "app.instance.index"
    instance_state: str = "app.instance.state"
    instance_uid: str = "app.instance.uid"
    instances_desired: str = "app.instances.desired"

    @classmethod
    def from_config(cls, config: Config) -> AttributeNames:
        return cls(
            app_name=config.get_string(ENV_APP_NAME),
            space_name=config.get_string(ENV_APP_SPACE_NAME),
            org_name=config.get_string(ENV_APP_ORG_NAME),
            app_id=config.get_string(ENV_APP_ID),
            instance_index=config.get_string(ENV_APP_INSTANCE_INDEX),
            instance_state=config.get_string(ENV_APP_INSTANCE_STATE),
            instance_uid=config.get_string(ENV_APP_INSTANCE_UID),
            instances_desired=config.get_string(ENV_APP_INSTANCES_DESIRED),
        )


def new_summary(names: AttributeNames | None = None) -> dict[str, Any]:
    """Return the placeholder attributes of an application not yet fetched."""
    n = names if names is not None else AttributeNames()
    return {
        n.instances_desired: START_VALUE,
        n.app_name: START_VALUE,
        n.space_name: START_VALUE,
        n.org_name: START_VALUE,
        n.instance_state: START_VALUE,
    }


@dataclass(eq=False)
class CFApp:
    """Cached details of one application and the state of its instances."""

    guid: str
    names: AttributeNames = field(default_factory=AttributeNames)
    attributes: dict[str, Any] = field(init=False, default_factory=dict)
    app_name: str | None = None
    summaries: dict[int, str] = field(default_factory=dict)
    vcap_services: dict[str, Any] = field(default_factory=dict)
    last_pull: float = field(default_factory=time.time)
    retry_count: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def __post_init__(self) -> None:
        self.attributes = new_summary(self.names)

    def instance_attributes(self, instance_id: int) -> dict[str, Any]:
        """Return a copy of the app attributes with the state of one instance."""
        with self.lock:
            attrs = dict(self.attributes)
            state = self.summaries.get(instance_id)
            if state is None:
                attrs[self.names.instance_state] = START_VALUE
                return attrs
            attrs[self.names.instance_state] = state
            if self.app_name is not None:
                attrs[self.names.instance_uid] = f"{self.app_name}:{instance_id}"
            return attrs

    def apply_instance_states(self, states: Mapping[str, str]) -> None:
        """Record instance states keyed by their decimal instance index."""
        parsed: dict[int, str] = {}
        for key, state in states.items():
            try:
                index = int(key, 10)
            except ValueError as exc:
                raise ValueError(f"invalid instance index {key!r}") from exc
            if not _INT32_MIN <= index <= _INT32_MAX:
                raise ValueError(f"instance index out of range: {key!r}")
            parsed[index] = state
        with self.lock:
            self.attributes[self.names.instances_desired] = len(states)
            self.summaries.update(parsed)

    def apply_app_details(self, name: str, space_name: str, org_name: str, instances: int) -> None:
        """Record the details fetched from the API and mark the app as fresh."""
        with self.lock:
            self.app_name = name
            self.attributes[self.names.instances_desired] = instances
            self.attributes[self.names.app_name] = name
            self.attributes[self.names.org_name] = org_name
            self.attributes[self.names.space_name] = space_name
            self.last_pull = time.time()

    def apply_error(self, message: str) -> None:
        """Show an API error as the state of instance 0, if that instance is known."""
        with self.lock:
            if 0 in self.summaries:
                self.summaries[0] = message

    def apply_env(self, system_env: Mapping[str, Any]) -> None:
        """Store the VCAP_SERVICES section of the app's system environment."""
        services = system_env.get("VCAP_SERVICES")
        if not isinstance(services, Mapping):
            raise TypeError("VCAP_SERVICES is missing or not a mapping")
        with self.lock:
            self.vcap_services = dict(services)