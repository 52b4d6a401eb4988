"""Stream envelopes and the attributes derived from container and HTTP envelopes."""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass, field
from typing import Any

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT32_RANGE = (-(2**31), 2**31 - 1)
_INT64_RANGE = (-(2**63), 2**63 - 1)
_NANOS_PER_MILLI = 1_000_000


class LogType(enum.IntEnum):
    """Stream a log line was written to."""

    OUT = 0
    ERR = 1


@dataclass(frozen=True)
class GaugeValue:
    """One named value of a gauge envelope."""

    unit: str = ""
    value: float = 0.0


@dataclass(frozen=True)
class Timer:
    """Start and stop of a timed operation, in nanoseconds since the epoch."""

    name: str = ""
    start: int = 0
    stop: int = 0


@dataclass(frozen=True)
class Log:
    """A log line and the stream it came from."""

    payload: bytes = b""
    type: LogType = LogType.OUT


@dataclass
class Envelope:
    """An event from the log stream; at most one of gauge, timer and log is set."""

    source_id: str = ""
    instance_id: str = ""
    timestamp: int = 0
    tags: dict[str, str] = field(default_factory=dict)
    gauge: dict[str, GaugeValue] | None = None
    timer: Timer | None = None
    log: Log | None = None


@dataclass
class Sample:
    """A metric sample taken from an envelope."""

    name: str
    unit: str
    value: float
    attributes: dict[str, Any] = field(default_factory=dict)


def _parse_int(text: str, bounds: tuple[int, int]) -> int | None:
    if not _INTEGER.fullmatch(text):
        return None
    number = int(text, 10)
    low, high = bounds
    if not low <= number <= high:
        return None
    return number


def to_millis(nanos: int) -> int:
    """Convert nanoseconds to whole milliseconds, truncating toward zero."""
    quotient = abs(nanos) // _NANOS_PER_MILLI
    return quotient if nanos >= 0 else -quotient


def get_tag(envelope: Envelope, name: str) -> str:
    """Return the tag's value, or an empty string if the envelope lacks it."""
    return envelope.tags.get(name, "")


def convert_source_instance(value: str) -> int:
    """Parse a decimal 32-bit instance index; anything else gives 0."""
    number = _parse_int(value, _INT32_RANGE)
    return 0 if number is None else number


def http_duration_ms(envelope: Envelope) -> float:
    """Return the duration of the envelope's timer in milliseconds."""
    timer = envelope.timer or Timer()
    return (timer.stop - timer.start) / _NANOS_PER_MILLI


def percent_used(value: float, quota: float) -> float:
    """Return value as a percentage of quota, with IEEE results for a zero quota."""
    if quota == 0:
        if value == 0 or math.isnan(value):
            return math.nan
        return math.copysign(math.inf, value) * math.copysign(1.0, quota)
    return (value / quota) * 100


def http_attributes(envelope: Envelope, subscription: str) -> dict[str, Any]:
    """Return the event attributes of an HTTP start/stop (timer) envelope."""
    timer = envelope.timer or Timer()
    attrs: dict[str, Any] = {
        "timestamp": to_millis(envelope.timestamp),
        "http.duration": http_duration_ms(envelope),
    }
    content_length = _parse_int(get_tag(envelope, "content_length"), _INT64_RANGE)
    if content_length is not None:
        attrs["http.content.length"] = content_length
    status = _parse_int(get_tag(envelope, "status_code"), _INT64_RANGE)
    if status is not None:
        attrs["http.status"] = status
    attrs["http.uri"] = get_tag(envelope, "uri")
    attrs["http.method"] = get_tag(envelope, "method")
    attrs["http.peer.type"] = get_tag(envelope, "peer_type")
    attrs["http.start.timestamp"] = timer.start
    attrs["http.stop.timestamp"] = timer.stop
    attrs["http.remote.address"] = get_tag(envelope, "remote_address")
    attrs["http.user.agent"] = get_tag(envelope, "user_agent")
    attrs["http.request.id"] = get_tag(envelope, "request_id")
    attrs["agent.subscription"] = subscription
    return attrs


def container_samples(envelope: Envelope) -> list[Sample]:
    """Return the cpu, disk and memory samples of a container gauge envelope."""
    metrics = envelope.gauge or {}

    def value(name: str) -> float:
        metric = metrics.get(name)
        return 0.0 if metric is None else metric.value

    return [
        Sample("app.cpu", "percent", value("cpu")),
        Sample("app.disk", "bytes", value("disk"), {"app.disk.quota": value("disk_quota")}),
        Sample(
            "app.memory",
            "bytes",
            value("memory"),
            {"app.memory.quota": value("memory_quota")},
        ),
    ]