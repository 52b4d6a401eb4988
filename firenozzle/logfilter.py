"""Filtering of log message envelopes and the attributes of the events they yield."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from firenozzle.config import Config
from firenozzle.envelopes import Envelope, LogType, get_tag, to_millis

# The event API rejects messages longer than this.
_MAX_EVENT_MESSAGE = 4096


def _as_tuple(values: Sequence[str] | None) -> tuple[str, ...] | None:
    return None if values is None else tuple(values)


def _any_equal(filters: Sequence[str], source: str) -> bool:
    return any(f.strip() == source for f in filters)


def _any_within(filters: Sequence[str], message: str) -> bool:
    return any(f.strip() in message for f in filters)


@dataclass(frozen=True)
class LogMessageFilter:
    """Include and exclude filters on log source types and message text.

    A filter that is None is not set; sources match exactly, messages by substring.
    """

    source_include: tuple[str, ...] | None = None
    source_exclude: tuple[str, ...] | None = None
    message_include: tuple[str, ...] | None = None
    message_exclude: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        for name in ("source_include", "source_exclude", "message_include", "message_exclude"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))

    @classmethod
    def from_config(cls, config: Config) -> LogMessageFilter:
        return cls(
            source_include=config.get_filter("LOGMESSAGE_SOURCE_INCLUDE"),
            source_exclude=config.get_filter("LOGMESSAGE_SOURCE_EXCLUDE"),
            message_include=config.get_filter("LOGMESSAGE_MESSAGE_INCLUDE"),
            message_exclude=config.get_filter("LOGMESSAGE_MESSAGE_EXCLUDE"),
        )

    def enabled(self) -> bool:
        """Return True if any filter is set."""
        return any(
            f is not None
            for f in (
                self.source_include,
                self.source_exclude,
                self.message_include,
                self.message_exclude,
            )
        )

    def is_included_source(self, source: str) -> bool:
        if self.source_include is None:
            return True
        return _any_equal(self.source_include, source)

    def is_included_message(self, message: str) -> bool:
        if self.message_include is None:
            return True
        return _any_within(self.message_include, message)

    def is_excluded_source(self, source: str) -> bool:
        return self.source_exclude is not None and _any_equal(self.source_exclude, source)

    def is_excluded_message(self, message: str) -> bool:
        return self.message_exclude is not None and _any_within(self.message_exclude, message)

    def is_included(self, message: str, source: str) -> bool:
        """Both the source and the message include filters must match."""
        return self.is_included_source(source) and self.is_included_message(message)

    def is_excluded(self, message: str, source: str) -> bool:
        """Either exclude filter matching excludes the message."""
        return self.is_excluded_source(source) or self.is_excluded_message(message)

    def allows(self, message: str, source: str) -> bool:
        """Return True if a log message should be reported."""
        if not self.enabled():
            return True
        return self.is_included(message, source) and not self.is_excluded(message, source)


def log_message_type(log_type: LogType) -> str:
    """Return "OUT" for standard output and "ERR" otherwise."""
    return "OUT" if log_type == LogType.OUT else "ERR"


def log_event_attributes(
    envelope: Envelope, subscription: str, logs_enabled: bool
) -> dict[str, Any]:
    """Return the attributes of a log envelope, as a log entry or as an event.

    Event messages longer than 4096 bytes are cut and flagged as truncated.
    """
    log = envelope.log
    if log is None:
        raise ValueError("envelope holds no log message")
    timestamp = to_millis(envelope.timestamp)
    source_type = get_tag(envelope, "source_type")
    message_type = log_message_type(log.type)
    payload = log.payload

    if logs_enabled:
        return {
            "message": payload.decode("utf-8", errors="replace"),
            "timestamp": timestamp,
            "app.id": envelope.source_id,
            "source.type": source_type,
            "source.instance": envelope.instance_id,
            "message.type": message_type,
            "agent.subscription": subscription,
        }

    attrs: dict[str, Any] = {}
    if len(payload) > _MAX_EVENT_MESSAGE:
        payload = payload[: _MAX_EVENT_MESSAGE - 1]
        attrs["log.message.truncated"] = True
    attrs["log.message"] = payload.decode("utf-8", errors="replace")
    attrs["timestamp"] = timestamp
    # Also reported as log.timestamp for older dashboards.
    attrs["log.timestamp"] = timestamp
    attrs["log.app.id"] = envelope.source_id
    attrs["log.source.type"] = source_type
    attrs["log.source.instance"] = envelope.instance_id
    attrs["log.message.type"] = message_type
    attrs["agent.subscription"] = subscription
    return attrs