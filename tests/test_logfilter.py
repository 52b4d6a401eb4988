import pytest

from firenozzle.config import load_config
from firenozzle.envelopes import Envelope, Log, LogType
from firenozzle.logfilter import LogMessageFilter, log_event_attributes, log_message_type

GUID = "c70684e2-4443-4ed5-8dc8-28b7cf7d97ed"

ENVIRON = {
    "NRF_CF_API_URL": "https://api.example.com",
    "NRF_CF_API_UAA_URL": "https://uaa.example.com",
    "NRF_CF_CLIENT_ID": "nozzle",
    "NRF_CF_CLIENT_SECRET": "secret",
    "NRF_CF_API_USERNAME": "admin",
    "NRF_CF_API_PASSWORD": "password",
    "NRF_NEWRELIC_INSERT_KEY": "placeholder",
    "NRF_NEWRELIC_ACCOUNT_ID": "1",
}


def _log_envelope(payload, source_type="APP/PROC/WEB", log_type=LogType.OUT):
    return Envelope(
        source_id=GUID,
        instance_id="0",
        timestamp=11000000,
        tags={"source_type": source_type},
        log=Log(payload=payload, type=log_type),
    )


def test_no_filters_allow_everything():
    flt = LogMessageFilter()
    assert flt.enabled() is False
    assert flt.allows("anything", "RTR") is True


def test_from_config_defaults_disable_filters():
    flt = LogMessageFilter.from_config(load_config(ENVIRON))
    assert flt.enabled() is False
    assert flt.source_include is None


def test_from_config_splits_filters():
    environ = dict(ENVIRON)
    environ["NRF_LOGMESSAGE_SOURCE_INCLUDE"] = "APP|RTR"
    environ["NRF_LOGMESSAGE_MESSAGE_EXCLUDE"] = "health,ping"
    flt = LogMessageFilter.from_config(load_config(environ))
    assert flt.source_include == ("APP", "RTR")
    assert flt.message_exclude == ("health", "ping")
    assert flt.enabled() is True


def test_source_include_matches_exactly_after_trimming():
    flt = LogMessageFilter(source_include=["APP", " RTR "])
    assert flt.is_included_source("RTR") is True
    assert flt.is_included_source("RTR/0") is False
    assert flt.allows("msg", "STG") is False


def test_message_include_matches_substring():
    flt = LogMessageFilter(message_include=["error"])
    assert flt.is_included_message("an error occurred") is True
    assert flt.is_included_message("all fine") is False


def test_include_needs_source_and_message():
    flt = LogMessageFilter(source_include=["APP"], message_include=["error"])
    assert flt.is_included("an error", "APP") is True
    assert flt.is_included("an error", "RTR") is False
    assert flt.is_included("fine", "APP") is False


def test_exclude_by_source_or_message():
    flt = LogMessageFilter(source_exclude=["RTR"], message_exclude=[" health "])
    assert flt.is_excluded("x", "RTR") is True
    assert flt.is_excluded("GET /health", "APP") is True
    assert flt.is_excluded("GET /", "APP") is False
    assert flt.allows("GET /health", "APP") is False
    assert flt.allows("GET /", "APP") is True


def test_unset_exclude_filters_exclude_nothing():
    flt = LogMessageFilter(source_include=["APP"])
    assert flt.is_excluded_source("APP") is False
    assert flt.is_excluded_message("anything") is False


def test_log_message_type():
    assert log_message_type(LogType.OUT) == "OUT"
    assert log_message_type(LogType.ERR) == "ERR"


def test_event_attributes_match_source_example():
    attrs = log_event_attributes(_log_envelope(b"logtest"), "newrelic-firehose", False)
    assert attrs["log.message"] == "logtest"
    assert attrs["log.app.id"] == GUID
    assert attrs["log.source.type"] == "APP/PROC/WEB"
    assert attrs["log.source.instance"] == "0"
    assert attrs["log.message.type"] == "OUT"
    assert attrs["timestamp"] == attrs["log.timestamp"] == 11
    assert attrs["agent.subscription"] == "newrelic-firehose"
    assert "log.message.truncated" not in attrs


def test_event_attributes_truncate_long_messages():
    attrs = log_event_attributes(_log_envelope(b"x" * 5000), "sub", False)
    assert len(attrs["log.message"]) == 4095
    assert attrs["log.message.truncated"] is True


def test_event_attributes_keep_message_at_limit():
    attrs = log_event_attributes(_log_envelope(b"y" * 4096), "sub", False)
    assert len(attrs["log.message"]) == 4096
    assert "log.message.truncated" not in attrs


def test_log_entry_attributes_when_logs_enabled():
    payload = b"z" * 5000
    attrs = log_event_attributes(_log_envelope(payload, log_type=LogType.ERR), "sub", True)
    assert attrs["message"] == payload.decode()
    assert attrs["message.type"] == "ERR"
    assert attrs["app.id"] == GUID
    assert "log.message" not in attrs


def test_missing_log_raises():
    with pytest.raises(ValueError):
        log_event_attributes(Envelope(), "sub", False)