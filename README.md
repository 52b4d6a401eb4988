# firenozzle

firenozzle holds the parts of a firehose nozzle for a Cloud Foundry
platform: configuration, a bounded envelope buffer, a limiter for API
calls, UAA token refresh, a cache of application details kept current from
the cloud controller API, and the functions that turn container, HTTP and
log message envelopes into New Relic event attributes.

## Configuration

`firenozzle.config.load_config(environ=None)` reads settings from
environment variables with the `NRF_` prefix (from `os.environ` when no
mapping is given). The following are required, and loading raises
`MissingSettingError` when any of them is missing or empty:

| Variable                    | Meaning                                  |
|-----------------------------|------------------------------------------|
| `NRF_CF_API_URL`            | Cloud controller API address             |
| `NRF_CF_API_UAA_URL`        | UAA address used to obtain tokens        |
| `NRF_CF_CLIENT_ID`          | UAA client id                            |
| `NRF_CF_CLIENT_SECRET`      | UAA client secret                        |
| `NRF_CF_API_USERNAME`       | API user name                            |
| `NRF_CF_API_PASSWORD`       | API password                             |
| `NRF_NEWRELIC_INSERT_KEY`   | Insert key for the event API             |
| `NRF_NEWRELIC_ACCOUNT_ID`   | Account id to report into                |

Everything else has a default, among them:

- `NRF_LOG_LEVEL` — `INFO` by default, `DEBUG` for verbose output.
- `NRF_TRACER` — when true, single-character progress marks are written.
- `NRF_FIREHOSE_ID` — subscription id, `newrelic-firehose` by default.
- `NRF_FIREHOSE_DIODE_BUFFER` — envelope buffer size (8192).
- `NRF_FIREHOSE_RATE_BURST`, `NRF_FIREHOSE_RATE_TIMEOUT_SECS` — limits on
  concurrent calls to the cloud controller API (5 and 60).
- `NRF_FIREHOSE_CACHE_DURATION_MINS`, `NRF_FIREHOSE_CACHE_UPDATE_INTERVAL_SECS`
  — how long cached applications live (30) and how often their instance
  states are refreshed (60).
- `NRF_FIREHOSE_HTTP_TIMEOUT_MINS` — timeout of gateway requests (20).
- `NRF_ENABLED_ENVELOPE_TYPES` — `|` or `,` separated list of
  `ContainerMetric`, `CounterEvent`, `HttpStartStop`, `LogMessage` and
  `ValueMetric`; all are enabled by default.
- `NRF_LOGMESSAGE_SOURCE_INCLUDE`, `NRF_LOGMESSAGE_SOURCE_EXCLUDE`,
  `NRF_LOGMESSAGE_MESSAGE_INCLUDE`, `NRF_LOGMESSAGE_MESSAGE_EXCLUDE` —
  log message filters, `|` or `,` separated.
- `NRF_LOGS_LOGMESSAGE`, `NRF_LOGS_HTTP` — shape log messages or HTTP
  timings as log entries instead of events.

`CF_INSTANCE_INDEX` and `CF_INSTANCE_IP` are also read without the prefix.
The log stream gateway address (`CF_API_RLPG_URL`) defaults to the UAA
address with its first `uaa` replaced by `log-stream`.
`Config.override(key, value)` sets a value that wins over both the
environment and the defaults.

```python
from firenozzle.config import load_config

environ = {
    "NRF_CF_API_URL": "https://api.example.com",
    "NRF_CF_API_UAA_URL": "https://uaa.example.com",
    "NRF_CF_CLIENT_ID": "nozzle",
    "NRF_CF_CLIENT_SECRET": "secret",
    "NRF_CF_API_USERNAME": "admin",
    "NRF_CF_API_PASSWORD": "password",
    "NRF_NEWRELIC_INSERT_KEY": "placeholder",
    "NRF_NEWRELIC_ACCOUNT_ID": "12345",
}

config = load_config(environ)

config.get_string("CF_API_RLPG_URL")    # "https://log-stream.example.com"
config.attribute_name("ATTR_APP_NAME")  # "pcf.app.name"
config.envelope_types()
# ["containermetric", "counter", "timer", "log", "valuemetric"]
config.selectors()
# [Selector.GAUGE, Selector.COUNTER, Selector.TIMER, Selector.LOG]
config.newrelic_credentials()           # ("placeholder", "12345", "US")
```

## Modules

- `firenozzle.app` — `get_application()` returns one shared `Application`
  holding the configuration, the logger, `running`/`closing` events, an
  error queue and a thread list; every call returns the same object.
- `firenozzle.logger` — `new_logger(config, stream=None)` builds a
  `NozzleLogger` at the configured level; `tracer(value)` writes a bare
  mark when `TRACER` is on.
- `firenozzle.diodes` — `EnvelopeDiode(size, alerter=None)`: writers never
  block; when full, the oldest envelope is dropped, and the number dropped
  is passed to the alerter on the next read. `try_next()` returns `None`
  when empty; `next(timeout=None)` waits and raises `TimeoutError` after
  the timeout.
- `firenozzle.limiter` — `RateManager(burst_limit, timeout)` grants a slot
  while at most `burst_limit` are active (so `burst_limit + 1` may run at
  once). Use `with manager.slot(): ...`, or `wait()`/`done()`. Waiting too
  long, or waiting after `close()`, raises `RateLimitTimeout`.
- `firenozzle.uaa` — `UAATokenRefresher(url, client_id, client_secret,
  skip_ssl_validation=False)`; `refresh_auth_token()` posts a
  client-credentials grant to `<url>/oauth/token` and returns
  `"<token_type> <access_token>"`, raising `UAAError` on failure.
  `refresher_from_config(config)` builds one from the settings.
- `firenozzle.cfapp` — `CFApp` holds an application's attributes,
  per-instance states and `VCAP_SERVICES`; `instance_attributes(id)`
  returns its attributes with that instance's state (`"WAITING ON DATA"`
  until known). `AttributeNames` and `new_summary()` name the attributes.
- `firenozzle.cache` — `AppCache(max_age, on_added=None)` stores apps by
  GUID; `put()` keeps the first app seen for a GUID and calls `on_added`
  for new ones; `purge_stale(now=None)` drops apps not pulled within
  `max_age` seconds.
- `firenozzle.manager` — `CFAppManager(client_factory, config)` caches
  applications and, in the background, fetches their details, instance
  states and environment through a client with `get_app(guid)`,
  `get_app_instances(guid)` and `get_app_env(guid)`. Failed fetches are
  retried a few times; a `401 Unauthorized` error makes it build a new
  client from the factory. It also purges stale apps and refreshes
  instance states on the configured intervals. `close()` stops it.
- `firenozzle.envelopes` — the `Envelope` type (with `GaugeValue`,
  `Timer`, `Log`, `LogType`) and `http_attributes()`,
  `container_samples()`, `http_duration_ms()`, `percent_used()`,
  `convert_source_instance()`, `get_tag()` and `to_millis()`.
- `firenozzle.logfilter` — `LogMessageFilter` and
  `log_event_attributes(envelope, subscription, logs_enabled)`. As events,
  messages over 4096 bytes are cut and flagged `log.message.truncated`.
- `firenozzle.httpfirehose` — `AuthorizedSession(token_source, ...)`
  sends each request with a fresh `Authorization` header, without
  connection reuse, streaming the response; `session_from_config()` sets
  the timeout and TLS verification from the settings.

Log message filtering:

```python
from firenozzle.logfilter import LogMessageFilter

log_filter = LogMessageFilter.from_config(config)
if log_filter.allows("GET /health 200", "RTR"):
    ...
```

Include filters are checked first: when both a source and a message include
filter are set, both must match. Exclude filters then drop anything whose
source equals a listed source or whose message contains a listed text.
With no filters set, every message is allowed.

An authorized gateway session:

```python
from firenozzle.httpfirehose import session_from_config
from firenozzle.uaa import refresher_from_config

refresher = refresher_from_config(config)
with session_from_config(refresher.refresh_auth_token, config) as session:
    ...
```

## What this package does not do

There is no command to run and no long-running nozzle process. The package
does not open the log stream gateway stream or decode its envelopes, does
not aggregate value or counter metrics, and does not send anything to New
Relic: there is no event or log insert client. It also ships no concrete
cloud controller API client; `CFAppManager` works with whatever client the
given factory returns.