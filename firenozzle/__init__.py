"""Configuration, buffering, API caching and envelope shaping for a firehose nozzle."""

__version__ = "2.7.0"