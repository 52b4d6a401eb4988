"""Logging for the nozzle, with a trace channel for single-character progress marks."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

from firenozzle.config import Config


class NozzleLogger(logging.LoggerAdapter):
    """A logger bound to the nozzle configuration."""

    def __init__(self, logger: logging.Logger, config: Config, stream: TextIO) -> None:
        super().__init__(logger, {})
        self.config = config
        self.stream = stream

    def tracer(self, value: Any) -> None:
        """Write a bare trace mark when tracing is enabled."""
        if self.config.get_bool("TRACER"):
            self.stream.write(str(value))
            self.stream.flush()


def new_logger(config: Config, stream: TextIO | None = None) -> NozzleLogger:
    """Create a logger writing to stream (stdout by default) at the configured level."""
    out = sys.stdout if stream is None else stream
    base = logging.Logger("firenozzle")
    handler = logging.StreamHandler(out)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    base.addHandler(handler)
    log = NozzleLogger(base, config, out)

    if config.get_bool("TRACER"):
        log.warning("*** tracer on ***")

    if config.get_string("LOG_LEVEL").upper() == "DEBUG":
        base.setLevel(logging.DEBUG)
    else:
        base.setLevel(logging.INFO)

    log.info("log level: %s", logging.getLevelName(base.level).lower())
    return log