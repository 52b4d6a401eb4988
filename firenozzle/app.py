"""Process-wide application context shared by the nozzle components."""

from __future__ import annotations

import os
import queue
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field

from firenozzle.config import Config, load_config
from firenozzle.logger import NozzleLogger, new_logger


@dataclass(eq=False)
class Application:
    """Configuration, logger and shared signalling for the running nozzle."""

    config: Config
    log: NozzleLogger
    running: threading.Event = field(default_factory=threading.Event)
    closing: threading.Event = field(default_factory=threading.Event)
    errors: queue.Queue = field(default_factory=queue.Queue)
    threads: list[threading.Thread] = field(default_factory=list)


_instance: Application | None = None
_lock = threading.Lock()


def get_application(environ: Mapping[str, str] | None = None) -> Application:
    """Return the single application context, creating it on first use."""
    global _instance
    with _lock:
        if _instance is None:
            config = load_config(os.environ if environ is None else environ)
            _instance = Application(config=config, log=new_logger(config))
        return _instance