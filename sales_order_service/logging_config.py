"""
logging_config.py — Logging Setup for the Sales Order Service

Modules take their logger from `logging.getLogger(__name__)` (or `get_logger`)
and log with a bracketed context prefix such as "[Order: C0001]" or "[Cache]".
`setup_logging()` runs once when main.py is imported and decides where those
lines go:

    • stdout, always, so container runtimes pick the lines up
    • LOG_FILE, when the variable is non-empty (set it to "" to disable)

Every line carries the worker PID because uvicorn may run several workers
against the same log file. httpx and httpcore are capped at WARNING; at INFO
they would echo every OMS request next to our own "[Order]" lines.
"""

import logging
import sys

from .config import LOG_FILE

LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'


def setup_logging(level=logging.INFO, log_file=LOG_FILE):
    """
    Installs the stdout handler and, if `log_file` is set, a file handler on the root logger.

    Args:
        level (int): Root log level.
        log_file (str | None): Where to append the log. Empty or None keeps output on stdout only.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name):
    """Logger for `name`, routed through the handlers `setup_logging()` installed."""
    return logging.getLogger(name)
