#!/usr/bin/env python3
"""
telemetry.py - Logging setup for the command-line tools

Library modules only create loggers; handlers are installed here, once, by
the CLI entry points.
"""

import logging
import os

from pythonjsonlogger.json import JsonFormatter


LOG_LEVEL_ENV = "ISO8583_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def default_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()


def configure_logging(level=None, json_format: bool = False) -> logging.Logger:
    """Replace root handlers with a single stderr handler."""
    level = level or default_log_level()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonFormatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    return root
