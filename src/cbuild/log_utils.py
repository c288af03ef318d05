"""Logging setup for cbuild.

Log lines carry a severity tag so warnings and errors stand out from the
progress output of concurrent compiles. The level can be overridden with the
CBUILD_LOG_LEVEL environment variable (Debug, Info, Warn, Error).
"""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL_ENV = "CBUILD_LOG_LEVEL"

_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "log": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def level_from_env(default: int = logging.INFO) -> int:
    """Read the log level override from the environment.

    Unknown values fall back to the default.
    """
    value = os.environ.get(LOG_LEVEL_ENV, "").strip().lower()
    return _LEVEL_NAMES.get(value, default)


def setup_logging(verbose: bool = False, level: Optional[int] = None) -> logging.Logger:
    """Configure the package logger.

    Args:
        verbose: Force DEBUG level
        level: Explicit level; defaults to the environment override or INFO

    Returns:
        The configured "cbuild" logger
    """
    if level is None:
        level = logging.DEBUG if verbose else level_from_env()

    logger = logging.getLogger("cbuild")
    logger.setLevel(level)

    # Replace handlers so repeated CLI invocations in one process don't duplicate lines
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
