"""
Logging setup for greetkeep.

The library logs under the ``greetkeep`` logger and is silent unless the
host opts in: ``enable_debug_mode`` for stderr output while developing,
``configure_ops_log`` for a persistent log next to a local store.
"""

import logging
import os
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "greetkeep"
OPS_LOG_NAME = "greetkeep-ops.log"
OPS_LOG_MAX_BYTES = 1_000_000
OPS_LOG_BACKUPS = 3

_DEBUG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_OPS_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_quiet_mode(quiet: bool = True):
    """
    Show only warnings and errors from greetkeep (or, with quiet=False,
    defer to the host's logging configuration again).
    """
    logger = logging.getLogger(LOGGER_NAME)
    if quiet:
        warnings.filterwarnings("ignore", module=r"greetkeep(\.|$)")
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.NOTSET)


def enable_debug_mode():
    """Send greetkeep debug output to stderr."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    has_stderr = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in logger.handlers
    )
    if not has_stderr:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_DEBUG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)


def configure_ops_log(store_path) -> RotatingFileHandler:
    """
    Record INFO and above in ``{store_path}/greetkeep-ops.log``.

    Rotates at about 1MB, keeping three old files. Returns the handler so
    the caller can detach it with ``remove_ops_log``.
    """
    path = Path(store_path) / OPS_LOG_NAME
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        str(path), maxBytes=OPS_LOG_MAX_BYTES, backupCount=OPS_LOG_BACKUPS, encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(_OPS_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(handler)
    # INFO records must reach the handler even when the host is quieter
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return handler


def remove_ops_log(handler) -> None:
    """Detach and close a handler returned by configure_ops_log()."""
    logging.getLogger(LOGGER_NAME).removeHandler(handler)
    handler.close()


if not os.environ.get("GREETKEEP_VERBOSE"):
    logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())
