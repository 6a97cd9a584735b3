"""
Failure reporting for background work.

A debounced save runs on a timer thread with nobody waiting for its
result. When it fails, the traceback is appended to greetkeep-errors.log
in the store directory so the failure can still be diagnosed.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ERROR_LOG_NAME = "greetkeep-errors.log"
_SEPARATOR = "-" * 72


def error_log_path() -> Path:
    """Where failures are recorded: GREETKEEP_STORE_PATH, else ~/.greetkeep."""
    base = os.environ.get("GREETKEEP_STORE_PATH")
    root = Path(base).expanduser() if base else Path.home() / ".greetkeep"
    return root / ERROR_LOG_NAME


def format_failure(exc: BaseException, context: str = "") -> str:
    """One log entry: header line with timestamp and context, then the traceback."""
    stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    header = f"{stamp} {context}".rstrip()
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return f"{_SEPARATOR}\n{header}\n{trace}"


def log_exception(exc: BaseException, context: str = "", store_path: Optional[Path] = None) -> Path:
    """
    Append ``exc`` and its traceback to the error log.

    Args:
        exc: The failure
        context: Short label such as the writer name or owner being saved
        store_path: Store directory to log into; defaults to
            ``error_log_path()``

    Returns:
        Path of the error log (even if it could not be written)
    """
    path = Path(store_path) / ERROR_LOG_NAME if store_path is not None else error_log_path()
    entry = format_failure(exc, context)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        pass  # Nowhere left to report to
    return path
