"""
Coalesced (debounced) writes.

Edits arrive one keystroke at a time; persisting each would rewrite the
whole document every time. A DebouncedWriter runs its writer once no new
edit has been scheduled for ``delay`` seconds. The writer reads the latest
in-memory state when it runs, so superseded writes are simply dropped.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .errors import log_exception

logger = logging.getLogger(__name__)


class DebouncedWriter:
    """
    Cancellable, coalescing timer around a zero-argument writer.

    Safe to schedule redundantly. A delay of 0 or less writes synchronously.
    Writes never overlap: a write that starts while another is running waits
    for it, so the newest state is always committed last.
    """

    def __init__(
        self,
        write: Callable[[], None],
        delay: float,
        *,
        name: str = "greetkeep-save",
        store_path: Optional[Path] = None,
    ):
        """
        Args:
            write: Callable that persists the latest snapshot
            delay: Quiet interval in seconds before writing
            name: Thread name for the timer (shows up in tracebacks)
            store_path: Store directory for the error log of failed
                background writes (default: see errors.error_log_path)
        """
        self._write = write
        self._delay = delay
        self._name = name
        self._store_path = store_path
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending = False
        self.writes = 0

    @property
    def pending(self) -> bool:
        """True if a write is scheduled but has not run yet."""
        return self._pending

    def schedule(self) -> None:
        """Request a write, restarting the quiet interval."""
        if self._delay <= 0:
            with self._lock:
                self._pending = True
            self._run(propagate=True)
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = True
            timer = threading.Timer(self._delay, self._run)
            timer.name = self._name
            timer.daemon = True
            self._timer = timer
            timer.start()

    def flush(self, force: bool = False) -> bool:
        """
        Write now if a write is pending (or always, with ``force``).

        Exceptions from the writer propagate to the caller.

        Returns:
            True if the writer ran
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if not (self._pending or force):
                return False
            self._pending = True
        return self._run(propagate=True)

    def cancel(self) -> None:
        """Drop any pending write."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = False

    def _run(self, propagate: bool = False) -> bool:
        with self._write_lock:
            with self._lock:
                if not self._pending:
                    return False
                self._pending = False
                self._timer = None
            try:
                self._write()
            except Exception as e:
                if propagate:
                    raise
                path = log_exception(e, context=self._name, store_path=self._store_path)
                logger.warning("Debounced write failed: %s (details in %s)", e, path)
                return False
            self.writes += 1
            return True
