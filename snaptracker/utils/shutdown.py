"""Global shutdown state management.

A process-wide event set by SIGINT/SIGTERM. The serve loop waits on it and
then stops the HTTP server.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any

logger = logging.getLogger(__name__)

# Global shutdown flag (thread-safe)
_shutdown_flag: threading.Event = threading.Event()
_shutdown_lock: threading.Lock = threading.Lock()


def set_shutdown() -> None:
    """Mark that shutdown has been initiated."""
    with _shutdown_lock:
        _shutdown_flag.set()


def clear_shutdown() -> None:
    """Clear shutdown flag (for testing)."""
    with _shutdown_lock:
        _shutdown_flag.clear()


def get_shutdown_event() -> threading.Event:
    """Get the shutdown event object."""
    return _shutdown_flag


def _handle_signal(signum: int, _frame: Any) -> None:
    logger.info("Got %s, shutting down...", signal.Signals(signum).name)
    set_shutdown()


def install_signal_handlers() -> None:
    """Route SIGINT and SIGTERM to :func:`set_shutdown`.

    Must be called from the main thread.
    """
    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)
