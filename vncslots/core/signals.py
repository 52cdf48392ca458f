"""Signal handling for display teardown on interrupt."""

from __future__ import annotations

import signal
import sys
import threading
import types
from typing import Protocol

from vncslots.constants import EXIT_SIGINT, EXIT_SIGTERM


class CleanupHandler(Protocol):
    """Protocol for cleanup handler (RunExecutor instance)."""

    def _cleanup_resources(
        self, signum: int | None = None, frame: types.FrameType | None = None
    ) -> None:
        """Handle cleanup resources."""
        ...


class CleanupInstanceManager:
    """Thread-safe manager for the cleanup instance.

    Uses a single lock to protect both getting and checking the instance,
    preventing races between signal handlers and normal teardown.
    """

    def __init__(self) -> None:
        """Initialize the cleanup instance manager."""
        self._lock = threading.Lock()
        self._instance: CleanupHandler | None = None

    def set(self, instance: CleanupHandler | None) -> None:
        """Set the cleanup instance.

        Parameters
        ----------
        instance : CleanupHandler | None
            The executor that owns the running display
        """
        with self._lock:
            self._instance = instance

    def get(self) -> CleanupHandler | None:
        """Get the current cleanup instance.

        Returns
        -------
        CleanupHandler | None
            The executor handling cleanup, or None if not set
        """
        with self._lock:
            return self._instance

    def cleanup_with_lock(self, signum: int, frame: types.FrameType | None) -> bool:
        """Perform cleanup with lock protection against concurrent set(None) calls.

        Parameters
        ----------
        signum : int
            Signal number
        frame : types.FrameType | None
            Signal frame

        Returns
        -------
        bool
            False if no instance was registered
        """
        with self._lock:
            instance = self._instance

        if instance is None:
            return False

        instance._cleanup_resources(signum=signum, frame=frame)
        return True


_cleanup_manager = CleanupInstanceManager()


def setup_signal_handlers() -> None:
    """Route SIGINT and SIGTERM to the registered cleanup instance."""

    def handler(signum: int, frame: types.FrameType | None) -> None:
        if not _cleanup_manager.cleanup_with_lock(signum=signum, frame=frame):
            sys.exit(EXIT_SIGINT if signum == signal.SIGINT else EXIT_SIGTERM)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def set_cleanup_instance(instance: CleanupHandler | None) -> None:
    """Set the instance to handle cleanup for signal handlers.

    Parameters
    ----------
    instance : CleanupHandler | None
        The executor that will handle cleanup
    """
    _cleanup_manager.set(instance)


def get_cleanup_instance() -> CleanupHandler | None:
    """Get the current cleanup instance.

    Returns
    -------
    CleanupHandler | None
        The executor handling cleanup, or None if not set
    """
    return _cleanup_manager.get()
