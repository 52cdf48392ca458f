"""One-time removal of stale display servers and X lock files per host."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Callable

from vncslots.constants import CLEANUP_COMMAND_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

CLEANUP_COMMANDS: tuple[list[str], ...] = (
    ["pkill", "Xvnc"],
    ["pkill", "Xrealvnc"],
    ["sh", "-c", "rm -f /tmp/.X*-lock /tmp/.X11-unix/X*"],
)


class HostCleanupTracker:
    """Thread-safe record of hosts that were already cleaned up.

    Membership is ephemeral: hosts can be forgotten when decommissioned,
    after which the next ``mark`` succeeds again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hosts: set[str] = set()

    def mark(self, host: str) -> bool:
        """Record a host as cleaned up.

        Parameters
        ----------
        host : str
            Host identity

        Returns
        -------
        bool
            True if this call recorded the host, False if it was already recorded
        """
        with self._lock:
            if host in self._hosts:
                return False
            self._hosts.add(host)
            return True

    def forget(self, host: str) -> None:
        with self._lock:
            self._hosts.discard(host)

    def __contains__(self, host: object) -> bool:
        with self._lock:
            return host in self._hosts


_tracker = HostCleanupTracker()


def get_cleanup_tracker() -> HostCleanupTracker:
    """Return the process-wide cleanup tracker."""
    return _tracker


def _run_quietly(cmd: list[str]) -> None:
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=CLEANUP_COMMAND_TIMEOUT_SECONDS,
            check=False,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning("Clean up command %s failed: %s", " ".join(cmd), e)
        return

    for line in (result.stdout + result.stderr).splitlines():
        logger.info("%s", line, extra={"stream": "stdout"})


def clean_up_host(
    host: str,
    tracker: HostCleanupTracker | None = None,
    runner: Callable[[list[str]], None] | None = None,
    is_unix: bool | None = None,
) -> bool:
    """Kill stale display servers and remove X lock files, once per host.

    Exit codes of the clean up commands are ignored.

    Parameters
    ----------
    host : str
        Host identity
    tracker : HostCleanupTracker | None
        Tracker recording cleaned up hosts (default: process-wide tracker)
    runner : Callable[[list[str]], None] | None
        Runs a single command (default: subprocess without raising)
    is_unix : bool | None
        Whether the host is POSIX (default: detected from os.name)

    Returns
    -------
    bool
        True if clean up commands were run by this call
    """
    tracker = tracker or _tracker
    runner = runner or _run_quietly

    if not tracker.mark(host):
        logger.debug("Host %s already cleaned up", host)
        return False

    if is_unix is None:
        is_unix = os.name == "posix"

    if not is_unix:
        logger.error("Clean up not currently implemented for non-Unix hosts; skipping")
        return False

    logger.info("Cleaning up stale display servers on %s", host)
    for cmd in CLEANUP_COMMANDS:
        runner(list(cmd))

    return True
