from __future__ import annotations

import logging
import os
import platform
import signal
import subprocess
import sys
import threading
import types
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from vncslots.constants import EXIT_ERROR, EXIT_SIGINT, EXIT_SIGTERM, NO_XVNC_LABEL
from vncslots.core.cleanup import HostCleanupTracker, clean_up_host, get_cleanup_tracker
from vncslots.core.launcher import acquire_and_start
from vncslots.core.registry import SessionRegistry
from vncslots.core.signals import set_cleanup_instance
from vncslots.services.xvnc import ServerHandle, XvncLauncher

logger = logging.getLogger(__name__)


def default_launcher_factory(config: dict[str, Any], workdir: Path) -> XvncLauncher:
    return XvncLauncher(
        command=config.get("command"),
        workdir=workdir,
        use_xauthority=config.get("use_xauthority", True),
        xauthority_root=Path.home(),
    )


@dataclass
class ActiveDisplay:
    """Display held by a running job, released on teardown."""

    host: str
    display: int
    launcher: XvncLauncher
    handle: ServerHandle


class RunExecutor:
    """Runs a command with a freshly allocated display server.

    Manages the whole job lifecycle: skip checks, one-time host clean up,
    display allocation with retries, command execution and teardown.

    Parameters
    ----------
    registry : SessionRegistry
        Per-host allocators
    launcher_factory : Callable[[dict[str, Any], Path], XvncLauncher] | None
        Builds the server launcher from host configuration
    cleanup_tracker : HostCleanupTracker | None
        Records hosts already cleaned up (default: process-wide tracker)
    cleanup_fn : Callable[..., bool] | None
        Performs host clean up (default: clean_up_host)
    platform_system : Callable[[], str] | None
        Returns the OS name (default: platform.system)
    """

    def __init__(
        self,
        registry: SessionRegistry,
        launcher_factory: Callable[[dict[str, Any], Path], XvncLauncher] | None = None,
        cleanup_tracker: HostCleanupTracker | None = None,
        cleanup_fn: Callable[..., bool] | None = None,
        platform_system: Callable[[], str] | None = None,
    ) -> None:
        self.registry = registry
        self.launcher_factory = launcher_factory or default_launcher_factory
        self.cleanup_tracker = cleanup_tracker or get_cleanup_tracker()
        self.cleanup_fn = cleanup_fn or clean_up_host
        self.platform_system = platform_system or platform.system
        self._active: ActiveDisplay | None = None
        self._active_lock = threading.Lock()

    def should_skip(self, config: dict[str, Any]) -> str | None:
        """Return the reason the display is skipped on this host, or None."""
        if config.get("disabled"):
            return "display allocation is disabled for this host"

        if NO_XVNC_LABEL in config.get("labels", []):
            return f"host carries the '{NO_XVNC_LABEL}' label"

        if config.get("skip_on_windows", True) and self.platform_system() == "Windows":
            return "skip_on_windows is set and this host runs Windows"

        return None

    def execute(
        self,
        host: str,
        command: str,
        config: dict[str, Any],
        workdir: Path | None = None,
    ) -> dict[str, Any]:
        """Run a command with DISPLAY pointing at a dedicated display server.

        Parameters
        ----------
        host : str
            Host identity the display is allocated on
        command : str
            Shell command to run
        config : dict[str, Any]
            Merged and validated host configuration
        workdir : Path | None
            Working directory of the command and server (default: cwd)

        Returns
        -------
        dict[str, Any]
            host, display (None when skipped) and exit_code

        Raises
        ------
        ValueError
            If command is empty
        ResourceExhausted
            If the host has no display left
        LaunchFailed
            If the display server did not start within the retry budget
        """
        if not command or not command.strip():
            raise ValueError("command is required")

        workdir = Path(workdir or Path.cwd())

        reason = self.should_skip(config)
        if reason is not None:
            logger.info("Skipping Xvnc: %s", reason)
            exit_code = self._run_command(command, workdir, {})
            return {"host": host, "display": None, "exit_code": exit_code}

        if config.get("clean_up"):
            self.cleanup_fn(host, tracker=self.cleanup_tracker)

        launcher = self.launcher_factory(config, workdir)

        # Registered before start-up so an interrupt during launch exits through
        # acquire_and_start, which frees the display.
        set_cleanup_instance(self)
        try:
            with self.registry.locked():
                allocator = self.registry.get(
                    host, config["min_display_number"], config["max_display_number"]
                )
                display, handle = acquire_and_start(
                    allocator, launcher.start, config["retries"]
                )

            with self._active_lock:
                self._active = ActiveDisplay(host, display, launcher, handle)

            env = {"DISPLAY": f":{display}"}
            if "XAUTHORITY" in handle.env:
                env["XAUTHORITY"] = handle.env["XAUTHORITY"]

            exit_code = self._run_command(command, workdir, env)
        finally:
            set_cleanup_instance(None)
            self.teardown()

        return {"host": host, "display": display, "exit_code": exit_code}

    def _run_command(self, command: str, workdir: Path, env: dict[str, str]) -> int:
        logger.info("Executing: %s", command)

        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=workdir,
                env={**os.environ, **env},
                check=False,
            )
        except OSError as e:
            logger.error("Failed to run command: %s", e)
            return EXIT_ERROR

        return result.returncode

    def teardown(self) -> None:
        """Stop the active display server and free its display.

        Safe to call more than once; only the first call does anything.
        """
        with self._active_lock:
            active = self._active
            self._active = None

        if active is None:
            return

        try:
            active.launcher.stop(active.handle)
        finally:
            with self.registry.locked():
                self.registry.get(active.host).free(active.display)
            logger.debug("Released display :%d on %s", active.display, active.host)

    def _cleanup_resources(
        self, signum: int | None = None, frame: types.FrameType | None = None
    ) -> None:
        """Tear down the active display in response to a signal.

        Parameters
        ----------
        signum : int | None
            Signal number (SIGINT exits with 130, SIGTERM with 143)
        frame : types.FrameType | None
            Current stack frame (unused but required by signal handler signature)
        """
        logger.info("Interrupted; tearing down display server...")
        self.teardown()

        if signum is not None:
            exit_code = (
                EXIT_SIGINT
                if signum == signal.SIGINT
                else (EXIT_SIGTERM if signum == signal.SIGTERM else EXIT_ERROR)
            )
            sys.exit(exit_code)
