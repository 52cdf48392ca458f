"""Xvnc display server process management.

This module starts and stops the external display server for an allocated
display number and places the Xauthority file the server is pointed at.

Classes
-------
ServerHandle
    Everything needed to tear a running server down
XvncLauncher
    Starts and stops display servers from a command template

Examples
--------
>>> launcher = XvncLauncher(command=None, workdir=Path("/tmp/job"))
>>> handle = launcher.start(42)
>>> launcher.stop(handle)
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from vncslots.constants import (
    DEFAULT_XVNC_COMMAND,
    SERVER_START_TIMEOUT_SECONDS,
    SERVER_STOP_TIMEOUT_SECONDS,
    XAUTHORITY_PREFIX,
)
from vncslots.exceptions import ServerStartError

logger = logging.getLogger(__name__)

_MACRO_PATTERN = re.compile(r"\$\{DISPLAY_NUMBER\}|\$DISPLAY_NUMBER\b")
_DISPLAY_ARG_PATTERN = re.compile(r":(?:\$\{DISPLAY_NUMBER\}|\$DISPLAY_NUMBER\b)")


def render_command(template: str, display: int) -> str:
    """Substitute the display number into a server command template.

    Parameters
    ----------
    template : str
        Command line containing $DISPLAY_NUMBER or ${DISPLAY_NUMBER}
    display : int
        Display number

    Returns
    -------
    str
        Command line with every placeholder replaced
    """
    return _MACRO_PATTERN.sub(str(display), template)


def create_xauthority_file(workspace: Path, root: Path | None = None) -> Path:
    """Create an empty Xauthority file in a directory whose path has no spaces.

    The workspace is tried first, then the root directory, then the system
    temp directory. If every candidate contains a space, a warning is logged
    and the file is created in the temp directory anyway.

    Parameters
    ----------
    workspace : Path
        Job working directory
    root : Path | None
        Host level fallback directory

    Returns
    -------
    Path
        Path of the created file
    """
    temp_dir = Path(tempfile.gettempdir())
    candidates = [workspace] if root is None else [workspace, root]
    candidates.append(temp_dir)

    target = next((c for c in candidates if " " not in str(c)), None)
    if target is None:
        logger.warning(
            "Could not find somewhere to place the Xauthority file not "
            "containing a space in the path."
        )
        target = temp_dir

    target.mkdir(parents=True, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix=XAUTHORITY_PREFIX, dir=target)
    os.close(fd)
    return Path(path)


@dataclass
class ServerHandle:
    """Running display server.

    Attributes
    ----------
    display : int
        Display number the server owns
    env : dict[str, str]
        Extra environment the server was started with
    process : subprocess.Popen | None
        Long-running server process, None for daemonizing wrappers
    kill_command : list[str] | None
        Command that stops a daemonized server
    xauthority : Path | None
        Xauthority file to delete on teardown
    """

    display: int
    env: dict[str, str] = field(default_factory=dict)
    process: subprocess.Popen | None = None
    kill_command: list[str] | None = None
    xauthority: Path | None = None


class XvncLauncher:
    """Starts display servers on allocated displays.

    Parameters
    ----------
    command : str | None
        Command template; None uses the default vncserver command
    workdir : Path
        Directory the server is started in
    use_xauthority : bool
        Point the server at a fresh Xauthority file
    xauthority_root : Path | None
        Fallback directory for the Xauthority file
    """

    def __init__(
        self,
        command: str | None,
        workdir: Path,
        use_xauthority: bool = True,
        xauthority_root: Path | None = None,
    ) -> None:
        self.command = command or DEFAULT_XVNC_COMMAND
        self.workdir = Path(workdir)
        self.use_xauthority = use_xauthority
        self.xauthority_root = xauthority_root

    def render_command(self, display: int) -> str:
        return render_command(self.command, display)

    def _is_daemonizing(self, argv: list[str]) -> bool:
        return argv[0].endswith("vncserver") and bool(
            _DISPLAY_ARG_PATTERN.search(self.command)
        )

    def start(self, display: int) -> ServerHandle:
        """Start the display server on a display.

        Parameters
        ----------
        display : int
            Display number to start the server on

        Returns
        -------
        ServerHandle
            Handle for ``stop``

        Raises
        ------
        ServerStartError
            If the server command could not be run or exited non-zero
        """
        actual_cmd = self.render_command(display)
        argv = shlex.split(actual_cmd)
        if not argv:
            raise ServerStartError(display, None, actual_cmd)

        self.workdir.mkdir(parents=True, exist_ok=True)

        handle = ServerHandle(display=display)
        if self.use_xauthority:
            handle.xauthority = create_xauthority_file(self.workdir, self.xauthority_root)
            handle.env["XAUTHORITY"] = str(handle.xauthority)
        else:
            handle.env["XVNC_COOKIE"] = str(uuid.uuid4())

        logger.info("Starting Xvnc on display :%d", display)
        logger.debug("Executing: %s", actual_cmd)

        daemonizing = self._is_daemonizing(argv)

        try:
            process = subprocess.Popen(
                argv,
                cwd=self.workdir,
                env={**os.environ, **handle.env},
                stdout=subprocess.PIPE if daemonizing else None,
                stderr=subprocess.STDOUT if daemonizing else None,
                text=True,
            )
        except OSError as e:
            self._remove_xauthority(handle)
            raise ServerStartError(display, None, actual_cmd) from e

        if not daemonizing:
            handle.process = process
            return handle

        try:
            output, _ = process.communicate(timeout=SERVER_START_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            self._remove_xauthority(handle)
            raise ServerStartError(display, None, actual_cmd) from e
        except BaseException:
            process.kill()
            process.wait()
            self._remove_xauthority(handle)
            raise

        for line in (output or "").splitlines():
            logger.info("%s", line, extra={"stream": "stdout", "display": display})

        if process.returncode != 0:
            self._remove_xauthority(handle)
            raise ServerStartError(display, process.returncode, actual_cmd)

        handle.kill_command = [argv[0], "-kill", f":{display}"]
        return handle

    def stop(self, handle: ServerHandle) -> None:
        """Stop a display server and remove its Xauthority file.

        Failures are logged; teardown always continues.

        Parameters
        ----------
        handle : ServerHandle
            Handle returned by ``start``
        """
        logger.info("Terminating Xvnc on display :%d", handle.display)

        if handle.kill_command is not None:
            try:
                result = subprocess.run(
                    handle.kill_command,
                    env={**os.environ, **handle.env},
                    capture_output=True,
                    text=True,
                    timeout=SERVER_STOP_TIMEOUT_SECONDS,
                    check=False,
                )
                for line in (result.stdout + result.stderr).splitlines():
                    logger.info(
                        "%s", line, extra={"stream": "stdout", "display": handle.display}
                    )
            except (subprocess.TimeoutExpired, OSError) as e:
                logger.warning("Failed to stop display :%d: %s", handle.display, e)
        elif handle.process is not None:
            self._terminate(handle.process, handle.display)

        self._remove_xauthority(handle)

    def _terminate(self, process: subprocess.Popen, display: int) -> None:
        if process.poll() is not None:
            return

        process.terminate()
        try:
            process.wait(timeout=SERVER_STOP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("Display server on :%d did not exit; killing it", display)
            process.kill()
            process.wait()

    def _remove_xauthority(self, handle: ServerHandle) -> None:
        if handle.xauthority is None:
            return

        try:
            handle.xauthority.unlink(missing_ok=True)
        except OSError as err:
            logger.warning("Failed to remove %s: %s", handle.xauthority, err)
