"""Display server launcher double."""

from vncslots.exceptions import ServerStartError
from vncslots.services.xvnc import ServerHandle


class FakeLauncher:
    """Launcher double that fails on a fixed set of displays.

    Attributes
    ----------
    fail_on : set[int]
        Displays whose start raises ServerStartError
    fail_all : bool
        Fail every start
    started : list[int]
        Displays start was called with, in order
    stopped : list[int]
        Displays stop was called with, in order
    """

    def __init__(self, fail_on: set[int] | None = None, fail_all: bool = False) -> None:
        self.fail_on = fail_on or set()
        self.fail_all = fail_all
        self.started: list[int] = []
        self.stopped: list[int] = []

    def start(self, display: int) -> ServerHandle:
        self.started.append(display)
        if self.fail_all or display in self.fail_on:
            raise ServerStartError(display, 1, f"vncserver :{display}")
        return ServerHandle(
            display=display, env={"XAUTHORITY": f"/tmp/.Xauthority-{display}"}
        )

    def stop(self, handle: ServerHandle) -> None:
        self.stopped.append(handle.display)
