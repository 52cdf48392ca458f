"""Exception hierarchy for display allocation and server launch failures."""

from __future__ import annotations

from collections.abc import Iterable


def _format_numbers(numbers: Iterable[int]) -> str:
    return "[" + ", ".join(str(n) for n in sorted(numbers)) + "]"


class InvalidRange(ValueError):
    """Raised when a display range cannot be used for allocation.

    Parameters
    ----------
    min_display : object
        Requested lower bound
    max_display : object
        Requested upper bound
    reason : str
        Human-readable explanation
    """

    def __init__(self, min_display: object, max_display: object, reason: str) -> None:
        self.min_display = min_display
        self.max_display = max_display
        super().__init__(f"Invalid display range {min_display}-{max_display}: {reason}")


class ResourceExhausted(RuntimeError):
    """Raised when every display number is allocated and none are blacklisted.

    Parameters
    ----------
    allocated : Iterable[int]
        Display numbers in use at the time of failure
    blacklisted : Iterable[int]
        Display numbers withheld at the time of failure
    """

    def __init__(self, allocated: Iterable[int], blacklisted: Iterable[int]) -> None:
        self.allocated = frozenset(allocated)
        self.blacklisted = frozenset(blacklisted)
        super().__init__(
            "All available display numbers are allocated or blacklisted.\n"
            f"allocated: {_format_numbers(self.allocated)}\n"
            f"blacklisted: {_format_numbers(self.blacklisted)}"
        )


class ServerStartError(RuntimeError):
    """Raised by a launch function when the display server failed on one display.

    Parameters
    ----------
    display : int
        Display number the server was started on
    exit_code : int | None
        Exit code reported by the server command, if any
    command : str
        Command line that was run
    """

    def __init__(self, display: int, exit_code: int | None, command: str) -> None:
        self.display = display
        self.exit_code = exit_code
        self.command = command
        super().__init__(
            f"Failed to run '{command}' (exit code {exit_code}) on display :{display}"
        )


class LaunchFailed(RuntimeError):
    """Raised when the display server could not be started within the retry budget.

    Parameters
    ----------
    slots : list[int]
        Display numbers tried, in order
    last_error : ServerStartError
        Failure reported by the final attempt
    """

    def __init__(self, slots: list[int], last_error: ServerStartError) -> None:
        self.slots = list(slots)
        self.last_error = last_error
        super().__init__(
            f"Display server did not start after {len(self.slots)} attempts "
            f"(displays tried: {', '.join(str(s) for s in self.slots)}): {last_error}"
        )
