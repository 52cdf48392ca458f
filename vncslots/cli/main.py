"""CLI entry point for vncslots."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import fire

from vncslots.constants import (
    DEBUG_ENV_VAR,
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
)
from vncslots.core.signals import setup_signal_handlers
from vncslots.exceptions import LaunchFailed, ResourceExhausted
from vncslots.logging import StreamFormatter, StreamRoutingFilter
from vncslots.utils import format_displays


def get_vncslots_base_class() -> type:
    """Get VncSlots base class on-demand to avoid circular imports.

    Returns
    -------
    type
        VncSlots base class
    """
    from vncslots.__main__ import VncSlots

    return VncSlots


class VncSlotsCLI:
    """CLI wrapper that turns run results into process exit codes.

    Parameters
    ----------
    executor_factory : Callable | None
        Optional factory building the RunExecutor from a SessionRegistry
    """

    _cached_class: type | None = None

    def __new__(cls, executor_factory: Callable | None = None) -> Any:
        """Create VncSlotsCLI instance with dynamic subclassing.

        Parameters
        ----------
        executor_factory : Callable | None
            Optional factory for RunExecutor

        Returns
        -------
        Any
            Instance of dynamically created VncSlotsCLI subclass
        """
        if cls._cached_class is None:
            VncSlots = get_vncslots_base_class()

            class VncSlotsCLIImpl(VncSlots):
                """CLI wrapper implementation for VncSlots."""

                def run(
                    self,
                    command: str | None = None,
                    host: str | None = None,
                    min_display: int | None = None,
                    max_display: int | None = None,
                    retries: int | None = None,
                    xvnc: str | None = None,
                    use_xauthority: str | bool | None = None,
                    clean_up: str | bool | None = None,
                    json_output: bool = False,
                ) -> dict[str, Any] | str:
                    """Run a command with its own display and exit with its exit code.

                    Parameters
                    ----------
                    command : str | None
                        Shell command to run with DISPLAY set
                    host : str | None
                        Host identity (default: this machine's hostname)
                    min_display : int | None
                        Lowest display number override
                    max_display : int | None
                        Highest display number override
                    retries : int | None
                        Extra launch attempts after a failed server start
                    xvnc : str | None
                        Server command template, must contain $DISPLAY_NUMBER
                    use_xauthority : str | bool | None
                        Give the server its own Xauthority file
                    clean_up : str | bool | None
                        Kill stale servers and X lock files first
                    json_output : bool
                        Print the result as JSON

                    Returns
                    -------
                    dict[str, Any] | str
                        Run result (never returns when the command failed,
                        exits with its exit code instead)
                    """
                    result = super().run(
                        command=command,
                        host=host,
                        min_display=min_display,
                        max_display=max_display,
                        retries=retries,
                        xvnc=xvnc,
                        use_xauthority=use_xauthority,
                        clean_up=clean_up,
                        json_output=json_output,
                    )

                    exit_code = (
                        result["exit_code"] if isinstance(result, dict) else 0
                    )
                    if exit_code != 0:
                        sys.exit(exit_code)

                    return result

            cls._cached_class = VncSlotsCLIImpl

        return cls._cached_class(executor_factory=executor_factory)


def handle_value_error(error: ValueError, debug_mode: bool) -> None:
    """Handle configuration and argument errors.

    Parameters
    ----------
    error : ValueError
        The value error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ValueError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Configuration error: {error}", file=sys.stderr)
    sys.exit(EXIT_CONFIG_ERROR)


def handle_exhausted_error(error: ResourceExhausted, debug_mode: bool) -> None:
    """Handle an exhausted display pool.

    Parameters
    ----------
    error : ResourceExhausted
        The exhaustion error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ResourceExhausted
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print("No display numbers left on this host\n", file=sys.stderr)
    print(f"  allocated:   {format_displays(error.allocated)}", file=sys.stderr)
    print(f"  blacklisted: {format_displays(error.blacklisted)}\n", file=sys.stderr)
    print("This usually means:", file=sys.stderr)
    print("  - Too many concurrent jobs for the display range", file=sys.stderr)
    print("  - Jobs were killed before releasing their display\n", file=sys.stderr)
    print("Fix it:", file=sys.stderr)
    print("  vncslots status", file=sys.stderr)
    print("  vncslots free :<display>", file=sys.stderr)
    print("  vncslots run --max-display 199 ...", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_launch_error(error: LaunchFailed, debug_mode: bool) -> None:
    """Handle a display server that never started.

    Parameters
    ----------
    error : LaunchFailed
        The launch error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    LaunchFailed
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print("Display server failed to start\n", file=sys.stderr)
    print(f"  {error.last_error}", file=sys.stderr)
    print(
        f"  displays tried and blacklisted: {format_displays(error.slots)}\n",
        file=sys.stderr,
    )
    print("Fix it:", file=sys.stderr)
    print("  vncslots run --clean-up true ...", file=sys.stderr)
    print("  Check the xvnc command line in vncslots.yaml", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_runtime_error(error: RuntimeError, debug_mode: bool) -> None:
    """Handle unexpected runtime error.

    Parameters
    ----------
    error : RuntimeError
        The runtime error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    RuntimeError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Unexpected error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def configure_logging(level: int = logging.INFO) -> None:
    """Route log records to stdout and stderr handlers."""
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(StreamFormatter("%(message)s"))
    stdout_handler.addFilter(StreamRoutingFilter("stdout"))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(StreamFormatter("%(message)s"))
    stderr_handler.addFilter(StreamRoutingFilter("stderr"))

    logging.basicConfig(
        level=level,
        handlers=[stdout_handler, stderr_handler],
    )


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Fire maps the methods of VncSlotsCLI to subcommands. Expected
    operational failures are reported with context and a non-zero exit code;
    setting VNCSLOTS_DEBUG=1 re-raises them instead.
    """
    debug_mode = os.environ.get(DEBUG_ENV_VAR) == "1"
    configure_logging(logging.DEBUG if debug_mode else logging.INFO)
    setup_signal_handlers()

    try:
        fire.Fire(VncSlotsCLI())
    except ValueError as e:
        handle_value_error(e, debug_mode)
    except ResourceExhausted as e:
        handle_exhausted_error(e, debug_mode)
    except LaunchFailed as e:
        handle_launch_error(e, debug_mode)
    except RuntimeError as e:
        handle_runtime_error(e, debug_mode)
