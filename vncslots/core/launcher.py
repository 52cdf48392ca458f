"""Start a display server on a freshly allocated display, retrying on failure."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from vncslots.core.allocator import SlotAllocator
from vncslots.exceptions import LaunchFailed, ServerStartError

logger = logging.getLogger(__name__)

HandleT = TypeVar("HandleT")


def acquire_and_start(
    allocator: SlotAllocator,
    launch_fn: Callable[[int], HandleT],
    max_retries: int,
) -> tuple[int, HandleT]:
    """Allocate a display and start a server on it.

    A display whose server fails to start is blacklisted, never freed: the
    failed server may have left lock files or listeners behind. Any other
    error from launch_fn, interrupts included, frees the display and
    propagates.

    Parameters
    ----------
    allocator : SlotAllocator
        Allocator of the host the server runs on
    launch_fn : Callable[[int], HandleT]
        Starts the server on the given display and returns a handle for
        teardown. Raises ServerStartError when the server did not start.
    max_retries : int
        Number of additional attempts after the first failure

    Returns
    -------
    tuple[int, HandleT]
        Display number and launch handle

    Raises
    ------
    ResourceExhausted
        Propagated from the allocator without retrying
    LaunchFailed
        If every attempt failed
    ValueError
        If max_retries is negative
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must not be negative, got {max_retries}")

    tried: list[int] = []
    retries = max_retries

    while True:
        display = allocator.allocate()
        tried.append(display)

        try:
            handle = launch_fn(display)
        except ServerStartError as e:
            logger.warning(
                "Failed to run '%s' (exit code %s), blacklisting display #%d; "
                "consider enabling the clean_up option",
                e.command,
                e.exit_code,
                display,
            )
            allocator.blacklist(display)

            if retries <= 0:
                raise LaunchFailed(tried, e) from e

            retries -= 1
            continue
        except BaseException:
            allocator.free(display)
            raise

        return display, handle
