"""Utility functions for vncslots."""

import fcntl
import logging
import socket
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any


def get_host_name() -> str:
    """Return the identity used to key this host's display allocator.

    Returns
    -------
    str
        Short host name, or "localhost" if it cannot be determined
    """
    name = socket.gethostname().strip()
    return name or "localhost"


def format_displays(displays: Iterable[int]) -> str:
    """Format display numbers as a compact sorted list.

    Parameters
    ----------
    displays : Iterable[int]
        Display numbers

    Returns
    -------
    str
        e.g. ":10 :12 :40", or "-" when empty
    """
    ordered = sorted(displays)
    if not ordered:
        return "-"
    return " ".join(f":{d}" for d in ordered)


def log_and_print_error(message: str, *args: Any) -> None:
    """Log error message and print to stderr.

    Parameters
    ----------
    message : str
        Error message with optional format placeholders
    *args : Any
        Format arguments for message
    """
    logging.error(message, *args)
    formatted_msg = message % args if args else message
    print(f"Error: {formatted_msg}", file=sys.stderr)


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on the sibling ``.lock`` file of path.

    The lock is advisory and shared with every process using the same path.
    It is not reentrant: a holder must not take it again.

    Parameters
    ----------
    path : Path
        File whose writers are serialized

    Yields
    ------
    None
        Control while the lock is held
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_suffix(path.suffix + ".lock")

    with open(lock_path, "w") as lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


def atomic_file_write(path: Path, content: str, lock: bool = True) -> None:
    """Write file atomically using temp file and rename with file locking.

    Concurrent writers from separate processes are serialized by an exclusive
    lock on a sibling ``.lock`` file.

    Parameters
    ----------
    path : Path
        Target file path
    content : str
        File content to write
    lock : bool
        Take the lock file; pass False when the caller already holds it

    Raises
    ------
    OSError
        Propagates any error from the write after removing the temp file
    """
    if not lock:
        _replace_atomically(path, content)
        return

    with file_lock(path):
        _replace_atomically(path, content)


def _replace_atomically(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        with open(temp_path, "w") as f:
            f.write(content)
        temp_path.replace(path)
    except OSError:
        if temp_path.exists():
            temp_path.unlink()
        raise
