"""Per-host registry of display allocators backed by a JSON state file."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from vncslots.constants import STATE_FILE_VERSION
from vncslots.core.allocator import SlotAllocator
from vncslots.utils import atomic_file_write, file_lock

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns one SlotAllocator per host and persists all of them.

    The registry is the persistence owner of every allocator it hands out:
    each allocator mutation calls back into ``save``. Allocators rebuilt by
    ``load`` are re-attached to the registry before they become reachable
    through ``get``.

    Parameters
    ----------
    state_path : Path | str
        JSON file holding persisted allocator state
    min_display : int
        Lowest display number for hosts without a stored or requested range
    max_display : int
        Highest display number for hosts without a stored or requested range

    Attributes
    ----------
    state_path : Path
        JSON state file
    _allocators : dict[str, SlotAllocator]
        Allocators keyed by host identity
    _lock : threading.RLock
        Protects the allocator map and serializes writes to the state file
    _file_lock_held : bool
        Whether the state file lock is held by ``locked``
    """

    def __init__(
        self, state_path: Path | str, min_display: int, max_display: int
    ) -> None:
        self.state_path = Path(state_path).expanduser()
        self.min_display = min_display
        self.max_display = max_display
        self._allocators: dict[str, SlotAllocator] = {}
        self._lock = threading.RLock()
        self._file_lock_held = False

    def get(
        self,
        host: str,
        min_display: int | None = None,
        max_display: int | None = None,
    ) -> SlotAllocator:
        """Return the allocator for a host, creating it on first access.

        When a range is given and differs from the stored allocator's range,
        the allocator is rebuilt for the new range, keeping the displays that
        still fall inside it.

        Parameters
        ----------
        host : str
            Host identity
        min_display : int | None
            Lowest display number (default: registry default)
        max_display : int | None
            Highest display number (default: registry default)

        Returns
        -------
        SlotAllocator
            Allocator shared by every job on that host
        """
        with self._lock:
            allocator = self._allocators.get(host)
            if allocator is not None:
                if (min_display is None or min_display == allocator.min_display) and (
                    max_display is None or max_display == allocator.max_display
                ):
                    return allocator

                new_min = allocator.min_display if min_display is None else min_display
                new_max = allocator.max_display if max_display is None else max_display
                logger.info(
                    "Display range for %s changed from %d-%d to %d-%d",
                    host,
                    allocator.min_display,
                    allocator.max_display,
                    new_min,
                    new_max,
                )
                allocator = SlotAllocator.from_dict(allocator.to_dict(), new_min, new_max)
            else:
                allocator = SlotAllocator(
                    self.min_display if min_display is None else min_display,
                    self.max_display if max_display is None else max_display,
                )
                logger.debug("Created display allocator for host %s", host)

            allocator.owner = self
            self._allocators[host] = allocator
            return allocator

    def hosts(self) -> list[str]:
        """Return the identities of all known hosts, sorted."""
        with self._lock:
            return sorted(self._allocators)

    def load(self) -> None:
        """Replace in-memory state with the contents of the state file.

        A missing file yields an empty registry. An unreadable or malformed
        file is logged and also yields an empty registry.
        """
        data = self._read_state()

        allocators: dict[str, SlotAllocator] = {}
        for host, entry in data.get("hosts", {}).items():
            try:
                allocator = SlotAllocator.from_dict(
                    entry,
                    entry.get("min_display", self.min_display),
                    entry.get("max_display", self.max_display),
                )
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Ignoring stored state for host %s: %s", host, e)
                continue

            allocator.owner = self
            allocators[host] = allocator

        with self._lock:
            self._allocators = allocators

        logger.debug("Loaded display allocators for %d host(s)", len(allocators))

    def _read_state(self) -> dict[str, Any]:
        if not self.state_path.exists():
            return {}

        try:
            data = json.loads(self.state_path.read_text())
        except json.JSONDecodeError as e:
            logger.warning("Ignoring corrupt state file %s: %s", self.state_path, e)
            return {}
        except OSError as e:
            logger.warning("Failed to read state file %s: %s", self.state_path, e)
            return {}

        if not isinstance(data, dict) or not isinstance(data.get("hosts", {}), dict):
            logger.warning("Ignoring malformed state file %s", self.state_path)
            return {}

        version = data.get("version")
        if version != STATE_FILE_VERSION:
            logger.warning(
                "State file %s has version %s, expected %s; loading anyway",
                self.state_path,
                version,
                STATE_FILE_VERSION,
            )

        return data

    def save(self) -> None:
        """Write every allocator's state to the state file atomically.

        Raises
        ------
        OSError
            If the state file cannot be written
        """
        with self._lock:
            payload = {
                "version": STATE_FILE_VERSION,
                "hosts": {
                    host: allocator.to_dict()
                    for host, allocator in sorted(self._allocators.items())
                },
            }
            atomic_file_write(
                self.state_path,
                json.dumps(payload, indent=2) + "\n",
                lock=not self._file_lock_held,
            )

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the state file lock and reload state from disk.

        Every process sharing the state file sees the others' allocations
        when it mutates allocators inside this block. Allocators obtained
        before entering are stale; fetch them again with ``get``.

        Yields
        ------
        None
            Control while the state file lock is held
        """
        with self._lock, file_lock(self.state_path):
            self._file_lock_held = True
            try:
                self.load()
                yield
            finally:
                self._file_lock_held = False
