"""Thread-safe allocation of X display numbers from a bounded range."""

from __future__ import annotations

import logging
import random
import threading
from typing import Any, Protocol

from vncslots.exceptions import InvalidRange, ResourceExhausted

logger = logging.getLogger(__name__)


class Saveable(Protocol):
    """Anything that can durably persist allocator state."""

    def save(self) -> None:
        """Persist current state."""
        ...


class SlotAllocator:
    """Hands out exclusive display numbers from ``[min_display, max_display]``.

    One instance is shared by every concurrent job on a host. ``allocate``,
    ``free`` and ``blacklist`` are serialized by a single lock. Blacklisted
    displays are withheld until the pool saturates, at which point the whole
    blacklist is cleared.

    Parameters
    ----------
    min_display : int
        Lowest display number (inclusive)
    max_display : int
        Highest display number (inclusive)
    owner : Saveable | None
        Persistence sink notified after every mutation. Not serialized; must
        be re-attached after loading.
    rng : random.Random | None
        Random source used to pick displays

    Attributes
    ----------
    min_display : int
        Lowest display number
    max_display : int
        Highest display number
    owner : Saveable | None
        Persistence sink
    _allocated : set[int]
        Display numbers in use
    _blacklisted : set[int]
        Display numbers withheld until the next amnesty
    _lock : threading.Lock
        Protects both sets

    Raises
    ------
    InvalidRange
        If the bounds are not non-negative integers with min <= max
    """

    def __init__(
        self,
        min_display: int,
        max_display: int,
        owner: Saveable | None = None,
        rng: random.Random | None = None,
    ) -> None:
        for bound in (min_display, max_display):
            if isinstance(bound, bool) or not isinstance(bound, int):
                raise InvalidRange(min_display, max_display, "bounds must be integers")

        if min_display < 0:
            raise InvalidRange(min_display, max_display, "bounds must not be negative")

        if min_display > max_display:
            raise InvalidRange(
                min_display, max_display, "minimum is greater than maximum"
            )

        self.min_display = min_display
        self.max_display = max_display
        self.owner = owner
        self._rng = rng or random.Random()
        self._allocated: set[int] = set()
        self._blacklisted: set[int] = set()
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        """Number of display numbers in the range."""
        return self.max_display - self.min_display + 1

    @property
    def allocated(self) -> frozenset[int]:
        """Snapshot of display numbers currently in use."""
        with self._lock:
            return frozenset(self._allocated)

    @property
    def blacklisted(self) -> frozenset[int]:
        """Snapshot of display numbers withheld from allocation."""
        with self._lock:
            return frozenset(self._blacklisted)

    def in_range(self, display: int) -> bool:
        """Return whether display lies within the allocator's range."""
        return self.min_display <= display <= self.max_display

    def allocate(self) -> int:
        """Allocate a free display number.

        Returns
        -------
        int
            Display number now reserved for the caller

        Raises
        ------
        ResourceExhausted
            If every display is allocated and the blacklist is empty
        """
        with self._lock:
            if len(self._allocated) + len(self._blacklisted) >= self.size:
                if not self._blacklisted:
                    raise ResourceExhausted(self._allocated, self._blacklisted)

                logger.info(
                    "All displays in %d-%d are allocated or blacklisted; "
                    "clearing blacklist %s",
                    self.min_display,
                    self.max_display,
                    sorted(self._blacklisted),
                )
                self._blacklisted.clear()

            while True:
                display = self._rng.randint(self.min_display, self.max_display)
                if display not in self._allocated and display not in self._blacklisted:
                    break

            self._allocated.add(display)

        logger.debug("Allocated display :%d", display)
        self._save()
        return display

    def free(self, display: int) -> None:
        """Release a display number. Releasing an unknown display is a no-op.

        Parameters
        ----------
        display : int
            Display number to release
        """
        with self._lock:
            self._allocated.discard(display)

        logger.debug("Freed display :%d", display)
        self._save()

    def blacklist(self, display: int) -> None:
        """Withhold a display number until the next amnesty.

        The display is removed from the allocated set. Any external resources
        still bound to it are left for the caller to clean up.

        Parameters
        ----------
        display : int
            Display number that proved unusable

        Raises
        ------
        ValueError
            If display lies outside the allocator's range
        """
        if not self.in_range(display):
            raise ValueError(
                f"Cannot blacklist display {display}: outside range "
                f"{self.min_display}-{self.max_display}"
            )

        with self._lock:
            self._allocated.discard(display)
            self._blacklisted.add(display)

        logger.debug("Blacklisted display :%d", display)
        self._save()

    def _save(self) -> None:
        owner = self.owner
        if owner is None:
            return

        try:
            owner.save()
        except Exception as e:
            logger.warning("Failed to persist display allocator state: %s", e, exc_info=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize allocator state.

        Returns
        -------
        dict[str, Any]
            Range bounds and sorted allocated/blacklisted lists
        """
        with self._lock:
            return {
                "min_display": self.min_display,
                "max_display": self.max_display,
                "allocated": sorted(self._allocated),
                "blacklisted": sorted(self._blacklisted),
            }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        min_display: int,
        max_display: int,
        rng: random.Random | None = None,
    ) -> SlotAllocator:
        """Rebuild an allocator from serialized state for the given range.

        Stored displays outside the range are dropped, as are blacklist
        entries that are also recorded as allocated. The returned allocator
        has no owner.

        Parameters
        ----------
        data : dict[str, Any]
            Output of ``to_dict``
        min_display : int
            Lowest display number of the current range
        max_display : int
            Highest display number of the current range
        rng : random.Random | None
            Random source for the new allocator

        Returns
        -------
        SlotAllocator
            Allocator without owner
        """
        allocator = cls(min_display, max_display, rng=rng)

        allocated = {int(n) for n in data.get("allocated", [])}
        blacklisted = {int(n) for n in data.get("blacklisted", [])}

        dropped = sorted(
            n for n in allocated | blacklisted if not allocator.in_range(n)
        )
        if dropped:
            logger.warning(
                "Dropping stored displays %s outside range %d-%d",
                dropped,
                min_display,
                max_display,
            )

        allocator._allocated = {n for n in allocated if allocator.in_range(n)}
        allocator._blacklisted = {
            n for n in blacklisted if allocator.in_range(n) and n not in allocated
        }
        return allocator

    def __repr__(self) -> str:
        return (
            f"SlotAllocator(range={self.min_display}-{self.max_display}, "
            f"allocated={sorted(self.allocated)}, blacklisted={sorted(self.blacklisted)})"
        )
