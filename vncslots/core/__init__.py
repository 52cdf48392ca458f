"""Core vncslots functionality."""

from __future__ import annotations

from vncslots.core.allocator import Saveable, SlotAllocator
from vncslots.core.cleanup import HostCleanupTracker, clean_up_host
from vncslots.core.launcher import acquire_and_start
from vncslots.core.registry import SessionRegistry
from vncslots.core.signals import (
    get_cleanup_instance,
    set_cleanup_instance,
    setup_signal_handlers,
)

__all__ = [
    "HostCleanupTracker",
    "Saveable",
    "SessionRegistry",
    "SlotAllocator",
    "acquire_and_start",
    "clean_up_host",
    "setup_signal_handlers",
    "set_cleanup_instance",
    "get_cleanup_instance",
]
