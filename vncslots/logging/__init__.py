"""Logging helpers for vncslots."""

from vncslots.logging.filters import StreamRoutingFilter
from vncslots.logging.formatters import StreamFormatter

__all__ = ["StreamFormatter", "StreamRoutingFilter"]
