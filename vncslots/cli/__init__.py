"""CLI argument parsing and handling."""

from __future__ import annotations

from vncslots.cli.parsing import (
    apply_cli_overrides,
    parse_bool_parameter,
    parse_display_number,
    parse_int_parameter,
)

__all__ = [
    "apply_cli_overrides",
    "parse_bool_parameter",
    "parse_display_number",
    "parse_int_parameter",
]
