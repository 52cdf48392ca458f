"""Global constants for vncslots.

This module contains application-wide defaults shared by the allocator,
the launcher and the command line interface.
"""

from pathlib import Path

DEFAULT_MIN_DISPLAY_NUMBER = 10
"""Lowest X display number handed out by default.

Displays below ten are commonly claimed by desktop sessions and
manually started servers, so allocation starts above them.
"""

DEFAULT_MAX_DISPLAY_NUMBER = 99
"""Highest X display number handed out by default (inclusive)."""

DEFAULT_RETRIES = 10
"""Number of additional launch attempts after a display server fails to start.

Each failed display is blacklisted before the next attempt, so a host with
a few stale lock files still gets a working display.
"""

DISPLAY_NUMBER_MACRO = "DISPLAY_NUMBER"
"""Name of the placeholder substituted into the server command line."""

DEFAULT_XVNC_COMMAND = "vncserver :$DISPLAY_NUMBER -localhost -nolisten tcp"
"""Command used to start the display server when none is configured."""

NO_XVNC_LABEL = "noxvnc"
"""Host label that disables display allocation on that host."""

XAUTHORITY_PREFIX = ".Xauthority-"
"""Filename prefix of generated Xauthority files."""

SERVER_STOP_TIMEOUT_SECONDS = 10
"""Timeout in seconds to wait for a terminated display server to exit.

After the timeout the process is killed outright.
"""

SERVER_START_TIMEOUT_SECONDS = 60
"""Timeout in seconds for a daemonizing vncserver wrapper to return."""

CLEANUP_COMMAND_TIMEOUT_SECONDS = 30
"""Timeout in seconds for each host clean up command."""

STATE_FILE_VERSION = 1
"""Schema version written to the allocator state file."""

DEFAULT_STATE_FILE = Path.home() / ".vncslots" / "state.json"
"""Default location of the persisted allocator state."""

CONFIG_ENV_VAR = "VNCSLOTS_CONFIG"
STATE_ENV_VAR = "VNCSLOTS_STATE"
DEBUG_ENV_VAR = "VNCSLOTS_DEBUG"
DEFAULT_CONFIG_FILE = "vncslots.yaml"

EXIT_ERROR = 1
"""Exit code indicating a general application error.

Also used for exhausted display pools and failed server launches.
"""

EXIT_CONFIG_ERROR = 2
"""Exit code indicating a configuration error."""

EXIT_SIGINT = 130
EXIT_SIGTERM = 143
