"""External collaborators: display server processes and file placement."""

from vncslots.services.xvnc import (
    ServerHandle,
    XvncLauncher,
    create_xauthority_file,
    render_command,
)

__all__ = [
    "ServerHandle",
    "XvncLauncher",
    "create_xauthority_file",
    "render_command",
]
