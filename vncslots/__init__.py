"""vncslots - display number allocation for Xvnc-backed jobs."""

__version__ = "0.1.0"
