"""Logging filters that split records between stdout and stderr handlers."""

import logging


class StreamRoutingFilter(logging.Filter):
    """Accept records destined for one output stream.

    Records tagged with ``extra={"stream": ...}`` go to that stream. Untagged
    records go to stderr at WARNING and above, otherwise to stdout.

    Parameters
    ----------
    target : str
        Either "stdout" or "stderr"
    """

    def __init__(self, target: str) -> None:
        if target not in ("stdout", "stderr"):
            raise ValueError(f"target must be 'stdout' or 'stderr', got '{target}'")
        super().__init__()
        self.target = target

    def filter(self, record: logging.LogRecord) -> bool:
        stream = getattr(record, "stream", None)
        if stream is None:
            stream = "stderr" if record.levelno >= logging.WARNING else "stdout"
        return stream == self.target
