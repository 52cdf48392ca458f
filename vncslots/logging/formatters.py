"""Logging formatters for relayed display server output."""

import logging


class StreamFormatter(logging.Formatter):
    """Prefix relayed process output with its stream and display.

    Records may carry ``stream`` ("stdout" or "stderr") and ``display``
    (int) through the ``extra`` parameter. Records without them are
    formatted unchanged.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with stream and display prefixes if present.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message
        """
        msg = super().format(record)

        display = getattr(record, "display", None)
        if display is not None:
            msg = f"[:{display}] {msg}"

        stream = getattr(record, "stream", None)
        if stream in ("stdout", "stderr"):
            msg = f"[{stream}] {msg}"

        return msg
