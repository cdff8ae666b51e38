"""Python logging handler that forwards log records into an event sink.

This lets the poller's own diagnostics (empty results, restarts, worker
failures) travel down the same pipeline as the metric records, under a
``<tag>.log`` tag.
"""

import logging
import traceback
from typing import Any

from cloudwatch_poller.core.ports import EventSinkPort

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class SinkLogHandler(logging.Handler):
    """Logging handler that emits log records to an EventSinkPort.

    Example:
        ```python
        sink = NDJSONStreamSink()
        handler = SinkLogHandler(sink, tag="cloudwatch.ec2.log")
        logging.getLogger("cloudwatch_poller").addHandler(handler)
        ```
    """

    def __init__(
        self, sink: EventSinkPort, tag: str, level: int = logging.WARNING
    ) -> None:
        """Initialize the handler.

        Args:
            sink: Event sink receiving the log records.
            tag: Tag for emitted log records.
            level: Minimum level forwarded (default WARNING).
        """
        super().__init__(level)
        self.sink = sink
        self.tag = tag

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record to the sink.

        Args:
            record: The log record to emit.
        """
        try:
            fields: dict[str, Any] = {
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }

            # Add any extra attributes passed via logging call
            for key, value in record.__dict__.items():
                if key not in _STANDARD_LOGRECORD_ATTRS and isinstance(
                    value, (str, int, float, bool)
                ):
                    fields[key] = value

            if record.exc_info:
                exc_type, exc_value, exc_tb = record.exc_info
                if exc_type is not None:
                    fields["exc_type"] = exc_type.__name__
                if exc_value is not None:
                    fields["exc_message"] = str(exc_value)
                if exc_tb is not None:
                    fields["exc_traceback"] = "".join(
                        traceback.format_exception(exc_type, exc_value, exc_tb)
                    )

            self.sink.emit(self.tag, int(record.created), fields)
        except Exception:
            self.handleError(record)
