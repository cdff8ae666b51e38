"""Event sink writing NDJSON lines to a text stream."""

import sys
from typing import Any, TextIO

from cloudwatch_poller.core.encoding.ndjson import encode_record
from cloudwatch_poller.core.models import EmittedRecord


class NDJSONStreamSink:
    """Writes each emitted record as one JSON line.

    Args:
        stream: Text stream to write to (default: sys.stdout).
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def emit(self, tag: str, timestamp: int, record: dict[str, Any]) -> None:
        """Write one record and flush the stream."""
        line = encode_record(EmittedRecord(tag=tag, timestamp=timestamp, record=record))
        self._stream.write(line + "\n")
        self._stream.flush()
