"""Ring buffer event sink.

Provides bounded in-memory storage that automatically evicts oldest
records when the buffer is full. Useful for long-running pollers that
need predictable memory usage.
"""

from collections import deque
from collections.abc import AsyncIterable
from typing import Any

from cloudwatch_poller.adapters.sinks.in_memory import _select
from cloudwatch_poller.core.models import EmittedRecord


class RingBufferEventSink:
    """Ring buffer implementation of ReadableEventSinkPort.

    Stores records in a fixed-size circular buffer. When the buffer
    is full, the oldest record is automatically evicted to make room for
    new records.

    Args:
        max_size: Maximum number of records to store.
    """

    def __init__(self, max_size: int) -> None:
        self._buffer: deque[EmittedRecord] = deque(maxlen=max_size)

    def emit(self, tag: str, timestamp: int, record: dict[str, Any]) -> None:
        """Store one record, evicting the oldest when full."""
        self._buffer.append(EmittedRecord(tag=tag, timestamp=timestamp, record=record))

    def __len__(self) -> int:
        return len(self._buffer)

    async def read(
        self, since: float = 0, tag: str | None = None
    ) -> AsyncIterable[EmittedRecord]:
        """Read records since the given timestamp.

        Returns records with timestamp > since, ordered by timestamp ascending.
        """
        for record in _select(self._buffer, since, tag):
            yield record
