"""Port interfaces for the metrics client and event sinks.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from collections.abc import AsyncIterable
from typing import Any, Protocol, runtime_checkable

from cloudwatch_poller.core.models import (
    AggregateQuery,
    Datapoint,
    EmittedRecord,
    GroupedQuery,
    Series,
)


@runtime_checkable
class MetricsClientPort(Protocol):
    """Port for the remote metrics API.

    Both calls are blocking and may raise transport, auth or validation
    errors, which callers do not catch.
    Examples: CloudWatchClient.
    """

    def fetch_aggregate_statistics(self, query: AggregateQuery) -> list[Datapoint]:
        """Return the datapoints of an aggregate statistics query."""
        ...

    def fetch_grouped_series(self, query: GroupedQuery) -> list[Series]:
        """Return the series of a grouped expression query."""
        ...


@runtime_checkable
class EventSinkPort(Protocol):
    """Port for the downstream event pipeline.

    emit() must not block; sinks that need I/O buffer and flush later.
    Examples: InMemoryEventSink, SQLiteEventSink, NDJSONStreamSink.
    """

    def emit(self, tag: str, timestamp: int, record: dict[str, Any]) -> None:
        """Hand one record to the pipeline."""
        ...


@runtime_checkable
class BufferedEventSinkPort(EventSinkPort, Protocol):
    """Event sink that buffers emissions until flushed."""

    async def flush(self) -> None:
        """Write buffered records to the backing store."""
        ...


@runtime_checkable
class ReadableEventSinkPort(EventSinkPort, Protocol):
    """Event sink whose records can be read back."""

    def read(
        self, since: float = 0, tag: str | None = None
    ) -> AsyncIterable[EmittedRecord]:
        """Read records since the given timestamp.

        Args:
            since: Unix timestamp. Returns records with timestamp > since.
            tag: Optional tag filter.

        Returns:
            Async iterable of EmittedRecord, ordered by timestamp ascending.
        """
        ...
