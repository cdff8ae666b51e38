"""In-memory event sinks."""

from collections.abc import AsyncIterable, Iterable
from typing import Any

from cloudwatch_poller.core.models import EmittedRecord


def _select(
    records: Iterable[EmittedRecord], since: float, tag: str | None
) -> list[EmittedRecord]:
    """Filter by timestamp and tag, ordered by timestamp ascending."""
    filtered = [
        r for r in records if r.timestamp > since and (tag is None or r.tag == tag)
    ]
    return sorted(filtered, key=lambda r: r.timestamp)


class InMemoryEventSink:
    """In-memory implementation of ReadableEventSinkPort.

    Stores records in a list. Suitable for testing and
    low-volume deployments where persistence is not required.
    """

    def __init__(self) -> None:
        self._records: list[EmittedRecord] = []

    def emit(self, tag: str, timestamp: int, record: dict[str, Any]) -> None:
        """Store one record."""
        self._records.append(EmittedRecord(tag=tag, timestamp=timestamp, record=record))

    @property
    def records(self) -> list[EmittedRecord]:
        """Records in emission order."""
        return list(self._records)

    async def read(
        self, since: float = 0, tag: str | None = None
    ) -> AsyncIterable[EmittedRecord]:
        """Read records since the given timestamp.

        Returns records with timestamp > since, ordered by timestamp ascending.
        """
        for record in _select(self._records, since, tag):
            yield record
