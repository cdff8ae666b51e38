"""Test doubles and helpers shared across test modules."""

import asyncio
import threading
import time
from collections.abc import Callable

import pytest

from cloudwatch_poller.core.models import (
    AggregateQuery,
    Datapoint,
    GroupedQuery,
    Series,
)


class FakeMetricsClient:
    """Scriptable MetricsClientPort for tests.

    Attributes:
        datapoints: Returned by every aggregate call.
        series: Returned by every grouped call.
        fail_next: Exceptions raised by the next calls, in order.
        hang_next: Number of upcoming calls that block until release is set.
            A hung call returns the results captured when it was made.
    """

    def __init__(
        self,
        datapoints: list[Datapoint] | None = None,
        series: list[Series] | None = None,
    ) -> None:
        self.datapoints = list(datapoints or [])
        self.series = list(series or [])
        self.aggregate_calls: list[AggregateQuery] = []
        self.grouped_calls: list[GroupedQuery] = []
        self.fail_next: list[Exception] = []
        self.hang_next = 0
        self.release = threading.Event()
        self._lock = threading.Lock()

    def _before_call(self) -> None:
        with self._lock:
            hang = self.hang_next > 0
            if hang:
                self.hang_next -= 1
            error = self.fail_next.pop(0) if self.fail_next else None
        if hang:
            self.release.wait(timeout=5)
        if error is not None:
            raise error

    def fetch_aggregate_statistics(self, query: AggregateQuery) -> list[Datapoint]:
        self.aggregate_calls.append(query)
        result = list(self.datapoints)
        self._before_call()
        return result

    def fetch_grouped_series(self, query: GroupedQuery) -> list[Series]:
        self.grouped_calls.append(query)
        result = list(self.series)
        self._before_call()
        return result


class FixedClock:
    """Settable time source."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def wait_for(
    predicate: Callable[[], bool], timeout: float = 3.0, step: float = 0.01
) -> None:
    """Poll predicate until it holds or fail after timeout seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail(f"condition not met within {timeout}s")
        await asyncio.sleep(step)
