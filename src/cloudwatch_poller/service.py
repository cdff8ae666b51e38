"""Self-supervising polling service.

Two asyncio tasks run for the lifetime of a PollerService:

- a PollWorker, which polls every configured metric once per interval and
  writes a heartbeat after each completed pass;
- a Watchdog, which checks the heartbeat every half interval and replaces
  the worker when no pass has completed for two intervals.

Blocking SDK calls run in threads via asyncio.to_thread, so cancelling a
worker abandons an in-flight call without emitting its result. The shared
lock guards only the heartbeat, the worker handle and the restart counter,
and is never held across a network call.
"""

import asyncio
import functools
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from cloudwatch_poller.core.config import PollerConfig
from cloudwatch_poller.core.emitter import ResultEmitter
from cloudwatch_poller.core.models import GroupedQuery, MetricSpec
from cloudwatch_poller.core.ports import (
    BufferedEventSinkPort,
    EventSinkPort,
    MetricsClientPort,
)
from cloudwatch_poller.core.queries import MetricQueryBuilder

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], MetricsClientPort]


@dataclass
class PollCycleState:
    """State shared by the worker and the watchdog.

    Attributes:
        running: Cleared on shutdown; both loops exit when it is False.
        last_heartbeat: Time of the last completed pass (or last restart).
        worker: Task of the current PollWorker.
        restarts: Number of worker replacements made by the watchdog.
        lock: Guards last_heartbeat, worker and restarts.
    """

    running: bool = False
    last_heartbeat: float = 0.0
    worker: "asyncio.Task[None] | None" = None
    restarts: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class PollWorker:
    """Runs polling passes on a fixed cadence.

    Args:
        state: Shared state receiving heartbeats.
        client_factory: Builds the metrics client when the worker starts.
        builder: Query builder; its mode fixes the worker's loop mode.
        emitter: Result emitter writing to the sink.
        specs: Metrics polled on every pass, in order.
        interval: Seconds between the starts of two passes.
        delayed_start: Sleep uniform[0, interval) before the first pass.
        tick: Sleep granularity of the wait loop.
        clock: Time source for the cadence and heartbeats.
        rand: Source of uniform [0, 1) values for the startup delay.
    """

    def __init__(
        self,
        state: PollCycleState,
        client_factory: ClientFactory,
        builder: MetricQueryBuilder,
        emitter: ResultEmitter,
        specs: list[MetricSpec],
        interval: float,
        delayed_start: bool = False,
        tick: float = 1.0,
        clock: Callable[[], float] = time.time,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self._state = state
        self._client_factory = client_factory
        self._builder = builder
        self._emitter = emitter
        self.specs = list(specs)
        self.interval = interval
        self.delayed_start = delayed_start
        self.tick = tick
        self._clock = clock
        self._rand = rand

    def startup_delay(self) -> float:
        """Seconds to wait before the first pass."""
        if not self.delayed_start:
            return 0.0
        return self._rand() * self.interval

    async def run(self) -> None:
        """Poll until the state stops running or the task is cancelled."""
        logger.debug("poll worker starting")
        delay = self.startup_delay()
        if delay:
            logger.debug("delay at start %.3f sec", delay)
            await asyncio.sleep(delay)

        client = await asyncio.to_thread(self._client_factory)

        started = self._clock()
        await self.run_pass(client)
        while self._state.running:
            now = self._clock()
            await asyncio.sleep(self.tick)
            if now - started >= self.interval:
                started = now
                await self.run_pass(client)
        logger.debug("poll worker stopped")

    async def run_pass(self, client: MetricsClientPort) -> int:
        """Query and emit every configured metric, then record a heartbeat.

        Client errors propagate and end the worker.

        Returns:
            Number of records emitted.
        """
        emitted = 0
        for spec in self.specs:
            query = self._builder.build(spec)
            if isinstance(query, GroupedQuery):
                series = await asyncio.to_thread(client.fetch_grouped_series, query)
                emitted += self._emitter.emit_series(query, series)
            else:
                datapoints = await asyncio.to_thread(
                    client.fetch_aggregate_statistics, query
                )
                emitted += self._emitter.emit_statistics(query, datapoints)

        sink = self._emitter.sink
        if isinstance(sink, BufferedEventSinkPort):
            await sink.flush()

        async with self._state.lock:
            self._state.last_heartbeat = max(self._state.last_heartbeat, self._clock())
        logger.debug("pass complete: %d records", emitted)
        return emitted


class Watchdog:
    """Replaces the worker when its heartbeat goes stale.

    Args:
        state: Shared state holding the heartbeat and worker handle.
        spawn_worker: Starts a new worker task and returns it.
        interval: Polling interval; checks run every interval / 2 and a
            heartbeat older than 2 * interval is stale.
        clock: Time source, the same one the worker uses.
    """

    def __init__(
        self,
        state: PollCycleState,
        spawn_worker: Callable[[], "asyncio.Task[None]"],
        interval: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._spawn_worker = spawn_worker
        self.interval = interval
        self._clock = clock

    async def run(self) -> None:
        logger.debug("watchdog starting")
        while self._state.running:
            await asyncio.sleep(self.interval / 2)
            await self.check()

    async def check(self) -> bool:
        """Restart the worker if its heartbeat is stale.

        Returns:
            True if the worker was replaced.
        """
        async with self._state.lock:
            if not self._state.running:
                return False
            now = self._clock()
            last = self._state.last_heartbeat
            logger.debug("last heartbeat at %.3f", last)
            if now - last <= self.interval * 2:
                return False
            logger.warning(
                "poll worker has not completed a pass since %.3f. Restarting...", last
            )
            if self._state.worker is not None:
                self._state.worker.cancel()
            self._state.last_heartbeat = now
            self._state.restarts += 1
            self._state.worker = self._spawn_worker()
            return True


class PollerService:
    """Polls CloudWatch per a PollerConfig and emits records to a sink.

    Example:
        ```python
        sink = SQLiteEventSink("records.db")
        async with PollerService(config, sink):
            await stop_event.wait()
        ```
    """

    def __init__(
        self,
        config: PollerConfig,
        sink: EventSinkPort,
        client_factory: ClientFactory | None = None,
        *,
        tick: float = 1.0,
        clock: Callable[[], float] = time.time,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.config = config
        self.sink = sink
        if client_factory is None:
            from cloudwatch_poller.adapters.cloudwatch import create_cloudwatch_client

            client_factory = functools.partial(create_cloudwatch_client, config)
        self._client_factory = client_factory
        self._tick = tick
        self._clock = clock
        self._rand = rand
        self.state = PollCycleState()
        self.builder = MetricQueryBuilder(
            namespace=config.namespace,
            period=config.period,
            dimensions=config.dimensions,
            group_by=config.group_by,
            offset=config.offset,
            clock=clock,
        )
        self.emitter = ResultEmitter(
            sink,
            tag=config.tag,
            record_attr=config.record_attr,
            emit_zero=config.emit_zero,
            group_by_fields=config.group_by_fields,
        )
        self._workers: set[asyncio.Task[None]] = set()
        self._watchdog: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self.state.running

    def new_worker(self, delayed_start: bool = False) -> PollWorker:
        return PollWorker(
            self.state,
            self._client_factory,
            self.builder,
            self.emitter,
            self.config.metric_specs,
            self.config.interval,
            delayed_start=delayed_start,
            tick=self._tick,
            clock=self._clock,
            rand=self._rand,
        )

    def _spawn_worker(self, initial: bool = False) -> "asyncio.Task[None]":
        """Start a worker task.

        Only the initial worker honours delayed_start; replacements poll at once.
        """
        name = f"poll-worker-{self.state.restarts}"
        worker = self.new_worker(delayed_start=initial and self.config.delayed_start)
        task = asyncio.create_task(worker.run(), name=name)
        self._workers.add(task)
        task.add_done_callback(self._on_worker_done)
        return task

    def _on_worker_done(self, task: "asyncio.Task[None]") -> None:
        self._workers.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "%s failed; waiting for the watchdog to restart it",
                task.get_name(),
                exc_info=exc,
            )

    async def start(self) -> None:
        """Start the worker and the watchdog. No-op if already running."""
        if self.state.running:
            return
        logger.info(
            "starting poller %s (%s mode, interval=%ss)",
            self.config.tag,
            "grouped" if self.config.grouped else "aggregate",
            self.config.interval,
        )
        async with self.state.lock:
            self.state.running = True
            self.state.last_heartbeat = self._clock()
            self.state.worker = self._spawn_worker(initial=True)
        watchdog = Watchdog(
            self.state, self._spawn_worker, self.config.interval, clock=self._clock
        )
        self._watchdog = asyncio.create_task(watchdog.run(), name="poll-watchdog")

    async def shutdown(self) -> None:
        """Stop both loops and wait for every worker task to finish."""
        if not self.state.running:
            return
        self.state.running = False
        tasks = [t for t in (self._watchdog, *self._workers) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._watchdog = None
        if isinstance(self.sink, BufferedEventSinkPort):
            await self.sink.flush()
        logger.info("poller %s stopped", self.config.tag)

    async def __aenter__(self) -> "PollerService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    def health(self) -> dict[str, Any]:
        """Snapshot of liveness for health endpoints."""
        now = self._clock()
        age = now - self.state.last_heartbeat
        return {
            "running": self.state.running,
            "last_heartbeat": self.state.last_heartbeat,
            "heartbeat_age": age,
            "restarts": self.state.restarts,
            "healthy": self.state.running and age <= self.config.interval * 2,
        }
