"""Step definitions for poll cycle scenarios."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest
from pytest_bdd import given, parsers, then, when
from tests.helpers import FakeMetricsClient, FixedClock

from cloudwatch_poller.adapters.sinks.in_memory import InMemoryEventSink
from cloudwatch_poller.core.config import PollerConfig
from cloudwatch_poller.core.models import Datapoint, Series
from cloudwatch_poller.service import PollCycleState, PollerService, Watchdog


class _StubTask:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class PollScenarioContext:
    """Shared state between steps in a poll cycle scenario."""

    settings: dict[str, Any] = field(default_factory=dict)
    client: FakeMetricsClient = field(default_factory=FakeMetricsClient)
    sink: InMemoryEventSink = field(default_factory=InMemoryEventSink)
    clock: FixedClock = field(default_factory=FixedClock)
    state: PollCycleState = field(default_factory=PollCycleState)
    worker: _StubTask = field(default_factory=_StubTask)
    spawned: list[_StubTask] = field(default_factory=list)


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


@pytest.fixture
def ctx() -> PollScenarioContext:
    """Fresh scenario context for each test."""
    return PollScenarioContext()


# === Configuration ===
@given(
    parsers.parse(
        'a poller for "{namespace}" metric "{metric}" with statistic "{statistic}"'
    )
)
def step_poller(
    ctx: PollScenarioContext, namespace: str, metric: str, statistic: str
) -> None:
    ctx.settings.update(
        tag="cloudwatch.bdd",
        namespace=namespace,
        metric_name=metric,
        statistics=statistic,
        region="us-east-1",
    )


@given("emit_zero is enabled")
def step_emit_zero(ctx: PollScenarioContext) -> None:
    ctx.settings["emit_zero"] = True


@given(parsers.parse('record_attr "{attrs}"'))
def step_record_attr(ctx: PollScenarioContext, attrs: str) -> None:
    ctx.settings["record_attr"] = attrs


@given(parsers.parse('the poller groups by "{fields}"'))
def step_group_by(ctx: PollScenarioContext, fields: str) -> None:
    ctx.settings["group_by"] = fields


@given(parsers.parse("the poll interval is {seconds:d} seconds"))
def step_interval(ctx: PollScenarioContext, seconds: int) -> None:
    ctx.settings["interval"] = seconds


# === CloudWatch responses ===
@given(parsers.parse("CloudWatch returns Average {value:g} at {ts:d}"))
def step_one_datapoint(ctx: PollScenarioContext, value: float, ts: int) -> None:
    ctx.client.datapoints = [Datapoint(timestamp=ts, values={"average": value})]


@given(
    parsers.parse(
        "CloudWatch returns {stat1} {v1:g} at {ts1:d} and {stat2} {v2:g} at {ts2:d}"
    )
)
def step_two_datapoints(
    ctx: PollScenarioContext,
    stat1: str,
    v1: float,
    ts1: int,
    stat2: str,
    v2: float,
    ts2: int,
) -> None:
    ctx.client.datapoints = [
        Datapoint(timestamp=ts1, values={stat1.lower(): v1}),
        Datapoint(timestamp=ts2, values={stat2.lower(): v2}),
    ]


@given("CloudWatch returns no datapoints")
def step_no_datapoints(ctx: PollScenarioContext) -> None:
    ctx.client.datapoints = []


@given(
    parsers.parse(
        'CloudWatch returns series "{label}" with {v1:g} at {ts1:d} and {v2:g} at {ts2:d}'
    )
)
def step_series(
    ctx: PollScenarioContext, label: str, v1: float, ts1: int, v2: float, ts2: int
) -> None:
    ctx.client.series = [Series(label=label, timestamps=[ts1, ts2], values=[v1, v2])]


# === Heartbeat ===
@given(parsers.parse("the last heartbeat is {age:d} seconds old"))
def step_heartbeat_age(ctx: PollScenarioContext, age: int) -> None:
    ctx.state = PollCycleState(
        running=True, last_heartbeat=ctx.clock.now - age, worker=ctx.worker
    )


# === Actions ===
@when("one polling pass runs")
def step_run_pass(ctx: PollScenarioContext) -> None:
    service = PollerService(
        PollerConfig(**ctx.settings),
        ctx.sink,
        client_factory=lambda: ctx.client,
        clock=ctx.clock,
    )
    run_async(service.new_worker().run_pass(ctx.client))


@when("the watchdog checks the heartbeat")
def step_watchdog_check(ctx: PollScenarioContext) -> None:
    def spawn() -> _StubTask:
        task = _StubTask()
        ctx.spawned.append(task)
        return task

    watchdog = Watchdog(ctx.state, spawn, ctx.settings["interval"], clock=ctx.clock)
    run_async(watchdog.check())


# === Outcomes ===
@then(parsers.parse("{count:d} record is emitted"))
@then(parsers.parse("{count:d} records are emitted"))
def step_record_count(ctx: PollScenarioContext, count: int) -> None:
    assert len(ctx.sink.records) == count


@then("no records are emitted")
def step_no_records(ctx: PollScenarioContext) -> None:
    assert ctx.sink.records == []


@then(parsers.parse("the last record has timestamp {ts:d}"))
def step_last_timestamp(ctx: PollScenarioContext, ts: int) -> None:
    assert ctx.sink.records[-1].timestamp == ts


@then(parsers.parse('the last record has "{name}" equal to {value:g}'))
def step_last_number(ctx: PollScenarioContext, name: str, value: float) -> None:
    assert ctx.sink.records[-1].record[name] == value


@then(parsers.parse('the last record has "{name}" equal to "{value}"'))
def step_last_text(ctx: PollScenarioContext, name: str, value: str) -> None:
    assert ctx.sink.records[-1].record[name] == value


@then(parsers.parse('every record has "{name}" equal to "{value}"'))
def step_every_text(ctx: PollScenarioContext, name: str, value: str) -> None:
    assert all(r.record[name] == value for r in ctx.sink.records)


@then(parsers.parse('a warning containing "{text}" is logged'))
def step_warning_logged(caplog: pytest.LogCaptureFixture, text: str) -> None:
    assert any(
        r.levelname == "WARNING" and text in r.getMessage() for r in caplog.records
    )


@then("the worker is replaced once")
def step_replaced(ctx: PollScenarioContext) -> None:
    assert ctx.worker.cancelled is True
    assert ctx.state.restarts == 1
    assert ctx.state.worker is ctx.spawned[0]


@then("the worker is kept")
def step_kept(ctx: PollScenarioContext) -> None:
    assert ctx.worker.cancelled is False
    assert ctx.spawned == []
