"""Turns query results into sink emissions."""

import logging
from collections.abc import Sequence
from typing import Any

from cloudwatch_poller.core.models import (
    AggregateQuery,
    Datapoint,
    GroupedQuery,
    Series,
)
from cloudwatch_poller.core.ports import EventSinkPort
from cloudwatch_poller.core.statistics import value_key

logger = logging.getLogger(__name__)


def group_fields(group_by_fields: Sequence[str], label: str) -> dict[str, str]:
    """Pair GROUP BY field names with the whitespace tokens of a series label.

    A label whose token count differs from the field count is logged and
    paired up to the shorter side.
    """
    tokens = label.split()
    if len(tokens) != len(group_by_fields):
        logger.warning(
            "series label %r has %d tokens for %d group_by fields %s",
            label,
            len(tokens),
            len(group_by_fields),
            list(group_by_fields),
        )
    return dict(zip(group_by_fields, tokens))


class ResultEmitter:
    """Emits records for query results, applying the empty-result policy.

    Args:
        sink: Event sink receiving emit(tag, timestamp, record) calls.
        tag: Tag for every emitted record.
        record_attr: Static attributes merged into every record.
        emit_zero: Emit a zero value when a query returns no data.
        group_by_fields: Field names for labels of grouped series.
    """

    def __init__(
        self,
        sink: EventSinkPort,
        tag: str,
        record_attr: dict[str, Any] | None = None,
        emit_zero: bool = False,
        group_by_fields: Sequence[str] = (),
    ) -> None:
        self.sink = sink
        self.tag = tag
        self.record_attr = dict(record_attr or {})
        self.emit_zero = emit_zero
        self.group_by_fields = list(group_by_fields)

    def _emit(self, timestamp: float, fields: dict[str, Any]) -> None:
        self.sink.emit(self.tag, int(timestamp), {**fields, **self.record_attr})

    def _emit_empty(self, metric_name: str, now: float, description: str) -> int:
        if self.emit_zero:
            self._emit(now, {metric_name: 0})
            return 1
        logger.warning("%s: no datapoints", description)
        return 0

    def emit_statistics(
        self, query: AggregateQuery, datapoints: Sequence[Datapoint]
    ) -> int:
        """Emit the latest datapoint of an aggregate query.

        Returns:
            Number of records emitted.
        """
        key = value_key(query.statistic)
        usable = [d for d in datapoints if key in d.values]
        if not usable:
            return self._emit_empty(
                query.metric_name,
                query.end_time,
                f"{query.namespace} {query.metric_name} {query.statistic} "
                f"{[d.to_api() for d in query.dimensions]}",
            )
        latest = sorted(usable, key=lambda d: d.timestamp)[-1]
        self._emit(latest.timestamp, {query.metric_name: latest.values[key]})
        return 1

    def emit_series(self, query: GroupedQuery, series: Sequence[Series]) -> int:
        """Emit every point of every series of a grouped query.

        Returns:
            Number of records emitted.
        """
        if not series:
            return self._emit_empty(query.metric_name, query.end_time, query.expression)
        count = 0
        for result in series:
            labels = group_fields(self.group_by_fields, result.label)
            for timestamp, value in zip(result.timestamps, result.values):
                self._emit(timestamp, {query.metric_name: value, **labels})
                count += 1
        return count
