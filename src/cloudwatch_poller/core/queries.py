"""Query construction for aggregate and grouped polling modes."""

import re
import time
from collections.abc import Callable, Sequence

from cloudwatch_poller.core.models import (
    AggregateQuery,
    Dimension,
    GroupedQuery,
    MetricSpec,
)
from cloudwatch_poller.core.statistics import to_long_form, to_short_form

# Aggregate queries look back this many periods.
AGGREGATE_WINDOW_PERIODS = 10

_INVALID_ID_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def query_id(metric_name: str) -> str:
    """Return a GetMetricData query id for a metric name.

    Ids must start with a lower-case letter and contain only
    letters, digits and underscores.
    """
    return "id_" + _INVALID_ID_CHARS.sub("_", metric_name)


def select_expression(
    code: str, metric_name: str, namespace: str, group_by: str
) -> str:
    """Render a metric insights SELECT ... GROUP BY expression."""
    return f'SELECT {code}({metric_name}) FROM "{namespace}" GROUP BY {group_by}'


class MetricQueryBuilder:
    """Builds one query per metric spec.

    The window end is ``clock() - offset``, computed once per call, so
    upstream publication delay can be tolerated with a static offset.
    """

    def __init__(
        self,
        namespace: str,
        period: int,
        dimensions: Sequence[Dimension] = (),
        group_by: str | None = None,
        offset: float = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.namespace = namespace
        self.period = period
        self.dimensions = tuple(dimensions)
        self.group_by = group_by
        self.offset = offset
        self._clock = clock

    @property
    def grouped(self) -> bool:
        return bool(self.group_by)

    def _now(self) -> float:
        return self._clock() - self.offset

    def build_aggregate(self, spec: MetricSpec) -> AggregateQuery:
        """Build a statistics query over the last ten periods."""
        now = self._now()
        return AggregateQuery(
            namespace=self.namespace,
            metric_name=spec.name,
            statistic=to_long_form(spec.statistic),
            dimensions=self.dimensions,
            start_time=now - self.period * AGGREGATE_WINDOW_PERIODS,
            end_time=now,
            period=self.period,
        )

    def build_grouped(self, spec: MetricSpec) -> GroupedQuery:
        """Build a GROUP BY expression query over the last period."""
        if not self.group_by:
            raise ValueError("grouped queries need group_by")
        now = self._now()
        return GroupedQuery(
            query_id=query_id(spec.name),
            metric_name=spec.name,
            expression=select_expression(
                to_short_form(spec.statistic), spec.name, self.namespace, self.group_by
            ),
            start_time=now - self.period,
            end_time=now,
            period=self.period,
        )

    def build(self, spec: MetricSpec) -> AggregateQuery | GroupedQuery:
        """Build the query for the configured mode."""
        if self.grouped:
            return self.build_grouped(spec)
        return self.build_aggregate(spec)
