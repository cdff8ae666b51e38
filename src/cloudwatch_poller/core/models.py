"""Core domain models for polled CloudWatch data."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MetricSpec:
    """One configured metric to poll.

    Attributes:
        name: CloudWatch metric name (e.g., CPUUtilization).
        statistic: Statistic token, long (Average) or short (AVG) form.
    """

    name: str
    statistic: str


@dataclass(frozen=True)
class Dimension:
    """A dimension filter pair for aggregate queries."""

    name: str
    value: str

    def to_api(self) -> dict[str, str]:
        """Return the dimension in CloudWatch request shape."""
        return {"Name": self.name, "Value": self.value}


@dataclass(frozen=True)
class Datapoint:
    """A single aggregate datapoint.

    Attributes:
        timestamp: Unix timestamp in seconds.
        values: Statistic values keyed by lower-cased long statistic name
                (e.g., "average", "samplecount").
    """

    timestamp: float
    values: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class Series:
    """One labeled series returned by a grouped query."""

    label: str
    timestamps: list[float] = field(default_factory=list)
    values: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class AggregateQuery:
    """A GetMetricStatistics request for a single metric."""

    namespace: str
    metric_name: str
    statistic: str
    dimensions: tuple[Dimension, ...]
    start_time: float
    end_time: float
    period: int


@dataclass(frozen=True)
class GroupedQuery:
    """A GetMetricData expression query for a single metric."""

    query_id: str
    metric_name: str
    expression: str
    start_time: float
    end_time: float
    period: int


@dataclass(frozen=True)
class EmittedRecord:
    """A record handed to an event sink.

    Attributes:
        tag: Routing tag of the emitting service.
        timestamp: Unix timestamp in seconds.
        record: Field mapping, including static record attributes.
    """

    tag: str
    timestamp: int
    record: dict[str, Any] = field(default_factory=dict)
