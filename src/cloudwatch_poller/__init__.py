"""cloudwatch_poller - poll CloudWatch metrics into an event pipeline."""

from cloudwatch_poller.adapters.logging import SinkLogHandler
from cloudwatch_poller.adapters.sinks import (
    InMemoryEventSink,
    NDJSONStreamSink,
    RingBufferEventSink,
    SQLiteEventSink,
)
from cloudwatch_poller.core.config import PollerConfig, load_config
from cloudwatch_poller.core.errors import ConfigError, PollerError
from cloudwatch_poller.core.models import (
    AggregateQuery,
    Datapoint,
    Dimension,
    EmittedRecord,
    GroupedQuery,
    MetricSpec,
    Series,
)
from cloudwatch_poller.core.ports import (
    BufferedEventSinkPort,
    EventSinkPort,
    MetricsClientPort,
    ReadableEventSinkPort,
)
from cloudwatch_poller.service import PollerService

__all__ = [
    # Models
    "AggregateQuery",
    "Datapoint",
    "Dimension",
    "EmittedRecord",
    "GroupedQuery",
    "MetricSpec",
    "Series",
    # Ports
    "BufferedEventSinkPort",
    "EventSinkPort",
    "MetricsClientPort",
    "ReadableEventSinkPort",
    # Configuration
    "ConfigError",
    "PollerConfig",
    "PollerError",
    "load_config",
    # Sinks
    "InMemoryEventSink",
    "NDJSONStreamSink",
    "RingBufferEventSink",
    "SQLiteEventSink",
    # Service
    "PollerService",
    "SinkLogHandler",
]
