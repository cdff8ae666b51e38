"""Event sink adapters implementing core ports."""

from cloudwatch_poller.adapters.sinks.in_memory import InMemoryEventSink
from cloudwatch_poller.adapters.sinks.ring_buffer import RingBufferEventSink
from cloudwatch_poller.adapters.sinks.sqlite import SQLiteEventSink
from cloudwatch_poller.adapters.sinks.stream import NDJSONStreamSink

__all__ = [
    "InMemoryEventSink",
    "NDJSONStreamSink",
    "RingBufferEventSink",
    "SQLiteEventSink",
]
