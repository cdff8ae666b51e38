"""Encoders for emitted records."""

from cloudwatch_poller.core.encoding.ndjson import (
    encode_record,
    encode_records,
    encode_records_async,
)

__all__ = ["encode_record", "encode_records", "encode_records_async"]
