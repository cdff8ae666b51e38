"""NDJSON encoder for emitted records."""

import json
from collections.abc import AsyncIterable, Iterable

from cloudwatch_poller.core.models import EmittedRecord


def encode_record(record: EmittedRecord) -> str:
    """Encode one record as a JSON object line (without newline)."""
    obj = {
        "tag": record.tag,
        "timestamp": record.timestamp,
        "record": record.record,
    }
    return json.dumps(obj, default=str)


def encode_records(records: Iterable[EmittedRecord]) -> str:
    """Encode records to newline-delimited JSON.

    Args:
        records: An iterable of EmittedRecord objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no records.
    """
    lines = [encode_record(record) for record in records]

    if not lines:
        return ""

    return "\n".join(lines) + "\n"


async def encode_records_async(records: AsyncIterable[EmittedRecord]) -> str:
    """Encode an async iterable of records to newline-delimited JSON."""
    return encode_records([record async for record in records])
