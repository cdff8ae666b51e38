"""Example ASGI app serving the records of a running poller.

Run with:
    uvicorn examples.asgi_example:app

Endpoints:
    /records              - NDJSON of all stored records
    /records?since=<ts>   - records with timestamp > ts (incremental)
    /records?tag=<tag>    - records for one tag, e.g. cloudwatch.ec2.log
    /health               - 200 while the worker heartbeat is fresh, 503 otherwise

The poller is started and stopped through the ASGI lifespan protocol.
"""

import logging
from pathlib import Path

from cloudwatch_poller import PollerService, SinkLogHandler, load_config
from cloudwatch_poller.adapters.frameworks.asgi import create_asgi_app
from cloudwatch_poller.adapters.sinks import SQLiteEventSink

logging.basicConfig(level=logging.INFO)

config = load_config(Path(__file__).with_name("ec2.toml"))
sink = SQLiteEventSink("records.db")
service = PollerService(config, sink)

# Warnings about empty results and restarts are stored next to the records
logging.getLogger("cloudwatch_poller").addHandler(
    SinkLogHandler(sink, tag=f"{config.tag}.log")
)

records_app = create_asgi_app(sink, service)


async def app(scope, receive, send) -> None:
    if scope["type"] != "lifespan":
        await records_app(scope, receive, send)
        return
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await service.start()
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await service.shutdown()
            await send({"type": "lifespan.shutdown.complete"})
            return
