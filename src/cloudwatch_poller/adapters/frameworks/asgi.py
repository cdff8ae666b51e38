"""ASGI app for inspecting a running poller.

The app is framework-agnostic and can be served by any ASGI server
(uvicorn, hypercorn, daphne):

    /records              - NDJSON of stored records
    /records?since=<ts>   - records with timestamp > ts
    /records?tag=<tag>    - records for one tag
    /health               - poller liveness as JSON
"""

import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from cloudwatch_poller.adapters.frameworks.query_params import (
    _parse_since_param,
    _parse_tag_param,
)
from cloudwatch_poller.core.encoding.ndjson import encode_records_async
from cloudwatch_poller.core.ports import ReadableEventSinkPort
from cloudwatch_poller.service import PollerService

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary."""
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body."""
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


def create_asgi_app(
    sink: ReadableEventSinkPort,
    service: PollerService | None = None,
) -> ASGIApp:
    """Create an ASGI app with /records and /health endpoints.

    Args:
        sink: Event sink whose stored records are served.
        service: Poller whose liveness /health reports. Without one,
                 /health always answers 200.

    Returns:
        ASGI application callable.
    """

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]

        if path == "/records":
            params = _parse_query_params(scope)
            since = _parse_since_param(params)
            tag = _parse_tag_param(params)
            try:
                body = await encode_records_async(sink.read(since=since, tag=tag))
            except Exception:
                logger.exception("Error encoding records endpoint")
                await _send_response(
                    send, 500, "text/plain", "Internal Server Error"
                )
                return
            await _send_response(send, 200, "application/x-ndjson", body)
        elif path == "/health":
            if service is None:
                status, payload = 200, {"healthy": True}
            else:
                payload = service.health()
                status = 200 if payload["healthy"] else 503
            await _send_response(send, status, "application/json", json.dumps(payload))
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
