"""Integration tests for the ASGI /records and /health endpoints."""

import json

import pytest
from tests.helpers import FixedClock

from cloudwatch_poller.adapters.frameworks.asgi import create_asgi_app
from cloudwatch_poller.adapters.sinks.in_memory import InMemoryEventSink
from cloudwatch_poller.service import PollerService

pytestmark = [pytest.mark.asgi, pytest.mark.tier(2)]


@pytest.fixture
def filled_sink() -> InMemoryEventSink:
    sink = InMemoryEventSink()
    sink.emit("cloudwatch.test", 1000, {"CPUUtilization": 12.5})
    sink.emit("cloudwatch.test", 2000, {"CPUUtilization": 40.0})
    sink.emit("cloudwatch.test.log", 2000, {"level": "WARNING", "message": "x"})
    return sink


def _lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.strip().split("\n") if line]


class TestRecordsEndpoint:
    """Tests for the /records endpoint."""

    @pytest.mark.tra("Adapter.ASGI.RecordsEndpointHTTPStatus")
    async def test_records_returns_ndjson(self, filled_sink, asgi_test_client) -> None:
        app = create_asgi_app(filled_sink)

        async with asgi_test_client(app) as client:
            response = await client.get("/records")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/x-ndjson"
        assert _lines(response.text)[0] == {
            "tag": "cloudwatch.test",
            "timestamp": 1000,
            "record": {"CPUUtilization": 12.5},
        }
        assert len(_lines(response.text)) == 3

    async def test_since_filter(self, filled_sink, asgi_test_client) -> None:
        app = create_asgi_app(filled_sink)

        async with asgi_test_client(app) as client:
            response = await client.get("/records?since=1000")

        assert [r["timestamp"] for r in _lines(response.text)] == [2000, 2000]

    async def test_tag_filter(self, filled_sink, asgi_test_client) -> None:
        app = create_asgi_app(filled_sink)

        async with asgi_test_client(app) as client:
            response = await client.get("/records?tag=cloudwatch.test.log")

        assert [r["record"]["level"] for r in _lines(response.text)] == ["WARNING"]

    async def test_invalid_since_falls_back_to_all(
        self, filled_sink, asgi_test_client
    ) -> None:
        app = create_asgi_app(filled_sink)

        async with asgi_test_client(app) as client:
            response = await client.get("/records?since=yesterday")

        assert len(_lines(response.text)) == 3

    async def test_empty_sink_returns_empty_body(self, asgi_test_client) -> None:
        app = create_asgi_app(InMemoryEventSink())

        async with asgi_test_client(app) as client:
            response = await client.get("/records")

        assert response.status_code == 200
        assert response.text == ""

    async def test_read_failure_returns_500(self, asgi_test_client) -> None:
        class _BrokenSink(InMemoryEventSink):
            async def read(self, since=0, tag=None):
                raise RuntimeError("database is locked")
                yield

        app = create_asgi_app(_BrokenSink())

        async with asgi_test_client(app) as client:
            response = await client.get("/records")

        assert response.status_code == 500
        assert response.text == "Internal Server Error"


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    async def test_without_service_is_healthy(self, asgi_test_client) -> None:
        app = create_asgi_app(InMemoryEventSink())

        async with asgi_test_client(app) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"healthy": True}

    async def test_fresh_heartbeat_is_200(
        self, make_config, sink, clock: FixedClock, asgi_test_client
    ) -> None:
        service = PollerService(make_config(interval=60), sink, clock=clock)
        service.state.running = True
        service.state.last_heartbeat = clock.now - 30
        app = create_asgi_app(sink, service)

        async with asgi_test_client(app) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["healthy"] is True
        assert body["heartbeat_age"] == 30
        assert body["restarts"] == 0

    async def test_stale_heartbeat_is_503(
        self, make_config, sink, clock: FixedClock, asgi_test_client
    ) -> None:
        service = PollerService(make_config(interval=60), sink, clock=clock)
        service.state.running = True
        service.state.last_heartbeat = clock.now - 121
        app = create_asgi_app(sink, service)

        async with asgi_test_client(app) as client:
            response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["healthy"] is False

    async def test_stopped_service_is_503(
        self, make_config, sink, clock: FixedClock, asgi_test_client
    ) -> None:
        service = PollerService(make_config(), sink, clock=clock)
        app = create_asgi_app(sink, service)

        async with asgi_test_client(app) as client:
            response = await client.get("/health")

        assert response.status_code == 503


class TestUnknownPaths:
    async def test_unknown_path_returns_404(self, asgi_test_client) -> None:
        app = create_asgi_app(InMemoryEventSink())

        async with asgi_test_client(app) as client:
            response = await client.get("/metrics")

        assert response.status_code == 404
        assert response.text == "Not Found"
