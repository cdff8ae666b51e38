"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from tests.helpers import FakeMetricsClient, FixedClock

from cloudwatch_poller.adapters.sinks.in_memory import InMemoryEventSink
from cloudwatch_poller.core.config import PollerConfig
from cloudwatch_poller.core.models import Datapoint

try:
    import httpx
except ImportError:
    httpx = None


@pytest.fixture
def make_config() -> Callable[..., PollerConfig]:
    """Factory fixture for PollerConfig with test defaults."""

    def _config(**overrides: Any) -> PollerConfig:
        settings: dict[str, Any] = {
            "tag": "cloudwatch.test",
            "namespace": "AWS/EC2",
            "metric_name": "CPUUtilization",
            "region": "us-east-1",
        }
        settings.update(overrides)
        return PollerConfig(**settings)

    return _config


@pytest.fixture
def fake_client() -> FakeMetricsClient:
    """Fake client returning one Average datapoint."""
    return FakeMetricsClient(
        datapoints=[Datapoint(timestamp=1_700_000_000.0, values={"average": 12.5})]
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def sink() -> InMemoryEventSink:
    """Fixture providing an empty in-memory sink."""
    return InMemoryEventSink()


@pytest.fixture
def records_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite sink tests."""
    return str(tmp_path / "records.db")


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(sink)
            async with asgi_test_client(app) as client:
                response = await client.get("/records")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
