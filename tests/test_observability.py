from __future__ import annotations

import sys
import types
from typing import Any

import pytest

from ember.application import EmberApp
from ember.controllers import Controller
from ember.observability import Observability, ObservabilityConfig
from ember.testing import TestClient
from tests.support import TEST_CONFIG


class StubStatsd:
    def __init__(self) -> None:
        self.timings: list[tuple[str, float, list[str]]] = []
        self.increments: list[tuple[str, list[str]]] = []

    def timing(self, metric: str, value: float, tags: list[str] | None = None) -> None:
        self.timings.append((metric, value, list(tags or [])))

    def increment(self, metric: str, tags: list[str] | None = None) -> None:
        self.increments.append((metric, list(tags or [])))


@pytest.fixture
def statsd(monkeypatch: pytest.MonkeyPatch) -> StubStatsd:
    stub = StubStatsd()
    module = types.ModuleType("datadog")
    module.statsd = stub  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "datadog", module)
    return stub


def _observability() -> Observability:
    return Observability(
        ObservabilityConfig(opentelemetry_enabled=False, sentry_enabled=False, datadog_tags=(("service", "blog"),))
    )


def test_disabled_observability_is_inert() -> None:
    observability = Observability(ObservabilityConfig(enabled=False))

    assert not observability.enabled
    assert observability.on_request_start(object()) is None  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_requests_are_timed_with_status(statsd: StubStatsd) -> None:
    app = EmberApp(TEST_CONFIG, observability=_observability())

    @app.controller
    class PingController(Controller):
        async def get_ping(self) -> str:
            return "pong"

    async with TestClient(app) as client:
        await client.get("/ping")
        await client.get("/missing")

    assert [entry[0] for entry in statsd.timings] == ["ember.request.duration"] * 2
    assert "status:200" in statsd.timings[0][2]
    assert "status:404" in statsd.timings[1][2]
    assert "service:blog" in statsd.timings[0][2]
    assert "method:GET" in statsd.timings[0][2]


@pytest.mark.asyncio
async def test_middleware_failures_are_counted_and_reraised(statsd: StubStatsd) -> None:
    app = EmberApp(TEST_CONFIG, observability=_observability())

    async def broken(request: Any, handler: Any) -> Any:
        raise RuntimeError("middleware exploded")

    app.add_middleware(broken)

    async with TestClient(app) as client:
        with pytest.raises(RuntimeError):
            await client.get("/anything")

    assert statsd.increments == [("ember.request.errors", ["service:blog", "method:GET", "status:500"])]
