from __future__ import annotations

import pytest

from ember.application import EmberApp
from ember.controllers import Controller, PathParam, Template
from ember.dispatcher import attempt, is_truthy
from ember.exceptions import BadRequestError
from ember.templates import Templates
from ember.testing import TestClient
from tests.support import TEST_CONFIG


class Teapot(Exception):
    status = 418


def _app() -> EmberApp:
    return EmberApp(TEST_CONFIG, templates=Templates({"index.html": "<h1>Home</h1>"}, name="blog"))


@pytest.mark.asyncio
async def test_unknown_route_is_empty_404() -> None:
    async with TestClient(_app()) as client:
        response = await client.get("/completely/unknown")

    assert response.status == 404
    assert response.body == b""


@pytest.mark.asyncio
async def test_pipeline_runs_configure_before_invoke_after_in_order() -> None:
    app = _app()
    events: list[str] = []

    @app.controller
    class EventsController(Controller):
        def configure(self, environment: str) -> None:
            events.append(f"configure:{environment}")

        async def before(self) -> None:
            events.append("before")

        async def after(self) -> None:
            events.append("after")

        async def get_event(self, event_id: PathParam) -> dict[str, str]:
            events.append(f"invoke:{event_id}")
            return {"id": event_id}

    async with TestClient(app) as client:
        response = await client.get("/event/7")

    assert response.status == 200
    assert response.json() == {"id": "7"}
    assert events == ["configure:test", "before", "invoke:7", "after"]


@pytest.mark.asyncio
async def test_before_failure_short_circuits_operation() -> None:
    app = _app()
    invoked: list[bool] = []

    @app.controller
    class GuardedController(Controller):
        async def before(self) -> None:
            raise BadRequestError("Missing header")

        async def get_secret(self) -> str:
            invoked.append(True)
            return "secret"

    async with TestClient(app) as client:
        response = await client.get("/secret")

    assert response.status == 400
    assert response.json() == {"error": "Missing header"}
    assert invoked == []


@pytest.mark.asyncio
async def test_after_failure_replaces_result() -> None:
    app = _app()

    @app.controller
    class AfterController(Controller):
        async def after(self) -> None:
            raise Teapot("short and stout")

        async def get_tea(self) -> str:
            return "tea"

    async with TestClient(app) as client:
        response = await client.get("/tea")

    assert response.status == 418
    assert response.json() == {"error": "short and stout"}


@pytest.mark.asyncio
async def test_falsy_results_are_404_but_empty_collections_are_not() -> None:
    app = _app()

    @app.controller
    class ValuesController(Controller):
        async def get_nothing(self) -> None:
            return None

        async def get_zero(self) -> int:
            return 0

        async def get_empty_list(self) -> list[str]:
            return []

    async with TestClient(app) as client:
        nothing = await client.get("/nothing")
        zero = await client.get("/zero")
        empty = await client.get("/empty-list")

    assert (nothing.status, nothing.body) == (404, b"")
    assert (zero.status, zero.body) == (404, b"")
    assert empty.status == 200
    assert empty.json() == []


@pytest.mark.asyncio
async def test_unexpected_errors_become_500_without_traceback() -> None:
    app = _app()

    @app.controller
    class CrashController(Controller):
        async def get_crash(self) -> str:
            raise RuntimeError("boom")

    async with TestClient(app) as client:
        response = await client.get("/crash")

    assert response.status == 500
    assert response.json() == {"error": "boom"}


@pytest.mark.asyncio
async def test_request_values_come_from_body_then_query() -> None:
    app = _app()

    @app.controller
    class EchoController(Controller):
        async def create_echo(self, message) -> dict[str, str]:
            return {"message": message}

    async with TestClient(app) as client:
        from_body = await client.post("/echo", json={"message": "body"})
        from_query = await client.request("POST", "/echo", query={"message": "query"})

    assert from_body.json() == {"message": "body"}
    assert from_query.json() == {"message": "query"}


@pytest.mark.asyncio
async def test_malformed_json_body_is_bad_request() -> None:
    app = _app()

    @app.controller
    class EchoController(Controller):
        async def create_echo(self, message) -> dict[str, str]:
            return {"message": message}

    await app.startup()
    response = await app.dispatch(
        "POST", "/echo", headers={"content-type": "application/json"}, body=b"{not json"
    )

    assert response.status == 400
    assert response.json() == {"error": "Malformed JSON body"}


@pytest.mark.asyncio
async def test_view_routes_serve_template_and_shell() -> None:
    app = _app()

    @app.controller
    class PagesController(Controller):
        def view(self) -> Template:
            return self.template("index.html")

        def view_missing(self) -> Template:
            return self.template("missing.html")

    async with TestClient(app) as client:
        template = await client.get("/templates/index.html")
        shell = await client.get("/")
        missing = await client.get("/templates/missing.html")
        missing_shell = await client.get("/missing")

    assert template.status == 200
    assert template.body == b"<h1>Home</h1>"
    assert shell.status == 200
    assert shell.header("content-type").startswith("text/html")
    assert b"<title>blog</title>" in shell.body
    assert missing.status == 404
    assert missing_shell.status == 200


@pytest.mark.asyncio
async def test_attempt_captures_sync_and_async_failures() -> None:
    async def fails() -> None:
        raise ValueError("nope")

    ok = await attempt(lambda value: value * 2, 21)
    failed = await attempt(fails)

    assert ok.value == 42 and not ok.failed
    assert failed.failed and isinstance(failed.error, ValueError)


def test_truthiness_follows_json_semantics() -> None:
    assert not is_truthy(None)
    assert not is_truthy(False)
    assert not is_truthy(0)
    assert not is_truthy("")
    assert is_truthy([])
    assert is_truthy({})
    assert is_truthy("0")


@pytest.mark.asyncio
async def test_unencodable_results_become_500_envelope() -> None:
    app = _app()

    class Opaque:
        pass

    @app.controller
    class ThingController(Controller):
        async def get_thing(self) -> object:
            return Opaque()

    async with TestClient(app) as client:
        response = await client.get("/thing")

    assert response.status == 500
    assert set(response.json()) == {"error"}
