from __future__ import annotations

import pytest

from ember.exceptions import ConfigurationError
from ember.routing import Route, RouteKind, Router, compile_path, placeholder_names


def test_router_matches_path_parameters() -> None:
    router = Router()
    route = router.add(Route(verb="GET", path="/api/Users/:id"))

    match = router.find("GET", "/api/Users/123")

    assert match.route is route
    assert match.params == {"id": "123"}


def test_router_scopes_routes_by_verb() -> None:
    router = Router()
    router.add(Route(verb="GET", path="/items"))

    with pytest.raises(LookupError):
        router.find("POST", "/items")


def test_static_route_wins_over_placeholder_regardless_of_order() -> None:
    router = Router()
    dynamic = router.add(Route(verb="GET", path="/api/Users/:id"))
    static = router.add(Route(verb="GET", path="/api/Users/me"))

    assert router.find("GET", "/api/Users/me").route is static
    assert router.find("GET", "/api/Users/42").route is dynamic


def test_placeholders_do_not_match_across_segments() -> None:
    router = Router()
    router.add(Route(verb="PUT", path="/api/Collections/:id/apps/:associationID"))

    match = router.find("PUT", "/api/Collections/c1/apps/a9")

    assert match.params == {"id": "c1", "associationID": "a9"}
    with pytest.raises(LookupError):
        router.find("PUT", "/api/Collections/c1/apps")
    with pytest.raises(LookupError):
        router.find("PUT", "/api/Collections/c1/apps/a9/extra")


def test_duplicate_routes_are_rejected_even_with_different_placeholder_names() -> None:
    router = Router()
    router.add(Route(verb="GET", path="/api/Posts/:id"))

    with pytest.raises(ConfigurationError):
        router.add(Route(verb="get", path="/api/Posts/:postId"))
    assert router.has("GET", "/api/Posts/:other")
    assert not router.has("PUT", "/api/Posts/:id")


def test_literal_segments_are_escaped() -> None:
    pattern, names = compile_path("/scripts/fire-models.js")

    assert names == ()
    assert pattern.match("/scripts/fire-models.js") is not None
    assert pattern.match("/scripts/fire-modelsXjs") is None


def test_placeholder_names_keep_declaration_order() -> None:
    assert placeholder_names("/a/:first/b/:second") == ("first", "second")
    with pytest.raises(ConfigurationError):
        placeholder_names("/a/:1bad")


def test_paths_must_be_absolute_and_unique() -> None:
    with pytest.raises(ConfigurationError):
        Route(verb="GET", path="relative")
    with pytest.raises(ConfigurationError):
        Route(verb="GET", path="/a/:id/:id")


def test_unknown_verbs_are_rejected() -> None:
    with pytest.raises(ValueError):
        Route(verb="FETCH", path="/")


def test_raw_endpoints_and_iteration() -> None:
    router = Router()

    async def endpoint(request):  # pragma: no cover - never dispatched here
        raise AssertionError

    route = router.add_endpoint("GET", "/health", endpoint)

    assert route.kind is RouteKind.RAW
    assert list(router) == [route]
    assert len(router) == 1
    assert "GET" in route.describe() and "/health" in route.describe()
