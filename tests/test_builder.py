from __future__ import annotations

import pytest

from ember.builder import RouteBuilder, bind_parameters
from ember.controllers import (
    Controller,
    ControllerDefinition,
    OperationSpec,
    ParameterSource,
    PathParam,
    QueryParam,
    Template,
    route,
)
from ember.exceptions import ConfigurationError
from ember.routing import RouteKind


class ArticlesController(Controller):
    base_path_components = ("api",)

    async def get_articles(self) -> list[dict[str, str]]:
        return []

    async def get_article(self, article_id: PathParam) -> dict[str, str]:
        return {"id": article_id}

    async def create_article(self, title) -> dict[str, str]:
        return {"title": title}

    async def update_article(self, article_id: PathParam, title) -> dict[str, str]:
        return {"id": article_id, "title": title}

    async def delete_article(self, article_id: PathParam) -> None:
        return None

    async def search(self, term: QueryParam) -> list[str]:
        return [term]

    async def get_recent_articles(self) -> list[str]:
        return []

    @route("/api/articles/:id/comments/:commentId", verb="put")
    async def edit_comment(self, article_id: PathParam, comment_id: PathParam) -> dict[str, str]:
        return {"article": article_id, "comment": comment_id}


class PagesController(Controller):
    def view(self) -> Template:
        return self.template("index.html")

    def view_about(self) -> Template:
        return self.template("about.html")


def _routes(definition: ControllerDefinition) -> dict[str, tuple[str, str]]:
    builder = RouteBuilder(environment="test")
    return {
        route.operation.name: (route.verb, route.path)
        for route in builder.build(definition)
        if route.kind is RouteKind.DATA
    }


def test_verbs_and_paths_follow_operation_names() -> None:
    routes = _routes(ControllerDefinition.from_class(ArticlesController))

    assert routes["get_articles"] == ("GET", "/api/articles")
    assert routes["get_article"] == ("GET", "/api/article/:article_id")
    assert routes["create_article"] == ("POST", "/api/article")
    assert routes["update_article"] == ("PUT", "/api/article/:article_id")
    assert routes["delete_article"] == ("DELETE", "/api/article/:article_id")
    assert routes["search"] == ("GET", "/api/search")
    assert routes["get_recent_articles"] == ("GET", "/api/recent-articles")
    assert routes["edit_comment"] == ("PUT", "/api/articles/:id/comments/:commentId")


def test_explicit_path_binds_parameters_positionally() -> None:
    definition = ControllerDefinition.from_class(ArticlesController)
    builder = RouteBuilder(environment="test")
    [edit] = [route for route in builder.build(definition) if route.operation.name == "edit_comment"]

    assert [(binding.name, binding.key) for binding in edit.bindings] == [
        ("article_id", "id"),
        ("comment_id", "commentId"),
    ]


def test_unmarked_parameters_bind_to_request_values() -> None:
    definition = ControllerDefinition.from_class(ArticlesController)
    builder = RouteBuilder(environment="test")
    [update] = [route for route in builder.build(definition) if route.operation.name == "update_article"]
    [search] = [route for route in builder.build(definition) if route.operation.name == "search"]

    assert [binding.source for binding in update.bindings] == [ParameterSource.PATH, ParameterSource.REQUEST]
    assert search.bindings[0].source is ParameterSource.QUERY


def test_placeholder_count_mismatch_fails_at_build_time() -> None:
    async def handler(controller, first: PathParam) -> None:
        return None

    definition = ControllerDefinition(name="Broken")
    operation = definition.add_operation(OperationSpec.explicit_route("broken", "/a/:x/:y", handler))

    with pytest.raises(ConfigurationError):
        bind_parameters(definition, operation, "/a/:x/:y")
    with pytest.raises(ConfigurationError):
        RouteBuilder().build(definition)


def test_view_operations_emit_template_and_shell_routes() -> None:
    definition = ControllerDefinition.from_class(PagesController)
    routes = RouteBuilder(environment="test").build(definition)

    described = {(route.kind, route.path) for route in routes}
    assert described == {
        (RouteKind.TEMPLATE, "/templates/index.html"),
        (RouteKind.SHELL, "/"),
        (RouteKind.TEMPLATE, "/templates/about.html"),
        (RouteKind.SHELL, "/about"),
    }
    assert all(route.verb == "GET" for route in routes)


def test_view_operations_must_return_templates_synchronously() -> None:
    class AsyncView(Controller):
        async def view(self) -> Template:
            return Template("index.html")

    class WrongView(Controller):
        def view(self) -> Template:
            return "index.html"  # type: ignore[return-value]

    with pytest.raises(ConfigurationError):
        RouteBuilder().build(ControllerDefinition.from_class(AsyncView))
    with pytest.raises(ConfigurationError):
        RouteBuilder().build(ControllerDefinition.from_class(WrongView))
