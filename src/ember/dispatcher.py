"""Request-time engine: match, instantiate, run hooks, invoke, respond."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from .controllers import ControllerContext, ParameterBinding, ParameterSource
from .exceptions import ConfigurationError, HTTPError, error_status
from .http import Status, reason_phrase
from .requests import Request
from .responses import (
    EmptyResponse,
    HTMLResponse,
    JSONResponse,
    Response,
    error_response,
    exception_to_response,
)
from .routing import Route, RouteKind, Router

if TYPE_CHECKING:
    from .models import Models
    from .templates import Templates

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Outcome:
    """Result of one pipeline stage: a value, or the failure that ends the pipeline."""

    value: Any = None
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


async def attempt(stage: Callable[..., Any], *args: Any) -> Outcome:
    """Run ``stage`` (sync or async) and capture its value or failure."""

    try:
        result = stage(*args)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        return Outcome(error=exc)
    return Outcome(value=result)


def is_truthy(value: Any) -> bool:
    """JSON-object truthiness: empty containers still count as a result."""

    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (str, bytes)):
        return len(value) > 0
    return True


class Dispatcher:
    def __init__(
        self,
        router: Router,
        *,
        models: "Models | None",
        templates: "Templates",
        environment: str,
    ) -> None:
        self.router = router
        self.models = models
        self.templates = templates
        self.environment = environment

    async def handle(self, request: Request) -> Response:
        try:
            match = self.router.find(request.method, request.path)
        except LookupError:
            logger.debug("No route for %s %s", request.method, request.path)
            return EmptyResponse(int(Status.NOT_FOUND))
        request.path_params = dict(match.params)
        route = match.route
        if route.kind is RouteKind.RAW:
            assert route.endpoint is not None
            return await route.endpoint(request)
        if route.kind is RouteKind.TEMPLATE:
            return self._template_response(route)
        if route.kind is RouteKind.SHELL:
            return HTMLResponse(self.templates.render_shell())
        return await self._run_operation(route, request)

    def _template_response(self, route: Route) -> Response:
        assert route.template is not None
        html = self.templates.template(route.template.name)
        if html is None:
            return EmptyResponse(int(Status.NOT_FOUND))
        return HTMLResponse(html)

    async def _run_operation(self, route: Route, request: Request) -> Response:
        assert route.definition is not None and route.operation is not None
        logger.debug("dispatch %s %s -> %s.%s", request.method, request.path, route.definition.name, route.operation.name)
        outcome = await attempt(self._instantiate, route, request)
        if outcome.failed:
            return await self._respond(outcome)
        controller, context = outcome.value
        outcome = await attempt(_call_hook, controller, "before")
        if not outcome.failed:
            outcome = await attempt(self._invoke, route, controller, context, request)
        if not outcome.failed:
            after = await attempt(_call_hook, controller, "after")
            if after.failed:
                outcome = after
        return await self._respond(outcome)

    async def _instantiate(self, route: Route, request: Request) -> tuple[Any, ControllerContext]:
        assert route.definition is not None
        body = await request.json()
        context = ControllerContext(
            models=self.models,
            request=request,
            environment=self.environment,
            templates=self.templates,
            body=body,
            query=request.query_map(),
        )
        controller = route.definition.factory(context)
        await _call_hook(controller, "configure", self.environment)
        return controller, context

    async def _invoke(self, route: Route, controller: Any, context: ControllerContext, request: Request) -> Any:
        assert route.operation is not None
        arguments = [_resolve(binding, request, context) for binding in route.bindings]
        result = route.operation.handler(controller, *arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _respond(self, outcome: Outcome) -> Response:
        if outcome.failed:
            return self._failure_response(outcome.error)
        value = outcome.value
        if isinstance(value, Response):
            return value
        if not is_truthy(value):
            return EmptyResponse(int(Status.NOT_FOUND))
        encoded = await attempt(JSONResponse, value)
        if encoded.failed:
            return self._failure_response(encoded.error)
        return encoded.value

    def _failure_response(self, error: BaseException | None) -> Response:
        assert error is not None
        if isinstance(error, HTTPError):
            logger.debug("Request failed with %s: %s", error.status, error.message)
            return exception_to_response(error)
        status = error_status(error)
        if status >= 500 or isinstance(error, ConfigurationError):
            logger.exception("Unhandled error while serving request", exc_info=error)
        message = str(error) or reason_phrase(status)
        return error_response(status, message)


async def _call_hook(controller: Any, name: str, *args: Any) -> None:
    hook = getattr(controller, name, None)
    if hook is None:
        return
    result = hook(*args)
    if inspect.isawaitable(result):
        await result


def _resolve(binding: ParameterBinding, request: Request, context: ControllerContext) -> Any:
    body = context.body
    query = context.query
    if binding.source is ParameterSource.PATH:
        return request.path_params.get(binding.key)
    if binding.source is ParameterSource.QUERY:
        return query.get(binding.key)
    if binding.source is ParameterSource.BODY:
        return body.get(binding.key) if isinstance(body, Mapping) else None
    if isinstance(body, Mapping) and binding.key in body:
        return body[binding.key]
    return query.get(binding.key)


__all__ = ["Dispatcher", "Outcome", "attempt", "is_truthy"]
