"""Turn controller definitions into routes."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

from .controllers import (
    ControllerContext,
    ControllerDefinition,
    OperationSpec,
    ParameterBinding,
    ParameterSource,
    Template,
)
from .exceptions import ConfigurationError
from .routing import Route, RouteKind, placeholder_names

if TYPE_CHECKING:
    from .models import Models

logger = logging.getLogger(__name__)

TEMPLATE_PATH_PREFIX = "/templates"


class RouteBuilder:
    """Derive verbs, paths and parameter bindings for every operation of a definition.

    View operations are invoked once, here, on a build-time controller to learn
    which template they return.
    """

    def __init__(self, *, environment: str = "development", models: "Models | None" = None) -> None:
        self.environment = environment
        self.models = models

    def build(self, definition: ControllerDefinition) -> list[Route]:
        routes: list[Route] = []
        for operation in definition.operations.values():
            if operation.is_view:
                routes.extend(self._view_routes(definition, operation))
            else:
                routes.append(self._data_route(definition, operation))
        return routes

    def path_for(self, definition: ControllerDefinition, operation: OperationSpec) -> str:
        if operation.path is not None:
            return operation.path
        components = [component.strip("/") for component in definition.base_path_components]
        if operation.resource:
            components.append(operation.resource)
        if not operation.is_view:
            components.extend(
                f":{parameter.key}" for parameter in operation.parameters if parameter.source is ParameterSource.PATH
            )
        return "/" + "/".join(component for component in components if component)

    def _data_route(self, definition: ControllerDefinition, operation: OperationSpec) -> Route:
        path = self.path_for(definition, operation)
        return Route(
            verb=operation.verb,
            path=path,
            kind=RouteKind.DATA,
            definition=definition,
            operation=operation,
            bindings=bind_parameters(definition, operation, path),
        )

    def _view_routes(self, definition: ControllerDefinition, operation: OperationSpec) -> list[Route]:
        template = self._resolve_template(definition, operation)
        template_path = f"{TEMPLATE_PATH_PREFIX}/{template.name.lstrip('/')}"
        view_path = self.path_for(definition, operation)
        return [
            Route(
                verb="GET",
                path=template_path,
                kind=RouteKind.TEMPLATE,
                definition=definition,
                operation=operation,
                template=template,
            ),
            Route(
                verb="GET",
                path=view_path,
                kind=RouteKind.SHELL,
                definition=definition,
                operation=operation,
                template=template,
            ),
        ]

    def _resolve_template(self, definition: ControllerDefinition, operation: OperationSpec) -> Template:
        if operation.parameters:
            raise ConfigurationError(f"View operation {definition.name}.{operation.name} cannot take parameters")
        context = ControllerContext.build_time(environment=self.environment, models=self.models)
        controller = definition.factory(context)
        result = operation.handler(controller)
        if inspect.isawaitable(result):
            close = getattr(result, "close", None)
            if close is not None:
                close()
            raise ConfigurationError(
                f"View operation {definition.name}.{operation.name} must return its Template synchronously"
            )
        if not isinstance(result, Template):
            raise ConfigurationError(f"View operation {definition.name}.{operation.name} did not return a Template")
        return result


def bind_parameters(definition: ControllerDefinition, operation: OperationSpec, path: str) -> tuple[ParameterBinding, ...]:
    """Compute the ordered argument bindings of ``operation`` for ``path``.

    The Nth path-captured parameter binds to the Nth placeholder of ``path``.
    """

    placeholders = placeholder_names(path)
    path_parameters = [parameter for parameter in operation.parameters if parameter.source is ParameterSource.PATH]
    if len(path_parameters) != len(placeholders):
        raise ConfigurationError(
            f"{definition.name}.{operation.name} declares {len(path_parameters)} path parameter(s) "
            f"but {path!r} has {len(placeholders)} placeholder(s)"
        )
    remaining = iter(placeholders)
    bindings: list[ParameterBinding] = []
    for parameter in operation.parameters:
        if parameter.source is ParameterSource.PATH:
            bindings.append(ParameterBinding(name=parameter.name, source=parameter.source, key=next(remaining)))
        else:
            bindings.append(ParameterBinding(name=parameter.name, source=parameter.source, key=parameter.key))
    return tuple(bindings)


__all__ = ["TEMPLATE_PATH_PREFIX", "RouteBuilder", "bind_parameters"]
