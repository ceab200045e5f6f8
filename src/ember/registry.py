"""Controller registry: queue definitions during startup, load them once."""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from .builder import RouteBuilder
from .controllers import ControllerDefinition
from .exceptions import ConfigurationError
from .routing import Route, RouteKind, Router

logger = logging.getLogger(__name__)


class ControllerRegistry:
    """Two-phase registry.

    Before :meth:`finalize` every registered definition is queued so that its
    operation set may still grow. :meth:`finalize` drains the queue and builds
    all routes; afterwards :meth:`register` loads definitions immediately, so
    late registrations must already be complete.
    """

    def __init__(self, builder: RouteBuilder, router: Router) -> None:
        self.builder = builder
        self.router = router
        self._queue: list[ControllerDefinition] | None = []
        self._controllers: dict[str, ControllerDefinition] = {}

    @property
    def finalized(self) -> bool:
        return self._queue is None

    def __iter__(self) -> Iterator[ControllerDefinition]:
        return iter(tuple(self._controllers.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)

    def get(self, name: str) -> ControllerDefinition | None:
        return self._controllers.get(name)

    def for_each(self, callback: Callable[[ControllerDefinition], None]) -> None:
        for definition in self:
            callback(definition)

    def register(self, definition: ControllerDefinition) -> None:
        logger.debug("register controller %s", getattr(definition, "name", definition))
        if self._queue is not None:
            self._queue.append(definition)
        else:
            self.load(definition)

    def finalize(self) -> None:
        if self._queue is None:
            raise ConfigurationError("Controller registry already finalized")
        queue = self._queue
        self._queue = None
        for definition in queue:
            self.load(definition)
        logger.debug("Controller registry finalized with %d controllers", len(self._controllers))

    def load(self, definition: ControllerDefinition) -> list[Route]:
        if not isinstance(definition, ControllerDefinition):
            raise ConfigurationError(
                f"{definition!r} is not a ControllerDefinition. Did you register it through app.controller(...)?"
            )
        if not definition.operations:
            raise ConfigurationError(f"Controller {definition.name} declares no operations")
        if definition.name in self._controllers:
            raise ConfigurationError(f"Controller {definition.name} is already loaded")
        routes = self.builder.build(definition)
        # Shared template routes are served once, by whichever controller came first.
        pending: list[Route] = []
        templates: set[tuple[str, str]] = set()
        for route in routes:
            if route.kind is RouteKind.TEMPLATE:
                if self.router.has(route.verb, route.path) or (route.verb, route.path) in templates:
                    continue
                templates.add((route.verb, route.path))
            pending.append(route)
        self.router.check(pending)
        for route in pending:
            self.router.add(route)
            logger.debug("addRoute %s %s", route.verb, route.path)
        definition.finalize()
        self._controllers[definition.name] = definition
        return routes


__all__ = ["ControllerRegistry"]
