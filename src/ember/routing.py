"""Route table: compiled path patterns indexed by verb."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Iterator, Mapping, MutableMapping

import rure
from rure.regex import RegexObject

from .exceptions import ConfigurationError
from .http import normalize_verb

if TYPE_CHECKING:
    from .controllers import ControllerDefinition, OperationSpec, ParameterBinding, Template
    from .requests import Request
    from .responses import Response

RawEndpoint = Callable[["Request"], Awaitable["Response"]]

_PLACEHOLDER_PATTERN = re.compile(r"^:([a-zA-Z_][a-zA-Z0-9_]*)$")
_REGEX_META = frozenset(".+*?()|[]{}^$\\")


class RouteKind(str, Enum):
    """How the dispatcher answers a matched route."""

    DATA = "data"
    TEMPLATE = "template"
    SHELL = "shell"
    RAW = "raw"


@dataclass(slots=True, frozen=True)
class Route:
    verb: str
    path: str
    kind: RouteKind = RouteKind.DATA
    definition: "ControllerDefinition | None" = None
    operation: "OperationSpec | None" = None
    bindings: tuple["ParameterBinding", ...] = ()
    template: "Template | None" = None
    endpoint: RawEndpoint | None = None
    pattern: RegexObject = field(init=False, repr=False, compare=False)
    param_names: tuple[str, ...] = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "verb", normalize_verb(self.verb))
        pattern, names = compile_path(self.path)
        object.__setattr__(self, "pattern", pattern)
        object.__setattr__(self, "param_names", names)

    @property
    def is_view(self) -> bool:
        return self.kind in (RouteKind.TEMPLATE, RouteKind.SHELL)

    @property
    def is_dynamic(self) -> bool:
        return bool(self.param_names)

    def describe(self) -> str:
        owner = ""
        if self.definition is not None and self.operation is not None:
            owner = f" -> {self.definition.name}.{self.operation.name}"
        return f"{self.verb:<7}{self.path} [{self.kind.value}]{owner}"


@dataclass(slots=True)
class RouteMatch:
    route: Route
    params: Mapping[str, str]


class Router:
    """Verb-indexed route table.

    Static paths resolve through a dictionary lookup before dynamic patterns are
    tried, so ``/api/Users/me`` wins over ``/api/Users/:id`` regardless of the
    order in which the routes were added.
    """

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._static_routes: dict[str, dict[str, Route]] = {}
        self._dynamic_routes: dict[str, dict[str | None, list[Route]]] = {}
        self._signatures: set[tuple[str, str]] = set()

    def __iter__(self) -> Iterator[Route]:
        return iter(tuple(self._routes))

    def __len__(self) -> int:
        return len(self._routes)

    def add(self, route: Route) -> Route:
        signature = (route.verb, _signature_key(route.path))
        if signature in self._signatures:
            raise ConfigurationError(f"Duplicate route {route.verb} {route.path}")
        self._signatures.add(signature)
        self._routes.append(route)
        if route.is_dynamic:
            prefix = _dynamic_prefix_key(route.path)
            self._dynamic_routes.setdefault(route.verb, {}).setdefault(prefix, []).append(route)
        else:
            self._static_routes.setdefault(route.verb, {})[route.path] = route
        return route

    def has(self, verb: str, path: str) -> bool:
        return (verb.upper(), _signature_key(path)) in self._signatures

    def check(self, routes: Iterable[Route]) -> None:
        """Raise :class:`ConfigurationError` if adding ``routes`` would clash, without adding any."""

        pending: set[tuple[str, str]] = set()
        for route in routes:
            signature = (route.verb, _signature_key(route.path))
            if signature in self._signatures or signature in pending:
                raise ConfigurationError(f"Duplicate route {route.verb} {route.path}")
            pending.add(signature)

    def add_endpoint(self, verb: str, path: str, endpoint: RawEndpoint) -> Route:
        return self.add(Route(verb=verb, path=path, kind=RouteKind.RAW, endpoint=endpoint))

    def find(self, verb: str, path: str) -> RouteMatch:
        verb = verb.upper()
        route = self._static_routes.get(verb, {}).get(path)
        if route is not None:
            return RouteMatch(route=route, params={})
        method_routes = self._dynamic_routes.get(verb)
        if method_routes:
            prefix = _request_prefix_key(path)
            for key in (prefix, None):
                for candidate in method_routes.get(key, ()):
                    captures = candidate.pattern.match(path)
                    if captures is None:
                        continue
                    params: MutableMapping[str, str] = {}
                    for name in candidate.param_names:
                        group = captures.group(name)
                        if group is not None:
                            params[name] = group
                    return RouteMatch(route=candidate, params=params)
        raise LookupError(f"No route matches {verb} {path}")


def placeholder_names(path: str) -> tuple[str, ...]:
    """Return the ``:name`` placeholders of ``path`` in declaration order."""

    names: list[str] = []
    for segment in path.split("/"):
        match = _PLACEHOLDER_PATTERN.match(segment)
        if match is not None:
            names.append(match.group(1))
        elif segment.startswith(":"):
            raise ConfigurationError(f"Invalid placeholder {segment!r} in path {path!r}")
    return tuple(names)


def compile_path(path: str) -> tuple[RegexObject, tuple[str, ...]]:
    if not path.startswith("/"):
        raise ConfigurationError(f"Route path must start with '/': {path!r}")
    names = placeholder_names(path)
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Duplicate placeholder in path {path!r}")
    parts: list[str] = []
    for segment in path.split("/"):
        match = _PLACEHOLDER_PATTERN.match(segment)
        if match is not None:
            parts.append(f"(?P<{match.group(1)}>[^/]+)")
        else:
            parts.append(_escape(segment))
    return rure.compile("^" + "/".join(parts) + "$"), names


def _escape(segment: str) -> str:
    return "".join(f"\\{char}" if char in _REGEX_META else char for char in segment)


def _signature_key(path: str) -> str:
    # ``/a/:id`` and ``/a/:key`` match exactly the same requests.
    return "/".join(":" if _PLACEHOLDER_PATTERN.match(segment) else segment for segment in path.split("/"))


def _dynamic_prefix_key(path: str) -> str | None:
    trimmed = path.lstrip("/")
    if not trimmed or trimmed.startswith(":"):
        return None
    return trimmed.split("/", 1)[0] or None


def _request_prefix_key(path: str) -> str | None:
    trimmed = path.lstrip("/")
    if not trimmed:
        return None
    return trimmed.split("/", 1)[0] or None
