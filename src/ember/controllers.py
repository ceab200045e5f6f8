"""Controller declarations.

A :class:`ControllerDefinition` is an ordered set of named operations plus the
path components prepended to every derived route. Definitions are assembled at
registration time, either directly or from a class via
:meth:`ControllerDefinition.from_class`, and become immutable once their routes
have been built.

Per request the dispatcher calls ``definition.factory(context)`` with a fresh
:class:`ControllerContext`. The optional :class:`Controller` base keeps the
context and provides no-op ``configure``/``before``/``after`` hooks, but any
class whose constructor accepts the context can serve as a factory.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    Awaitable,
    Callable,
    Mapping,
    MutableMapping,
    get_args,
    get_origin,
    get_type_hints,
)

from .exceptions import ConfigurationError
from .http import normalize_verb
from .sessions import ACCESS_TOKEN_KEY

if TYPE_CHECKING:
    from .models import Models
    from .requests import Request
    from .templates import Templates

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Any] | Any]

HOOK_NAMES: frozenset[str] = frozenset({"configure", "before", "after"})

# Longest prefix wins; anything else is a GET.
VERB_PREFIXES: tuple[tuple[str, str], ...] = (
    ("create", "POST"),
    ("update", "PUT"),
    ("delete", "DELETE"),
    ("get", "GET"),
)
VIEW_PREFIX = "view"
DEFAULT_VERB = "GET"


class ParameterSource(str, Enum):
    PATH = "path"
    QUERY = "query"
    BODY = "body"
    REQUEST = "request"


@dataclass(frozen=True, slots=True)
class FromSource:
    """``Annotated`` marker selecting where a handler argument comes from."""

    source: ParameterSource
    key: str | None = None


PathParam = Annotated[str, FromSource(ParameterSource.PATH)]
QueryParam = Annotated[Any, FromSource(ParameterSource.QUERY)]
BodyParam = Annotated[Any, FromSource(ParameterSource.BODY)]

_MARKER_ALIASES: Mapping[str, FromSource] = {
    "PathParam": FromSource(ParameterSource.PATH),
    "QueryParam": FromSource(ParameterSource.QUERY),
    "BodyParam": FromSource(ParameterSource.BODY),
}


@dataclass(frozen=True, slots=True)
class ParameterDeclaration:
    name: str
    source: ParameterSource
    key: str


@dataclass(frozen=True, slots=True)
class ParameterBinding:
    """Where a handler argument is read from at request time.

    For ``PATH`` bindings ``key`` is the placeholder name in the route path;
    otherwise it is the literal key in the query string or body.
    """

    name: str
    source: ParameterSource
    key: str


@dataclass(frozen=True, slots=True)
class Template:
    """Handle to a pre-rendered template returned by view operations."""

    name: str


@dataclass(frozen=True, slots=True)
class ExplicitRoute:
    path: str
    verb: str = DEFAULT_VERB


def route(path: str, *, verb: str = DEFAULT_VERB) -> Callable[[Handler], Handler]:
    """Bind a controller method to a literal path instead of a derived one."""

    normalized = normalize_verb(verb)

    def decorator(func: Handler) -> Handler:
        setattr(func, "__ember_route__", ExplicitRoute(path=path, verb=normalized))
        return func

    return decorator


def infer_verb(name: str) -> tuple[str, str]:
    """Split an operation name into its HTTP verb and the remaining resource name."""

    for prefix, verb in sorted(VERB_PREFIXES, key=lambda item: len(item[0]), reverse=True):
        if name == prefix:
            return verb, ""
        if name.startswith(prefix + "_"):
            return verb, name[len(prefix) + 1 :]
    return DEFAULT_VERB, name


@dataclass(frozen=True, slots=True)
class OperationSpec:
    """One operation of a controller.

    Conventional entries (``path is None``) derive their route from the name;
    explicit entries carry a literal path. The first parameter of ``handler``
    always receives the controller instance.
    """

    name: str
    handler: Handler
    verb: str
    path: str | None
    resource: str
    parameters: tuple[ParameterDeclaration, ...]
    is_view: bool = False

    @property
    def explicit(self) -> bool:
        return self.path is not None

    @classmethod
    def conventional(cls, name: str, handler: Handler) -> "OperationSpec":
        if _returns_template(handler):
            resource = name[len(VIEW_PREFIX) :].lstrip("_") if name.startswith(VIEW_PREFIX) else name
            verb = DEFAULT_VERB
            is_view = True
        else:
            verb, resource = infer_verb(name)
            is_view = False
        return cls(
            name=name,
            handler=handler,
            verb=verb,
            path=None,
            resource=resource.replace("_", "-"),
            parameters=declared_parameters(handler),
            is_view=is_view,
        )

    @classmethod
    def explicit_route(cls, name: str, path: str, handler: Handler, *, verb: str = DEFAULT_VERB) -> "OperationSpec":
        return cls(
            name=name,
            handler=handler,
            verb=normalize_verb(verb),
            path=path,
            resource="",
            parameters=declared_parameters(handler),
            is_view=_returns_template(handler),
        )

    @classmethod
    def from_callable(cls, name: str, handler: Handler) -> "OperationSpec":
        explicit: ExplicitRoute | None = getattr(handler, "__ember_route__", None)
        if explicit is not None:
            return cls.explicit_route(name, explicit.path, handler, verb=explicit.verb)
        return cls.conventional(name, handler)


def declared_parameters(handler: Handler) -> tuple[ParameterDeclaration, ...]:
    """Extract the request-bound parameters of ``handler`` in declaration order."""

    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Cannot inspect controller operation {handler!r}") from exc
    hints = _type_hints(handler)
    parameters = list(signature.parameters.values())
    if not parameters or parameters[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise ConfigurationError(f"Controller operation {handler!r} must accept the controller as first argument")
    declarations: list[ParameterDeclaration] = []
    for parameter in parameters[1:]:
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise ConfigurationError(f"Controller operation {handler!r} cannot declare *args or **kwargs")
        marker = _marker_for(hints.get(parameter.name, parameter.annotation))
        source = marker.source if marker else ParameterSource.REQUEST
        key = (marker.key if marker else None) or parameter.name
        declarations.append(ParameterDeclaration(name=parameter.name, source=source, key=key))
    return tuple(declarations)


def _type_hints(handler: Handler) -> Mapping[str, Any]:
    target = getattr(handler, "__func__", handler)
    try:
        return get_type_hints(target, include_extras=True)
    except (NameError, TypeError):
        return getattr(target, "__annotations__", {})


def _marker_for(annotation: Any) -> FromSource | None:
    if isinstance(annotation, str):
        return _MARKER_ALIASES.get(annotation.rsplit(".", 1)[-1])
    if get_origin(annotation) is Annotated:
        for extra in get_args(annotation)[1:]:
            if isinstance(extra, FromSource):
                return extra
    return None


def _returns_template(handler: Handler) -> bool:
    annotation = _type_hints(handler).get("return")
    if isinstance(annotation, str):
        return annotation.rsplit(".", 1)[-1] == "Template"
    return annotation is Template


class ControllerContext:
    """Everything a controller instance may touch while serving one request."""

    __slots__ = ("_authenticator", "body", "environment", "models", "query", "request", "templates")

    def __init__(
        self,
        *,
        models: "Models | None",
        request: "Request | None",
        environment: str,
        templates: "Templates | None" = None,
        body: Any = None,
        query: MutableMapping[str, Any] | None = None,
    ) -> None:
        self.models = models
        self.request = request
        self.environment = environment
        self.templates = templates
        self.body = body if body is not None else {}
        self.query = query if query is not None else {}
        self._authenticator: Any = _UNRESOLVED

    @classmethod
    def build_time(cls, *, environment: str, models: "Models | None" = None) -> "ControllerContext":
        return cls(models=models, request=None, environment=environment)

    @property
    def session(self) -> MutableMapping[str, Any]:
        if self.request is None:
            return {}
        return self.request.session

    async def find_authenticator(self) -> Any | None:
        """Resolve the logged-in principal from the session access token, once per request."""

        if self._authenticator is not _UNRESOLVED:
            return self._authenticator
        authenticator = None
        model = self.models.get_authenticator() if self.models is not None else None
        token = self.session.get(ACCESS_TOKEN_KEY)
        if model is not None and token:
            authenticator = await model.find_one({"accessToken": token})
        self._authenticator = authenticator
        return authenticator


_UNRESOLVED = object()


class Controller:
    """Convenience base exposing the request context and default hooks."""

    def __init__(self, context: ControllerContext) -> None:
        self.context = context

    @property
    def models(self) -> "Models | None":
        return self.context.models

    @property
    def request(self) -> "Request | None":
        return self.context.request

    @property
    def body(self) -> Any:
        return self.context.body

    @property
    def query(self) -> MutableMapping[str, Any]:
        return self.context.query

    @property
    def session(self) -> MutableMapping[str, Any]:
        return self.context.session

    def configure(self, environment: str) -> None:
        return None

    async def before(self) -> None:
        return None

    async def after(self) -> None:
        return None

    async def find_authenticator(self) -> Any | None:
        return await self.context.find_authenticator()

    def template(self, name: str) -> Template:
        return Template(name)


ControllerFactory = Callable[[ControllerContext], Any]


@dataclass(slots=True)
class ControllerDefinition:
    name: str
    base_path_components: tuple[str, ...] = ()
    factory: ControllerFactory = Controller
    _operations: dict[str, OperationSpec] = field(default_factory=dict, repr=False)
    _finalized: bool = field(default=False, repr=False)

    @property
    def operations(self) -> Mapping[str, OperationSpec]:
        return MappingProxyType(self._operations)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def add_operation(self, operation: OperationSpec) -> OperationSpec:
        if self._finalized:
            raise ConfigurationError(
                f"Controller {self.name} already has its routes built; cannot add {operation.name!r}"
            )
        if operation.name in self._operations:
            raise ConfigurationError(f"Controller {self.name} already declares {operation.name!r}")
        self._operations[operation.name] = operation
        return operation

    def operation(self, name: str, handler: Handler) -> OperationSpec:
        return self.add_operation(OperationSpec.from_callable(name, handler))

    def finalize(self) -> None:
        self._finalized = True

    @classmethod
    def from_class(
        cls,
        controller_class: type,
        *,
        name: str | None = None,
        base_path_components: tuple[str, ...] | None = None,
    ) -> "ControllerDefinition":
        """Build a definition by scanning the public methods of ``controller_class``."""

        if not inspect.isclass(controller_class):
            raise ConfigurationError(f"Expected a controller class, got {controller_class!r}")
        if base_path_components is None:
            base_path_components = tuple(getattr(controller_class, "base_path_components", ()))
        definition = cls(
            name=name or controller_class.__name__,
            base_path_components=tuple(base_path_components),
            factory=controller_class,
        )
        members: dict[str, Handler] = {}
        for klass in reversed(controller_class.__mro__):
            if klass in (object, Controller):
                continue
            for attribute, value in vars(klass).items():
                if attribute.startswith("_") or attribute in HOOK_NAMES:
                    continue
                if inspect.isfunction(value):
                    members[attribute] = value
                elif attribute in members:
                    del members[attribute]
        for attribute, handler in members.items():
            definition.operation(attribute, handler)
        logger.debug("Declared controller %s with %d operations", definition.name, len(members))
        return definition


__all__ = [
    "BodyParam",
    "Controller",
    "ControllerContext",
    "ControllerDefinition",
    "ControllerFactory",
    "ExplicitRoute",
    "FromSource",
    "OperationSpec",
    "ParameterBinding",
    "ParameterDeclaration",
    "ParameterSource",
    "PathParam",
    "QueryParam",
    "Template",
    "infer_verb",
    "route",
]
