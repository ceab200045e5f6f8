"""Ember server-side web framework with generated model APIs."""

from .access_control import AccessControl, Permission, is_authenticated, owned_by
from .application import Ember, EmberApp
from .config import AppConfig
from .controllers import (
    BodyParam,
    Controller,
    ControllerContext,
    ControllerDefinition,
    OperationSpec,
    PathParam,
    QueryParam,
    Template,
    route,
)
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    BadRequestError,
    ConfigurationError,
    EmberError,
    HTTPError,
    NotFoundError,
)
from .models import Model, Models, authenticate, automatic_owner, has_many, has_method, prop
from .requests import Request
from .responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from .templates import Templates
from .testing import TestClient

__all__ = [
    "AccessControl",
    "AppConfig",
    "AuthenticationError",
    "AuthorizationError",
    "BadRequestError",
    "BodyParam",
    "ConfigurationError",
    "Controller",
    "ControllerContext",
    "ControllerDefinition",
    "Ember",
    "EmberApp",
    "EmberError",
    "HTMLResponse",
    "HTTPError",
    "JSONResponse",
    "Model",
    "Models",
    "NotFoundError",
    "OperationSpec",
    "PathParam",
    "Permission",
    "PlainTextResponse",
    "QueryParam",
    "Request",
    "Response",
    "Template",
    "Templates",
    "TestClient",
    "authenticate",
    "automatic_owner",
    "has_many",
    "has_method",
    "is_authenticated",
    "owned_by",
    "prop",
    "route",
]
