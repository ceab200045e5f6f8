"""Application core."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar, overload

import msgspec

from .bridge import MODELS_SCRIPT_PATH, generate_models_js
from .builder import RouteBuilder
from .config import AppConfig
from .controllers import ControllerDefinition
from .dispatcher import Dispatcher
from .exceptions import HTTPError
from .http import Status
from .middleware import MiddlewareCallable, apply_middleware
from .model_controllers import model_controller
from .models import Models
from .observability import Observability
from .registry import ControllerRegistry
from .requests import Request
from .responses import (
    JavaScriptResponse,
    Response,
    error_response,
    exception_to_response,
    security_headers_middleware,
)
from .routing import Route, Router
from .sessions import SessionConfig, SessionMiddleware
from .templates import Templates

logger = logging.getLogger(__name__)

Hook = Callable[[], Awaitable[None] | None]
ControllerClass = TypeVar("ControllerClass", bound=type)

CLIENT_MODULE_NAME = "app"


class EmberApp:
    """Central application object.

    Controllers registered before :meth:`startup` are queued; ``startup``
    exposes the models, finalizes the registry exactly once and then runs the
    startup hooks. Requests are refused until that has happened.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        models: Models | None = None,
        templates: Templates | None = None,
        observability: Observability | None = None,
        expose_models: bool = True,
    ) -> None:
        self.config = config or AppConfig()
        self.models = models
        self.templates = templates or Templates(
            directory=self.config.templates_directory,
            name=self.config.name,
            module_name=CLIENT_MODULE_NAME,
            stylesheets=self.config.stylesheets,
            scripts=self.config.scripts,
        )
        self.router = Router()
        self.builder = RouteBuilder(environment=self.config.environment, models=models)
        self.registry = ControllerRegistry(self.builder, self.router)
        self.dispatcher = Dispatcher(
            self.router,
            models=models,
            templates=self.templates,
            environment=self.config.environment,
        )
        self.observability = observability or Observability(self.config.observability)
        self.sessions = SessionMiddleware(
            SessionConfig(
                keys=self.config.session_keys,
                cookie_name=self.config.session_cookie,
                max_age=self.config.session_max_age,
            )
        )
        if self.config.uses_default_session_key and self.config.environment not in ("development", "test"):
            logger.warning("Specify SESSION_KEYS in your environment to properly configure cookie sessions.")
        self._middlewares: list[MiddlewareCallable] = [self.sessions]
        self.add_middleware(security_headers_middleware)
        self._startup_hooks: list[Hook] = []
        self._shutdown_hooks: list[Hook] = []
        self._expose_models = expose_models
        self._models_exposed = False
        self._client_models: str | None = None
        self._started = False
        self._startup_lock = asyncio.Lock()

    # ------------------------------------------------------------------ controllers
    @overload
    def controller(self, cls: ControllerClass, /) -> ControllerClass: ...

    @overload
    def controller(
        self,
        cls: None = None,
        /,
        *,
        name: str | None = None,
        base_path: tuple[str, ...] | None = None,
    ) -> Callable[[ControllerClass], ControllerClass]: ...

    def controller(
        self,
        cls: ControllerClass | None = None,
        /,
        *,
        name: str | None = None,
        base_path: tuple[str, ...] | None = None,
    ) -> Any:
        """Register a controller class; usable bare or with options."""

        def decorator(controller_class: ControllerClass) -> ControllerClass:
            definition = ControllerDefinition.from_class(
                controller_class,
                name=name,
                base_path_components=base_path,
            )
            self.register(definition)
            return controller_class

        if cls is not None:
            return decorator(cls)
        return decorator

    def register(self, definition: ControllerDefinition) -> ControllerDefinition:
        self.registry.register(definition)
        return definition

    def expose_models(self) -> None:
        """Register the generated CRUD controller of every model."""

        if self._models_exposed or self.models is None:
            return
        self._models_exposed = True
        for model in self.models:
            self.register(model_controller(model, base_path=self.config.api_prefix))

    def routes(self) -> list[Route]:
        return list(self.router)

    # ------------------------------------------------------------------ middleware
    def add_middleware(self, middleware: MiddlewareCallable) -> None:
        if middleware is security_headers_middleware:
            if middleware not in self._middlewares:
                self._middlewares.append(middleware)
            return
        if self._middlewares and self._middlewares[-1] is security_headers_middleware:
            self._middlewares.insert(len(self._middlewares) - 1, middleware)
        else:
            self._middlewares.append(middleware)

    # ------------------------------------------------------------------ lifecycle
    def on_startup(self, func: Hook) -> Hook:
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        self._shutdown_hooks.append(func)
        return func

    @property
    def started(self) -> bool:
        return self._started

    async def startup(self) -> None:
        async with self._startup_lock:
            if self._started:
                return
            self._check_automatic_properties()
            self.templates.load()
            if self._expose_models:
                self.expose_models()
            if self.models is not None:
                self._client_models = generate_models_js(
                    self.models, CLIENT_MODULE_NAME, api_prefix=self.config.api_prefix
                )
            if self.models is not None and not self.router.has("GET", MODELS_SCRIPT_PATH):
                self.router.add_endpoint("GET", MODELS_SCRIPT_PATH, self._serve_client_models)
            self.registry.finalize()
            for hook in self._startup_hooks:
                result = hook()
                if inspect.isawaitable(result):
                    await result
            self._started = True
            logger.debug("%s started with %d routes", self.config.name, len(self.router))

    async def shutdown(self) -> None:
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    def _check_automatic_properties(self) -> None:
        if self.models is None or self.models.get_authenticator() is not None:
            return
        for model in self.models:
            if model.options.automatic_property_name:
                logger.warning(
                    "Model %s declares automatic property %s but no authenticator model exists; creating it will fail.",
                    model.name,
                    model.options.automatic_property_name,
                )

    async def _serve_client_models(self, request: Request) -> Response:
        assert self._client_models is not None
        return JavaScriptResponse(self._client_models)

    # ------------------------------------------------------------------ request handling
    async def dispatch(
        self,
        method: str,
        path: str,
        *,
        query_string: str | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Response:
        if not self._started:
            raise RuntimeError("EmberApp.startup() must complete before requests are dispatched")
        request = Request(
            method=method,
            path=path,
            headers=headers or {},
            query_string=query_string or "",
            body=body,
        )
        observation = self.observability.on_request_start(request)
        handler = apply_middleware(self._middlewares, self.dispatcher.handle)
        try:
            response = await handler(request)
        except HTTPError as exc:
            response = exception_to_response(exc)
        except Exception as exc:
            self.observability.on_request_error(observation, exc, status_code=int(Status.INTERNAL_SERVER_ERROR))
            raise
        self.observability.on_request_success(observation, response)
        return response

    # ------------------------------------------------------------------ interface adapters
    async def __call__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        scope_type = scope.get("type")
        if scope_type == "http":
            await self._handle_http(scope, receive, send)
            return
        if scope_type == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        raise RuntimeError("EmberApp only supports HTTP and lifespan scopes")

    async def _handle_lifespan(
        self,
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        while True:
            message = await receive()
            message_type = message.get("type")
            if message_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _handle_http(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        if not self._started:
            await self.startup()
        headers = {key.decode("latin-1").lower(): value.decode("latin-1") for key, value in scope.get("headers", [])}
        body = await _read_body(receive, self.config.max_request_body_bytes)
        if body is None:
            response = error_response(int(Status.PAYLOAD_TOO_LARGE), "Payload Too Large")
        else:
            response = await self.dispatch(
                scope["method"],
                scope["path"],
                query_string=(scope.get("query_string") or b"").decode("latin-1"),
                headers=headers,
                body=body,
            )
        await send(
            {
                "type": "http.response.start",
                "status": response.status,
                "headers": [(k.encode("latin-1"), v.encode("latin-1")) for k, v in response.headers],
            }
        )
        await send({"type": "http.response.body", "body": response.body})


class Ember(EmberApp):
    """Convenience subclass exposing configuration helpers."""

    @classmethod
    def from_config(cls, config: AppConfig | Mapping[str, Any], **kwargs: Any) -> "Ember":
        if isinstance(config, AppConfig):
            return cls(config=config, **kwargs)
        return cls(config=msgspec.convert(config, type=AppConfig), **kwargs)


async def _read_body(
    receive: Callable[[], Awaitable[Mapping[str, Any]]],
    limit: int | None,
) -> bytes | None:
    """Collect the request body; ``None`` once it exceeds ``limit`` bytes."""

    buffer = bytearray()
    while True:
        message = await receive()
        message_type = message.get("type")
        if message_type == "http.disconnect":
            break
        if message_type != "http.request":
            continue
        chunk = message.get("body", b"")
        if chunk:
            buffer.extend(chunk)
            if limit is not None and len(buffer) > limit:
                return None
        if not message.get("more_body", False):
            break
    return bytes(buffer)


__all__ = ["CLIENT_MODULE_NAME", "Ember", "EmberApp"]
