"""Request tracing, error reporting and timing metrics.

Three optional providers are supported: an OpenTelemetry tracer, the Sentry
SDK and the Datadog ``statsd`` client. Each is imported lazily and silently
skipped when its library is not installed, so an application without the
``observability`` extra pays only for the ``enabled`` check.
"""

from __future__ import annotations

import time
from contextlib import ExitStack
from typing import TYPE_CHECKING, Any

import msgspec

if TYPE_CHECKING:
    from .requests import Request
    from .responses import Response


class ObservabilityConfig(msgspec.Struct, frozen=True):
    enabled: bool = True
    opentelemetry_enabled: bool = True
    tracer_name: str = "ember"
    span_name: str = "ember.request"
    sentry_enabled: bool = True
    sentry_capture_exceptions: bool = True
    datadog_enabled: bool = True
    datadog_tags: tuple[tuple[str, str], ...] = ()
    timing_metric: str = "ember.request.duration"
    error_metric: str = "ember.request.errors"


class RequestObservation:
    """Provider state for one in-flight request."""

    __slots__ = ("method", "path", "scopes", "span", "started", "tags")

    def __init__(self, request: "Request", tags: list[str]) -> None:
        self.method = request.method
        self.path = request.path
        self.tags = tags
        self.scopes = ExitStack()
        self.span: Any | None = None
        self.started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000.0

    def finish(self, error: BaseException | None = None) -> None:
        if error is None:
            self.scopes.close()
        else:
            self.scopes.__exit__(type(error), error, error.__traceback__)


class Observability:
    """Fan request lifecycle events out to whichever providers are installed."""

    def __init__(self, config: ObservabilityConfig | None = None) -> None:
        self.config = config or ObservabilityConfig()
        self._trace: Any | None = None
        self._sentry: Any | None = None
        self._statsd: Any | None = None
        self._tags = [f"{key}:{value}" for key, value in self.config.datadog_tags]
        if self.config.enabled:
            self._load_providers()

    @property
    def enabled(self) -> bool:
        return self.config.enabled and any(
            provider is not None for provider in (self._trace, self._sentry, self._statsd)
        )

    def _load_providers(self) -> None:
        if self.config.opentelemetry_enabled:
            try:
                from opentelemetry import trace  # type: ignore[import-not-found]
            except ImportError:  # pragma: no cover - optional dependency
                pass
            else:
                self._trace = trace
        if self.config.sentry_enabled:
            try:
                import sentry_sdk  # type: ignore[import-not-found]
            except ImportError:  # pragma: no cover - optional dependency
                pass
            else:
                self._sentry = sentry_sdk
        if self.config.datadog_enabled:
            try:
                from datadog import statsd  # type: ignore[import-not-found]
            except ImportError:  # pragma: no cover - optional dependency
                pass
            else:
                self._statsd = statsd

    # ------------------------------------------------------------------ lifecycle
    def on_request_start(self, request: "Request") -> RequestObservation | None:
        if not self.enabled:
            return None
        observation = RequestObservation(request, [*self._tags, f"method:{request.method}"])
        if self._trace is not None:
            tracer = self._trace.get_tracer(self.config.tracer_name)
            span = observation.scopes.enter_context(
                tracer.start_as_current_span(self.config.span_name, kind=self._trace.SpanKind.SERVER)
            )
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.target", request.path)
            observation.span = span
        if self._sentry is not None:
            scope = observation.scopes.enter_context(self._sentry.new_scope())
            scope.set_tag("http.method", request.method)
            self._sentry.add_breadcrumb(category="request", message=f"{request.method} {request.path}")
        return observation

    def on_request_success(self, observation: RequestObservation | None, response: "Response") -> None:
        if observation is None:
            return
        self._record_timing(observation, response.status)
        if observation.span is not None:
            observation.span.set_attribute("http.status_code", response.status)
            if response.status < 500:
                observation.span.set_status(self._trace.Status(self._trace.StatusCode.OK))
        observation.finish()

    def on_request_error(
        self,
        observation: RequestObservation | None,
        error: BaseException,
        *,
        status_code: int | None = None,
    ) -> None:
        """Count, time and report ``error``; it keeps propagating afterwards."""

        if observation is None:
            self._report(error)
            return
        if self._statsd is not None and self.config.error_metric:
            tags = list(observation.tags)
            if status_code is not None:
                tags.append(f"status:{status_code}")
            self._statsd.increment(self.config.error_metric, tags=tags)
        self._record_timing(observation, status_code)
        span = observation.span
        if span is not None:
            if status_code is not None:
                span.set_attribute("http.status_code", status_code)
            span.record_exception(error)
            span.set_status(self._trace.Status(self._trace.StatusCode.ERROR, description=str(error)))
        self._report(error)
        observation.finish(error)

    # ------------------------------------------------------------------ providers
    def _record_timing(self, observation: RequestObservation, status: int | None) -> None:
        if self._statsd is None or not self.config.timing_metric:
            return
        tags = list(observation.tags)
        if status is not None:
            tags.append(f"status:{status}")
        self._statsd.timing(self.config.timing_metric, observation.elapsed_ms, tags=tags)

    def _report(self, error: BaseException) -> None:
        if self._sentry is not None and self.config.sentry_capture_exceptions:
            self._sentry.capture_exception(error)


__all__ = ["Observability", "ObservabilityConfig", "RequestObservation"]
