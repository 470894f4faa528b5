"""Instrumentation for public registry service methods.

``public_api_instrumented`` wraps one service method and reports each call to
three concerns: structured logs, an OpenTelemetry span and OpenTelemetry
call/latency/error metrics. A failing concern is logged and never breaks the
wrapped call.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol

from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace.status import Status, StatusCode

from packages.registry_shared.config import load_settings

from . import fields
from .context import log_context


@dataclass(frozen=True)
class InvocationContext:
    """Correlation data for one public method call."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Outcome of one public method call."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class _Concern(Protocol):
    def on_invocation(self, context: InvocationContext) -> None: ...

    def on_completion(self, context: CompletionContext) -> None: ...


class PublicApiLoggingConcern:
    """Writes one log record when a call starts and one when it ends."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_invocation_fields(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = {
            **_invocation_fields(context.invocation),
            fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
            fields.SUCCESS: context.success,
            fields.DURATION_MS: context.duration_ms,
            fields.ERRORS: context.errors,
        }
        with log_context(payload):
            log = self._logger.info if context.success else self._logger.warning
            log("Public API completion")


class PublicApiTracingConcern:
    """Opens a span per call and closes it with the call outcome.

    Open spans are kept on a context-local stack so nested instrumented calls
    close in order.
    """

    def __init__(self, *, tracer: Any) -> None:
        self._tracer = tracer
        self._open: ContextVar[tuple[tuple[Any, Any], ...]] = ContextVar(
            "public_api_open_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        attributes: dict[str, str | None] = {
            fields.COMPONENT_ID: context.component_id,
            fields.API_NAME: context.api_name,
            fields.TRACE_ID: context.trace_id,
            fields.ENVELOPE_ID: context.envelope_id,
            fields.PRINCIPAL: context.principal,
        }
        for key, value in context.references.items():
            attributes[f"reference.{key}"] = value
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        self._open.set((*self._open.get(), (manager, span)))

    def on_completion(self, context: CompletionContext) -> None:
        stack = self._open.get()
        if not stack:
            return
        manager, span = stack[-1]
        self._open.set(stack[:-1])

        span.set_attribute(fields.SUCCESS, context.success)
        span.set_attribute(fields.DURATION_MS, context.duration_ms)
        span.set_attribute(fields.OUTCOME, _outcome(context.success))
        span.set_attribute("errors.count", len(context.errors))
        if not context.success:
            span.set_status(Status(StatusCode.ERROR))
            if context.errors:
                span.record_exception(RuntimeError("; ".join(context.errors[:3])))
        manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Counts calls, records latency and counts failures per error category."""

    def __init__(
        self,
        *,
        public_api_calls_total: Any,
        public_api_duration_ms: Any,
        public_api_errors_total: Any,
    ) -> None:
        self._calls = public_api_calls_total
        self._duration = public_api_duration_ms
        self._errors = public_api_errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        base = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
        }
        attrs = {**base, fields.OUTCOME: _outcome(context.success)}
        self._calls.add(1, attributes=attrs)
        self._duration.record(context.duration_ms, attributes=attrs)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors.add(1, attributes={**base, fields.ERROR_CATEGORY: category})


def public_api_instrumented(
    *,
    component_id: str,
    id_fields: tuple[str, ...] = (),
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Instrument one public service method.

    ``id_fields`` names keyword arguments whose values are attached to logs
    and spans as references. The method's ``meta`` keyword supplies trace,
    envelope and principal correlation. Log records are only written when a
    ``logger`` is given.
    """
    concerns = _resolve_concerns(logger)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            meta = kwargs.get("meta")
            invocation = InvocationContext(
                component_id=component_id,
                api_name=func.__name__,
                trace_id=_attr_or_none(meta, "trace_id"),
                envelope_id=_attr_or_none(meta, "envelope_id"),
                principal=_attr_or_none(meta, "principal"),
                references={
                    name: str(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _dispatch(concerns, "invocation", invocation, invocation, logger)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_categories=["internal"],
                )
                _dispatch(concerns, "completion", completion, invocation, logger)
                raise

            errors = getattr(result, "errors", [])
            completion = CompletionContext(
                invocation=invocation,
                success=bool(getattr(result, "ok", not errors)),
                duration_ms=_elapsed_ms(started),
                errors=_error_summaries(errors),
                error_categories=_error_categories(errors),
            )
            _dispatch(concerns, "completion", completion, invocation, logger)
            return result

        return wrapper

    return decorator


def _resolve_concerns(logger: Any | None) -> tuple[_Concern, ...]:
    """Return the concerns every instrumented method reports to."""
    concerns: tuple[_Concern, ...] = (
        _default_tracing_concern(),
        _default_metrics_concern(),
    )
    if logger is None:
        return concerns
    return (PublicApiLoggingConcern(logger=logger), *concerns)


def _dispatch(
    concerns: tuple[_Concern, ...],
    stage: str,
    context: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    """Deliver one event to every concern, logging hook failures."""
    for concern in concerns:
        hook = concern.on_invocation if stage == "invocation" else concern.on_completion
        try:
            hook(context)  # type: ignore[arg-type]
        except Exception as exc:  # noqa: BLE001
            if logger is None:
                continue
            with log_context(
                {
                    fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
                    fields.COMPONENT_ID: invocation.component_id,
                    fields.API_NAME: invocation.api_name,
                    fields.STAGE: stage,
                    fields.CONCERN: type(concern).__name__,
                    fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
                }
            ):
                logger.warning("Public API instrumentation concern failed")


def _invocation_fields(context: InvocationContext) -> dict[str, object]:
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


def _attr_or_none(obj: object | None, name: str) -> str | None:
    value = getattr(obj, name, None)
    return None if value in (None, "") else str(value)


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


def _outcome(success: bool) -> str:
    return "success" if success else "failure"


def _error_summaries(errors: object) -> list[str]:
    """Return ``CODE: message`` lines for envelope errors."""
    if not isinstance(errors, list):
        return []
    summaries: list[str] = []
    for item in errors:
        code = getattr(item, "code", None)
        message = getattr(item, "message", None)
        if message in (None, ""):
            continue
        summaries.append(str(message) if code in (None, "") else f"{code}: {message}")
    return summaries


def _error_categories(errors: object) -> list[str]:
    """Return category values for envelope errors."""
    if not isinstance(errors, list):
        return []
    categories: list[str] = []
    for item in errors:
        raw = getattr(item, "category", None)
        category = getattr(raw, "value", raw)
        if category not in (None, ""):
            categories.append(str(category))
    return categories


@lru_cache(maxsize=1)
def _default_tracing_concern() -> PublicApiTracingConcern:
    otel = load_settings().observability.otel
    return PublicApiTracingConcern(tracer=otel_trace.get_tracer(otel.tracer_name))


@lru_cache(maxsize=1)
def _default_metrics_concern() -> PublicApiMetricsConcern:
    otel = load_settings().observability.otel
    meter = otel_metrics.get_meter(otel.meter_name)
    return PublicApiMetricsConcern(
        public_api_calls_total=meter.create_counter(
            name=otel.metric_calls_total,
            description="Public API calls by component, method and outcome.",
            unit="1",
        ),
        public_api_duration_ms=meter.create_histogram(
            name=otel.metric_duration_ms,
            description="Public API call latency in milliseconds.",
            unit="ms",
        ),
        public_api_errors_total=meter.create_counter(
            name=otel.metric_errors_total,
            description="Public API failures by error category.",
            unit="1",
        ),
    )
