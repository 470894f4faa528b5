"""Unit tests for the public API instrumentation decorator and its concerns."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from packages.registry_shared.envelope import EnvelopeKind, failure, new_meta, success
from packages.registry_shared.errors import not_found_error
from packages.registry_shared.logging import public_api
from packages.registry_shared.logging.public_api import (
    CompletionContext,
    InvocationContext,
    PublicApiMetricsConcern,
    PublicApiTracingConcern,
    public_api_instrumented,
)


class _RecordingConcern:
    """Concern that records every invocation and completion event."""

    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    """Concern whose hooks always fail."""

    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("invocation hook failed")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("completion hook failed")


class _FakeCounter:
    def __init__(self) -> None:
        self.calls: list[tuple[int | float, dict[str, str]]] = []

    def add(self, amount: int | float, attributes: dict[str, str]) -> None:
        self.calls.append((amount, dict(attributes)))


class _FakeHistogram:
    def __init__(self) -> None:
        self.samples: list[tuple[float, dict[str, str]]] = []

    def record(self, amount: float, attributes: dict[str, str]) -> None:
        self.samples.append((amount, dict(attributes)))


class _FakeSpan:
    def __init__(self) -> None:
        self.attributes: dict[str, object] = {}
        self.statuses: list[object] = []
        self.exceptions: list[Exception] = []
        self.closed = False

    def set_attribute(self, key: str, value: object) -> None:
        self.attributes[key] = value

    def record_exception(self, exception: Exception) -> None:
        self.exceptions.append(exception)

    def set_status(self, status: object) -> None:
        self.statuses.append(status)


class _FakeSpanManager:
    def __init__(self, span: _FakeSpan) -> None:
        self._span = span

    def __enter__(self) -> _FakeSpan:
        return self._span

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self._span.closed = True


class _FakeTracer:
    def __init__(self) -> None:
        self.spans: dict[str, _FakeSpan] = {}

    def start_as_current_span(self, name: str) -> _FakeSpanManager:
        span = _FakeSpan()
        self.spans[name] = span
        return _FakeSpanManager(span)


def _use_concerns(
    monkeypatch: pytest.MonkeyPatch, concern: _RecordingConcern
) -> _RecordingConcern:
    monkeypatch.setattr(public_api, "_resolve_concerns", lambda logger: (concern,))
    return concern


def _meta() -> Any:
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


def _invocation() -> InvocationContext:
    return InvocationContext(
        component_id="service_function_registry",
        api_name="get_function",
        trace_id="t",
        envelope_id="e",
        principal="operator",
        references={"function_id": "f1"},
    )


def test_decorator_reports_success_and_references(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Invocation references come from ``id_fields`` keyword arguments."""
    concern = _use_concerns(monkeypatch, _RecordingConcern())

    @public_api_instrumented(
        component_id="service_function_registry",
        id_fields=("function_id", "version"),
    )
    def get_function(*, meta: Any, function_id: str, version: str | None = None) -> Any:
        return success(meta=meta, payload=function_id)

    meta = _meta()
    result = get_function(meta=meta, function_id="f1")

    assert result.ok is True
    (invocation,) = concern.invocations
    assert invocation.api_name == "get_function"
    assert invocation.trace_id == meta.trace_id
    assert invocation.references == {"function_id": "f1"}
    (completion,) = concern.completions
    assert completion.success is True
    assert completion.error_categories == []


def test_decorator_reports_envelope_failures_with_categories(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Failed envelopes complete with their error categories."""
    concern = _use_concerns(monkeypatch, _RecordingConcern())

    @public_api_instrumented(component_id="service_function_registry")
    def get_code(*, meta: Any) -> Any:
        return failure(meta=meta, errors=[not_found_error("code file not found")])

    get_code(meta=_meta())

    (completion,) = concern.completions
    assert completion.success is False
    assert completion.error_categories == ["not_found"]
    assert completion.errors == ["NOT_FOUND: code file not found"]


def test_decorator_reraises_exceptions_after_reporting(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Raised exceptions are reported as internal failures and propagate."""
    concern = _use_concerns(monkeypatch, _RecordingConcern())

    @public_api_instrumented(component_id="service_function_registry")
    def health(*, meta: Any) -> Any:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        health(meta=_meta())

    assert concern.completions[0].error_categories == ["internal"]


def test_failing_concerns_never_break_the_call(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    """Concern failures are logged and the decorated result is returned."""
    logger = logging.getLogger("tests.public_api")
    monkeypatch.setattr(
        public_api,
        "_resolve_concerns",
        lambda logger: (
            public_api.PublicApiLoggingConcern(logger=logger),
            _ExplodingConcern(),
        ),
    )

    @public_api_instrumented(component_id="service_function_registry", logger=logger)
    def health(*, meta: Any) -> Any:
        return success(meta=meta, payload="ok")

    with caplog.at_level(logging.INFO, logger="tests.public_api"):
        result = health(meta=_meta())

    assert result.ok is True
    messages = [record.getMessage() for record in caplog.records]
    assert messages.count("Public API instrumentation concern failed") == 2
    assert "Public API invocation" in messages
    assert "Public API completion" in messages


def test_metrics_concern_emits_failure_categories() -> None:
    """Failures add one error series per category."""
    calls, errors = _FakeCounter(), _FakeCounter()
    durations = _FakeHistogram()
    concern = PublicApiMetricsConcern(
        public_api_calls_total=calls,
        public_api_duration_ms=durations,
        public_api_errors_total=errors,
    )

    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=False,
            duration_ms=3.5,
            errors=["RESOURCE_NOT_FOUND: function not found"],
            error_categories=["not_found"],
        )
    )

    assert calls.calls[0][1]["outcome"] == "failure"
    assert durations.samples[0][0] == 3.5
    assert errors.calls == [
        (
            1,
            {
                "component_id": "service_function_registry",
                "api_name": "get_function",
                "error_category": "not_found",
            },
        )
    ]


def test_tracing_concern_opens_and_closes_one_span() -> None:
    """Spans carry invocation metadata and close on completion."""
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)
    invocation = _invocation()

    concern.on_invocation(invocation)
    concern.on_completion(
        CompletionContext(
            invocation=invocation,
            success=False,
            duration_ms=1.0,
            errors=["boom"],
            error_categories=["internal"],
        )
    )

    span = tracer.spans["public_api.service_function_registry.get_function"]
    assert span.attributes["reference.function_id"] == "f1"
    assert span.attributes["outcome"] == "failure"
    assert len(span.statuses) == 1
    assert len(span.exceptions) == 1
    assert span.closed is True
