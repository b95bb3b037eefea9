"""Telemetry side-channel invoked by the request executor around each HTTP attempt.

Every attempt produces exactly one ``AttemptEvent``, on every exit path, including
transport failures and cancellation. Implementations decide what to do with it:

- ``NoopTelemetry``: discard (used when telemetry is disabled)
- ``RecordingTelemetry``: keep events in memory, mostly useful in tests
- ``OpenTelemetryHook``: client spans plus request counter and duration histogram
"""

import asyncio
import time
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any

from opentelemetry import metrics, propagate, trace

from iot_registry_client.errors.handler import Outcome


@dataclass
class AttemptEvent:
    """A single HTTP attempt, as reported to a telemetry sink."""

    operation: str
    collection: str | None
    method: str
    path: str
    attempt: int
    status_code: int | None = None
    outcome: Outcome | None = None
    duration: float = 0.0

    @property
    def span_name(self) -> str:
        return f"{self.method} {self.path}"


class Telemetry:
    """Base class for telemetry sinks.

    Subclasses override ``start`` and ``finish``. ``start`` may add propagation
    headers to the outgoing request.
    """

    def start(self, event: AttemptEvent, headers: MutableMapping[str, str]) -> Any:
        return None

    def finish(self, event: AttemptEvent, handle: Any) -> None:
        pass

    @contextmanager
    def attempt(
        self,
        *,
        operation: str,
        collection: str | None,
        method: str,
        path: str,
        attempt: int,
        headers: MutableMapping[str, str],
    ) -> Iterator[AttemptEvent]:
        """Wrap one HTTP attempt.

        The caller sets ``status_code`` and ``outcome`` on the yielded event. If the
        block exits with an exception before that, the outcome is derived from it.
        """
        event = AttemptEvent(
            operation=operation,
            collection=collection,
            method=method,
            path=path,
            attempt=attempt,
        )
        handle = self.start(event, headers)
        started = time.perf_counter()
        try:
            yield event
        except BaseException as e:
            if event.outcome is None:
                if isinstance(e, asyncio.CancelledError):
                    event.outcome = Outcome.CANCELLED
                else:
                    event.outcome = Outcome.TRANSPORT_ERROR
            raise
        finally:
            event.duration = time.perf_counter() - started
            self.finish(event, handle)


class NoopTelemetry(Telemetry):
    """Telemetry that records nothing."""

    pass


class RecordingTelemetry(Telemetry):
    """Keep every attempt event in memory."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.events: list[AttemptEvent] = []

    def finish(self, event: AttemptEvent, handle: Any) -> None:
        with self._lock:
            self.events.append(event)

    def outcomes(self, operation: str | None = None) -> list[Outcome]:
        return [e.outcome for e in self.events if operation is None or e.operation == operation]

    def clear(self) -> None:
        with self._lock:
            self.events.clear()


class OpenTelemetryHook(Telemetry):
    """Report attempts through the OpenTelemetry API.

    Spans are created as children of the current span and their context is
    injected into the outgoing request headers. Without a configured SDK the
    global providers are no-ops, so this hook is always safe to install.
    """

    def __init__(
        self,
        tracer_provider: trace.TracerProvider | None = None,
        meter_provider: metrics.MeterProvider | None = None,
    ) -> None:
        self._tracer = trace.get_tracer(__name__, tracer_provider=tracer_provider)
        meter = metrics.get_meter(__name__, meter_provider=meter_provider)
        self._requests = meter.create_counter(
            "registry.client.requests",
            unit="1",
            description="HTTP attempts issued by the registry client",
        )
        self._duration = meter.create_histogram(
            "registry.client.duration",
            unit="s",
            description="Duration of HTTP attempts issued by the registry client",
        )

    def start(self, event: AttemptEvent, headers: MutableMapping[str, str]) -> trace.Span:
        span = self._tracer.start_span(
            event.span_name,
            kind=trace.SpanKind.CLIENT,
            attributes={
                "http.request.method": event.method,
                "url.path": event.path,
                "registry.operation": event.operation,
                "registry.collection": event.collection or "",
                "registry.attempt": event.attempt,
            },
        )
        propagate.inject(headers, context=trace.set_span_in_context(span))
        return span

    def finish(self, event: AttemptEvent, handle: trace.Span) -> None:
        outcome = event.outcome.value if event.outcome else "unknown"
        if event.status_code is not None:
            handle.set_attribute("http.response.status_code", event.status_code)
        handle.set_attribute("registry.outcome", outcome)
        if event.outcome is not Outcome.SUCCESS:
            handle.set_status(trace.Status(trace.StatusCode.ERROR, outcome))
        handle.end()

        attributes = {
            "operation": event.operation,
            "collection": event.collection or "",
            "outcome": outcome,
        }
        self._requests.add(1, attributes)
        self._duration.record(event.duration, attributes)
