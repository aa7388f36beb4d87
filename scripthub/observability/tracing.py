"""
Distributed Tracing with OpenTelemetry.

Requests are traced by the FastAPI instrumentation and SQL statements by the
SQLAlchemy one. traced() adds spans for document store operations, redemptions
and gacha plays.

A span that ends in a business rejection (unknown or exhausted code, cooldown,
missing role) keeps an unset status and names the rejection in
scripthub.outcome. Only failures of the service itself mark a span as errored,
so error-rate dashboards are not driven by users mistyping codes.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Span, Status, StatusCode, Tracer
from sqlalchemy.ext.asyncio import AsyncEngine

from scripthub.config import settings
from scripthub.exceptions import (
    ConcurrencyError,
    IdentityProviderError,
    ScriptHubError,
    StoreUnavailableError,
)

TRACER_NAME = "scripthub"
ATTRIBUTE_PREFIX = "scripthub."

# ScriptHubErrors that are the service's fault rather than the caller's
FAILURES: tuple[type[ScriptHubError], ...] = (
    StoreUnavailableError,
    ConcurrencyError,
    IdentityProviderError,
)


def build_tracer_provider() -> TracerProvider:
    """Provider carrying the service resource and parent-based ratio sampling."""
    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.api_version,
        }
    )
    sampler = ParentBased(TraceIdRatioBased(settings.tracing_sample_ratio))
    return TracerProvider(resource=resource, sampler=sampler)


def setup_tracing() -> None:
    """Install the OTLP-exporting provider. No-op unless TRACING_ENABLED is set."""
    if not settings.tracing_enabled:
        return

    provider = build_tracer_provider()
    exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: FastAPI) -> None:
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: AsyncEngine) -> None:
    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def _tracer() -> Tracer:
    return trace.get_tracer(TRACER_NAME, settings.api_version)


def set_attributes(span: Span, **attributes: Any) -> None:
    """Set attributes under the scripthub. prefix; None is skipped, other objects stringified."""
    for key, value in attributes.items():
        if value is None:
            continue
        if not isinstance(value, (str, int, float, bool)):
            value = str(value)
        span.set_attribute(ATTRIBUTE_PREFIX + key, value)


def is_rejection(error: BaseException, expected: tuple[type[BaseException], ...] = ()) -> bool:
    """True when error is an outcome the caller caused, not a service failure."""
    if expected and isinstance(error, expected):
        return True
    return isinstance(error, ScriptHubError) and not isinstance(error, FAILURES)


@contextmanager
def traced(
    name: str, expected: tuple[type[BaseException], ...] = (), **attributes: Any
) -> Iterator[Span]:
    """
    Run the block inside a span called name.

    Exceptions always propagate. Rejections, including any type in expected,
    only set scripthub.outcome; everything else records the exception and
    marks the span as errored.

    Usage:
        with traced("redeem_code", user_id=user_id) as span:
            result = await self._redeem(...)
            set_attributes(span, code_id=result.code_id)
    """
    with _tracer().start_as_current_span(
        name, record_exception=False, set_status_on_exception=False
    ) as span:
        set_attributes(span, **attributes)
        try:
            yield span
        except Exception as e:
            if is_rejection(e, expected):
                set_attributes(span, outcome=type(e).__name__)
            else:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
            raise
