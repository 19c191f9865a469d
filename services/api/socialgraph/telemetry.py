"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: auth failures, logins, social-graph mutations

Tracing is initialised once by the application factory; the metric objects
live at module level so every router can import them.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter

from socialgraph.config import Settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
AUTH_FAILURES_TOTAL = Counter(
    "auth_failures_total",
    "Requests rejected while resolving the bearer credential",
    ["reason"],  # 'missing' | 'malformed' | 'invalid'
)

LOGINS_TOTAL = Counter(
    "logins_total",
    "Login attempts",
    ["outcome"],  # 'success' | 'bad_credentials'
)

GRAPH_MUTATIONS_TOTAL = Counter(
    "graph_mutations_total",
    "Follow / unfollow / like / unlike calls that reached the store",
    ["operation"],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def build_tracer_provider(settings: Settings) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    # The gRPC channel connects lazily; an unreachable collector only drops spans.
    exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def setup_tracing(settings: Settings) -> None:
    """Install the OTLP tracer provider and trace store queries."""
    trace.set_tracer_provider(build_tracer_provider(settings))
    SQLAlchemyInstrumentor().instrument()
    logger.info("Tracing %s to %s", settings.service_name, settings.otel_exporter_otlp_endpoint)


def instrument_app(app) -> None:  # noqa: ANN001
    """Add request spans to a built application."""
    FastAPIInstrumentor.instrument_app(app)
