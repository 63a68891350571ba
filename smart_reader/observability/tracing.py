"""
OpenTelemetry Tracing - Spans around ingestion and AI calls
"""

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ..core.config import settings


# Global tracer
tracer = trace.get_tracer(__name__)


def setup_tracing():
    """
    Configure OpenTelemetry tracing.

    Exports traces to the OTLP endpoint when one is configured.
    """
    resource = Resource.create({
        "service.name": settings.service_name,
        "service.version": "1.0.0",
        "deployment.environment": settings.environment
    })

    provider = TracerProvider(resource=resource)

    # Exporter is optional (lazy import avoids a hard grpcio dependency)
    if settings.otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            otlp_exporter = OTLPSpanExporter(
                endpoint=settings.otlp_endpoint,
                insecure=True
            )
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        except ImportError:
            from .logging import get_logger
            get_logger(__name__).warning(
                "tracing.exporter_missing",
                detail="opentelemetry-exporter-otlp not installed; tracing export disabled",
            )

    trace.set_tracer_provider(provider)

    global tracer
    tracer = trace.get_tracer(__name__)


def get_tracer(name: str = None):
    """Get a tracer instance"""
    return trace.get_tracer(name or __name__)
