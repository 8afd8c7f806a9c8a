"""Tracing and trace-correlated logging for the API process."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from skillboard.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
UNTRACED_TRACE_ID = "0" * 32
UNTRACED_SPAN_ID = "0" * 16

# Health checks are polled constantly and would drown real request spans.
_EXCLUDED_URLS = "healthz,readyz"

_base_record_factory = logging.getLogRecordFactory()
_httpx_instrumentor = HTTPXClientInstrumentor()
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TelemetryRuntime:
    provider: TracerProvider
    exporting: bool


def correlated_record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
    record = _base_record_factory(*args, **kwargs)
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        record.trace_id = format(span_context.trace_id, "032x")
        record.span_id = format(span_context.span_id, "016x")
    else:
        record.trace_id = UNTRACED_TRACE_ID
        record.span_id = UNTRACED_SPAN_ID
    return record


def configure_api_logging(level: str = "INFO") -> None:
    logging.setLogRecordFactory(correlated_record_factory)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime | None:
    """Install log correlation and, when enabled, an OTLP-exporting tracer provider.

    Returns None when tracing is off; log records still carry zeroed trace ids
    so the log format stays stable.
    """
    configure_api_logging(settings.log_level)
    if not settings.otel_enabled:
        logger.info("tracing disabled service=%s", settings.otel_service_name)
        return None

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=ParentBased(TraceIdRatioBased(settings.otel_trace_sample_ratio)),
    )

    endpoint = resolve_otlp_endpoint(settings.otel_exporter_otlp_endpoint)
    if endpoint:
        headers = parse_otlp_headers(settings.otel_exporter_otlp_headers or os.getenv("OTEL_EXPORTER_OTLP_HEADERS"))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers or None)))
    else:
        logger.info("no OTLP endpoint configured; API spans stay in-process")

    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=_EXCLUDED_URLS)
    _httpx_instrumentor.instrument(tracer_provider=provider)
    return TelemetryRuntime(provider=provider, exporting=bool(endpoint))


def shutdown_api_telemetry(app: FastAPI, runtime: TelemetryRuntime) -> None:
    FastAPIInstrumentor.uninstrument_app(app)
    _httpx_instrumentor.uninstrument()
    if runtime.exporting:
        runtime.provider.force_flush()
    runtime.provider.shutdown()


def resolve_otlp_endpoint(configured: str | None) -> str | None:
    return (
        configured
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or None
    )


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """Parse the ``key=value,key=value`` form used by OTEL_EXPORTER_OTLP_HEADERS."""
    if not raw:
        return {}
    pairs = (item.partition("=") for item in raw.split(","))
    return {key.strip(): value.strip() for key, sep, value in pairs if sep and key.strip()}
