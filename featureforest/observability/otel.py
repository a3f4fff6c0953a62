"""OpenTelemetry + Prometheus fallback wiring for featureforest."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from featureforest import config

logger = logging.getLogger("featureforest.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_assembly_counter: Any | None = None
_assembly_latency_hist: Any | None = None
_parse_failure_counter: Any | None = None
_records_counter: Any | None = None

_prom_enabled = False
_prom_assembly_counter: Any | None = None
_prom_assembly_latency_hist: Any | None = None
_prom_parse_failure_counter: Any | None = None
_prom_records_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _start_prometheus() -> None:
    global _prom_enabled, _prom_assembly_counter, _prom_assembly_latency_hist, _prom_parse_failure_counter
    global _prom_records_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_assembly_counter = Counter(
            "featureforest_assemblies_total",
            "Count of forest assembly runs",
            ["result"],
        )
        _prom_assembly_latency_hist = Histogram(
            "featureforest_assembly_latency_ms",
            "Latency of parse + assembly runs",
            ["result"],
        )
        _prom_parse_failure_counter = Counter(
            "featureforest_parse_failures_total",
            "Count of rejected input lines",
            ["kind"],
        )
        _prom_records_counter = Counter(
            "featureforest_assembled_entities_total",
            "Records consumed and programs produced by assembly",
            ["entity"],
        )
        _prom_enabled = True
        logger.info("Prometheus metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus metrics not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _assembly_counter, _assembly_latency_hist, _parse_failure_counter, _records_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if config.PROM_PORT > 0:
        _start_prometheus()

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (FEATUREFOREST_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "featureforest"

    resource = Resource.create({"service.name": service_name, "service.namespace": "featureforest"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=metrics_endpoint or None))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("featureforest")

    _assembly_counter = meter.create_counter(
        "featureforest_assemblies_total",
        unit="1",
        description="Count of forest assembly runs",
    )
    _assembly_latency_hist = meter.create_histogram(
        "featureforest_assembly_latency_ms",
        unit="ms",
        description="Latency of parse + assembly runs",
    )
    _parse_failure_counter = meter.create_counter(
        "featureforest_parse_failures_total",
        unit="1",
        description="Count of rejected input lines",
    )
    _records_counter = meter.create_counter(
        "featureforest_assembled_entities_total",
        unit="1",
        description="Records consumed and programs produced by assembly",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("featureforest")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:  # noqa: BLE001
        logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    for provider in (_meter_provider, _trace_provider):
        try:
            if provider is not None:
                provider.shutdown()
        except Exception:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_assembly(result: str, duration_ms: float, *, record_count: int = 0, program_count: int = 0) -> None:
    labels = {"result": result or "unknown"}
    duration = max(0.0, float(duration_ms))
    records = max(0, int(record_count))
    programs = max(0, int(program_count))
    if _enabled and _assembly_counter is not None:
        _assembly_counter.add(1, labels)
    if _enabled and _assembly_latency_hist is not None:
        _assembly_latency_hist.record(duration, labels)
    if _enabled and _records_counter is not None and records:
        _records_counter.add(records, {"entity": "record"})
        _records_counter.add(programs, {"entity": "program"})
    if _prom_enabled and _prom_assembly_counter is not None:
        _prom_assembly_counter.labels(**labels).inc()
    if _prom_enabled and _prom_assembly_latency_hist is not None:
        _prom_assembly_latency_hist.labels(**labels).observe(duration)
    if _prom_enabled and _prom_records_counter is not None and records:
        _prom_records_counter.labels(entity="record").inc(records)
        _prom_records_counter.labels(entity="program").inc(programs)


def record_parse_failure(kind: str) -> None:
    label = (kind or "").strip() or "unknown"
    if _enabled and _parse_failure_counter is not None:
        _parse_failure_counter.add(1, {"kind": label})
    if _prom_enabled and _prom_parse_failure_counter is not None:
        _prom_parse_failure_counter.labels(kind=label).inc()
