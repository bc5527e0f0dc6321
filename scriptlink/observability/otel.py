"""OpenTelemetry + Prometheus fallback wiring for scriptlink."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from scriptlink import config

logger = logging.getLogger("scriptlink.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None

_reconcile_counter: Any | None = None
_header_failure_counter: Any | None = None

_prom_enabled = False
_prom_reconcile_counter: Any | None = None
_prom_header_failure_counter: Any | None = None


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


def _labels(**values: str) -> dict[str, str]:
    return {key: (value or "").strip() or "unknown" for key, value in values.items()}


def initialize() -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider
    global _reconcile_counter, _header_failure_counter
    global _prom_enabled, _prom_reconcile_counter, _prom_header_failure_counter

    if _initialized:
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (SCRIPTLINK_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
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
    service_name = config.OTEL_SERVICE_NAME or "scriptlink"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "scriptlink",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("scriptlink")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("scriptlink")

    _reconcile_counter = meter.create_counter(
        "scriptlink_reconcile_events_total",
        unit="1",
        description="File events handled by the reconciliation driver, by outcome",
    )
    _header_failure_counter = meter.create_counter(
        "scriptlink_header_failures_total",
        unit="1",
        description="External scripts whose stamp could not be parsed",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _enabled = True

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_reconcile_counter = Counter(
                "scriptlink_reconcile_events_total",
                "File events handled by the reconciliation driver, by outcome",
                ["source", "action"],
            )
            _prom_header_failure_counter = Counter(
                "scriptlink_header_failures_total",
                "External scripts whose stamp could not be parsed",
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown() -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Trace provider shutdown failed: %s", exc)
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


def record_reconcile(source: str, action: str) -> None:
    labels = _labels(source=source, action=action)
    if _enabled and _reconcile_counter is not None:
        _reconcile_counter.add(1, labels)
    if _prom_enabled and _prom_reconcile_counter is not None:
        _prom_reconcile_counter.labels(**labels).inc()


def record_header_failure() -> None:
    if _enabled and _header_failure_counter is not None:
        _header_failure_counter.add(1)
    if _prom_enabled and _prom_header_failure_counter is not None:
        _prom_header_failure_counter.inc()
