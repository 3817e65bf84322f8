"""
OpenTelemetry Tracing Setup
===========================
Every pipeline step executes inside a span. Spans are exported over OTLP/HTTP
only when OPENTRACE_ENABLE_TRACING is true; otherwise the global no-op tracer
is used.
"""

import atexit
import json
from typing import Any, Mapping, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from opentrace.config import TRACING

_MAX_ATTR_CHARS = 1024

_tracer: Optional[trace.Tracer] = None


def init_tracing() -> trace.Tracer:
    """Return the process tracer, installing the OTLP exporter on first use if enabled."""
    global _tracer
    if _tracer is None:
        if TRACING.ENABLED:
            provider = TracerProvider(resource=Resource.create({SERVICE_NAME: TRACING.SERVICE_NAME}))
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=TRACING.OTLP_ENDPOINT)))
            trace.set_tracer_provider(provider)
            # Flush pending spans on interpreter exit.
            atexit.register(provider.shutdown)
        _tracer = trace.get_tracer(TRACING.SERVICE_NAME)
    return _tracer


def _attr_value(value: Any) -> Any:
    if isinstance(value, str):
        return value[:_MAX_ATTR_CHARS]
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, dict):
        try:
            return json.dumps(value, sort_keys=True)[:_MAX_ATTR_CHARS]
        except (TypeError, ValueError):
            return str(value)[:_MAX_ATTR_CHARS]
    return str(value)[:_MAX_ATTR_CHARS]


def safe_set_span_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    """Best-effort attribute setter.

    Safe to call with a no-op span or values that are not span-compatible.
    None values and non-string keys are skipped.
    """

    setter = getattr(span, "set_attribute", None)
    if not callable(setter):
        return

    for key, value in attributes.items():
        if not isinstance(key, str) or not key or value is None:
            continue
        try:
            setter(key, _attr_value(value))
        except Exception:
            # Tracing must never break a pipeline run.
            continue
