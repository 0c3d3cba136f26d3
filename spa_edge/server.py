from typing import Optional, Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from spa_edge.cors import add_cors
from spa_edge.routes import router
from spa_edge.static.route import mount_static
from spa_edge.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME


class FilteringSpanExporter(SpanExporter):
    """
    Exporter wrapper that drops the per-chunk "http.response.body" spans the
    ASGI instrumentation emits while an /api response body is relayed, keeping
    one request span plus the "proxy_request" span per forwarded call.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def create_app(
    build_dir: Optional[str] = None,
    cors_mode: Optional[str] = None,
    instrument: bool = False,
) -> FastAPI:
    """
    Assemble the edge app: explicit routes first, CORS layer, metrics, then
    the static mount which takes whatever is left.
    """
    app = FastAPI(title=SERVICE_NAME, docs_url=None, redoc_url=None, openapi_url=None)
    app.include_router(router)
    add_cors(app, mode=cors_mode)
    if instrument:
        # /metrics has to be registered before the static mount swallows it
        Instrumentator().instrument(app).expose(app, include_in_schema=False)
    mount_static(app, build_dir)
    return app


def setup_tracing(app: FastAPI) -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    tracer_provider = trace.get_tracer_provider()
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=OTLP_HEADERS or None,
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )

    FastAPIInstrumentor.instrument_app(app)


app = create_app(instrument=True)
setup_tracing(app)

app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
