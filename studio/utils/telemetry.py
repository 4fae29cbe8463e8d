from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

# One provider per process: the API and the worker both call init_otel,
# and OpenTelemetry refuses to replace a global provider once set.
_provider: Optional[TracerProvider] = None
_instrumented_engines: set[int] = set()


def init_otel(app=None, engine=None, service_name: str = "studio-preview", console_export: bool = False):
    """Initialize OpenTelemetry tracing for this process.

    Provisioning and sweep spans are always recorded; they are printed only
    with `console_export` (on by default in DEBUG). Pass the FastAPI app and
    the SQLAlchemy engine to instrument them; repeated calls are no-ops.
    """
    global _provider
    if _provider is None:
        _provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
        if console_export:
            _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(_provider)

    if app is not None and not getattr(app.state, "otel_instrumented", False):
        FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")
        app.state.otel_instrumented = True

    if engine is not None and id(engine) not in _instrumented_engines:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
        _instrumented_engines.add(id(engine))

    return trace.get_tracer(service_name)


def shutdown_otel() -> None:
    """Flush pending spans; called on API and worker shutdown."""
    if _provider is not None:
        _provider.shutdown()
