import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from mirror_proxy.config import load_config
from mirror_proxy.routes import router
from mirror_proxy.tracing import RelayChunkFilteringExporter
from mirror_proxy.upstream import UpstreamClient
from mirror_proxy.vars import METRICS_PATH, OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

# Raises InvalidTargetError on a malformed origin, which aborts startup
proxy_config = load_config()
logger.info(
    f"Proxying to {proxy_config.target_origin} "
    f"(redirects: {proxy_config.redirect_mode.value}, rewrite_html: {proxy_config.rewrite_html})"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the pooled upstream client for the lifetime of the process."""
    upstream = UpstreamClient(app.state.proxy_config)
    app.state.upstream = upstream
    try:
        yield
    finally:
        await upstream.aclose()


# Docs routes would shadow upstream paths
app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
app.state.proxy_config = proxy_config

instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint=METRICS_PATH, include_in_schema=False)

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
        BatchSpanProcessor(RelayChunkFilteringExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app, excluded_urls=METRICS_PATH)

app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME, "target_origin": proxy_config.target_origin})

app.include_router(router)
