"""Message service main application."""

import time
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api.routes import router as api_router
from hnn.common.config import MessageServiceConfig
from hnn.common.logging import configure_logging
from hnn.common.metrics import get_metrics_collector
from hnn.common.tracing import configure_tracing, get_inference_tracer
from hnn.inference import InferenceOrchestrator, ModelLifecycleManager, TransportError
from hnn.inference.triton import TritonTransport
from hnn.storage.factory import create_store
from hnn.storage.postgres import PostgresStore

logger = structlog.get_logger("message_service")

SERVICE_NAME = "message-service"
REQUEST_ID_HEADER = "X-Request-ID"


async def _start_store(app: FastAPI, config: MessageServiceConfig) -> None:
    """Check engine liveness and open the store; the store is closed if schema setup fails."""
    try:
        live = await app.state.transport.is_server_live(timeout=config.hnn_triton_timeout_seconds)
        logger.info("Inference engine reachable", live=live)
    except TransportError as e:
        # Models are loaded on demand, so the service can start before the engine.
        logger.warning("Inference engine not reachable at startup", error=str(e))

    app.state.store = create_store(config)
    if isinstance(app.state.store, PostgresStore):
        try:
            await app.state.store.ensure_schema()
        except Exception:
            await app.state.store.close()
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    config = MessageServiceConfig()
    configure_logging(SERVICE_NAME, config.hnn_log_level, config.hnn_log_format)

    if config.hnn_tracing_enabled:
        tracer = configure_tracing(config.hnn_otel_service_name, config.hnn_otel_exporter, app=app)
        if tracer:
            logger.info("OpenTelemetry tracing enabled", exporter=config.hnn_otel_exporter)
        else:
            logger.warning("Tracing initialization failed")
    else:
        logger.info("OpenTelemetry tracing disabled via configuration")

    logger.info("Starting message service", triton_url=config.triton_url)

    app.state.metrics_collector = get_metrics_collector(SERVICE_NAME)
    app.state.request_timeout = config.hnn_request_timeout_seconds

    app.state.transport = TritonTransport(config.triton_url, verbose=config.hnn_triton_verbose)
    try:
        await _start_store(app, config)
    except Exception as e:
        logger.error("Message service failed to start", error=str(e))
        await app.state.transport.close()
        raise

    lifecycle = ModelLifecycleManager(
        app.state.transport,
        call_timeout=config.hnn_triton_timeout_seconds,
        metrics=app.state.metrics_collector,
    )
    app.state.orchestrator = InferenceOrchestrator(
        metadata=app.state.store,
        messages=app.state.store,
        transport=app.state.transport,
        lifecycle=lifecycle,
        tensor_length=config.hnn_tensor_length,
        call_timeout=config.hnn_triton_timeout_seconds,
        metrics=app.state.metrics_collector,
        tracer=get_inference_tracer(config.hnn_otel_service_name),
    )

    logger.info("Message service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down message service")
    await app.state.store.close()
    await app.state.transport.close()
    logger.info("Message service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Message Service",
    description="Inference requests against Triton models with stored message history",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Accept or assign a request id and echo it on the response."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect metrics for HTTP requests."""
    start_time = time.time()

    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as e:
        logger.error("Unhandled error", path=request.url.path, error=str(e))
        status_code = 500
        response = JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(e)}
        )

    duration = time.time() - start_time

    if hasattr(app.state, "metrics_collector"):
        app.state.metrics_collector.record_http_request(
            method=request.method,
            endpoint=request.url.path,
            status=status_code,
            duration=duration
        )

    return response


@app.get("/health")
async def health_check():
    """Health check endpoint: engine live and ready, store reachable."""
    try:
        transport = app.state.transport
        engine_live = await transport.is_server_live(timeout=5.0)
        engine_ready = await transport.is_server_ready(timeout=5.0)
        store_ok = await app.state.store.health_check()
    except (AttributeError, TransportError) as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME, "error": str(e)}
        )

    checks = {"engine_live": engine_live, "engine_ready": engine_ready, "store": store_ok}
    if all(checks.values()):
        return {"status": "healthy", "service": SERVICE_NAME, "checks": checks}
    return JSONResponse(
        status_code=503,
        content={"status": "unhealthy", "service": SERVICE_NAME, "checks": checks}
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    if hasattr(app.state, "metrics_collector"):
        metrics_data = app.state.metrics_collector.get_metrics()
        return Response(content=metrics_data, media_type="text/plain")
    return Response(content="# No metrics available\n", media_type="text/plain")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": "0.1.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "chat": "/api/v1/chat/{model_id}/{version_id}",
            "history": "/api/v1/chat/{model_id}",
            "delete_model": "/api/v1/models/{model_id}",
        }
    }


if __name__ == "__main__":
    config = MessageServiceConfig()
    uvicorn.run(
        "app.main:app",
        host=config.hnn_message_service_host,
        port=config.hnn_message_service_port,
        log_level="info"
    )
