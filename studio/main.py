from contextlib import asynccontextmanager

from fastapi import FastAPI

from studio import config
from studio.db.base import async_engine
from studio.dependencies import get_preview_service
from studio.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from studio.middleware.rate_limiter import RateLimitMiddleware
from studio.observability.logger import configure_logging
from studio.observability.metrics import metrics_response
from studio.routers.health import router as health_router
from studio.routers.jobs import router as jobs_router
from studio.routers.preview import router as preview_router
from studio.utils.logger import log_info
from studio.utils.telemetry import init_otel, shutdown_otel


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config)
    log_info(f"Preview API starting on {config.HOST}:{config.PORT}")
    yield
    # Let in-flight provisioning settle so no schema is left half-seeded
    log_info("Waiting for in-flight provisioning before shutdown...")
    await get_preview_service().wait_for_provisioning()
    await async_engine.dispose()
    shutdown_otel()
    log_info("Shutdown complete.")


app = FastAPI(
    title="Studio Preview API",
    description="Ephemeral, per-visitor preview environments for configured starter-kit bundles",
    version="1.0.0",
    lifespan=lifespan,
)

# Add middleware (order matters: last added = outermost)
app.add_middleware(RateLimitMiddleware, api_limit=60, general_limit=200)
app.add_middleware(ErrorHandlerMiddleware, debug=config.DEBUG)

setup_exception_handlers(app)

app.include_router(health_router)
app.include_router(preview_router, prefix="/api")
app.include_router(jobs_router, prefix="/api")


@app.get("/metrics", include_in_schema=False)
async def prometheus_metrics():
    return metrics_response()


init_otel(app=app, engine=async_engine, service_name=config.SERVICE_NAME, console_export=config.DEBUG)


def get_app() -> FastAPI:
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("studio.main:app", host=config.HOST, port=config.PORT)
