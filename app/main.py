"""FastAPI application entrypoint for the Cloud Foundry applications exporter."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry

from app.applications import ApplicationsCollector, ApplicationsRefresher, SnapshotCache
from app.applications import router as applications_router
from app.config import Settings, get_settings
from app.lib.cf_client import CloudFoundryClient
from app.lib.logger import configure_logging, get_logger
from app.lib.metrics import METRICS

settings = get_settings()

configure_logging(settings.log_level)
logger = get_logger(__name__)


def build_client(settings: Settings) -> CloudFoundryClient:
    return CloudFoundryClient(
        settings.cf_api_url,
        username=settings.cf_username,
        password=settings.cf_password,
        client_id=settings.cf_client_id,
        client_secret=settings.cf_client_secret,
        skip_ssl_validation=settings.cf_skip_ssl_validation,
        timeout=settings.cf_request_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the snapshot refresher for the lifetime of the server."""

    client = build_client(settings)
    refresher = ApplicationsRefresher(
        client,
        app.state.snapshot_cache,
        interval=settings.applications_refresh_interval,
        organizations_concurrency=settings.organizations_concurrency,
        spaces_concurrency=settings.spaces_concurrency,
        metrics=app.state.metrics,
    )
    app.state.refresher = refresher
    refresher.start()
    try:
        yield
    finally:
        await refresher.stop()
        await client.close()
        app.state.refresher = None


app = FastAPI(title="Cloud Foundry Applications Exporter", version="0.1.0", lifespan=lifespan)

app.state.snapshot_cache = SnapshotCache()
app.state.metrics = METRICS
app.state.refresher = None
app.state.registry = CollectorRegistry()
app.state.collector = ApplicationsCollector(
    app.state.snapshot_cache,
    namespace=settings.metrics_namespace,
    environment=settings.metrics_environment,
    deployment=settings.metrics_deployment,
)
app.state.registry.register(app.state.collector)

app.include_router(applications_router, tags=["applications"])

logger.info(
    "exporter.configured",
    extra={
        "cf_api_url": settings.cf_api_url,
        "namespace": settings.metrics_namespace,
        "environment": settings.metrics_environment,
        "deployment": settings.metrics_deployment,
        "refresh_interval_seconds": settings.applications_refresh_interval,
    },
)


@app.get("/health", tags=["system"], summary="Health check")
async def health_check() -> JSONResponse:
    """Return liveness response for uptime monitoring."""
    payload = {"ok": True, "data": {"status": "healthy"}}
    return JSONResponse(content=payload)
