"""Routes exposing the Prometheus scrape endpoint and the snapshot status."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from app.applications.cache import SnapshotCache
from app.lib.metrics import MetricsRegistry

router = APIRouter()


def get_snapshot_cache(request: Request) -> SnapshotCache:
    cache: SnapshotCache | None = getattr(request.app.state, "snapshot_cache", None)
    if cache is None:
        raise RuntimeError("Snapshot cache not configured on application state")
    return cache


def get_registry(request: Request) -> CollectorRegistry:
    registry: CollectorRegistry | None = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Collector registry not configured on application state")
    return registry


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics(registry: CollectorRegistry = Depends(get_registry)) -> Response:
    """Expose the cached application metrics in Prometheus text format."""

    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


@router.get("/applications/snapshot")
async def get_applications_snapshot(
    request: Request,
    cache: SnapshotCache = Depends(get_snapshot_cache),
) -> JSONResponse:
    snapshot = cache.current()
    metrics: MetricsRegistry | None = getattr(request.app.state, "metrics", None)
    refresh_cycles = metrics.snapshot("applications.refresh.") if metrics is not None else {}
    refresher = getattr(request.app.state, "refresher", None)
    payload = snapshot.json_payload() | {
        "refresh_cycles": refresh_cycles,
        "refresher_running": bool(refresher is not None and refresher.running),
    }
    return JSONResponse({"ok": True, "data": payload})
