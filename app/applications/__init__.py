"""Application inventory snapshot: background refresh and Prometheus export."""

from app.applications.cache import SnapshotCache
from app.applications.collector import ApplicationsCollector
from app.applications.refresher import ApplicationsRefresher
from app.applications.routes import router

__all__ = ["ApplicationsCollector", "ApplicationsRefresher", "SnapshotCache", "router"]
