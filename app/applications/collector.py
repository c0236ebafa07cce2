"""Prometheus collector mapping the cached application snapshot to metrics."""

from __future__ import annotations

import threading
import time
from typing import Iterable

from prometheus_client import Counter, Gauge
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from app.applications.cache import SnapshotCache
from app.applications.schemas import ApplicationRecord, Snapshot
from app.lib.logger import get_logger


logger = get_logger(__name__)

CONSTANT_LABELS: tuple[str, ...] = ("environment", "deployment")

INFO_LABELS: tuple[str, ...] = (
    "application_id",
    "application_name",
    "detected_buildpack",
    "buildpack",
    "organization_id",
    "organization_name",
    "space_id",
    "space_name",
    "stack_id",
    "state",
)
INSTANCES_LABELS: tuple[str, ...] = (
    "application_id",
    "application_name",
    "organization_id",
    "organization_name",
    "space_id",
    "space_name",
    "state",
)
RESOURCE_LABELS: tuple[str, ...] = (
    "application_id",
    "application_name",
    "organization_id",
    "organization_name",
    "space_id",
    "space_name",
)


class ApplicationsCollector(Collector):
    """Serve the current snapshot on every scrape without touching the network.

    Each scrape clears the per-application vectors before loading the snapshot,
    so applications missing from the latest snapshot stop being exported.
    """

    def __init__(
        self,
        cache: SnapshotCache,
        *,
        namespace: str,
        environment: str,
        deployment: str,
    ) -> None:
        self._cache = cache
        self._constant_labels = {"environment": environment, "deployment": deployment}
        self._lock = threading.Lock()

        def gauge(name: str, documentation: str, labelnames: tuple[str, ...] = (), subsystem: str = "") -> Gauge:
            return Gauge(
                name,
                documentation,
                labelnames=CONSTANT_LABELS + labelnames,
                namespace=namespace,
                subsystem=subsystem,
                registry=None,
            )

        self.application_info = gauge(
            "info",
            "Labeled Cloud Foundry Application information with a constant '1' value.",
            INFO_LABELS,
            subsystem="application",
        )
        self.application_instances = gauge(
            "instances",
            "Number of desired Cloud Foundry Application Instances.",
            INSTANCES_LABELS,
            subsystem="application",
        )
        self.application_instances_running = gauge(
            "instances_running",
            "Number of running Cloud Foundry Application Instances.",
            INSTANCES_LABELS,
            subsystem="application",
        )
        self.application_memory_mb = gauge(
            "memory_mb",
            "Cloud Foundry Application Memory (Mb).",
            RESOURCE_LABELS,
            subsystem="application",
        )
        self.application_disk_quota_mb = gauge(
            "disk_quota_mb",
            "Cloud Foundry Application Disk Quota (Mb).",
            RESOURCE_LABELS,
            subsystem="application",
        )

        self.scrapes_total = Counter(
            "applications_scrapes",
            "Total number of scrapes for Cloud Foundry Applications.",
            labelnames=CONSTANT_LABELS,
            namespace=namespace,
            registry=None,
        )
        self.scrape_errors_total = Counter(
            "applications_scrape_errors",
            "Total number of scrape errors of Cloud Foundry Applications.",
            labelnames=CONSTANT_LABELS,
            namespace=namespace,
            registry=None,
        )
        self.last_scrape_error = gauge(
            "last_applications_scrape_error",
            "Whether the last scrape of Applications metrics from Cloud Foundry resulted in an error "
            "(1 for error, 0 for success).",
        )
        self.last_scrape_timestamp = gauge(
            "last_applications_scrape_timestamp",
            "Number of seconds since 1970 since last scrape of Applications metrics from Cloud Foundry.",
        )
        self.last_scrape_duration_seconds = gauge(
            "last_applications_scrape_duration_seconds",
            "Duration of the last scrape of Applications metrics from Cloud Foundry.",
        )

        self._application_metrics: tuple[Gauge, ...] = (
            self.application_info,
            self.application_instances,
            self.application_instances_running,
            self.application_memory_mb,
            self.application_disk_quota_mb,
        )
        self._scrape_metrics: tuple[Counter | Gauge, ...] = (
            self.scrape_errors_total,
            self.scrapes_total,
            self.last_scrape_error,
            self.last_scrape_timestamp,
            self.last_scrape_duration_seconds,
        )

        # Meta series exist from the first scrape, even before any error happened.
        for metric in self._scrape_metrics:
            metric.labels(**self._constant_labels)

    def describe(self) -> Iterable[Metric]:
        for metric in self._application_metrics + self._scrape_metrics:
            yield from metric.describe()

    def collect(self) -> Iterable[Metric]:
        with self._lock:
            families = self._collect_locked()
        yield from families

    def _collect_locked(self) -> list[Metric]:
        begun = time.perf_counter()
        snapshot = self._cache.current()

        for metric in self._application_metrics:
            metric.clear()
        self._load_from_snapshot(snapshot)

        error_value = 0.0
        if snapshot.error is not None:
            error_value = 1.0
            self.scrape_errors_total.labels(**self._constant_labels).inc()
            logger.warning(
                "applications.collect.stale_error",
                extra={
                    "reason": str(snapshot.error),
                    "applications": len(snapshot.applications),
                    "refreshed_at": snapshot.refreshed_at.isoformat() if snapshot.refreshed_at else None,
                },
            )

        self.scrapes_total.labels(**self._constant_labels).inc()
        self.last_scrape_error.labels(**self._constant_labels).set(error_value)
        self.last_scrape_timestamp.labels(**self._constant_labels).set(time.time())
        self.last_scrape_duration_seconds.labels(**self._constant_labels).set(time.perf_counter() - begun)

        families: list[Metric] = []
        for metric in self._application_metrics + self._scrape_metrics:
            families.extend(metric.collect())
        return families

    def _load_from_snapshot(self, snapshot: Snapshot) -> None:
        for record in snapshot.applications:
            self._load_record(record)

    def _load_record(self, record: ApplicationRecord) -> None:
        identity = {
            "application_id": record.guid,
            "application_name": record.name,
            "organization_id": record.organization_guid,
            "organization_name": record.organization_name,
            "space_id": record.space_guid,
            "space_name": record.space_name,
        }

        self.application_info.labels(
            **self._constant_labels,
            **identity,
            detected_buildpack=record.detected_buildpack,
            buildpack=record.buildpack,
            stack_id=record.stack_guid,
            state=record.state,
        ).set(1)
        self.application_instances.labels(**self._constant_labels, **identity, state=record.state).set(
            record.instances
        )
        self.application_instances_running.labels(**self._constant_labels, **identity, state=record.state).set(
            record.running_instances
        )
        self.application_memory_mb.labels(**self._constant_labels, **identity).set(record.memory_mb)
        self.application_disk_quota_mb.labels(**self._constant_labels, **identity).set(record.disk_quota_mb)
