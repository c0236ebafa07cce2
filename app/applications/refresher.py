"""Background refresh of the application snapshot from the Cloud Controller."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from app.applications.cache import SnapshotCache
from app.applications.schemas import ApplicationRecord, Organization, Snapshot, Space, SpaceSummary
from app.lib.logger import get_logger
from app.lib.metrics import METRICS, MetricsRegistry


logger = get_logger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 300.0
DEFAULT_ORGANIZATIONS_CONCURRENCY = 10
DEFAULT_SPACES_CONCURRENCY = 10


class InventoryClient(Protocol):
    """Upstream calls the refresher relies on; any raised exception marks the branch failed."""

    async def list_organizations(self) -> list[Organization]: ...

    async def list_organization_spaces(self, organization_guid: str) -> list[Space]: ...

    async def get_space_summary(self, space_guid: str) -> SpaceSummary: ...


@dataclass
class _CycleAccumulator:
    records: list[ApplicationRecord] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)

    @property
    def first_error(self) -> Exception | None:
        return self.errors[0] if self.errors else None


class ApplicationsRefresher:
    """Walk organizations, spaces and space summaries, then publish one snapshot per cycle."""

    def __init__(
        self,
        client: InventoryClient,
        cache: SnapshotCache,
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        organizations_concurrency: int = DEFAULT_ORGANIZATIONS_CONCURRENCY,
        spaces_concurrency: int = DEFAULT_SPACES_CONCURRENCY,
        metrics: MetricsRegistry = METRICS,
    ) -> None:
        if interval <= 0:
            raise ValueError("Refresh interval must be positive")
        if organizations_concurrency < 1 or spaces_concurrency < 1:
            raise ValueError("Concurrency limits must be at least 1")
        self._client = client
        self._cache = cache
        self._interval = interval
        self._organizations_concurrency = organizations_concurrency
        self._spaces_concurrency = spaces_concurrency
        self._metrics = metrics
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> Snapshot:
        """Run one full cycle and publish its snapshot, whatever the outcome."""

        begun = time.monotonic()
        self._metrics.increment("applications.refresh.cycle")
        logger.info("applications.refresh.start")

        accumulator = _CycleAccumulator()
        try:
            organizations = await self._client.list_organizations()
        except Exception as exc:
            logger.warning("applications.refresh.organizations_failed", extra={"reason": str(exc)})
            accumulator.errors.append(exc)
        else:
            semaphore = asyncio.Semaphore(self._organizations_concurrency)
            await asyncio.gather(
                *(self._refresh_organization(organization, semaphore, accumulator) for organization in organizations)
            )

        elapsed = time.monotonic() - begun
        snapshot = Snapshot(
            applications=tuple(accumulator.records),
            error=accumulator.first_error,
            refreshed_at=datetime.now(tz=UTC),
            cycle_seconds=elapsed,
        )
        self._cache.publish(snapshot)

        if snapshot.failed:
            self._metrics.increment("applications.refresh.error")
            logger.warning(
                "applications.refresh.failed",
                extra={
                    "applications": len(snapshot.applications),
                    "errors": len(accumulator.errors),
                    "reason": str(snapshot.error),
                    "duration_seconds": round(elapsed, 3),
                },
            )
        else:
            self._metrics.increment("applications.refresh.success")
            logger.info(
                "applications.refresh.complete",
                extra={"applications": len(snapshot.applications), "duration_seconds": round(elapsed, 3)},
            )
        return snapshot

    async def _refresh_organization(
        self,
        organization: Organization,
        semaphore: asyncio.Semaphore,
        accumulator: _CycleAccumulator,
    ) -> None:
        async with semaphore:
            try:
                spaces = await self._client.list_organization_spaces(organization.guid)
            except Exception as exc:
                logger.warning(
                    "applications.refresh.spaces_failed",
                    extra={"organization_guid": organization.guid, "reason": str(exc)},
                )
                accumulator.errors.append(exc)
                return

            space_semaphore = asyncio.Semaphore(self._spaces_concurrency)
            await asyncio.gather(
                *(self._refresh_space(organization, space, space_semaphore, accumulator) for space in spaces)
            )

    async def _refresh_space(
        self,
        organization: Organization,
        space: Space,
        semaphore: asyncio.Semaphore,
        accumulator: _CycleAccumulator,
    ) -> None:
        async with semaphore:
            try:
                summary = await self._client.get_space_summary(space.guid)
            except Exception as exc:
                logger.warning(
                    "applications.refresh.summary_failed",
                    extra={"organization_guid": organization.guid, "space_guid": space.guid, "reason": str(exc)},
                )
                accumulator.errors.append(exc)
                return

            accumulator.records.extend(
                ApplicationRecord.from_summary(app, space, organization) for app in summary.apps
            )

    # ---- Scheduling ----

    def start(self) -> None:
        """Schedule the refresh loop on the running event loop; the first cycle runs immediately."""

        if self.running:
            return
        task = asyncio.create_task(self._run(), name="applications-refresher")
        self._task = task

        def _cleanup(_task: asyncio.Task[None]) -> None:
            if _task.cancelled():
                return
            exc = _task.exception()
            if exc is not None:  # pragma: no cover - logged for observability
                logger.error("applications.refresh.loop_failed", exc_info=exc)

        task.add_done_callback(_cleanup)
        logger.info("applications.refresher.started", extra={"interval_seconds": self._interval})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("applications.refresher.stopped")

    async def _run(self) -> None:
        while True:
            begun = time.monotonic()
            try:
                await self.refresh()
            except Exception:
                logger.exception("applications.refresh.unexpected_error")
            # Fixed cadence: a cycle longer than the interval starts the next one right away.
            delay = max(self._interval - (time.monotonic() - begun), 0.0)
            await asyncio.sleep(delay)
