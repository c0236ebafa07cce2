"""Pytest fixtures for the Cloud Foundry applications exporter tests."""

from collections.abc import AsyncIterator, Iterator
import os

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("CF_API_URL", "https://api.cf.example.test")
os.environ.setdefault("CF_USERNAME", "exporter")
os.environ.setdefault("CF_PASSWORD", "test-password")
os.environ.setdefault("METRICS_NAMESPACE", "cf")
os.environ.setdefault("METRICS_ENVIRONMENT", "test")
os.environ.setdefault("METRICS_DEPLOYMENT", "cf-exporter")

from app.applications.schemas import ApplicationRecord, Organization, Space, SpaceSummary
from app.main import app as fastapi_app


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """Return the FastAPI application instance."""
    return fastapi_app


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an `httpx.AsyncClient` configured for the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture(autouse=True)
def reset_runtime(app: FastAPI) -> Iterator[None]:
    """Reset internal counters and the cached snapshot across tests."""

    metrics = getattr(app.state, "metrics", None)
    cache = getattr(app.state, "snapshot_cache", None)
    if metrics is not None:
        metrics.reset()
    if cache is not None:
        cache.reset()
    yield
    if metrics is not None:
        metrics.reset()
    if cache is not None:
        cache.reset()


def make_record(
    guid: str,
    *,
    name: str | None = None,
    space: str = "space-1",
    organization: str = "org-1",
    instances: int = 2,
    running_instances: int = 2,
    memory_mb: int = 256,
    disk_quota_mb: int = 1024,
    state: str = "STARTED",
    buildpack: str = "python_buildpack",
) -> ApplicationRecord:
    """Build a snapshot record with sensible defaults."""

    return ApplicationRecord(
        guid=guid,
        name=name or f"{guid}-name",
        instances=instances,
        running_instances=running_instances,
        memory_mb=memory_mb,
        disk_quota_mb=disk_quota_mb,
        stack_guid="stack-cflinuxfs4",
        state=state,
        buildpack=buildpack,
        detected_buildpack=buildpack,
        space_guid=space,
        space_name=f"{space}-name",
        organization_guid=organization,
        organization_name=f"{organization}-name",
    )


def make_summary(space_guid: str, app_guids: list[str]) -> SpaceSummary:
    return SpaceSummary.model_validate(
        {
            "guid": space_guid,
            "name": f"{space_guid}-name",
            "apps": [
                {
                    "guid": guid,
                    "name": f"{guid}-name",
                    "instances": 2,
                    "running_instances": 1,
                    "memory": 512,
                    "disk_quota": 1024,
                    "stack_guid": "stack-cflinuxfs4",
                    "state": "STARTED",
                    "buildpack": None,
                    "detected_buildpack": "python",
                }
                for guid in app_guids
            ],
        }
    )


def make_organization(guid: str) -> Organization:
    return Organization(guid=guid, name=f"{guid}-name")


def make_space(guid: str, organization_guid: str) -> Space:
    return Space(guid=guid, name=f"{guid}-name", organization_guid=organization_guid)
