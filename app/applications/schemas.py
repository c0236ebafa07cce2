"""Schemas for Cloud Foundry inventory resources and the application snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _resource_parts(resource: Any) -> tuple[dict[str, Any], dict[str, Any]]:
    if not isinstance(resource, dict):
        raise TypeError(f"Expected a resource object, got {type(resource).__name__}")
    metadata = resource.get("metadata") or {}
    entity = resource.get("entity") or {}
    if not isinstance(metadata, dict) or not isinstance(entity, dict):
        raise TypeError("Resource metadata and entity must be objects")
    return metadata, entity


class Organization(BaseModel):
    """Top-level tenant returned by `GET /v2/organizations`."""

    guid: str = Field(..., min_length=1)
    name: str = ""

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "Organization":
        metadata, entity = _resource_parts(resource)
        return cls(guid=metadata.get("guid") or "", name=entity.get("name") or "")


class Space(BaseModel):
    """Space within an organization returned by `GET /v2/organizations/:guid/spaces`."""

    guid: str = Field(..., min_length=1)
    name: str = ""
    organization_guid: str = ""

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "Space":
        metadata, entity = _resource_parts(resource)
        return cls(
            guid=metadata.get("guid") or "",
            name=entity.get("name") or "",
            organization_guid=entity.get("organization_guid") or "",
        )


class ApplicationSummary(BaseModel):
    """Single application entry embedded in a space summary."""

    model_config = {"extra": "ignore"}

    guid: str
    name: str = ""
    instances: int = 0
    running_instances: int = 0
    memory: int = 0
    disk_quota: int = 0
    stack_guid: str = ""
    state: str = ""
    buildpack: str = ""
    detected_buildpack: str = ""

    @field_validator("name", "stack_guid", "state", "buildpack", "detected_buildpack", mode="before")
    @classmethod
    def null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("instances", "running_instances", "memory", "disk_quota", mode="before")
    @classmethod
    def null_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class SpaceSummary(BaseModel):
    """Response of `GET /v2/spaces/:guid/summary`."""

    model_config = {"extra": "ignore"}

    guid: str
    name: str = ""
    apps: list[ApplicationSummary] = Field(default_factory=list)

    @field_validator("apps", mode="before")
    @classmethod
    def null_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ApplicationRecord(BaseModel):
    """Denormalized application entry stored in a snapshot."""

    model_config = {"frozen": True}

    guid: str
    name: str
    instances: int
    running_instances: int
    memory_mb: int
    disk_quota_mb: int
    stack_guid: str
    state: str
    buildpack: str
    detected_buildpack: str
    space_guid: str
    space_name: str
    organization_guid: str
    organization_name: str

    @classmethod
    def from_summary(
        cls,
        app: ApplicationSummary,
        space: Space,
        organization: Organization,
    ) -> "ApplicationRecord":
        """Build a record, filling each buildpack field from the other when unset."""

        return cls(
            guid=app.guid,
            name=app.name,
            instances=app.instances,
            running_instances=app.running_instances,
            memory_mb=app.memory,
            disk_quota_mb=app.disk_quota,
            stack_guid=app.stack_guid,
            state=app.state,
            buildpack=app.buildpack or app.detected_buildpack,
            detected_buildpack=app.detected_buildpack or app.buildpack,
            space_guid=space.guid,
            space_name=space.name,
            organization_guid=organization.guid,
            organization_name=organization.name,
        )


@dataclass(frozen=True)
class Snapshot:
    """Outcome of one refresh cycle: the gathered records and the first error, if any."""

    applications: tuple[ApplicationRecord, ...] = ()
    error: Exception | None = None
    refreshed_at: datetime | None = None
    cycle_seconds: float | None = field(default=None, compare=False)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def json_payload(self) -> dict[str, object]:
        """Return a JSON-serializable summary of the snapshot."""

        return {
            "application_count": len(self.applications),
            "error": str(self.error) if self.error is not None else None,
            "refreshed_at": self.refreshed_at.isoformat() if self.refreshed_at else None,
            "cycle_seconds": self.cycle_seconds,
        }
