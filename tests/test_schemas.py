"""Tests for inventory resource parsing and buildpack resolution."""

from __future__ import annotations

import pytest

from app.applications.schemas import ApplicationRecord, ApplicationSummary, Organization, Snapshot, Space, SpaceSummary


_ORG = Organization(guid="org-1", name="platform")
_SPACE = Space(guid="space-1", name="prod", organization_guid="org-1")


def _summary(**overrides) -> ApplicationSummary:
    payload = {
        "guid": "app-1",
        "name": "billing",
        "instances": 3,
        "running_instances": 2,
        "memory": 512,
        "disk_quota": 1024,
        "stack_guid": "stack-1",
        "state": "STARTED",
        "buildpack": None,
        "detected_buildpack": None,
    }
    payload.update(overrides)
    return ApplicationSummary.model_validate(payload)


@pytest.mark.parametrize(
    ("buildpack", "detected", "expected_buildpack", "expected_detected"),
    [
        ("java_buildpack", None, "java_buildpack", "java_buildpack"),
        (None, "python 1.8.0", "python 1.8.0", "python 1.8.0"),
        ("go_buildpack", "go 1.21", "go_buildpack", "go 1.21"),
        (None, None, "", ""),
    ],
)
def test_record_resolves_effective_buildpack(buildpack, detected, expected_buildpack, expected_detected) -> None:
    record = ApplicationRecord.from_summary(
        _summary(buildpack=buildpack, detected_buildpack=detected),
        _SPACE,
        _ORG,
    )

    assert record.buildpack == expected_buildpack
    assert record.detected_buildpack == expected_detected


def test_record_denormalizes_space_and_organization() -> None:
    record = ApplicationRecord.from_summary(_summary(), _SPACE, _ORG)

    assert record.memory_mb == 512
    assert record.disk_quota_mb == 1024
    assert (record.space_guid, record.space_name) == ("space-1", "prod")
    assert (record.organization_guid, record.organization_name) == ("org-1", "platform")


def test_record_is_immutable() -> None:
    record = ApplicationRecord.from_summary(_summary(), _SPACE, _ORG)

    with pytest.raises(Exception):
        record.name = "renamed"  # type: ignore[misc]


def test_resources_parse_from_v2_envelopes() -> None:
    org = Organization.from_resource({"metadata": {"guid": "org-9"}, "entity": {"name": "acme"}})
    space = Space.from_resource(
        {"metadata": {"guid": "space-9"}, "entity": {"name": "dev", "organization_guid": "org-9"}}
    )

    assert org == Organization(guid="org-9", name="acme")
    assert space.organization_guid == "org-9"


def test_space_summary_tolerates_nulls() -> None:
    summary = SpaceSummary.model_validate(
        {
            "guid": "space-1",
            "name": "prod",
            "services": [],
            "apps": [{"guid": "app-1", "name": None, "instances": None, "memory": 128, "urls": ["a.example"]}],
        }
    )

    app = summary.apps[0]
    assert app.name == ""
    assert app.instances == 0
    assert app.memory == 128
    assert SpaceSummary.model_validate({"guid": "space-2", "apps": None}).apps == []


def test_snapshot_payload_reports_error() -> None:
    empty = Snapshot()
    failed = Snapshot(error=RuntimeError("boom"))

    assert empty.json_payload()["application_count"] == 0
    assert empty.json_payload()["error"] is None
    assert failed.failed is True
    assert failed.json_payload()["error"] == "boom"
