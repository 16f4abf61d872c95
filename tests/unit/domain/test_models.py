"""Unit tests for feature request models."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from buildplan_orchestrator.domain.models import (
    FeatureRequest,
    PlanPhase,
    RequestStatus,
    RequestType,
    append_note,
    format_timestamp,
    parse_status,
)


def test_from_dict_tolerates_missing_and_null_fields() -> None:
    request = FeatureRequest.from_dict(
        {"id": "script_spawner", "type": "script", "name": None, "status": "weird"}
    )

    assert request.name == ""
    assert request.path == ""
    assert request.status is RequestStatus.TODO
    assert request.depends_on == []
    assert request.created_at is None


def test_from_dict_accepts_single_dependency_string_and_drops_duplicates() -> None:
    single = FeatureRequest.from_dict({"id": "a", "dependsOn": "folder_scripts"})
    many = FeatureRequest.from_dict({"id": "b", "dependsOn": ["x", "X", " ", "y"]})

    assert single.depends_on == ["folder_scripts"]
    assert many.depends_on == ["x", "y"]


def test_from_dict_rejects_wrongly_typed_values() -> None:
    with pytest.raises(ValueError, match="FeatureRequest.name"):
        FeatureRequest.from_dict({"id": "a", "name": True})
    with pytest.raises(ValueError, match="dependsOn"):
        FeatureRequest.from_dict({"id": "a", "dependsOn": {"x": 1}})


def test_to_dict_uses_camel_case_keys_and_utc_timestamps() -> None:
    stamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    request = FeatureRequest(
        id="scene_main",
        type="scene",
        name="Main",
        path="Assets/Project/Scenes/Main.unity",
        phase_id="phase_1",
        status=RequestStatus.BLOCKED,
        depends_on=["prefab_enemy"],
        created_at=stamp,
    )

    payload = request.to_dict()

    assert payload["phaseId"] == "phase_1"
    assert payload["dependsOn"] == ["prefab_enemy"]
    assert payload["status"] == "blocked"
    assert payload["createdAt"] == "2026-01-02T03:04:05.000000Z"
    assert payload["updatedAt"] is None
    assert FeatureRequest.from_json(json.dumps(payload)) == request


def test_kind_and_is_type_ignore_case() -> None:
    request = FeatureRequest(id="a", type=" Prefab ")
    unknown = FeatureRequest(id="b", type="shader")

    assert request.kind is RequestType.PREFAB
    assert request.is_type("prefab")
    assert request.is_type(RequestType.PREFAB)
    assert unknown.kind is None


def test_append_note_skips_text_already_present() -> None:
    assert append_note("", "First.") == "First."
    assert append_note("First.", "Second.") == "First. Second."
    assert append_note("First. Second.", "second.") == "First. Second."
    assert append_note("Kept.", "   ") == "Kept."


def test_touch_sets_created_once() -> None:
    request = FeatureRequest(id="a")
    first = datetime(2026, 1, 1, tzinfo=timezone.utc)
    later = datetime(2026, 1, 2, tzinfo=timezone.utc)

    request.touch(first)
    request.touch(later)

    assert request.created_at == first
    assert request.updated_at == later
    assert format_timestamp(later) == "2026-01-02T00:00:00.000000Z"


def test_add_dependency_is_case_insensitive() -> None:
    request = FeatureRequest(id="a", depends_on=["Folder_Scripts"])

    assert not request.add_dependency("folder_scripts")
    assert request.add_dependency("script_spawner")
    assert not request.add_dependency("  ")
    assert request.depends_on == ["Folder_Scripts", "script_spawner"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Done", RequestStatus.DONE),
        ("in-progress", RequestStatus.IN_PROGRESS),
        ("completed", RequestStatus.DONE),
        ("", RequestStatus.TODO),
        (None, RequestStatus.TODO),
        (3, RequestStatus.TODO),
    ],
)
def test_parse_status_aliases(raw: object, expected: RequestStatus) -> None:
    assert parse_status(raw) is expected


def test_plan_phase_parses_nested_requests() -> None:
    phase = PlanPhase.from_dict(
        {
            "id": " phase_1 ",
            "name": "Core",
            "featureRequests": [{"id": "folder_scripts", "type": "folder"}],
        }
    )

    assert phase.id == "phase_1"
    assert [request.id for request in phase.feature_requests] == ["folder_scripts"]
    with pytest.raises(ValueError, match=r"featureRequests\[0\]"):
        PlanPhase.from_dict({"featureRequests": [{"id": "a", "dependsOn": 5}]})
