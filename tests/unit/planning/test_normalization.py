"""Unit tests for request normalization."""

from __future__ import annotations

import pytest

from buildplan_orchestrator.domain.ids import UsedIds
from buildplan_orchestrator.domain.models import FeatureRequest
from buildplan_orchestrator.planning.normalization import (
    ensure_request_id,
    is_valid_script_identifier,
    normalize_request_for_execution,
    normalize_script_request_name,
    sanitize_script_name,
    script_identity_name,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("PlayerController", "PlayerController"),
        ("  Spawner  ", "Spawner"),
        ("enemy spawner", "enemySpawner"),
        ("Health-Bar UI", "HealthBarUI"),
        ("2D Mover", "Script2DMover"),
        ("_private", "_private"),
        ("!!!", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_sanitize_script_name(raw: str | None, expected: str) -> None:
    assert sanitize_script_name(raw) == expected


def test_is_valid_script_identifier() -> None:
    assert is_valid_script_identifier("Mover2")
    assert not is_valid_script_identifier("2Mover")
    assert not is_valid_script_identifier("Mo ver")
    assert not is_valid_script_identifier("")


def test_renaming_a_script_records_a_note() -> None:
    request = FeatureRequest(id="script_a", type="script", name="enemy spawner")

    assert normalize_script_request_name(request)
    assert request.name == "enemySpawner"
    assert request.notes == "Renamed script 'enemy spawner' -> 'enemySpawner' to be a valid identifier."


def test_missing_script_name_is_assigned_default() -> None:
    request = FeatureRequest(id="script_b", type="script", name="???")

    assert normalize_script_request_name(request)
    assert request.name == "Script"
    assert "Renamed script '???' -> 'Script'" in request.notes

    blank = FeatureRequest(id="script_c", type="script", name="")
    assert normalize_script_request_name(blank)
    assert blank.notes == "Assigned script name 'Script' because it was missing or invalid."


def test_script_name_whitespace_is_trimmed_silently() -> None:
    request = FeatureRequest(id="script_d", type="script", name=" Mover ")

    assert normalize_script_request_name(request)
    assert request.name == "Mover"
    assert request.notes == ""
    assert not normalize_script_request_name(request)


def test_non_script_requests_keep_their_names() -> None:
    request = FeatureRequest(id="prefab_a", type="prefab", name="enemy spawner")

    assert not normalize_script_request_name(request)
    assert request.name == "enemy spawner"


def test_script_identity_name_falls_back_to_path_stem() -> None:
    request = FeatureRequest(id="s", type="script", name="", path="Assets/Scripts/Mover.cs")

    assert script_identity_name(request) == "Mover"


def test_ensure_request_id_keeps_existing_and_builds_missing() -> None:
    used = UsedIds()
    first = FeatureRequest(type="script", name="Spawner")
    second = FeatureRequest(type="script", name="Spawner")
    explicit = FeatureRequest(id="custom", type="scene")

    assert ensure_request_id(first, used) == "script_spawner"
    assert ensure_request_id(second, used) == "script_spawner_1"
    assert ensure_request_id(explicit, used) == "custom"


def test_normalize_request_for_execution_fixes_type_path_and_name() -> None:
    request = FeatureRequest(id="s", type=" Script ", name="my mover", path="Assets/Scripts/Mover.cs")

    assert normalize_request_for_execution(request)
    assert request.type == "script"
    assert request.path == "Assets/Project/Scripts"
    assert request.name == "myMover"
    assert not normalize_request_for_execution(request)
