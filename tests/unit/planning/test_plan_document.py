"""Unit tests for plan document parsing and working-set construction."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from buildplan_orchestrator.domain.models import FeatureRequest, RequestStatus
from buildplan_orchestrator.planning import plan_working_set
from buildplan_orchestrator.planning.plan_document import (
    SCRIPT_EXISTS_NOTE,
    PlanParseError,
    build_feature_request_list,
    extract_json,
    filter_existing_scripts,
    normalize_plan_json,
    parse_plan,
    phase_title,
    summarize_plan,
)

_NOW = datetime(2026, 5, 4, tzinfo=timezone.utc)

_PHASED = {
    "phases": [
        {
            "id": "phase_1",
            "name": "Core",
            "goal": "Movement",
            "featureRequests": [{"type": "script", "name": "Mover", "path": "Assets/Scripts"}],
        },
        {
            "id": "phase_2",
            "name": "Enemies",
            "featureRequests": [
                {"type": "prefab", "name": "Enemy", "phaseId": "custom"},
                None,
            ],
        },
    ]
}


def test_extract_json_unwraps_fences_and_prose() -> None:
    text = 'Here you go:\n```json\n{"featureRequests": []}\n```\nThanks!'

    assert extract_json(text) == '{"featureRequests": []}'
    assert extract_json('noise {"a": {"b": 1}} trailing') == '{"a": {"b": 1}}'
    assert extract_json("  [1, 2] ") == "[1, 2]"
    assert extract_json("nothing here") == ""
    assert extract_json(None) == ""


def test_normalize_plan_json_wraps_arrays_and_strips_trailing_commas() -> None:
    assert json.loads(normalize_plan_json('[{"id": "a",},]')) == {"featureRequests": [{"id": "a"}]}
    assert normalize_plan_json("   ") == ""


def test_parse_plan_flat_document() -> None:
    document = parse_plan('{"featureRequests": [{"id": "folder_scripts", "type": "folder", "path": "Assets/Scripts",},]}')

    assert not document.is_phased
    assert [request.id for request in document.select()] == ["folder_scripts"]
    assert document.phase_labels() == []


def test_parse_plan_phased_document_stamps_phase_fields() -> None:
    document = parse_plan(json.dumps(_PHASED))

    assert document.is_phased
    assert document.phase_labels() == ["All phases", "Phase 1: Core", "Phase 2: Enemies"]
    mover = document.select(1)[0]
    enemy = document.select(2)[0]
    assert (mover.phase_id, mover.phase_name) == ("phase_1", "Core")
    assert (enemy.phase_id, enemy.phase_name) == ("custom", "Enemies")
    assert [request.name for request in document.select(0)] == ["Mover", "Enemy"]
    assert document.select(9) == []


def test_parse_plan_reads_yaml_fence() -> None:
    text = "```yaml\nfeatureRequests:\n  - type: scene\n    name: Main\n```"

    document = parse_plan(text)

    assert document.select()[0].type == "scene"


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("", "empty"),
        ("no payload at all", "no JSON object"),
        ('{"featureRequests": [1, }', "could not be parsed"),
        ('{"something": []}', "neither"),
        ('{"featureRequests": {"id": "a"}}', "must be an array"),
        ('{"featureRequests": ["x"]}', r"featureRequests\[0\] must be an object"),
        ('{"featureRequests": [{"id": "a", "name": true}]}', r"featureRequests\[0\]"),
        ("```yaml\nfeatureRequests: [unclosed\n```", "YAML"),
    ],
)
def test_parse_plan_errors(text: str, message: str) -> None:
    with pytest.raises(PlanParseError, match=message):
        parse_plan(text)


def test_phase_title_without_name() -> None:
    assert phase_title(2, None) == "Phase 3"


def test_build_feature_request_list_assigns_ids_and_implied_folders() -> None:
    requests = [
        FeatureRequest(type="Script", name="enemy spawner", path="Assets/Scripts/Spawner.cs", status="done"),
        FeatureRequest(type="script", name="Mover", path="Gameplay"),
        FeatureRequest(id="folder_gameplay", type="folder", name="Gameplay", path="Assets/Gameplay"),
    ]

    built = build_feature_request_list(requests, now=_NOW)

    assert [request.id for request in built] == [
        "script_enemyspawner",
        "script_mover",
        "folder_gameplay",
        "folder_scripts",
    ]
    spawner, mover, gameplay, scripts = built
    assert spawner.name == "enemySpawner"
    assert spawner.status is RequestStatus.TODO
    assert spawner.path == "Assets/Project/Scripts"
    assert spawner.depends_on == ["folder_scripts"]
    assert mover.depends_on == ["folder_gameplay"]
    assert gameplay.path == "Assets/Project/Gameplay"
    assert scripts.path == "Assets/Project/Scripts"
    assert scripts.created_at == _NOW


def test_filter_existing_scripts_drops_scripts_on_disk() -> None:
    existing = FeatureRequest(id="s1", type="script", name="Mover", path="Assets/Project/Scripts")
    fresh = FeatureRequest(id="s2", type="script", name="Jumper", path="Assets/Project/Scripts")
    folder = FeatureRequest(id="f", type="folder", path="Assets/Project/Scripts")

    kept = filter_existing_scripts(
        [existing, fresh, folder], lambda path: path == "Assets/Project/Scripts/Mover.cs"
    )

    assert kept == [fresh, folder]
    assert existing.notes == SCRIPT_EXISTS_NOTE


def test_summarize_plan_counts_known_types() -> None:
    requests = [
        FeatureRequest(id="a", type="folder"),
        FeatureRequest(id="b", type="script"),
        FeatureRequest(id="c", type="script"),
        FeatureRequest(id="d", type="shader"),
    ]

    assert summarize_plan(requests) == (
        "Total: 4  Folders: 1  Scripts: 2  Scenes: 0  Materials: 0  Assets: 0  Prefabs: 0"
    )


def test_plan_working_set_dedupes_and_links_notes() -> None:
    text = json.dumps(
        {
            "featureRequests": [
                {"type": "prefab", "name": "Enemy"},
                {"type": "prefab", "name": "enemy", "path": "Assets"},
                {"type": "scene", "name": "Main", "notes": "Prefabs: Enemy"},
            ]
        }
    )

    working_set = plan_working_set(text)

    assert [request.id for request in working_set] == ["prefab_enemy", "scene_main"]
    assert working_set[1].depends_on == ["prefab_enemy"]
