"""Unit tests for request identity and deduplication."""

from __future__ import annotations

from datetime import datetime, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from buildplan_orchestrator.domain.models import FeatureRequest, RequestStatus
from buildplan_orchestrator.planning.identity import (
    add_dependencies_from_notes,
    build_request_lookup,
    dedupe_requests,
    identity_key,
    mark_duplicates,
    preflight_for_execution,
    preflight_for_write,
    remap_dependencies,
    resolve_dependencies,
)

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _req(request_id: str, request_type: str, name: str = "", path: str = "", **extra: object) -> FeatureRequest:
    return FeatureRequest(id=request_id, type=request_type, name=name, path=path, **extra)  # type: ignore[arg-type]


def test_identity_key_per_type() -> None:
    assert identity_key(_req("f", "folder", path="Assets/Scripts")) == "folder:Assets/Project/Scripts"
    assert identity_key(_req("s", "script", name="enemy spawner")) == "script:enemySpawner"
    assert identity_key(_req("p", "prefab", name="Enemy")) == "prefab:Assets/Project/Prefabs/Enemy.prefab"
    assert identity_key(_req("c", "scene", name="Main", path="Scenes")) == (
        "scene:Assets/Project/Scenes/Main.unity"
    )
    assert identity_key(_req("m", "material", path="Art/Red.mat")) == (
        "material:Assets/Project/Art/Red.mat"
    )


def test_identity_key_for_generic_assets_follows_classification() -> None:
    assert identity_key(_req("a", "asset", name="Crate", notes="wooden box")) == (
        "prefab:Assets/Project/Prefabs/Crate.prefab"
    )
    assert identity_key(_req("b", "asset", name="Waves", path="Data")) == "asset:Assets/Project/Data/Waves"
    assert identity_key(_req("c", "asset", name="Waves")) == ""


def test_unusable_requests_are_never_deduplicated() -> None:
    assert identity_key(_req("s", "script", name="!!!")) == ""
    assert identity_key(_req("x", "shader", name="Glow")) == ""

    result = dedupe_requests([_req("x1", "shader", name="Glow"), _req("x2", "shader", name="Glow")])
    assert [request.id for request in result.survivors] == ["x1", "x2"]
    assert result.duplicates == []


def test_dedupe_keeps_first_and_maps_duplicates_case_insensitively() -> None:
    first = _req("script_spawner", "script", name="Spawner")
    dup = _req("Script_Spawner_1", "script", name="spawner")
    other = _req("script_mover", "script", name="Mover")

    result = dedupe_requests([first, dup, other])

    assert result.survivors == [first, other]
    assert result.duplicates == [dup]
    assert result.survivor_for("script_spawner_1") == "script_spawner"
    assert result.survivor_for("SCRIPT_SPAWNER_1") == "script_spawner"


def test_remap_dependencies_collapses_and_drops_self_edges() -> None:
    survivor = _req("script_spawner", "script", depends_on=["script_spawner_1"])
    consumer = _req("prefab_enemy", "prefab", depends_on=["script_spawner", "Script_Spawner_1", "folder_x"])
    untouched = _req("scene_main", "scene", depends_on=["prefab_enemy"])

    changed = remap_dependencies(
        [survivor, consumer, untouched], {"script_spawner_1": "script_spawner"}
    )

    assert changed == [survivor, consumer]
    assert survivor.depends_on == []
    assert consumer.depends_on == ["script_spawner", "folder_x"]
    assert untouched.depends_on == ["prefab_enemy"]


def test_mark_duplicates_closes_them_out() -> None:
    dup = _req("script_spawner_1", "script", name="Spawner")

    marked = mark_duplicates([dup], {"script_spawner_1": "script_spawner"}, now=_NOW)

    assert marked == [dup]
    assert dup.status is RequestStatus.DONE
    assert dup.notes == "Skipped duplicate of script_spawner."
    assert dup.updated_at == _NOW


def test_dependencies_are_added_from_note_headers() -> None:
    enemy = _req("prefab_enemy", "prefab", name="Enemy")
    manager = _req("script_game_manager", "script", name="GameManager")
    scene = _req("scene_main", "scene", name="Main", notes="Prefabs: Enemy, Ghost\nManagers: GameManager")

    changed = add_dependencies_from_notes([enemy, manager, scene])

    assert changed == [scene]
    assert scene.depends_on == ["prefab_enemy", "script_game_manager"]
    assert add_dependencies_from_notes([enemy, manager, scene]) == []


def test_lookup_and_resolve_dependencies_skip_unknown_ids() -> None:
    folder = _req("folder_scripts", "folder")
    script = _req("script_mover", "script", depends_on=["FOLDER_SCRIPTS", "missing", "script_mover"])
    lookup = build_request_lookup([folder, script])

    assert resolve_dependencies(script, lookup) == [folder]


def test_preflight_for_write_dedupes_and_links() -> None:
    requests = [
        _req("prefab_enemy", "prefab", name="Enemy"),
        _req("prefab_enemy_1", "prefab", name="enemy", path="Assets/Project/Prefabs"),
        _req("scene_main", "scene", name="Main", depends_on=["prefab_enemy_1"]),
    ]

    survivors = preflight_for_write(requests)

    assert [request.id for request in survivors] == ["prefab_enemy", "scene_main"]
    assert survivors[1].depends_on == ["prefab_enemy"]


def test_preflight_for_execution_persists_changes_and_duplicates() -> None:
    folder = _req("folder_scripts", "folder", path="Assets/Project/Scripts")
    script = _req("script_mover", "script", name="mover bot", path="Scripts/MoverBot.cs")
    dup = _req("script_mover_1", "script", name="moverBot", path="Assets/Project/Scripts")
    scene = _req("scene_main", "scene", name="Main", path="Assets/Project/Scenes/Main.unity", depends_on=["script_mover_1"])
    saved: list[str] = []

    result = preflight_for_execution(
        [folder, script, dup, scene], persist=lambda request: saved.append(request.id), now=_NOW
    )

    assert [request.id for request in result.requests] == ["folder_scripts", "script_mover", "scene_main"]
    assert result.duplicates == [dup]
    assert result.changed == [script, scene]
    assert saved == ["script_mover", "scene_main", "script_mover_1"]
    assert script.name == "moverBot"
    assert script.path == "Assets/Project/Scripts"
    assert scene.depends_on == ["script_mover"]
    assert dup.status is RequestStatus.DONE


_TYPES = st.sampled_from(["folder", "script", "prefab", "scene", "material", "asset", "shader"])
_NAMES = st.sampled_from(["Enemy", "enemy", "Player", "Main", "Red", "", "box crate"])
_PATHS = st.sampled_from(["", "Assets", "Assets/Prefabs", "Scenes/Main.unity", "Art/Red.mat"])


@settings(max_examples=100, derandomize=True)
@given(st.lists(st.tuples(_TYPES, _NAMES, _PATHS), max_size=12))
def test_dedupe_is_idempotent(rows: list[tuple[str, str, str]]) -> None:
    requests = [
        _req(f"req_{index}", request_type, name=name, path=path)
        for index, (request_type, name, path) in enumerate(rows)
    ]

    first = dedupe_requests(requests)
    second = dedupe_requests(first.survivors)

    assert second.survivors == first.survivors
    assert second.duplicates == []
    keys = [identity_key(request).casefold() for request in first.survivors]
    non_empty = [key for key in keys if key]
    assert len(non_empty) == len(set(non_empty))
