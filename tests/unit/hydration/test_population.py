"""Unit tests for scene population from request dependencies and notes."""

from __future__ import annotations

from structlog.testing import capture_logs

from buildplan_orchestrator.backends.memory import MemoryWorld
from buildplan_orchestrator.domain.models import FeatureRequest
from buildplan_orchestrator.hydration.object_graph import Scene, SceneObject
from buildplan_orchestrator.hydration.population import (
    add_scene_managers,
    add_scene_prefabs,
    collect_scene_manager_components,
    collect_scene_prefab_paths,
    missing_managers_note,
)
from buildplan_orchestrator.planning.identity import build_request_lookup


def _scene() -> Scene:
    return Scene(name="Main", path="Assets/Project/Scenes/Main.unity")


def test_prefab_paths_come_from_dependencies_then_notes() -> None:
    world = MemoryWorld()
    world.add_prefab("Assets/Project/Prefabs/Boss.prefab")
    enemy = FeatureRequest(id="prefab_enemy", type="prefab", name="Enemy")
    script = FeatureRequest(id="script_mover", type="script", name="Mover")
    scene = FeatureRequest(
        id="scene_main",
        type="scene",
        name="Main",
        depends_on=["prefab_enemy", "script_mover", "missing"],
        notes="Prefabs: Boss, Ghost, enemy",
    )
    lookup = build_request_lookup([enemy, script, scene])

    assert collect_scene_prefab_paths(scene, lookup, world) == [
        "Assets/Project/Prefabs/Enemy.prefab",
        "Assets/Project/Prefabs/Boss.prefab",
    ]


def test_manager_components_merge_script_dependencies_and_notes() -> None:
    script = FeatureRequest(id="script_gm", type="script", name=" GameManager ")
    scene = FeatureRequest(
        id="scene_main",
        type="scene",
        depends_on=["script_gm"],
        notes="Managers: AudioManager, gamemanager",
    )
    lookup = build_request_lookup([script, scene])

    assert collect_scene_manager_components(scene, lookup) == ["GameManager", "AudioManager"]


def test_prefabs_are_instantiated_once() -> None:
    world = MemoryWorld()
    world.add_prefab("Assets/Project/Prefabs/Enemy.prefab", components=["Health"])
    world.add_prefab("Assets/Project/Prefabs/Boss.prefab")
    scene = _scene()
    scene.add_root(SceneObject(name="Boss"))

    with capture_logs() as logs:
        added = add_scene_prefabs(
            world,
            scene,
            [
                "Assets/Project/Prefabs/Enemy.prefab",
                "Assets/Project/Prefabs/Boss.prefab",
                "Assets/Project/Prefabs/Ghost.prefab",
            ],
        )
    again = add_scene_prefabs(world, scene, ["Assets/Project/Prefabs/Enemy.prefab"])

    assert [node.name for node in added] == ["Enemy"]
    assert added[0].get_component("Health") is not None
    assert again == []
    assert [node.name for node in scene.roots] == ["Boss", "Enemy"]
    assert logs == [
        {
            "event": "scene_prefab_unavailable",
            "log_level": "debug",
            "scene_path": "Assets/Project/Scenes/Main.unity",
            "prefab_path": "Assets/Project/Prefabs/Ghost.prefab",
        }
    ]


def test_managers_attach_known_types_and_report_unknown() -> None:
    world = MemoryWorld()
    world.write_script("Assets/Project/Scripts/GameManager.cs", "class GameManager {}")
    scene = _scene()

    missing = add_scene_managers(world, scene, ["gamemanager", "Ghost"])
    add_scene_managers(world, scene, ["GameManager"])

    managers = scene.find("Managers")
    assert missing == ["Ghost"]
    assert managers is not None
    assert [component.type_name for component in managers.components] == ["GameManager"]
    assert missing_managers_note(missing) == "Missing manager scripts: Ghost."


def test_no_manager_names_leave_scene_unchanged() -> None:
    scene = _scene()

    assert add_scene_managers(MemoryWorld(), scene, []) == []
    assert scene.roots == []
