"""Unit tests for per-type request dispatch."""

from __future__ import annotations

import asyncio

from structlog.testing import capture_logs

from buildplan_orchestrator.backends.generator import TemplateScriptGenerator
from buildplan_orchestrator.backends.memory import MemoryWorld
from buildplan_orchestrator.control_plane.dispatch import (
    DATA_ASSET_TYPE_ERROR,
    PREFAB_UPDATED_NOTE,
    SCENE_UPDATED_NOTE,
    UNSUPPORTED_ASSET_ERROR,
    UNSUPPORTED_TYPE_ERROR,
    DispatchOptions,
    RequestDispatcher,
)
from buildplan_orchestrator.domain.models import FeatureRequest
from buildplan_orchestrator.hydration.registry import BehaviourSpec, FieldKind, FieldSpec
from buildplan_orchestrator.hydration.resolver import HydrationResult, missing_references_note
from buildplan_orchestrator.planning.identity import build_request_lookup


class _StaticGenerator:
    def __init__(self, source: str, *, delay: float = 0.0) -> None:
        self.source = source
        self.delay = delay
        self.contexts: list[str] = []

    async def generate(self, request: FeatureRequest, *, context: str = "") -> str:
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.source


class _Reports:
    def __init__(self) -> None:
        self.entries: list[tuple[str, HydrationResult]] = []

    def __call__(self, asset_path: str, result: HydrationResult) -> None:
        self.entries.append((asset_path, result))


def _dispatcher(
    world: MemoryWorld | None = None,
    *,
    generator: object | None = None,
    options: DispatchOptions | None = None,
    reports: _Reports | None = None,
) -> RequestDispatcher:
    return RequestDispatcher(
        world or MemoryWorld(),
        generator=generator,  # type: ignore[arg-type]
        options=options,
        report_sink=reports,
    )


async def _dispatch(dispatcher: RequestDispatcher, request: FeatureRequest, *others: FeatureRequest) -> bool:
    return await dispatcher.dispatch(request, build_request_lookup([request, *others]))


async def test_folder_requests_create_folders() -> None:
    world = MemoryWorld()
    dispatcher = _dispatcher(world)
    folder = FeatureRequest(id="folder_gameplay", type="folder", path="Gameplay")
    empty = FeatureRequest(id="folder_empty", type="folder", path=" ")

    assert await _dispatch(dispatcher, folder)
    assert world.folder_exists("Assets/Project/Gameplay")
    assert not await _dispatch(dispatcher, empty)
    assert empty.notes == "Folder path is empty."


async def test_folder_failure_is_noted() -> None:
    world = MemoryWorld()
    world.inject_failure("Assets/Project/Gameplay")
    request = FeatureRequest(id="folder_gameplay", type="folder", path="Gameplay")

    assert not await _dispatch(_dispatcher(world), request)
    assert request.notes == "Failed to create folder: Assets/Project/Gameplay"


async def test_script_names_are_sanitized_before_writing() -> None:
    world = MemoryWorld()
    generator = TemplateScriptGenerator(world.registry)
    request = FeatureRequest(id="script_mover", type="script", name="2D Mover")

    assert await _dispatch(_dispatcher(world, generator=generator), request)
    assert request.name == "Script2DMover"
    assert request.notes == "Renamed script '2D Mover' -> 'Script2DMover' to be a valid identifier."
    source = world.script_source("Assets/Project/Scripts/Script2DMover.cs")
    assert source is not None
    assert "public class Script2DMover : MonoBehaviour" in source
    assert world.find_script_type("Script2DMover") == "Script2DMover"


async def test_script_generator_receives_dependency_context() -> None:
    generator = _StaticGenerator("class Spawner {}")
    enemy = FeatureRequest(id="prefab_enemy", type="prefab", name="Enemy", notes="Basic foe.")
    folder = FeatureRequest(id="folder_scripts", type="folder", path="Scripts")
    request = FeatureRequest(
        id="script_spawner",
        type="script",
        name="Spawner",
        depends_on=["prefab_enemy", "folder_scripts"],
    )

    assert await _dispatch(_dispatcher(generator=generator), request, enemy, folder)
    assert generator.contexts == ["Dependencies:\n- prefab Enemy: Basic foe."]


async def test_script_failures() -> None:
    world = MemoryWorld()
    world.write_script("Assets/Project/Scripts/Mover.cs", "old")
    cases = [
        (_dispatcher(world), "Missing script generator."),
        (_dispatcher(world, generator=_StaticGenerator("  ")), "Model returned empty code."),
        (
            _dispatcher(world, generator=_StaticGenerator("new")),
            "Script already exists. Enable overwrite to replace.",
        ),
    ]

    for dispatcher, expected in cases:
        request = FeatureRequest(id="script_mover", type="script", name="Mover")
        assert not await _dispatch(dispatcher, request)
        assert request.notes == expected
    assert world.script_source("Assets/Project/Scripts/Mover.cs") == "old"


async def test_overwrite_option_replaces_existing_script() -> None:
    world = MemoryWorld()
    world.write_script("Assets/Project/Scripts/Mover.cs", "old")
    dispatcher = _dispatcher(
        world,
        generator=_StaticGenerator("new"),
        options=DispatchOptions(overwrite_scripts=True),
    )

    assert await _dispatch(dispatcher, FeatureRequest(id="script_mover", type="script", name="Mover"))
    assert world.script_source("Assets/Project/Scripts/Mover.cs") == "new"


async def test_slow_generator_times_out() -> None:
    dispatcher = _dispatcher(
        generator=_StaticGenerator("late", delay=5.0),
        options=DispatchOptions(generator_timeout_seconds=0.01),
    )
    request = FeatureRequest(id="script_mover", type="script", name="Mover")

    assert not await _dispatch(dispatcher, request)
    assert request.notes == "Script generation timed out after 0.01 seconds."


async def test_prefabs_are_created_then_updated_in_place() -> None:
    world = MemoryWorld()
    dispatcher = _dispatcher(world)
    request = FeatureRequest(id="prefab_ball", type="prefab", name="Ball", notes="A sphere.")

    assert await _dispatch(dispatcher, request)
    prefab = world.load_prefab("Assets/Project/Prefabs/Ball.prefab")
    assert prefab is not None
    assert [component.type_name for component in prefab.root.components] == [
        "MeshFilter",
        "MeshRenderer",
        "SphereCollider",
    ]
    prefab.root.components.pop()

    assert await _dispatch(dispatcher, request)
    assert request.notes == f"A sphere. {PREFAB_UPDATED_NOTE}"
    assert world.load_prefab("Assets/Project/Prefabs/Ball.prefab") is prefab
    assert prefab.root.get_component("SphereCollider") is not None


async def test_updated_prefab_references_are_reported() -> None:
    world = MemoryWorld()
    world.add_script_type(
        BehaviourSpec("Turret", fields=(FieldSpec("muzzle", FieldKind.TRANSFORM),))
    )
    prefab = world.add_prefab("Assets/Project/Prefabs/Turret.prefab", components=["Turret"])
    reports = _Reports()
    request = FeatureRequest(id="prefab_turret", type="prefab", name="Turret", notes="Empty root.")

    assert await _dispatch(_dispatcher(world, reports=reports), request)

    assert [path for path, _ in reports.entries] == ["Assets/Project/Prefabs/Turret.prefab"]
    assert reports.entries[0][1].missing == ["Turret.muzzle (Transform)"]
    assert missing_references_note() in request.notes
    assert prefab.root.get_component("Turret") is not None


async def test_missing_reference_note_names_the_configured_report() -> None:
    world = MemoryWorld()
    world.add_script_type(
        BehaviourSpec("Turret", fields=(FieldSpec("muzzle", FieldKind.TRANSFORM),))
    )
    world.add_prefab("Assets/Project/Prefabs/Turret.prefab", components=["Turret"])
    dispatcher = _dispatcher(
        world, options=DispatchOptions(report_name="Bindings.md"), reports=_Reports()
    )
    request = FeatureRequest(id="prefab_turret", type="prefab", name="Turret", notes="Empty root.")

    assert await _dispatch(dispatcher, request)

    assert "Scene references missing. See Bindings.md." in request.notes
    assert "SceneBindingIndex.md" not in request.notes


async def test_materials_use_shader_from_notes_and_refuse_overwrite() -> None:
    world = MemoryWorld()
    dispatcher = _dispatcher(world)
    request = FeatureRequest(id="material_red", type="material", name="Red", path="Art", notes="Standard")

    assert await _dispatch(dispatcher, request)
    assert world.material_shader("Assets/Project/Art/Red.mat") == "Standard"

    again = FeatureRequest(id="material_red", type="material", name="Red", path="Art")
    assert not await _dispatch(dispatcher, again)
    assert again.notes == "Material already exists. Delete it or choose a new name."


async def test_scene_is_populated_hydrated_and_reported() -> None:
    world = MemoryWorld()
    world.add_script_type(
        BehaviourSpec(
            "GameManager",
            fields=(
                FieldSpec("enemyPrefab", FieldKind.GAME_OBJECT),
                FieldSpec("boss", FieldKind.GAME_OBJECT),
            ),
        )
    )
    enemy_prefab = world.add_prefab("Assets/Project/Prefabs/Enemy.prefab")
    reports = _Reports()
    dispatcher = _dispatcher(world, reports=reports)
    enemy = FeatureRequest(id="prefab_enemy", type="prefab", name="Enemy")
    manager = FeatureRequest(id="script_gm", type="script", name="GameManager")
    scene_request = FeatureRequest(
        id="scene_main",
        type="scene",
        name="Main",
        path="Scenes",
        depends_on=["prefab_enemy", "script_gm"],
        notes="Managers: AudioManager",
    )

    assert await _dispatch(dispatcher, scene_request, enemy, manager)

    scene = world.load_scene("Assets/Project/Scenes/Main.unity")
    assert scene is not None
    assert [root.name for root in scene.roots] == ["Enemy", "Managers"]
    component = scene.roots[1].get_component("GameManager")
    assert component is not None
    assert component.get("enemyPrefab") is enemy_prefab
    path, result = reports.entries[0]
    assert path == "Assets/Project/Scenes/Main.unity"
    assert result.assigned == ["GameManager.enemyPrefab -> Enemy (GameObject)"]
    assert result.missing == ["GameManager.boss (GameObject)"]
    assert "Missing manager scripts: AudioManager." in scene_request.notes
    assert missing_references_note() in scene_request.notes

    assert await _dispatch(dispatcher, scene_request, enemy, manager)
    assert [root.name for root in scene.roots] == ["Enemy", "Managers"]
    assert scene_request.notes.endswith(SCENE_UPDATED_NOTE)


async def test_hydration_can_be_disabled() -> None:
    world = MemoryWorld()
    world.add_script_type(BehaviourSpec("GameManager", fields=(FieldSpec("boss", FieldKind.GAME_OBJECT),)))
    reports = _Reports()
    dispatcher = _dispatcher(world, options=DispatchOptions(hydrate=False), reports=reports)
    manager = FeatureRequest(id="script_gm", type="script", name="GameManager")
    scene_request = FeatureRequest(id="scene_main", type="scene", name="Main", depends_on=["script_gm"])

    assert await _dispatch(dispatcher, scene_request, manager)
    assert reports.entries == []
    assert scene_request.notes == ""


async def test_generic_assets_become_data_assets_when_a_type_is_known() -> None:
    world = MemoryWorld()
    world.add_script_type(BehaviourSpec("WaveConfig", bases=("ScriptableObject",), is_data_asset=True))
    script = FeatureRequest(id="script_waves", type="script", name="WaveConfig")
    asset = FeatureRequest(id="asset_waves", type="asset", name="Waves", depends_on=["script_waves"])

    assert await _dispatch(_dispatcher(world), asset, script)
    assert [item.name for item in world.find_data_assets("WaveConfig")] == ["Waves"]


async def test_generic_asset_fallbacks() -> None:
    world = MemoryWorld()
    dispatcher = _dispatcher(world)
    untyped = FeatureRequest(id="asset_cfg", type="asset", name="Config", notes="A ScriptableObject.")
    crate = FeatureRequest(id="asset_crate", type="asset", name="Crate prefab")
    blob = FeatureRequest(id="asset_blob", type="asset", name="Blob")

    assert not await _dispatch(dispatcher, untyped)
    assert untyped.notes.endswith(DATA_ASSET_TYPE_ERROR)
    assert await _dispatch(dispatcher, crate)
    assert world.load_prefab("Assets/Project/Prefabs/Crate prefab.prefab") is not None
    assert not await _dispatch(dispatcher, blob)
    assert blob.notes == UNSUPPORTED_ASSET_ERROR


async def test_unknown_types_are_rejected_and_logged() -> None:
    request = FeatureRequest(id="audio_theme", type="audio", name="Theme")

    with capture_logs() as logs:
        assert not await _dispatch(_dispatcher(), request)

    assert request.notes == UNSUPPORTED_TYPE_ERROR
    assert logs[-1]["event"] == "request_dispatch_failed"
    assert logs[-1]["request_type"] == "audio"
