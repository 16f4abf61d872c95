"""Populate a scene with the prefabs and manager components its request names."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from buildplan_orchestrator.constants import MANAGERS_NODE_NAME, PROJECT_ROOT
from buildplan_orchestrator.domain.classify import is_prefab_like
from buildplan_orchestrator.domain.notes import parse_manager_names, parse_prefab_names, unique_names
from buildplan_orchestrator.domain.paths import build_prefab_path, get_prefab_name
from buildplan_orchestrator.hydration.object_graph import SceneObject
from buildplan_orchestrator.planning.identity import resolve_dependencies

if TYPE_CHECKING:
    from buildplan_orchestrator.backends.base import AssetWorld
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.hydration.object_graph import Scene


def collect_scene_prefab_paths(
    request: FeatureRequest,
    lookup: Mapping[str, FeatureRequest],
    world: AssetWorld,
    *,
    root: str = PROJECT_ROOT,
) -> list[str]:
    """Prefab paths of prefab dependencies, then of prefabs the notes list by name."""
    results: list[str] = []
    seen: set[str] = set()

    def add(path: str | None) -> None:
        if path and path.casefold() not in seen:
            seen.add(path.casefold())
            results.append(path)

    for dependency in resolve_dependencies(request, lookup):
        if not is_prefab_like(dependency):
            continue
        prefab_name = get_prefab_name(dependency.name, dependency.path)
        add(build_prefab_path(dependency.path, prefab_name, root=root)[0])

    for name in parse_prefab_names(request.notes):
        add(world.find_prefab_path(name))
    return results


def collect_scene_manager_components(
    request: FeatureRequest, lookup: Mapping[str, FeatureRequest]
) -> list[str]:
    script_names = [
        dependency.name.strip()
        for dependency in resolve_dependencies(request, lookup)
        if dependency.is_type("script")
    ]
    return unique_names(script_names, parse_manager_names(request.notes))


def add_scene_prefabs(
    world: AssetWorld,
    scene: Scene,
    prefab_paths: list[str],
    *,
    logger: Any | None = None,
) -> list[SceneObject]:
    """Instantiate each prefab once; a node already carrying its name counts as present."""
    log = logger if logger is not None else structlog.get_logger(__name__)
    added: list[SceneObject] = []
    for path in prefab_paths:
        prefab = world.load_prefab(path)
        if prefab is None:
            log.debug("scene_prefab_unavailable", scene_path=scene.path, prefab_path=path)
            continue
        if scene.find(prefab.name) is not None:
            continue
        added.append(scene.instantiate(prefab))
    return added


def add_scene_managers(
    world: AssetWorld,
    scene: Scene,
    component_names: list[str],
    *,
    managers_node: str = MANAGERS_NODE_NAME,
) -> list[str]:
    """Attach manager components under the managers node; returns the unknown type names."""
    if not component_names:
        return []

    managers_root = scene.find(managers_node)
    if managers_root is None:
        managers_root = scene.add_root(SceneObject(name=managers_node))

    missing: list[str] = []
    for name in component_names:
        type_name = world.find_script_type(name)
        if type_name is None:
            missing.append(name)
            continue
        if managers_root.get_component(type_name) is not None:
            continue
        managers_root.add_component(type_name)
    return missing


def missing_managers_note(missing: list[str]) -> str:
    return f"Missing manager scripts: {', '.join(missing)}."


__all__ = [
    "add_scene_managers",
    "add_scene_prefabs",
    "collect_scene_manager_components",
    "collect_scene_prefab_paths",
    "missing_managers_note",
]
