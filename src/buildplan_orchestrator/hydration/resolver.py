"""
buildplan-orchestrator — reference resolution

File: src/buildplan_orchestrator/hydration/resolver.py
Last updated: 2026-10-17

Purpose
- Fill unresolved reference fields of behaviour instances in a scene (or a
  freshly created prefab) with scene objects, prefabs, components or data
  assets, matched by name.

What should be included in this file
- Field-name candidate expansion and normalized name matching.
- ``SceneHydrationContext``: per-pass lookup tables and caches.
- Per-kind resolution, collection filling and the bound/missing report.

Functional requirements
- Only empty fields are touched; already assigned values are never replaced.
- Ties resolve to the first match in scan order.
- A miss is recorded, never raised.

Non-functional requirements
- Deterministic: the same graph, catalog and hints always bind the same values.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog

from buildplan_orchestrator.constants import (
    BINDING_REPORT_FILENAME,
    DESCRIBE_LIST_LIMIT,
    MANAGERS_NODE_NAME,
)
from buildplan_orchestrator.domain.notes import unique_names
from buildplan_orchestrator.domain.paths import file_stem
from buildplan_orchestrator.hydration.object_graph import (
    Component,
    DataAsset,
    Prefab,
    Scene,
    SceneObject,
    Transform,
    is_under,
)
from buildplan_orchestrator.hydration.registry import FieldKind, FieldSpec

if TYPE_CHECKING:
    from buildplan_orchestrator.backends.base import AssetWorld
    from buildplan_orchestrator.hydration.registry import CapabilityRegistry

_NAME_SUFFIXES: Final[tuple[str, ...]] = (
    "Prefab",
    "Template",
    "Ref",
    "Reference",
    "Object",
    "Go",
    "Transform",
)
_PREFAB_WORDS: Final[tuple[str, ...]] = ("prefab", "template")
_COLLECTION_WORDS: Final[tuple[str, ...]] = (
    "prefab",
    "template",
    "list",
    "array",
    "rooms",
    "spawns",
    "points",
)


def missing_references_note(report_name: str = BINDING_REPORT_FILENAME) -> str:
    """Request note pointing at the binding report that lists the missing fields."""
    return f"Scene references missing. See {report_name}."


@dataclass(slots=True)
class HydrationResult:
    """Report lines for one resolution pass."""

    assigned: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def has_entries(self) -> bool:
        return bool(self.assigned or self.missing)


def normalize_name_key(value: str | None) -> str:
    """Lowercase letters and digits only: ``"Enemy_Spawner 2"`` -> ``"enemyspawner2"``."""
    if not value:
        return ""
    return "".join(char.lower() for char in value if char.isalnum())


def names_match(candidate: str, normalized_target: str) -> bool:
    """Exact key match, or either key containing the other."""
    if not candidate.strip() or not normalized_target:
        return False
    key = normalize_name_key(candidate)
    if not key:
        return False
    return key == normalized_target or normalized_target in key or key in normalized_target


def build_field_name_candidates(field_name: str, type_name: str = "") -> list[str]:
    """Names a field could be referring to, most specific first.

    ``m_enemyPrefab`` yields ``m_enemyPrefab``, ``enemyPrefab`` and ``m_enemy``;
    the declared type name is appended last.
    """
    results: list[str] = []
    trimmed = field_name.strip()
    if trimmed:
        results.append(field_name)
        lowered = trimmed.lower()
        if lowered.startswith("m_"):
            results.append(trimmed[2:])
        if lowered.startswith("_"):
            results.append(trimmed[1:])
        for suffix in _NAME_SUFFIXES:
            if lowered.endswith(suffix.lower()) and len(trimmed) > len(suffix):
                results.append(trimmed[: -len(suffix)])
    if type_name.strip():
        results.append(type_name.strip())
    return [name for name in results if name.strip()]


def field_suggests_prefab(field_name: str) -> bool:
    lowered = field_name.lower()
    return any(word in lowered for word in _PREFAB_WORDS)


def field_suggests_manager(field_name: str) -> bool:
    return "manager" in field_name.lower()


def field_suggests_collection(field_name: str) -> bool:
    lowered = field_name.lower()
    return any(word in lowered for word in _COLLECTION_WORDS)


def describe_object(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, SceneObject):
        return f"{value.name} (GameObject)"
    if isinstance(value, Prefab):
        return f"{value.name} (GameObject)"
    if isinstance(value, (Component, Transform)):
        owner = value.owner.name if value.owner is not None else "?"
        return f"{value.type_name} on {owner}"
    if isinstance(value, DataAsset):
        return f"{value.name} ({value.type_name})"
    return f"{value} ({type(value).__name__})"


def describe_object_list(values: Sequence[object]) -> str:
    if not values:
        return "(none)"
    shown = ", ".join(describe_object(value) for value in values[:DESCRIBE_LIST_LIMIT])
    if len(values) > DESCRIBE_LIST_LIMIT:
        shown += f" (+{len(values) - DESCRIBE_LIST_LIMIT} more)"
    return shown


class SceneHydrationContext:
    """Lookup tables for one resolution pass over one scene.

    Built once per pass and never persisted. Prefab paths come from the world's
    prefab catalog first; paths of prefabs the scene request depends on
    override catalog entries with the same name key and become collection hints.
    """

    def __init__(
        self,
        world: AssetWorld,
        scene: Scene,
        *,
        prefab_paths: Iterable[str] = (),
        prefab_name_hints: Iterable[str] = (),
        managers_node: str = MANAGERS_NODE_NAME,
        registry: CapabilityRegistry | None = None,
    ) -> None:
        self.world = world
        self.scene = scene
        self.registry = registry if registry is not None else world.registry
        self.scene_objects: list[SceneObject] = list(scene.iter_objects())
        self.scene_components: list[Component] = [
            component for node in self.scene_objects for component in node.components
        ]
        self.objects_by_name: dict[str, list[SceneObject]] = {}
        for node in self.scene_objects:
            self.objects_by_name.setdefault(normalize_name_key(node.name), []).append(node)

        self.prefab_paths_by_name: dict[str, str] = {}
        for entry in world.iter_prefabs():
            key = normalize_name_key(entry.name)
            if key and key not in self.prefab_paths_by_name:
                self.prefab_paths_by_name[key] = entry.path

        hints: list[str] = []
        for path in prefab_paths:
            stem = file_stem(path)
            key = normalize_name_key(stem)
            if not key:
                continue
            self.prefab_paths_by_name[key] = path
            hints.append(stem)
        self.prefab_name_hints: list[str] = unique_names(hints, list(prefab_name_hints))

        self.managers_root: SceneObject | None = scene.find(managers_node)
        self._prefab_cache: dict[str, Prefab | None] = {}
        self._data_asset_cache: dict[str, DataAsset | None] = {}

    def find_scene_object(self, candidates: Sequence[str]) -> SceneObject | None:
        keys = [normalize_name_key(candidate) for candidate in candidates]
        for key in keys:
            found = self.objects_by_name.get(key)
            if found:
                return found[0]
        for key in keys:
            if not key:
                continue
            for object_key, nodes in self.objects_by_name.items():
                if nodes and object_key and (key in object_key or object_key in key):
                    return nodes[0]
        return None

    def prefab_by_name(self, name: str) -> Prefab | None:
        key = normalize_name_key(name)
        if not key:
            return None
        if key in self._prefab_cache:
            return self._prefab_cache[key]
        path = self.prefab_paths_by_name.get(key) or self.world.find_prefab_path(name.strip())
        prefab = self.world.load_prefab(path) if path else None
        self._prefab_cache[key] = prefab
        return prefab

    def find_prefab(self, candidates: Sequence[str]) -> Prefab | None:
        for candidate in candidates:
            prefab = self.prefab_by_name(candidate)
            if prefab is not None:
                return prefab
        return None

    def components_of_type(self, type_name: str) -> list[Component]:
        return [
            component
            for component in self.scene_components
            if self.registry.is_subtype(component.type_name, type_name)
        ]

    def prefab_component(self, prefab: Prefab, type_name: str) -> Component | Transform | None:
        if type_name.casefold() == "transform":
            return prefab.root.transform
        for component in prefab.root.components:
            if self.registry.is_subtype(component.type_name, type_name):
                return component
        return None

    def data_asset(self, type_name: str) -> DataAsset | None:
        key = type_name.casefold()
        if key in self._data_asset_cache:
            return self._data_asset_cache[key]
        assets = self.world.find_data_assets(type_name)
        found = assets[0] if assets else None
        self._data_asset_cache[key] = found
        return found


def resolve_reference(
    context: SceneHydrationContext, field_spec: FieldSpec
) -> SceneObject | Prefab | Component | Transform | DataAsset | None:
    """Best binding for a single-valued field, or ``None``."""
    candidates = build_field_name_candidates(field_spec.name, field_spec.type_name)
    if field_spec.kind is FieldKind.GAME_OBJECT:
        return _resolve_game_object(context, field_spec.name, candidates)
    if field_spec.kind is FieldKind.TRANSFORM:
        node = context.find_scene_object(candidates)
        return None if node is None else node.transform
    if field_spec.kind is FieldKind.COMPONENT:
        return _resolve_component(context, field_spec, candidates)
    if field_spec.kind is FieldKind.DATA_ASSET:
        return context.data_asset(field_spec.type_name)
    return None


def resolve_collection(context: SceneHydrationContext, field_spec: FieldSpec) -> list[object]:
    """Elements for an empty collection field, one per resolvable prefab hint."""
    results: list[object] = []
    if not field_suggests_collection(field_spec.name) or not context.prefab_name_hints:
        return results

    for hint in context.prefab_name_hints:
        if not hint.strip():
            continue
        element: object | None = None
        if field_spec.kind is FieldKind.GAME_OBJECT:
            element = context.prefab_by_name(hint) or context.find_scene_object([hint])
        elif field_spec.kind in (FieldKind.COMPONENT, FieldKind.TRANSFORM):
            prefab = context.prefab_by_name(hint)
            if prefab is not None:
                element = context.prefab_component(prefab, field_spec.type_name)
            if element is None:
                element = _component_by_name(
                    _components_for_field(context, field_spec), [hint]
                )
        if element is not None and not any(item is element for item in results):
            results.append(element)
    return results


def hydrate_components(
    context: SceneHydrationContext,
    *,
    logger: Any | None = None,
) -> HydrationResult:
    """Resolve every empty reference field of every registered component in the context."""
    log = logger if logger is not None else structlog.get_logger(__name__)
    result = HydrationResult()
    for component in context.scene_components:
        fields = context.registry.fields_for(component.type_name)
        for field_spec in fields:
            _hydrate_field(context, component, field_spec, result)

    log.info(
        "references_hydrated",
        scene_path=context.scene.path,
        assigned=len(result.assigned),
        missing=len(result.missing),
    )
    return result


def hydrate_scene(
    world: AssetWorld,
    scene: Scene,
    *,
    prefab_paths: Iterable[str] = (),
    prefab_name_hints: Iterable[str] = (),
    managers_node: str = MANAGERS_NODE_NAME,
    logger: Any | None = None,
) -> HydrationResult:
    context = SceneHydrationContext(
        world,
        scene,
        prefab_paths=prefab_paths,
        prefab_name_hints=prefab_name_hints,
        managers_node=managers_node,
    )
    return hydrate_components(context, logger=logger)


def hydrate_prefab(
    world: AssetWorld,
    prefab: Prefab,
    *,
    prefab_paths: Iterable[str] = (),
    prefab_name_hints: Iterable[str] = (),
    logger: Any | None = None,
) -> HydrationResult:
    """Resolve references inside a prefab's own tree, treating it as a one-root scene."""
    view = Scene(name=prefab.name, path=prefab.path, roots=[prefab.root])
    context = SceneHydrationContext(
        world,
        view,
        prefab_paths=prefab_paths,
        prefab_name_hints=prefab_name_hints,
    )
    return hydrate_components(context, logger=logger)


# ------------------------
# Internal helper routines
# ------------------------


def _hydrate_field(
    context: SceneHydrationContext,
    component: Component,
    field_spec: FieldSpec,
    result: HydrationResult,
) -> None:
    current = component.get(field_spec.name)
    entry = f"{component.type_name}.{field_spec.name}"

    if field_spec.is_collection:
        if isinstance(current, list) and current:
            return
        if current is not None and not isinstance(current, list):
            return
        elements = resolve_collection(context, field_spec)
        if not elements:
            result.missing.append(f"{entry} ({field_spec.label})")
            return
        component.assign(field_spec.name, elements)
        result.assigned.append(f"{entry} -> {describe_object_list(elements)}")
        return

    if current is not None:
        return
    resolved = resolve_reference(context, field_spec)
    if resolved is None:
        result.missing.append(f"{entry} ({field_spec.label})")
        return
    component.assign(field_spec.name, resolved)
    result.assigned.append(f"{entry} -> {describe_object(resolved)}")


def _resolve_game_object(
    context: SceneHydrationContext, field_name: str, candidates: Sequence[str]
) -> SceneObject | Prefab | None:
    prefer_prefab = field_suggests_prefab(field_name)
    if not prefer_prefab:
        node = context.find_scene_object(candidates)
        if node is not None:
            return node
    prefab = context.find_prefab(candidates)
    if prefab is not None:
        return prefab
    if prefer_prefab:
        return context.find_scene_object(candidates)
    return None


def _resolve_component(
    context: SceneHydrationContext, field_spec: FieldSpec, candidates: Sequence[str]
) -> Component | Transform | None:
    instances = context.components_of_type(field_spec.type_name)
    if len(instances) == 1:
        return instances[0]

    matched = _component_by_name(instances, candidates)
    if matched is not None:
        return matched

    if field_suggests_manager(field_spec.name) or field_suggests_manager(field_spec.type_name):
        root = context.managers_root
        if root is not None:
            for instance in instances:
                if instance.owner is not None and is_under(instance.owner, root):
                    return instance

    for candidate in candidates:
        prefab = context.prefab_by_name(candidate)
        if prefab is None:
            continue
        component = context.prefab_component(prefab, field_spec.type_name)
        if component is not None:
            return component
    return None


def _components_for_field(
    context: SceneHydrationContext, field_spec: FieldSpec
) -> list[Component | Transform]:
    if field_spec.kind is FieldKind.TRANSFORM:
        return [node.transform for node in context.scene_objects]
    return list(context.components_of_type(field_spec.type_name))


def _component_by_name(
    instances: Sequence[Component | Transform], candidates: Sequence[str]
) -> Component | Transform | None:
    """Exact owner name first, then owner-name containment, then type name."""
    for candidate in candidates:
        key = normalize_name_key(candidate)
        if not key:
            continue
        for instance in instances:
            if normalize_name_key(_owner_name(instance)) == key:
                return instance
        for instance in instances:
            if names_match(_owner_name(instance), key):
                return instance
        for instance in instances:
            if names_match(instance.type_name, key):
                return instance
    return None


def _owner_name(instance: Component | Transform) -> str:
    return instance.owner.name if instance.owner is not None else ""


__all__ = [
    "HydrationResult",
    "SceneHydrationContext",
    "build_field_name_candidates",
    "describe_object",
    "describe_object_list",
    "field_suggests_collection",
    "field_suggests_manager",
    "field_suggests_prefab",
    "hydrate_components",
    "hydrate_prefab",
    "hydrate_scene",
    "missing_references_note",
    "names_match",
    "normalize_name_key",
    "resolve_collection",
    "resolve_reference",
]
