"""
buildplan-orchestrator — in-memory asset world

File: src/buildplan_orchestrator/backends/memory.py
Last updated: 2026-10-17

Purpose
- A complete ``AssetWorld`` kept in memory for tests, dry runs and the CLI.

What should be included in this file
- Folder, script, prefab, scene, material and data-asset stores.
- A compile queue: written scripts become usable types after a configurable
  number of ``refresh`` calls.
- Deterministic failure injection per asset path.

Functional requirements
- Lookups by asset path are case-insensitive, as in the editor asset database.
- Catalog iteration order is sorted by path.

Non-functional requirements
- No filesystem or network access.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Final

from buildplan_orchestrator.backends.base import IndexEntry
from buildplan_orchestrator.constants import ASSETS_ROOT
from buildplan_orchestrator.domain.classify import PrefabRecipe
from buildplan_orchestrator.domain.paths import file_stem, parent_folder
from buildplan_orchestrator.hydration.object_graph import DataAsset, Prefab, Scene, SceneObject
from buildplan_orchestrator.hydration.registry import BehaviourSpec, CapabilityRegistry

DEFAULT_SHADERS: Final[tuple[str, ...]] = (
    "Universal Render Pipeline/Lit",
    "Standard",
    "Unlit/Color",
)

BUILTIN_COMPONENT_TYPES: Final[tuple[str, ...]] = (
    "Animator",
    "AudioSource",
    "BoxCollider",
    "Camera",
    "CapsuleCollider",
    "CharacterController",
    "Light",
    "MeshCollider",
    "MeshFilter",
    "MeshRenderer",
    "Rigidbody",
    "SphereCollider",
)

_RECIPE_COMPONENTS: Final[dict[PrefabRecipe, tuple[str, ...]]] = {
    PrefabRecipe.CUBE: ("MeshFilter", "MeshRenderer", "BoxCollider"),
    PrefabRecipe.SPHERE: ("MeshFilter", "MeshRenderer", "SphereCollider"),
    PrefabRecipe.CAPSULE: ("MeshFilter", "MeshRenderer", "CapsuleCollider"),
    PrefabRecipe.CYLINDER: ("MeshFilter", "MeshRenderer", "CapsuleCollider"),
    PrefabRecipe.PLANE: ("MeshFilter", "MeshRenderer", "MeshCollider"),
    PrefabRecipe.QUAD: ("MeshFilter", "MeshRenderer", "MeshCollider"),
    PrefabRecipe.CHARACTER_CONTROLLER: ("CharacterController",),
    PrefabRecipe.EMPTY: (),
}
_UI_COMPONENTS: Final[tuple[str, ...]] = ("RectTransform", "CanvasRenderer", "Image")


class MemoryWorld:
    """In-memory implementation of every creation primitive and lookup."""

    def __init__(
        self,
        *,
        registry: CapabilityRegistry | None = None,
        compile_delay: int = 0,
        shaders: Sequence[str] = DEFAULT_SHADERS,
    ) -> None:
        if compile_delay < 0:
            raise ValueError("compile_delay must be >= 0")
        self._registry = registry if registry is not None else CapabilityRegistry()
        self._compile_delay = compile_delay
        self._shaders = tuple(shaders)

        self._folders: dict[str, str] = {ASSETS_ROOT.casefold(): ASSETS_ROOT}
        self._scripts: dict[str, tuple[str, str]] = {}
        self._types: dict[str, str] = {name.casefold(): name for name in BUILTIN_COMPONENT_TYPES}
        self._pending_types: list[str] = []
        self._compile_countdown = 0
        self._prefabs: dict[str, Prefab] = {}
        self._scenes: dict[str, Scene] = {}
        self._materials: dict[str, tuple[str, str]] = {}
        self._data_assets: dict[str, DataAsset] = {}
        self._failures: dict[str, int] = {}
        self.refresh_count = 0

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def inject_failure(self, path: str, *, times: int = 1) -> None:
        """Make the next ``times`` creation or save calls targeting ``path`` fail."""
        if times < 1:
            raise ValueError("times must be >= 1")
        key = path.casefold()
        self._failures[key] = self._failures.get(key, 0) + times

    def _consume_failure(self, path: str) -> bool:
        key = path.casefold()
        remaining = self._failures.get(key, 0)
        if remaining <= 0:
            return False
        if remaining == 1:
            del self._failures[key]
        else:
            self._failures[key] = remaining - 1
        return True

    # ------------------------------------------------------------------
    # Folders and scripts
    # ------------------------------------------------------------------

    def folder_exists(self, path: str) -> bool:
        return path.rstrip("/").casefold() in self._folders

    def create_folder(self, path: str) -> bool:
        normalized = path.strip().rstrip("/")
        if not normalized or self._consume_failure(normalized):
            return False
        parts = normalized.split("/")
        for index in range(1, len(parts) + 1):
            current = "/".join(parts[:index])
            self._folders.setdefault(current.casefold(), current)
        return True

    def asset_exists(self, path: str) -> bool:
        key = path.casefold()
        return (
            key in self._scripts
            or key in self._prefabs
            or key in self._scenes
            or key in self._materials
            or key in self._data_assets
        )

    def write_script(self, path: str, source: str) -> bool:
        if self._consume_failure(path):
            return False
        self._ensure_parent(path)
        self._scripts[path.casefold()] = (path, source)
        name = file_stem(path)
        if self._compile_delay == 0:
            self._compile(name)
        else:
            self._pending_types.append(name)
            self._compile_countdown = self._compile_delay
        return True

    def script_source(self, path: str) -> str | None:
        entry = self._scripts.get(path.casefold())
        return None if entry is None else entry[1]

    def find_script_type(self, name: str) -> str | None:
        key = name.strip().casefold()
        if not key:
            return None
        return self._types.get(key)

    def is_compiling(self) -> bool:
        return bool(self._pending_types)

    def refresh(self) -> None:
        self.refresh_count += 1
        if not self._pending_types:
            return
        self._compile_countdown -= 1
        if self._compile_countdown > 0:
            return
        pending, self._pending_types = self._pending_types, []
        for name in pending:
            self._compile(name)

    def add_script_type(self, spec: BehaviourSpec) -> None:
        """Register an already compiled type together with its reference fields."""
        self._registry.register(spec)
        self._types[spec.type_name.casefold()] = spec.type_name

    def _compile(self, name: str) -> None:
        self._types[name.casefold()] = name
        if name not in self._registry:
            self._registry.register(BehaviourSpec(type_name=name))

    # ------------------------------------------------------------------
    # Prefabs
    # ------------------------------------------------------------------

    def load_prefab(self, path: str) -> Prefab | None:
        return self._prefabs.get(path.casefold())

    def create_prefab(
        self, path: str, name: str, recipe: PrefabRecipe, *, ui: bool = False
    ) -> Prefab | None:
        if self._consume_failure(path):
            return None
        root = SceneObject(name=name)
        for type_name in _UI_COMPONENTS if ui else _RECIPE_COMPONENTS.get(recipe, ()):
            root.add_component(type_name)
        return Prefab(name=name, path=path, root=root)

    def save_prefab(self, prefab: Prefab) -> bool:
        if self._consume_failure(prefab.path):
            return False
        self._ensure_parent(prefab.path)
        self._prefabs[prefab.path.casefold()] = prefab
        return True

    def add_prefab(self, path: str, *, components: Iterable[str] = ()) -> Prefab:
        """Seed a saved prefab whose root carries ``components``."""
        root = SceneObject(name=file_stem(path))
        for type_name in components:
            root.add_component(type_name)
        prefab = Prefab(name=root.name, path=path, root=root)
        self._ensure_parent(path)
        self._prefabs[path.casefold()] = prefab
        return prefab

    def find_prefab_path(self, name: str) -> str | None:
        target = name.strip().casefold()
        if not target:
            return None
        for key in sorted(self._prefabs):
            prefab = self._prefabs[key]
            if file_stem(prefab.path).casefold() == target:
                return prefab.path
        return None

    # ------------------------------------------------------------------
    # Scenes
    # ------------------------------------------------------------------

    def load_scene(self, path: str) -> Scene | None:
        return self._scenes.get(path.casefold())

    def create_scene(self, path: str, name: str) -> Scene | None:
        if self._consume_failure(path):
            return None
        return Scene(name=name, path=path)

    def save_scene(self, scene: Scene) -> bool:
        if self._consume_failure(scene.path):
            return False
        self._ensure_parent(scene.path)
        self._scenes[scene.path.casefold()] = scene
        return True

    # ------------------------------------------------------------------
    # Materials and data assets
    # ------------------------------------------------------------------

    def find_shader(self, notes: str) -> str | None:
        lowered = notes.lower()
        for shader in self._shaders:
            if shader.lower() in lowered:
                return shader
        return self._shaders[0] if self._shaders else None

    def create_material(self, path: str, shader: str) -> bool:
        if self._consume_failure(path):
            return False
        self._ensure_parent(path)
        self._materials[path.casefold()] = (path, shader)
        return True

    def material_shader(self, path: str) -> str | None:
        entry = self._materials.get(path.casefold())
        return None if entry is None else entry[1]

    def create_data_asset(self, path: str, type_name: str) -> DataAsset | None:
        if self._consume_failure(path):
            return None
        self._ensure_parent(path)
        asset = DataAsset(name=file_stem(path), type_name=type_name, path=path)
        self._data_assets[path.casefold()] = asset
        return asset

    def find_data_assets(self, type_name: str) -> Sequence[DataAsset]:
        return [
            self._data_assets[key]
            for key in sorted(self._data_assets)
            if self._registry.is_subtype(self._data_assets[key].type_name, type_name)
        ]

    # ------------------------------------------------------------------
    # Index catalogs
    # ------------------------------------------------------------------

    def iter_prefabs(self) -> Iterable[IndexEntry]:
        return _sorted_entries(
            IndexEntry(prefab.name, prefab.path) for prefab in self._prefabs.values()
        )

    def iter_scenes(self) -> Iterable[IndexEntry]:
        return _sorted_entries(IndexEntry(scene.name, scene.path) for scene in self._scenes.values())

    def iter_scripts(self) -> Iterable[IndexEntry]:
        return _sorted_entries(
            IndexEntry(file_stem(path), path) for path, _ in self._scripts.values()
        )

    def iter_assets(self) -> Iterable[IndexEntry]:
        materials = (
            IndexEntry(file_stem(path), path, "Material") for path, _ in self._materials.values()
        )
        data_assets = (
            IndexEntry(asset.name, asset.path, asset.type_name)
            for asset in self._data_assets.values()
        )
        return _sorted_entries([*materials, *data_assets])

    def _ensure_parent(self, path: str) -> None:
        folder = parent_folder(path)
        if folder:
            parts = folder.split("/")
            for index in range(1, len(parts) + 1):
                current = "/".join(parts[:index])
                self._folders.setdefault(current.casefold(), current)


def _sorted_entries(entries: Iterable[IndexEntry]) -> list[IndexEntry]:
    return sorted(entries, key=lambda entry: entry.path.casefold())


__all__ = [
    "BUILTIN_COMPONENT_TYPES",
    "DEFAULT_SHADERS",
    "MemoryWorld",
]
