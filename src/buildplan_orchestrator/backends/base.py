"""
buildplan-orchestrator — backend contracts

File: src/buildplan_orchestrator/backends/base.py
Last updated: 2026-10-17

Purpose
- Narrow contracts for the collaborators the engine drives: the asset world
  (creation primitives, object graph, asset index) and the script generator.

What should be included in this file
- ``AssetWorld`` and ``ScriptGenerator`` protocols.
- ``IndexEntry`` rows consumed by the index documents.

Functional requirements
- Every primitive reports failure through its return value; exceptions are
  reserved for broken collaborators and are turned into request notes by the
  dispatcher.

Non-functional requirements
- Must make it easy to add new backends without touching core logic.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from buildplan_orchestrator.domain.classify import PrefabRecipe
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.hydration.object_graph import DataAsset, Prefab, Scene
    from buildplan_orchestrator.hydration.registry import CapabilityRegistry


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """One catalogued asset: display name, asset path and, for data assets, its type."""

    name: str
    path: str
    type_name: str = ""


@runtime_checkable
class AssetWorld(Protocol):
    """Creation primitives and lookups over the project's assets."""

    @property
    def registry(self) -> CapabilityRegistry: ...

    # Folders and scripts.
    def folder_exists(self, path: str) -> bool: ...

    def create_folder(self, path: str) -> bool: ...

    def asset_exists(self, path: str) -> bool: ...

    def write_script(self, path: str, source: str) -> bool: ...

    def find_script_type(self, name: str) -> str | None: ...

    def is_compiling(self) -> bool: ...

    def refresh(self) -> None: ...

    # Prefabs.
    def load_prefab(self, path: str) -> Prefab | None: ...

    def create_prefab(
        self, path: str, name: str, recipe: PrefabRecipe, *, ui: bool = False
    ) -> Prefab | None: ...

    def save_prefab(self, prefab: Prefab) -> bool: ...

    def find_prefab_path(self, name: str) -> str | None: ...

    # Scenes.
    def load_scene(self, path: str) -> Scene | None: ...

    def create_scene(self, path: str, name: str) -> Scene | None: ...

    def save_scene(self, scene: Scene) -> bool: ...

    # Materials and data assets.
    def find_shader(self, notes: str) -> str | None: ...

    def create_material(self, path: str, shader: str) -> bool: ...

    def create_data_asset(self, path: str, type_name: str) -> DataAsset | None: ...

    def find_data_assets(self, type_name: str) -> Sequence[DataAsset]: ...

    # Index catalogs.
    def iter_prefabs(self) -> Iterable[IndexEntry]: ...

    def iter_scenes(self) -> Iterable[IndexEntry]: ...

    def iter_scripts(self) -> Iterable[IndexEntry]: ...

    def iter_assets(self) -> Iterable[IndexEntry]: ...


@runtime_checkable
class ScriptGenerator(Protocol):
    """Produces the source text of a script request."""

    async def generate(self, request: FeatureRequest, *, context: str = "") -> str: ...


__all__ = [
    "AssetWorld",
    "IndexEntry",
    "ScriptGenerator",
]
