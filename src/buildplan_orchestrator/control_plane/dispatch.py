"""
buildplan-orchestrator — request dispatch

File: src/buildplan_orchestrator/control_plane/dispatch.py
Last updated: 2026-10-17

Purpose
- Apply one feature request to the asset world through the creation
  primitives of its type.

What should be included in this file
- One handler per request type, plus the data-asset attempt and kind
  detection for generic ``asset`` requests.
- Scene population and reference resolution for scene requests.

Functional requirements
- A handler reports failure as an error string; the dispatcher appends it to
  the request notes and returns ``False``.
- Existing prefabs and scenes are updated in place; existing materials, data
  assets and (unless overwriting) scripts are errors.

Non-functional requirements
- Must support mocked worlds and generators for offline tests.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

import structlog

from buildplan_orchestrator.constants import (
    BINDING_REPORT_FILENAME,
    DATA_ASSET_EXTENSION,
    MANAGERS_NODE_NAME,
    PROJECT_ROOT,
    SCRIPT_EXTENSION,
)
from buildplan_orchestrator.domain.classify import (
    AssetKind,
    detect_asset_kind,
    looks_like_material,
    looks_like_prefab,
    looks_like_scene,
    prefab_recipe,
    should_create_ui_prefab,
)
from buildplan_orchestrator.domain.models import RequestType
from buildplan_orchestrator.domain.notes import parse_prefab_names
from buildplan_orchestrator.domain.paths import (
    build_data_asset_path,
    build_material_path,
    build_prefab_path,
    build_scene_path,
    get_material_name,
    get_prefab_name,
    get_scene_name,
    normalize_folder_path,
)
from buildplan_orchestrator.hydration.population import (
    add_scene_managers,
    add_scene_prefabs,
    collect_scene_manager_components,
    collect_scene_prefab_paths,
    missing_managers_note,
)
from buildplan_orchestrator.hydration.resolver import (
    HydrationResult,
    hydrate_prefab,
    hydrate_scene,
    missing_references_note,
)
from buildplan_orchestrator.planning.identity import resolve_dependencies
from buildplan_orchestrator.planning.normalization import normalize_script_request_name
from buildplan_orchestrator.utils.concurrency import CancellationToken, run_with_timeout

if TYPE_CHECKING:
    from buildplan_orchestrator.backends.base import AssetWorld, ScriptGenerator
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.hydration.object_graph import Prefab

BindingReportSink = Callable[[str, HydrationResult], object]

UNSUPPORTED_TYPE_ERROR: Final[str] = "Type not supported by automation yet."
UNSUPPORTED_ASSET_ERROR: Final[str] = (
    "Asset type not supported by automation yet. Use type prefab/material/scene."
)
DATA_ASSET_TYPE_ERROR: Final[str] = (
    "ScriptableObject type not found. Ensure the referenced script compiles and inherits "
    "ScriptableObject."
)
PREFAB_UPDATED_NOTE: Final[str] = "Prefab exists; updated in place."
SCENE_UPDATED_NOTE: Final[str] = "Scene exists; updated in place."


class DataAssetAttempt(StrEnum):
    NOT_APPLICABLE = "not_applicable"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DispatchOptions:
    root: str = PROJECT_ROOT
    hydrate: bool = True
    managers_node: str = MANAGERS_NODE_NAME
    report_name: str = BINDING_REPORT_FILENAME
    overwrite_scripts: bool = False
    generator_timeout_seconds: float = 30.0


class RequestDispatcher:
    """Routes a request to the handler for its type and records any error in its notes."""

    def __init__(
        self,
        world: AssetWorld,
        *,
        generator: ScriptGenerator | None = None,
        options: DispatchOptions | None = None,
        report_sink: BindingReportSink | None = None,
        logger: Any | None = None,
    ) -> None:
        self._world = world
        self._generator = generator
        self._options = options or DispatchOptions()
        self._report_sink = report_sink
        self._log = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def world(self) -> AssetWorld:
        return self._world

    @property
    def options(self) -> DispatchOptions:
        return self._options

    async def dispatch(
        self,
        request: FeatureRequest,
        lookup: Mapping[str, FeatureRequest],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> bool:
        kind = request.kind
        if kind is RequestType.FOLDER:
            error = self._apply_folder(request)
        elif kind is RequestType.SCRIPT:
            error = await self._apply_script(request, lookup, cancel_token)
        elif kind is RequestType.PREFAB:
            error = self._apply_prefab(request)
        elif kind is RequestType.MATERIAL:
            error = self._apply_material(request)
        elif kind is RequestType.SCENE:
            error = self._apply_scene(request, lookup)
        elif kind is RequestType.ASSET:
            error = self._apply_asset(request, lookup)
        else:
            error = UNSUPPORTED_TYPE_ERROR

        if error:
            request.append_note(error)
            self._log.info(
                "request_dispatch_failed",
                request_id=request.id,
                request_type=request.type,
                error=error,
            )
            return False
        return True

    def hydrate_prefab_request(self, request: FeatureRequest, prefab: Prefab) -> HydrationResult:
        """Resolve a prefab's own references and record the outcome on ``request``."""
        result = hydrate_prefab(self._world, prefab, logger=self._log)
        self._record_hydration(request, prefab.path, result)
        return result

    # ------------------------------------------------------------------
    # Handlers: each returns "" on success or the error text.
    # ------------------------------------------------------------------

    def _apply_folder(self, request: FeatureRequest) -> str:
        if not request.path.strip():
            return "Folder path is empty."
        folder = normalize_folder_path(request.path, root=self._options.root)
        return self._ensure_folder(folder)

    async def _apply_script(
        self,
        request: FeatureRequest,
        lookup: Mapping[str, FeatureRequest],
        cancel_token: CancellationToken | None,
    ) -> str:
        normalize_script_request_name(request, add_notes=True)
        name = request.name.strip()
        if not name:
            return "Script name is empty."
        if self._generator is None:
            return "Missing script generator."

        folder = normalize_folder_path(request.path, root=self._options.root)
        folder_error = self._ensure_folder(folder)
        if folder_error:
            return folder_error

        timeout = self._options.generator_timeout_seconds
        try:
            source = await run_with_timeout(
                self._generator.generate(request, context=_contract_context(request, lookup)),
                timeout,
                cancel_token,
            )
        except TimeoutError:
            return f"Script generation timed out after {timeout:g} seconds."
        if not source.strip():
            return "Model returned empty code."

        path = f"{folder}/{name}{SCRIPT_EXTENSION}"
        if self._world.asset_exists(path) and not self._options.overwrite_scripts:
            return "Script already exists. Enable overwrite to replace."
        if not self._world.write_script(path, source):
            return f"Failed to write script at {path}."
        return ""

    def _apply_prefab(self, request: FeatureRequest) -> str:
        name = get_prefab_name(request.name, request.path)
        path, folder = build_prefab_path(
            request.path, name, root=self._options.root, is_folder=self._world.folder_exists
        )
        folder_error = self._ensure_folder(folder)
        if folder_error:
            return folder_error

        recipe = prefab_recipe(name, request.notes)
        ui = should_create_ui_prefab(request)
        existing = self._world.load_prefab(path)
        if existing is not None:
            template = self._world.create_prefab(path, name, recipe, ui=ui)
            if template is None:
                return "Failed to load prefab for update."
            for component in template.root.components:
                if existing.root.get_component(component.type_name) is None:
                    existing.root.add_component(component.type_name)
            if not self._world.save_prefab(existing):
                return "Failed to save prefab asset."
            request.append_note(PREFAB_UPDATED_NOTE)
            if self._options.hydrate:
                self.hydrate_prefab_request(request, existing)
            return ""

        prefab = self._world.create_prefab(path, name, recipe, ui=ui)
        if prefab is None:
            return "Failed to create prefab root GameObject."
        if not self._world.save_prefab(prefab):
            return "Failed to save prefab asset."
        return ""

    def _apply_material(self, request: FeatureRequest) -> str:
        name = get_material_name(request.name, request.path)
        path, folder = build_material_path(
            request.path, name, root=self._options.root, is_folder=self._world.folder_exists
        )
        folder_error = self._ensure_folder(folder)
        if folder_error:
            return folder_error
        if self._world.asset_exists(path):
            return "Material already exists. Delete it or choose a new name."
        shader = self._world.find_shader(request.notes)
        if shader is None:
            return "Material shader not found."
        if not self._world.create_material(path, shader):
            return "Failed to create material asset."
        return ""

    def _apply_scene(self, request: FeatureRequest, lookup: Mapping[str, FeatureRequest]) -> str:
        name = get_scene_name(request.name, request.path)
        path, folder = build_scene_path(
            request.path, name, root=self._options.root, is_folder=self._world.folder_exists
        )
        folder_error = self._ensure_folder(folder)
        if folder_error:
            return folder_error

        scene = self._world.load_scene(path)
        updated = scene is not None
        if scene is None:
            scene = self._world.create_scene(path, name)
            if scene is None:
                return f"Failed to create scene at {path}."

        prefab_paths = collect_scene_prefab_paths(
            request, lookup, self._world, root=self._options.root
        )
        add_scene_prefabs(self._world, scene, prefab_paths, logger=self._log)
        missing_managers = add_scene_managers(
            self._world,
            scene,
            collect_scene_manager_components(request, lookup),
            managers_node=self._options.managers_node,
        )
        if missing_managers:
            request.append_note(missing_managers_note(missing_managers))

        if self._options.hydrate:
            result = hydrate_scene(
                self._world,
                scene,
                prefab_paths=prefab_paths,
                prefab_name_hints=parse_prefab_names(request.notes),
                managers_node=self._options.managers_node,
                logger=self._log,
            )
            self._record_hydration(request, path, result)

        if not self._world.save_scene(scene):
            return "Failed to save scene asset."
        if updated:
            request.append_note(SCENE_UPDATED_NOTE)
        return ""

    def _apply_asset(self, request: FeatureRequest, lookup: Mapping[str, FeatureRequest]) -> str:
        attempt, error = self._try_data_asset(request, lookup)
        if attempt is DataAssetAttempt.SUCCESS:
            return ""
        if attempt is DataAssetAttempt.FAILED:
            return error

        kind = detect_asset_kind(request)
        if kind is AssetKind.PREFAB:
            return self._apply_prefab(request)
        if kind is AssetKind.SCENE:
            return self._apply_scene(request, lookup)
        if kind is AssetKind.MATERIAL:
            return self._apply_material(request)
        return UNSUPPORTED_ASSET_ERROR

    def _try_data_asset(
        self, request: FeatureRequest, lookup: Mapping[str, FeatureRequest]
    ) -> tuple[DataAssetAttempt, str]:
        if looks_like_prefab(request) or looks_like_scene(request) or looks_like_material(request):
            return DataAssetAttempt.NOT_APPLICABLE, ""

        script_dependencies = [
            dependency
            for dependency in resolve_dependencies(request, lookup)
            if dependency.is_type("script")
        ]
        should_try = (
            request.path.strip().lower().endswith(DATA_ASSET_EXTENSION)
            or "scriptableobject" in request.notes.lower()
            or bool(script_dependencies)
        )
        if not should_try:
            return DataAssetAttempt.NOT_APPLICABLE, ""

        type_name = self._data_asset_type(script_dependencies)
        if type_name is None:
            return DataAssetAttempt.FAILED, DATA_ASSET_TYPE_ERROR

        path, folder = build_data_asset_path(
            request.path, request.name, type_name, root=self._options.root
        )
        folder_error = self._ensure_folder(folder)
        if folder_error:
            return DataAssetAttempt.FAILED, folder_error
        if self._world.asset_exists(path):
            return DataAssetAttempt.FAILED, "Asset already exists. Delete it or choose a new name."
        if self._world.create_data_asset(path, type_name) is None:
            return (
                DataAssetAttempt.FAILED,
                f"Failed to create ScriptableObject instance for {type_name}.",
            )
        return DataAssetAttempt.SUCCESS, ""

    # ------------------------
    # Internal helper routines
    # ------------------------

    def _data_asset_type(self, script_dependencies: list[FeatureRequest]) -> str | None:
        for dependency in script_dependencies:
            name = dependency.name.strip()
            if not name:
                continue
            type_name = self._world.find_script_type(name)
            if type_name is not None and self._world.registry.is_data_asset_type(type_name):
                return type_name
        return None

    def _ensure_folder(self, folder: str) -> str:
        if not folder.strip():
            return "Folder path is empty."
        if self._world.folder_exists(folder):
            return ""
        if not self._world.create_folder(folder):
            return f"Failed to create folder: {folder}"
        return ""

    def _record_hydration(
        self, request: FeatureRequest, asset_path: str, result: HydrationResult
    ) -> None:
        if result.has_entries and self._report_sink is not None:
            self._report_sink(asset_path, result)
        if result.missing:
            request.append_note(missing_references_note(self._options.report_name))


def _contract_context(request: FeatureRequest, lookup: Mapping[str, FeatureRequest]) -> str:
    """Short description of what the script's dependencies provide."""
    lines = [
        f"- {dependency.type} {dependency.name.strip()}: {dependency.notes.strip()}".rstrip(": ")
        for dependency in resolve_dependencies(request, lookup)
        if dependency.name.strip()
    ]
    if not lines:
        return ""
    return "Dependencies:\n" + "\n".join(lines)


__all__ = [
    "BindingReportSink",
    "DATA_ASSET_TYPE_ERROR",
    "DataAssetAttempt",
    "DispatchOptions",
    "PREFAB_UPDATED_NOTE",
    "RequestDispatcher",
    "SCENE_UPDATED_NOTE",
    "UNSUPPORTED_ASSET_ERROR",
    "UNSUPPORTED_TYPE_ERROR",
]
