"""Stable constants shared across planning, execution, and hydration."""

from __future__ import annotations

from typing import Final

# Project layout (editor asset paths, always forward slashes).
ASSETS_ROOT: Final[str] = "Assets"
PROJECT_ROOT: Final[str] = "Assets/Project"
PLAN_DIR: Final[str] = "Assets/Plan"
SCRIPTS_DIR: Final[str] = f"{PROJECT_ROOT}/Scripts"
PREFABS_DIR: Final[str] = f"{PROJECT_ROOT}/Prefabs"
SCENES_DIR: Final[str] = f"{PROJECT_ROOT}/Scenes"
MATERIALS_DIR: Final[str] = f"{PROJECT_ROOT}/Materials"

# Asset extensions.
SCRIPT_EXTENSION: Final[str] = ".cs"
PREFAB_EXTENSION: Final[str] = ".prefab"
SCENE_EXTENSION: Final[str] = ".unity"
MATERIAL_EXTENSION: Final[str] = ".mat"
DATA_ASSET_EXTENSION: Final[str] = ".asset"

# Fallback names when a request carries none.
DEFAULT_PREFAB_NAME: Final[str] = "Prefab"
DEFAULT_SCENE_NAME: Final[str] = "NewScene"
DEFAULT_MATERIAL_NAME: Final[str] = "NewMaterial"
DEFAULT_SCRIPT_NAME: Final[str] = "Script"

# Plan directory artifacts.
PLAN_RAW_FILENAME: Final[str] = "PlanRaw.json"
BINDING_REPORT_FILENAME: Final[str] = "SceneBindingIndex.md"
BINDING_REPORT_HEADER: Final[str] = "# Scene Binding Index\n"
MANAGERS_NODE_NAME: Final[str] = "Managers"

# Index document budgets.
INDEX_MAX_CHARS: Final[int] = 6000
PREFAB_INDEX_CAP: Final[int] = 50
SCENE_INDEX_CAP: Final[int] = 40
ASSET_INDEX_CAP: Final[int] = 60
SCRIPT_INDEX_CAP: Final[int] = 40

# Prefab component attachment.
PREFAB_ATTACH_MAX_ATTEMPTS: Final[int] = 30

# Reference description lists are cut after this many items.
DESCRIBE_LIST_LIMIT: Final[int] = 6

# Schema version for persisted config contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Named execution stages and the request types each one runs.
EXECUTION_STAGES: Final[dict[str, tuple[str, ...]]] = {
    "folders": ("folder",),
    "scripts": ("script",),
    "materials": ("material",),
    "prefabs": ("prefab",),
    "scenes": ("scene",),
    "assets": ("asset",),
}

__all__ = [
    "ASSETS_ROOT",
    "ASSET_INDEX_CAP",
    "BINDING_REPORT_FILENAME",
    "BINDING_REPORT_HEADER",
    "CONFIG_SCHEMA_VERSION",
    "DATA_ASSET_EXTENSION",
    "DEFAULT_MATERIAL_NAME",
    "DEFAULT_PREFAB_NAME",
    "DEFAULT_SCENE_NAME",
    "DEFAULT_SCRIPT_NAME",
    "DESCRIBE_LIST_LIMIT",
    "EXECUTION_STAGES",
    "INDEX_MAX_CHARS",
    "MANAGERS_NODE_NAME",
    "MATERIALS_DIR",
    "MATERIAL_EXTENSION",
    "PLAN_DIR",
    "PLAN_RAW_FILENAME",
    "PREFABS_DIR",
    "PREFAB_ATTACH_MAX_ATTEMPTS",
    "PREFAB_EXTENSION",
    "PREFAB_INDEX_CAP",
    "PROJECT_ROOT",
    "SCENES_DIR",
    "SCENE_EXTENSION",
    "SCENE_INDEX_CAP",
    "SCRIPTS_DIR",
    "SCRIPT_EXTENSION",
    "SCRIPT_INDEX_CAP",
]
