"""Keyword heuristics that infer what a loosely typed request really is."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Final

from buildplan_orchestrator.constants import MATERIAL_EXTENSION, SCENE_EXTENSION

if TYPE_CHECKING:
    from buildplan_orchestrator.domain.models import FeatureRequest


class AssetKind(StrEnum):
    SCENE = "scene"
    MATERIAL = "material"
    PREFAB = "prefab"
    UNKNOWN = "unknown"


class PrefabRecipe(StrEnum):
    CHARACTER_CONTROLLER = "character_controller"
    EMPTY = "empty"
    SPHERE = "sphere"
    CAPSULE = "capsule"
    CYLINDER = "cylinder"
    PLANE = "plane"
    QUAD = "quad"
    CUBE = "cube"


_CHARACTER_CONTROLLER_WORDS: Final[tuple[str, ...]] = (
    "character controller",
    "charactercontroller",
    "character-controller",
)
_PREFAB_WORDS: Final[tuple[str, ...]] = (
    "prefab",
    "cube",
    "box",
    "sphere",
    "capsule",
    "cylinder",
    "plane",
    "quad",
    *_CHARACTER_CONTROLLER_WORDS,
    "empty",
)
_RECIPE_WORDS: Final[tuple[tuple[PrefabRecipe, tuple[str, ...]], ...]] = (
    (PrefabRecipe.CHARACTER_CONTROLLER, _CHARACTER_CONTROLLER_WORDS),
    (PrefabRecipe.EMPTY, ("empty",)),
    (PrefabRecipe.SPHERE, ("sphere",)),
    (PrefabRecipe.CAPSULE, ("capsule",)),
    (PrefabRecipe.CYLINDER, ("cylinder",)),
    (PrefabRecipe.PLANE, ("plane",)),
    (PrefabRecipe.QUAD, ("quad",)),
)
_UI_WORDS: Final[tuple[str, ...]] = ("ui", "canvas", "hud", "screen", "/ui/")


def looks_like_prefab(request: FeatureRequest) -> bool:
    combined = _name_and_notes(request)
    return any(word in combined for word in _PREFAB_WORDS)


def looks_like_material(request: FeatureRequest) -> bool:
    if request.path.strip().lower().endswith(MATERIAL_EXTENSION):
        return True
    combined = _name_and_notes(request)
    return "material" in combined or "mat " in combined


def looks_like_scene(request: FeatureRequest) -> bool:
    if request.path.strip().lower().endswith(SCENE_EXTENSION):
        return True
    combined = _name_and_notes(request)
    return "scene" in combined or "level" in combined


def detect_asset_kind(request: FeatureRequest) -> AssetKind:
    """Classify a generic ``asset`` request: scene, then material, then prefab."""
    if looks_like_scene(request):
        return AssetKind.SCENE
    if looks_like_material(request):
        return AssetKind.MATERIAL
    if looks_like_prefab(request):
        return AssetKind.PREFAB
    return AssetKind.UNKNOWN


def is_prefab_like(request: FeatureRequest) -> bool:
    """A prefab request, or an asset request that reads like one."""
    return request.is_type("prefab") or (request.is_type("asset") and looks_like_prefab(request))


def prefab_recipe(name: str | None, notes: str | None) -> PrefabRecipe:
    combined = f"{name or ''} {notes or ''}".lower()
    for recipe, words in _RECIPE_WORDS:
        if any(word in combined for word in words):
            return recipe
    return PrefabRecipe.CUBE


def should_create_ui_prefab(request: FeatureRequest) -> bool:
    combined = f"{request.name} {request.notes} {request.path}".lower()
    return any(word in combined for word in _UI_WORDS)


def _name_and_notes(request: FeatureRequest) -> str:
    return f"{request.name} {request.notes}".lower()


__all__ = [
    "AssetKind",
    "PrefabRecipe",
    "detect_asset_kind",
    "is_prefab_like",
    "looks_like_material",
    "looks_like_prefab",
    "looks_like_scene",
    "prefab_recipe",
    "should_create_ui_prefab",
]
