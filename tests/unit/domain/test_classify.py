"""Unit tests for request classification heuristics."""

from __future__ import annotations

import pytest

from buildplan_orchestrator.domain.classify import (
    AssetKind,
    PrefabRecipe,
    detect_asset_kind,
    is_prefab_like,
    prefab_recipe,
    should_create_ui_prefab,
)
from buildplan_orchestrator.domain.models import FeatureRequest


def _asset(name: str, *, notes: str = "", path: str = "") -> FeatureRequest:
    return FeatureRequest(id=f"asset_{name.lower()}", type="asset", name=name, notes=notes, path=path)


def test_detect_asset_kind_prefers_scene_then_material_then_prefab() -> None:
    assert detect_asset_kind(_asset("Forest", path="Levels/Forest.unity")) is AssetKind.SCENE
    assert detect_asset_kind(_asset("Boss level material")) is AssetKind.SCENE
    assert detect_asset_kind(_asset("Red", path="Art/Red.mat")) is AssetKind.MATERIAL
    assert detect_asset_kind(_asset("Crate", notes="a wooden box")) is AssetKind.PREFAB
    assert detect_asset_kind(_asset("WaveConfig")) is AssetKind.UNKNOWN


def test_is_prefab_like() -> None:
    assert is_prefab_like(FeatureRequest(id="p", type="prefab", name="Anything"))
    assert is_prefab_like(_asset("Ball", notes="a sphere"))
    assert not is_prefab_like(_asset("WaveConfig"))
    assert not is_prefab_like(FeatureRequest(id="s", type="script", name="Cube"))


@pytest.mark.parametrize(
    ("name", "notes", "expected"),
    [
        ("Player", "uses a Character Controller", PrefabRecipe.CHARACTER_CONTROLLER),
        ("Spawner", "empty root object", PrefabRecipe.EMPTY),
        ("Ball", "", PrefabRecipe.CUBE),
        ("BallSphere", "", PrefabRecipe.SPHERE),
        ("Pill", "capsule collider", PrefabRecipe.CAPSULE),
        ("Floor", "a plane", PrefabRecipe.PLANE),
        ("Crate", None, PrefabRecipe.CUBE),
    ],
)
def test_prefab_recipe(name: str, notes: str | None, expected: PrefabRecipe) -> None:
    assert prefab_recipe(name, notes) is expected


def test_should_create_ui_prefab_checks_name_notes_and_path() -> None:
    assert should_create_ui_prefab(FeatureRequest(id="a", type="prefab", name="HealthHUD"))
    assert should_create_ui_prefab(
        FeatureRequest(id="b", type="prefab", name="Panel", path="Assets/Project/UI/Panel.prefab")
    )
    assert not should_create_ui_prefab(FeatureRequest(id="c", type="prefab", name="Enemy"))
