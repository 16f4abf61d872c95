"""Unit tests for the capability registry and its document loader."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from buildplan_orchestrator.hydration.registry import (
    BehaviourSpec,
    CapabilityRegistry,
    FieldKind,
    FieldSpec,
    RegistryLoadError,
    load_registry,
    registry_from_mapping,
)

_REGISTRY_YAML = """\
behaviours:
  Spawner:
    bases: [Behaviour]
    fields:
      - {name: enemyPrefab, kind: game_object}
      - {name: spawnPoints, kind: transform, collection: true}
      - {name: waves, kind: data_asset, type: WaveConfig}
  Behaviour:
    fields:
      - {name: manager, kind: component, type: GameManager}
      - {name: enemyPrefab, kind: transform}
data_assets:
  WaveConfig: {}
"""


def test_field_spec_defaults_type_name_by_kind() -> None:
    assert FieldSpec("target", FieldKind.GAME_OBJECT).type_name == "GameObject"
    assert FieldSpec("points", FieldKind.TRANSFORM, is_collection=True).label == "Transform[]"
    assert FieldSpec("manager", FieldKind.COMPONENT, " GameManager ").type_name == "GameManager"


@pytest.mark.parametrize(
    ("name", "kind"),
    [
        ("", FieldKind.GAME_OBJECT),
        ("manager", FieldKind.COMPONENT),
        ("config", FieldKind.DATA_ASSET),
    ],
)
def test_field_spec_rejects_incomplete_declarations(name: str, kind: FieldKind) -> None:
    with pytest.raises(ValueError):
        FieldSpec(name, kind)


def test_fields_are_inherited_and_declared_names_win(tmp_path: Path) -> None:
    source = tmp_path / "registry.yaml"
    source.write_text(_REGISTRY_YAML, encoding="utf-8")

    registry = load_registry(source)
    fields = registry.fields_for("spawner")

    assert [spec.name for spec in fields] == ["enemyPrefab", "spawnPoints", "waves", "manager"]
    assert fields[0].kind is FieldKind.GAME_OBJECT
    assert registry.canonical_name("SPAWNER") == "Spawner"
    assert registry.fields_for("Unknown") == ()


def test_default_bases_and_data_asset_types(tmp_path: Path) -> None:
    source = tmp_path / "registry.yaml"
    source.write_text(_REGISTRY_YAML, encoding="utf-8")

    registry = load_registry(source)

    assert registry.get("Behaviour").bases == ("MonoBehaviour",)  # type: ignore[union-attr]
    assert registry.get("WaveConfig").bases == ("ScriptableObject",)  # type: ignore[union-attr]
    assert registry.is_data_asset_type("WaveConfig")
    assert not registry.is_data_asset_type("Spawner")
    assert registry.is_subtype("Spawner", "monobehaviour")
    assert len(registry) == 3


def test_json_documents_load_the_same_way(tmp_path: Path) -> None:
    source = tmp_path / "registry.json"
    source.write_text(
        json.dumps({"behaviours": {"Door": {"fields": [{"name": "key", "kind": "game_object"}]}}}),
        encoding="utf-8",
    )

    registry = load_registry(source)

    assert "door" in registry
    assert registry.fields_for("Door")[0].name == "key"


def test_empty_document_is_an_empty_registry(tmp_path: Path) -> None:
    source = tmp_path / "registry.yaml"
    source.write_text("", encoding="utf-8")

    assert len(load_registry(source)) == 0


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("scripts: {}", "unknown top-level keys: scripts"),
        ("behaviours: [Spawner]", "behaviours: expected object"),
        ("behaviours:\n  Spawner:\n    fields:\n      - {name: x, kind: sprite}", "kind: expected one of"),
        ("behaviours:\n  Spawner:\n    bases: Base", "bases: expected a list"),
        ("behaviours: {unclosed", "invalid YAML"),
    ],
)
def test_malformed_documents_raise(tmp_path: Path, text: str, message: str) -> None:
    source = tmp_path / "registry.yaml"
    source.write_text(text, encoding="utf-8")

    with pytest.raises(RegistryLoadError, match=message):
        load_registry(source)


def test_missing_document_raises(tmp_path: Path) -> None:
    with pytest.raises(RegistryLoadError, match="cannot read registry"):
        load_registry(tmp_path / "absent.yaml")


def test_subtype_walk_survives_cycles() -> None:
    registry = CapabilityRegistry.from_specs(
        [
            BehaviourSpec("A", bases=("B",)),
            BehaviourSpec("B", bases=("A",)),
        ]
    )

    assert registry.is_subtype("A", "B")
    assert not registry.is_subtype("A", "C")
    assert registry.fields_for("A") == ()


def test_registry_from_mapping_accepts_null_sections() -> None:
    registry = registry_from_mapping({"behaviours": None, "data_assets": {"Loot": None}})

    assert registry.is_data_asset_type("Loot")
