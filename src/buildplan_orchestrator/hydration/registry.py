"""Capability registry: which reference fields each behaviour type declares.

Loaded from a JSON or YAML document::

    behaviours:
      Spawner:
        bases: [MonoBehaviour]
        fields:
          - {name: enemyPrefab, kind: game_object}
          - {name: spawnPoints, kind: transform, collection: true}
          - {name: manager, kind: component, type: GameManager}
    data_assets:
      WaveConfig:
        bases: [ScriptableObject]

Fields declared on a registered base type are inherited.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Final, TypeAlias, cast

import yaml

PathLike: TypeAlias = str | os.PathLike[str]

DATA_ASSET_BASE: Final[str] = "ScriptableObject"
BEHAVIOUR_BASE: Final[str] = "MonoBehaviour"


class FieldKind(StrEnum):
    GAME_OBJECT = "game_object"
    TRANSFORM = "transform"
    COMPONENT = "component"
    DATA_ASSET = "data_asset"


_DEFAULT_TYPE_NAMES: Final[dict[FieldKind, str]] = {
    FieldKind.GAME_OBJECT: "GameObject",
    FieldKind.TRANSFORM: "Transform",
}


class RegistryLoadError(ValueError):
    """Raised when a registry document cannot be read or is malformed."""


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One reference field: its kind, the referenced type and whether it is a list."""

    name: str
    kind: FieldKind
    type_name: str = ""
    is_collection: bool = False

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("FieldSpec.name must not be empty")
        type_name = self.type_name.strip() or _DEFAULT_TYPE_NAMES.get(self.kind, "")
        if not type_name:
            raise ValueError(f"FieldSpec {self.name!r}: kind {self.kind} needs a type name")
        object.__setattr__(self, "type_name", type_name)

    @property
    def label(self) -> str:
        return f"{self.type_name}[]" if self.is_collection else self.type_name


@dataclass(frozen=True, slots=True)
class BehaviourSpec:
    type_name: str
    fields: tuple[FieldSpec, ...] = ()
    bases: tuple[str, ...] = ()
    is_data_asset: bool = False


@dataclass(slots=True)
class CapabilityRegistry:
    """Type name -> declared reference fields, with base-type inheritance."""

    _specs: dict[str, BehaviourSpec] = field(default_factory=dict)

    @classmethod
    def from_specs(cls, specs: Iterable[BehaviourSpec]) -> CapabilityRegistry:
        registry = cls()
        for spec in specs:
            registry.register(spec)
        return registry

    def register(self, spec: BehaviourSpec) -> None:
        self._specs[spec.type_name.casefold()] = spec

    def __contains__(self, type_name: object) -> bool:
        return isinstance(type_name, str) and type_name.casefold() in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[BehaviourSpec]:
        return iter(self._specs.values())

    def get(self, type_name: str) -> BehaviourSpec | None:
        return self._specs.get(type_name.casefold())

    def canonical_name(self, type_name: str) -> str | None:
        spec = self.get(type_name)
        return None if spec is None else spec.type_name

    def fields_for(self, type_name: str) -> tuple[FieldSpec, ...]:
        """Declared fields of ``type_name`` followed by inherited ones, first name wins."""
        collected: list[FieldSpec] = []
        seen: set[str] = set()
        for spec in self._lineage(type_name):
            for field_spec in spec.fields:
                if field_spec.name in seen:
                    continue
                seen.add(field_spec.name)
                collected.append(field_spec)
        return tuple(collected)

    def is_subtype(self, type_name: str, base_name: str) -> bool:
        target = base_name.casefold()
        if type_name.casefold() == target:
            return True
        visited: set[str] = set()
        pending = [type_name]
        while pending:
            current = pending.pop()
            folded = current.casefold()
            if folded in visited:
                continue
            visited.add(folded)
            spec = self._specs.get(folded)
            if spec is None:
                continue
            for base in spec.bases:
                if base.casefold() == target:
                    return True
                pending.append(base)
        return False

    def is_data_asset_type(self, type_name: str) -> bool:
        spec = self.get(type_name)
        if spec is not None and spec.is_data_asset:
            return True
        return self.is_subtype(type_name, DATA_ASSET_BASE)

    def _lineage(self, type_name: str) -> Iterator[BehaviourSpec]:
        visited: set[str] = set()
        pending = [type_name]
        while pending:
            current = pending.pop(0)
            folded = current.casefold()
            if folded in visited:
                continue
            visited.add(folded)
            spec = self._specs.get(folded)
            if spec is None:
                continue
            yield spec
            pending.extend(spec.bases)


def load_registry(path: PathLike) -> CapabilityRegistry:
    """Read a registry document; YAML is a superset of JSON so both load the same way."""
    source = Path(path)
    try:
        with source.open("r", encoding="utf-8") as handle:
            loaded = cast("object", yaml.safe_load(handle))
    except OSError as exc:
        raise RegistryLoadError(f"{source}: cannot read registry ({exc})") from exc
    except yaml.YAMLError as exc:
        raise RegistryLoadError(f"{source}: invalid YAML ({exc})") from exc

    if loaded is None:
        return CapabilityRegistry()
    try:
        return registry_from_mapping(_as_mapping(loaded, source.name))
    except ValueError as exc:
        raise RegistryLoadError(f"{source}: {exc}") from exc


def registry_from_mapping(payload: Mapping[str, object]) -> CapabilityRegistry:
    registry = CapabilityRegistry()
    unknown = sorted(set(payload) - {"behaviours", "data_assets"})
    if unknown:
        raise ValueError("unknown top-level keys: " + ", ".join(unknown))

    for section, is_data_asset in (("behaviours", False), ("data_assets", True)):
        raw_section = payload.get(section)
        if raw_section is None:
            continue
        for type_name, raw_spec in _as_mapping(raw_section, section).items():
            registry.register(
                _parse_spec(type_name, raw_spec, is_data_asset=is_data_asset, path=section)
            )
    return registry


# ------------------------
# Internal helper routines
# ------------------------


def _parse_spec(
    type_name: str, raw: object, *, is_data_asset: bool, path: str
) -> BehaviourSpec:
    location = f"{path}.{type_name}"
    if not type_name.strip():
        raise ValueError(f"{path}: type names must not be empty")
    payload = {} if raw is None else _as_mapping(raw, location)

    raw_bases = payload.get("bases", [])
    if not isinstance(raw_bases, list) or not all(isinstance(item, str) for item in raw_bases):
        raise ValueError(f"{location}.bases: expected a list of type names")
    bases = tuple(item.strip() for item in raw_bases if item.strip())
    if not bases:
        bases = (DATA_ASSET_BASE if is_data_asset else BEHAVIOUR_BASE,)

    raw_fields = payload.get("fields", [])
    if not isinstance(raw_fields, list):
        raise ValueError(f"{location}.fields: expected a list")
    fields = tuple(
        _parse_field(item, f"{location}.fields[{index}]") for index, item in enumerate(raw_fields)
    )
    return BehaviourSpec(
        type_name=type_name.strip(), fields=fields, bases=bases, is_data_asset=is_data_asset
    )


def _parse_field(raw: object, location: str) -> FieldSpec:
    payload = _as_mapping(raw, location)
    name = payload.get("name")
    if not isinstance(name, str):
        raise ValueError(f"{location}.name: expected string")
    raw_kind = payload.get("kind")
    try:
        kind = FieldKind(str(raw_kind).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in FieldKind)
        raise ValueError(f"{location}.kind: expected one of {allowed}, got {raw_kind!r}") from exc
    type_name = payload.get("type", "")
    if not isinstance(type_name, str):
        raise ValueError(f"{location}.type: expected string")
    collection = payload.get("collection", False)
    if not isinstance(collection, bool):
        raise ValueError(f"{location}.collection: expected boolean")
    return FieldSpec(name=name.strip(), kind=kind, type_name=type_name, is_collection=collection)


def _as_mapping(value: object, path: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{path}: expected object, got {type(value).__name__}")
    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ValueError(f"{path}: object keys must be strings, got {type(key).__name__}")
        parsed[key] = item
    return parsed


__all__ = [
    "BEHAVIOUR_BASE",
    "BehaviourSpec",
    "CapabilityRegistry",
    "DATA_ASSET_BASE",
    "FieldKind",
    "FieldSpec",
    "RegistryLoadError",
    "load_registry",
    "registry_from_mapping",
]
