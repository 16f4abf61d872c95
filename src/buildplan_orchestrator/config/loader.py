"""
buildplan-orchestrator — effective configuration

File: src/buildplan_orchestrator/config/loader.py
Last updated: 2026-10-18

Purpose
- Produce the validated configuration a command runs with.

What should be included in this file
- ``buildplan.toml`` reading through ``tomllib``.
- Layering: defaults, file, profile overlay, ``BUILDPLAN_*`` environment, CLI overrides.
- Path fields resolved against the directory holding the config file.

Functional requirements
- Environment values are coerced to the type of the setting they override; a
  value that cannot be coerced is a ``ConfigLoadError`` naming the variable.
- A missing default ``buildplan.toml`` means defaults; a missing explicit path is an error.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from buildplan_orchestrator.config.schema import (
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "buildplan.toml"
ENV_PREFIX: Final[str] = "BUILDPLAN_"

_PROFILE_ENV: Final[str] = f"{ENV_PREFIX}PROFILE"
_UNLAYERED_SECTIONS: Final[frozenset[str]] = frozenset({"meta", "profiles"})
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

# Settings whose default is None still take a typed environment value.
_NULLABLE_SETTING_TYPES: Final[dict[tuple[str, ...], type]] = {
    ("hydration", "registry_path"): str,
}


class ConfigLoadError(ValueError):
    """The config file or an override could not be read."""


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Effective config. Later layers win: defaults, file, profile, environment, CLI."""
    path = _config_file(config_path)
    env = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})
    active_profile = _select_profile(profile, overrides, env)

    config = assert_valid_config(merge_config(default_config(), _read_toml(path, config_path)))
    if active_profile is not None:
        config = apply_profile_overlay(config, active_profile)
    config = merge_config(config, _environment_layer(env))
    config = merge_config(config, _cli_layer(overrides))
    config = assert_valid_config(config, active_profile=active_profile)
    return assert_valid_config(
        normalize_paths(config, base_dir=path.parent), active_profile=active_profile
    )


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Resolve path settings, including those inside profile overlays, against ``base_dir``."""
    resolved = merge_config({}, config)
    targets = list(PATH_FIELDS)
    profiles = resolved.get("profiles")
    if isinstance(profiles, Mapping):
        for name in sorted(profiles):
            overlay = profiles[name]
            if isinstance(overlay, Mapping):
                targets.extend(
                    ("profiles", name, *field) for field in PATH_FIELDS if field[0] in overlay
                )

    for field_path in targets:
        value = _lookup(resolved, field_path)
        if isinstance(value, str):
            _assign(resolved, field_path, _resolve_path(value, base_dir))
    return resolved


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(merge_config({}, config), sort_keys=True, indent=2, ensure_ascii=False)


def env_name_for(path: str | tuple[str, ...]) -> str:
    """``"scheduler.on_cycle"`` -> ``"BUILDPLAN_SCHEDULER_ON_CYCLE"``."""
    parts = path.split(".") if isinstance(path, str) else path
    return ENV_PREFIX + "_".join(part.upper() for part in parts if part)


# ------------------------
# Layers
# ------------------------


def _config_file(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _read_toml(path: Path, requested: str | Path | None) -> dict[str, Any]:
    if not path.exists():
        if requested is not None:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _select_profile(
    explicit: str | None, overrides: Mapping[str, object], env: Mapping[str, str]
) -> str | None:
    if explicit is not None:
        candidate: object = explicit
    elif "profile" in overrides:
        candidate = overrides["profile"]
        if not isinstance(candidate, str):
            raise ConfigLoadError("cli override 'profile' must be a string")
    else:
        candidate = env.get(_PROFILE_ENV, "")
    return str(candidate).strip() or None


def _environment_layer(env: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for field_path, setting_type in sorted(_setting_types().items()):
        name = env_name_for(field_path)
        if name in env:
            _assign(layer, field_path, _coerce(env[name], setting_type, name, field_path))
    return layer


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key in sorted(overrides):
        if key == "profile":
            continue
        field_path = tuple(part for part in key.split(".") if part)
        if not field_path:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        nested: dict[str, Any] = {}
        _assign(nested, field_path, overrides[key])
        layer = merge_config(layer, nested)
    return layer


def _setting_types() -> dict[tuple[str, ...], type]:
    """Type of every overridable setting, taken from the built-in defaults."""
    types = dict(_NULLABLE_SETTING_TYPES)
    for field_path, value in _leaves(default_config()):
        if field_path[0] in _UNLAYERED_SECTIONS or value is None:
            continue
        types[field_path] = type(value)
    return types


def _leaves(
    payload: Mapping[str, object], prefix: tuple[str, ...] = ()
) -> Iterator[tuple[tuple[str, ...], object]]:
    for key, value in payload.items():
        if isinstance(value, Mapping):
            yield from _leaves(value, (*prefix, key))
        else:
            yield (*prefix, key), value


# ------------------------
# Coercion and path helpers
# ------------------------


def _to_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("must be a boolean (true/false/1/0/yes/no/on/off)")


def _to_list(text: str) -> list[str]:
    return [item.strip() for item in text.split(",") if item.strip()]


_COERCERS: Final[dict[type, tuple[Callable[[str], object], str]]] = {
    bool: (_to_bool, "must be a boolean (true/false/1/0/yes/no/on/off)"),
    int: (int, "must be an integer"),
    float: (float, "must be a number"),
    list: (_to_list, "must be a comma-separated list"),
    str: (str, "must be a string"),
}


def _coerce(raw: str, setting_type: type, name: str, field_path: tuple[str, ...]) -> object:
    convert, expectation = _COERCERS.get(setting_type, _COERCERS[str])
    try:
        return convert(raw.strip())
    except ValueError as exc:
        raise ConfigLoadError(f"{name} -> {'.'.join(field_path)} {expectation}") from exc


def _lookup(payload: Mapping[str, object], field_path: tuple[str, ...]) -> object | None:
    node: object = payload
    for part in field_path:
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _assign(payload: dict[str, Any], field_path: tuple[str, ...], value: object) -> None:
    node = payload
    for part in field_path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[field_path[-1]] = value


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "env_name_for",
    "load_config",
    "normalize_paths",
]
