"""
buildplan-orchestrator — configuration schema and validation.

File: src/buildplan_orchestrator/config/schema.py
Last updated: 2026-10-17

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Profile overlay validation and deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Support profile overlays including strict/lenient.

Non-functional requirements
- Keep rules deterministic and easy to audit.
- Preserve backwards compatibility through explicit migration messages.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from buildplan_orchestrator.constants import (
    ASSET_INDEX_CAP,
    BINDING_REPORT_FILENAME,
    CONFIG_SCHEMA_VERSION,
    EXECUTION_STAGES,
    INDEX_MAX_CHARS,
    MANAGERS_NODE_NAME,
    PLAN_DIR,
    PREFAB_ATTACH_MAX_ATTEMPTS,
    PREFAB_INDEX_CAP,
    PROJECT_ROOT,
    SCENE_INDEX_CAP,
    SCRIPT_INDEX_CAP,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "lenient")
CYCLE_POLICIES: Final[tuple[str, ...]] = ("raise", "append")
GENERATOR_BACKENDS: Final[tuple[str, ...]] = ("template", "none")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_ASSET_PATH_PATTERN = re.compile(r"^Assets(/[^/]+)*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passwd",
        "api",
        "key",
        "apikey",
        "private",
        "credential",
        "credentials",
        "auth",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("project", "workspace"),
    ("hydration", "registry_path"),
    ("observability", "log_dir"),
)

_SECTION_NAMES: Final[tuple[str, ...]] = (
    "project",
    "scheduler",
    "execution",
    "generator",
    "hydration",
    "indexes",
    "observability",
)


class MetaConfig(TypedDict):
    schema_version: int


class ProjectConfig(TypedDict):
    workspace: str
    root: str
    plan_dir: str


class SchedulerConfig(TypedDict):
    on_cycle: Literal["raise", "append"]
    retry_passes: int


class ExecutionConfig(TypedDict):
    stages: list[str]
    prefab_attach_attempts: int
    prefab_attach_delay_seconds: float
    overwrite_scripts: bool


class GeneratorConfig(TypedDict):
    backend: Literal["template", "none"]
    timeout_seconds: float


class HydrationConfig(TypedDict):
    enabled: bool
    report_name: str
    managers_node: str
    registry_path: NotRequired[str | None]


class IndexesConfig(TypedDict):
    max_chars: int
    prefab_cap: int
    scene_cap: int
    asset_cap: int
    script_cap: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stdout: bool


class ProfileOverlay(TypedDict, total=False):
    project: dict[str, object]
    scheduler: dict[str, object]
    execution: dict[str, object]
    generator: dict[str, object]
    hydration: dict[str, object]
    indexes: dict[str, object]
    observability: dict[str, object]


class BuildPlanConfig(TypedDict):
    meta: MetaConfig
    project: ProjectConfig
    scheduler: SchedulerConfig
    execution: ExecutionConfig
    generator: GeneratorConfig
    hydration: HydrationConfig
    indexes: IndexesConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[BuildPlanConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "project": {
        "workspace": ".",
        "root": PROJECT_ROOT,
        "plan_dir": PLAN_DIR,
    },
    "scheduler": {
        "on_cycle": "raise",
        "retry_passes": 1,
    },
    "execution": {
        "stages": list(EXECUTION_STAGES),
        "prefab_attach_attempts": PREFAB_ATTACH_MAX_ATTEMPTS,
        "prefab_attach_delay_seconds": 0.0,
        "overwrite_scripts": False,
    },
    "generator": {
        "backend": "template",
        "timeout_seconds": 30.0,
    },
    "hydration": {
        "enabled": True,
        "report_name": BINDING_REPORT_FILENAME,
        "managers_node": MANAGERS_NODE_NAME,
        "registry_path": None,
    },
    "indexes": {
        "max_chars": INDEX_MAX_CHARS,
        "prefab_cap": PREFAB_INDEX_CAP,
        "scene_cap": SCENE_INDEX_CAP,
        "asset_cap": ASSET_INDEX_CAP,
        "script_cap": SCRIPT_INDEX_CAP,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs/",
        "log_to_stdout": False,
    },
    "profiles": {
        "strict": {
            "scheduler": {"on_cycle": "raise"},
            "hydration": {"enabled": True},
        },
        "lenient": {
            "scheduler": {"on_cycle": "append"},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> BuildPlanConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade buildplan.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the buildplan-orchestrator runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = _deep_copy_mapping(config)
    if profile is None:
        return materialized

    selected = profile.strip()
    if not selected:
        return materialized

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", "profiles section is required"),)
        )

    overlay_raw = profiles_raw.get(selected)
    if overlay_raw is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (
                ConfigValidationIssue(
                    f"profiles.{selected}",
                    "profile overlay must be an object",
                ),
            )
        )

    merged = merge_config(materialized, overlay_raw)
    validated = assert_valid_config(merged, active_profile=selected)
    return validated


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, "", issues, partial=False)
    if normalized is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    selected_profile = active_profile.strip() if isinstance(active_profile, str) else None
    if selected_profile:
        profiles = normalized.get("profiles")
        if not isinstance(profiles, Mapping):
            issues.add("profiles", "profiles section is required")
        elif selected_profile not in profiles:
            issues.add("profiles", f"profile {selected_profile!r} is not defined")
        else:
            overlay = profiles[selected_profile]
            if isinstance(overlay, Mapping):
                effective = merge_config(normalized, overlay)
                _validate_root(effective, "", issues, partial=False)
            else:
                issues.add(f"profiles.{selected_profile}", "profile overlay must be an object")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())

    return ConfigValidationResult(config=normalized, issues=issues.items())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any] | None:
    allowed = {"meta", "profiles", *_SECTION_NAMES}
    required = {"meta", *_SECTION_NAMES}

    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, required, path, issues)

    out: dict[str, Any] = {}

    _section(
        payload,
        key="meta",
        path=path,
        issues=issues,
        validator=lambda section, section_path: _validate_meta(
            section, section_path, issues, partial=partial
        ),
        out=out,
    )
    for name in _SECTION_NAMES:
        validator = _SECTION_VALIDATORS[name]
        _section(
            payload,
            key=name,
            path=path,
            issues=issues,
            validator=lambda section, section_path, _validator=validator: _validator(
                section, section_path, issues, partial=partial
            ),
            out=out,
        )

    profiles_raw = payload.get("profiles")
    if profiles_raw is not None:
        profiles_path = _join(path, "profiles")
        profiles_obj = _as_object(profiles_raw, profiles_path, issues)
        if profiles_obj is not None:
            out["profiles"] = _validate_profiles(profiles_obj, profiles_path, issues)

    _validate_execution_cross_fields(out, path, issues, partial=partial)
    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    path: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_path = _join(path, key)
    section_obj = _as_object(raw, section_path, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, section_path)


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"schema_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_project(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"workspace", "root", "plan_dir"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "workspace" in payload:
        parsed_workspace = _as_path_text(payload["workspace"], _join(path, "workspace"), issues)
        if parsed_workspace is not None:
            out["workspace"] = parsed_workspace

    for key in ("root", "plan_dir"):
        if key in payload:
            parsed_asset_path = _as_asset_path(payload[key], _join(path, key), issues)
            if parsed_asset_path is not None:
                out[key] = parsed_asset_path

    return out


def _validate_scheduler(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"on_cycle", "retry_passes"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "on_cycle" in payload:
        parsed_policy = _as_enum(
            payload["on_cycle"],
            _join(path, "on_cycle"),
            issues,
            allowed_values=CYCLE_POLICIES,
        )
        if parsed_policy is not None:
            out["on_cycle"] = parsed_policy

    if "retry_passes" in payload:
        parsed_retry = _as_int(
            payload["retry_passes"],
            _join(path, "retry_passes"),
            issues,
            minimum=0,
            maximum=1,
        )
        if parsed_retry is not None:
            out["retry_passes"] = parsed_retry

    return out


def _validate_execution(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {
        "stages",
        "prefab_attach_attempts",
        "prefab_attach_delay_seconds",
        "overwrite_scripts",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "stages" in payload:
        parsed_stages = _as_stage_list(payload["stages"], _join(path, "stages"), issues)
        if parsed_stages is not None:
            out["stages"] = parsed_stages

    if "prefab_attach_attempts" in payload:
        parsed_attempts = _as_int(
            payload["prefab_attach_attempts"],
            _join(path, "prefab_attach_attempts"),
            issues,
            minimum=1,
        )
        if parsed_attempts is not None:
            out["prefab_attach_attempts"] = parsed_attempts

    if "prefab_attach_delay_seconds" in payload:
        parsed_delay = _as_float(
            payload["prefab_attach_delay_seconds"],
            _join(path, "prefab_attach_delay_seconds"),
            issues,
            minimum=0.0,
        )
        if parsed_delay is not None:
            out["prefab_attach_delay_seconds"] = parsed_delay

    if "overwrite_scripts" in payload:
        parsed_overwrite = _as_bool(
            payload["overwrite_scripts"], _join(path, "overwrite_scripts"), issues
        )
        if parsed_overwrite is not None:
            out["overwrite_scripts"] = parsed_overwrite

    return out


def _validate_generator(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"backend", "timeout_seconds"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "backend" in payload:
        parsed_backend = _as_enum(
            payload["backend"],
            _join(path, "backend"),
            issues,
            allowed_values=GENERATOR_BACKENDS,
        )
        if parsed_backend is not None:
            out["backend"] = parsed_backend

    if "timeout_seconds" in payload:
        parsed_timeout = _as_float(
            payload["timeout_seconds"], _join(path, "timeout_seconds"), issues, minimum=0.001
        )
        if parsed_timeout is not None:
            out["timeout_seconds"] = parsed_timeout

    return out


def _validate_hydration(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"enabled", "report_name", "managers_node", "registry_path"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, {"enabled", "report_name", "managers_node"}, path, issues)

    out: dict[str, Any] = {}

    if "enabled" in payload:
        parsed_enabled = _as_bool(payload["enabled"], _join(path, "enabled"), issues)
        if parsed_enabled is not None:
            out["enabled"] = parsed_enabled

    if "report_name" in payload:
        parsed_report = _as_str(payload["report_name"], _join(path, "report_name"), issues)
        if parsed_report is not None:
            if "/" in parsed_report or "\\" in parsed_report:
                issues.add(_join(path, "report_name"), "must be a file name, not a path")
            else:
                out["report_name"] = parsed_report

    if "managers_node" in payload:
        parsed_node = _as_str(payload["managers_node"], _join(path, "managers_node"), issues)
        if parsed_node is not None:
            out["managers_node"] = parsed_node

    if "registry_path" in payload:
        raw_registry = payload["registry_path"]
        if raw_registry is None:
            out["registry_path"] = None
        else:
            parsed_registry = _as_path_text(raw_registry, _join(path, "registry_path"), issues)
            if parsed_registry is not None:
                out["registry_path"] = parsed_registry

    return out


def _validate_indexes(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"max_chars", "prefab_cap", "scene_cap", "asset_cap", "script_cap"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "max_chars" in payload:
        parsed_max = _as_int(payload["max_chars"], _join(path, "max_chars"), issues, minimum=200)
        if parsed_max is not None:
            out["max_chars"] = parsed_max

    for key in ("prefab_cap", "scene_cap", "asset_cap", "script_cap"):
        if key in payload:
            parsed_cap = _as_int(payload[key], _join(path, key), issues, minimum=1)
            if parsed_cap is not None:
                out[key] = parsed_cap

    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=LOG_LEVELS,
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level

    if "log_dir" in payload:
        parsed_log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if parsed_log_dir is not None:
            out["log_dir"] = parsed_log_dir

    if "log_to_stdout" in payload:
        parsed_stdout = _as_bool(payload["log_to_stdout"], _join(path, "log_to_stdout"), issues)
        if parsed_stdout is not None:
            out["log_to_stdout"] = parsed_stdout

    return out


_SectionValidator = Callable[..., dict[str, Any]]

_SECTION_VALIDATORS: Final[dict[str, _SectionValidator]] = {
    "project": _validate_project,
    "scheduler": _validate_scheduler,
    "execution": _validate_execution,
    "generator": _validate_generator,
    "hydration": _validate_hydration,
    "indexes": _validate_indexes,
    "observability": _validate_observability,
}


def _validate_profiles(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        raw = payload[profile_name]
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        profile_obj = _as_object(raw, profile_path, issues)
        if profile_obj is None:
            continue
        out[profile_name] = _validate_profile_overlay(profile_obj, profile_path, issues)
    return out


def _validate_profile_overlay(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(_SECTION_NAMES), path, issues)

    out: dict[str, Any] = {}
    for section in sorted(_SECTION_NAMES):
        raw = payload.get(section)
        if raw is None:
            continue
        section_path = _join(path, section)
        section_obj = _as_object(raw, section_path, issues)
        if section_obj is None:
            continue
        out[section] = _SECTION_VALIDATORS[section](
            section_obj, section_path, issues, partial=True
        )

    return out


def _validate_execution_cross_fields(
    config: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> None:
    if partial:
        return
    project = config.get("project")
    if not isinstance(project, Mapping):
        return
    root = project.get("root")
    plan_dir = project.get("plan_dir")
    if isinstance(root, str) and isinstance(plan_dir, str):
        if plan_dir.lower() == root.lower() or plan_dir.lower().startswith(f"{root.lower()}/"):
            issues.add(
                _join(_join(path, "project"), "plan_dir"),
                "plan_dir must live outside the project root so plan records are never executed",
            )


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_asset_path(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    normalized = parsed.replace("\\", "/").rstrip("/")
    if not _ASSET_PATH_PATTERN.fullmatch(normalized) or ".." in normalized.split("/"):
        issues.add(path, "must be an asset path under Assets/ (example: Assets/Project)")
        return None
    return normalized


def _as_stage_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return None
    parsed: list[str] = []
    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        name = _as_enum(item, item_path, issues, allowed_values=tuple(EXECUTION_STAGES))
        if name is None:
            return None
        if name in parsed:
            issues.add(item_path, f"duplicate stage {name!r}")
            return None
        parsed.append(name)
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and value > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            elif isinstance(existing, Mapping):
                nested = _deep_copy_mapping(existing)
                _merge_into(nested, value)
                target[key] = nested
            else:
                nested_new: dict[str, Any] = {}
                _merge_into(nested_new, value)
                target[key] = nested_new
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key, item in value.items():
            if isinstance(key, str):
                out[key] = _deep_copy_value(item)
        return out
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "BuildPlanConfig",
    "CYCLE_POLICIES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "GENERATOR_BACKENDS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
