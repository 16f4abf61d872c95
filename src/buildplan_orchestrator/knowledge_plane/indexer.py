"""
buildplan-orchestrator — asset index documents

File: src/buildplan_orchestrator/knowledge_plane/indexer.py
Last updated: 2026-10-17

Purpose
- Render the Markdown catalogs of existing (and planned) prefabs, scenes, assets
  and scripts that are embedded in plan-generation prompts.

What should be included in this file
- One catalog definition per index document and the shared Markdown layout.
- Planned-item sections grouped by phase label.
- A name -> path parser for reading an index back.

Functional requirements
- Lines are sorted by path (case-insensitive) and capped per catalog; a
  truncation line reports how many items were left out.
- Every document is clamped to a character budget.

Non-functional requirements
- Deterministic output for the same world snapshot and timestamp.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from buildplan_orchestrator.constants import (
    ASSET_INDEX_CAP,
    INDEX_MAX_CHARS,
    PREFAB_INDEX_CAP,
    PROJECT_ROOT,
    SCENE_INDEX_CAP,
    SCRIPT_EXTENSION,
    SCRIPT_INDEX_CAP,
)
from buildplan_orchestrator.domain.classify import is_prefab_like, looks_like_scene
from buildplan_orchestrator.domain.models import format_timestamp, utc_now
from buildplan_orchestrator.domain.paths import (
    build_planned_asset_path,
    build_planned_material_path,
    build_planned_prefab_path,
    build_planned_scene_path,
    extract_name_from_path,
    get_prefab_name,
    get_scene_name,
    normalize_folder_path,
)
from buildplan_orchestrator.utils.fs import atomic_write, ensure_directory, read_text_if_exists

if TYPE_CHECKING:
    from buildplan_orchestrator.backends.base import AssetWorld, IndexEntry
    from buildplan_orchestrator.domain.models import FeatureRequest

PathLike = str | os.PathLike[str]

_TRAILING_TYPE_TAG = re.compile(r"\s*\[[^\]]*\]\s*$")


@dataclass(frozen=True, slots=True)
class IndexCatalog:
    key: str
    title: str
    section: str
    planned_section: str
    empty_message: str
    filename: str
    default_cap: int


PREFAB_CATALOG: Final[IndexCatalog] = IndexCatalog(
    key="prefab",
    title="Prefab Index",
    section="Existing Prefabs",
    planned_section="Planned Prefabs",
    empty_message="No prefabs found",
    filename="PrefabIndex.md",
    default_cap=PREFAB_INDEX_CAP,
)
SCENE_CATALOG: Final[IndexCatalog] = IndexCatalog(
    key="scene",
    title="Scene Index",
    section="Existing Scenes",
    planned_section="Planned Scenes",
    empty_message="No scenes found",
    filename="SceneIndex.md",
    default_cap=SCENE_INDEX_CAP,
)
ASSET_CATALOG: Final[IndexCatalog] = IndexCatalog(
    key="asset",
    title="Asset Index",
    section="Existing Assets",
    planned_section="Planned Assets",
    empty_message="No assets found",
    filename="AssetIndex.md",
    default_cap=ASSET_INDEX_CAP,
)
SCRIPT_CATALOG: Final[IndexCatalog] = IndexCatalog(
    key="script",
    title="Script Index",
    section="Existing Scripts",
    planned_section="Planned Scripts",
    empty_message="No script entries found",
    filename="ScriptIndex.md",
    default_cap=SCRIPT_INDEX_CAP,
)
CATALOGS: Final[tuple[IndexCatalog, ...]] = (
    SCRIPT_CATALOG,
    PREFAB_CATALOG,
    SCENE_CATALOG,
    ASSET_CATALOG,
)


@dataclass(frozen=True, slots=True)
class IndexLimits:
    max_chars: int = INDEX_MAX_CHARS
    prefab_cap: int = PREFAB_INDEX_CAP
    scene_cap: int = SCENE_INDEX_CAP
    asset_cap: int = ASSET_INDEX_CAP
    script_cap: int = SCRIPT_INDEX_CAP

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> IndexLimits:
        section = config.get("indexes", {})
        defaults = cls()
        return cls(
            max_chars=int(section.get("max_chars", defaults.max_chars)),
            prefab_cap=int(section.get("prefab_cap", defaults.prefab_cap)),
            scene_cap=int(section.get("scene_cap", defaults.scene_cap)),
            asset_cap=int(section.get("asset_cap", defaults.asset_cap)),
            script_cap=int(section.get("script_cap", defaults.script_cap)),
        )

    def cap_for(self, catalog: IndexCatalog) -> int:
        return int(getattr(self, f"{catalog.key}_cap", catalog.default_cap))


def clamp_index(content: str, max_chars: int = INDEX_MAX_CHARS) -> str:
    if not content.strip():
        return ""
    return content[:max_chars] if len(content) > max_chars else content


def format_entry_line(entry: IndexEntry, *, with_type: bool = False) -> str:
    if with_type:
        return f"- {entry.name} [{entry.type_name or 'Asset'}] ({entry.path})"
    return f"- {entry.name} ({entry.path})"


def build_catalog_lines(
    entries: Iterable[IndexEntry],
    cap: int,
    *,
    with_type: bool = False,
) -> tuple[list[str], int]:
    """Sorted, capped entry lines and the total number of entries."""
    ordered = sorted(entries, key=lambda entry: entry.path.casefold())
    lines = [format_entry_line(entry, with_type=with_type) for entry in ordered[: max(cap, 0)]]
    return lines, len(ordered)


def build_index_markdown(
    title: str,
    section: str,
    lines: Sequence[str],
    total_count: int,
    empty_message: str,
    *,
    generated_at: datetime | None = None,
    max_chars: int = INDEX_MAX_CHARS,
    shown_count: int | None = None,
) -> str:
    """Render one catalog; ``shown_count`` defaults to the number of ``lines``."""
    shown = len(lines) if shown_count is None else shown_count
    stamp = format_timestamp(generated_at if generated_at is not None else utc_now())
    out = [f"# {title}", "", f"Generated: {stamp}", "", f"## {section}"]
    if lines:
        out.extend(lines)
    else:
        out.append(f"({empty_message})")
    if total_count > shown:
        out.append(f"(Truncated: showing {shown} of {total_count} items)")
    return clamp_index("\n".join(out).rstrip() + "\n", max_chars)


def build_script_index_markdown(
    world: AssetWorld,
    *,
    limits: IndexLimits | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Script catalog; each script lists the reference fields the registry knows for it."""
    resolved = limits or IndexLimits()
    entries = sorted(world.iter_scripts(), key=lambda entry: entry.path.casefold())
    shown = entries[: max(resolved.script_cap, 0)]
    lines: list[str] = []
    for entry in shown:
        lines.append(format_entry_line(entry))
        for field_spec in world.registry.fields_for(entry.name):
            lines.append(f"  - {field_spec.label} {field_spec.name}")
    return build_index_markdown(
        SCRIPT_CATALOG.title,
        SCRIPT_CATALOG.section,
        lines,
        len(entries),
        SCRIPT_CATALOG.empty_message,
        generated_at=generated_at,
        max_chars=resolved.max_chars,
        shown_count=len(shown),
    )


def build_world_indexes(
    world: AssetWorld,
    *,
    limits: IndexLimits | None = None,
    generated_at: datetime | None = None,
) -> dict[str, str]:
    """Every catalog for ``world``, keyed by index file name."""
    resolved = limits or IndexLimits()
    stamp = generated_at if generated_at is not None else utc_now()
    sources: dict[str, tuple[Callable[[], Iterable[IndexEntry]], bool]] = {
        PREFAB_CATALOG.key: (world.iter_prefabs, False),
        SCENE_CATALOG.key: (world.iter_scenes, False),
        ASSET_CATALOG.key: (world.iter_assets, True),
    }
    documents = {
        SCRIPT_CATALOG.filename: build_script_index_markdown(
            world, limits=resolved, generated_at=stamp
        )
    }
    for catalog in CATALOGS:
        if catalog.key not in sources:
            continue
        iterate, with_type = sources[catalog.key]
        lines, total = build_catalog_lines(
            iterate(), resolved.cap_for(catalog), with_type=with_type
        )
        documents[catalog.filename] = build_index_markdown(
            catalog.title,
            catalog.section,
            lines,
            total,
            catalog.empty_message,
            generated_at=stamp,
            max_chars=resolved.max_chars,
        )
    return documents


def collect_planned_lines(
    requests: Iterable[FeatureRequest],
    catalog: IndexCatalog,
    seen: set[str],
    *,
    root: str = PROJECT_ROOT,
) -> list[str]:
    """Planned item lines for ``catalog``; ``seen`` carries keys across phases."""
    lines: list[str] = []
    for request in requests:
        planned = _planned_item(request, catalog, root)
        if planned is None:
            continue
        name, path, label = planned
        key = (path or name).casefold()
        if key in seen:
            continue
        seen.add(key)
        tag = f" [{label}]" if label else ""
        lines.append(f"{name}{tag} ({path})" if path else f"{name}{tag}")
    return lines


def append_planned_items(
    current: str,
    catalog: IndexCatalog,
    phase_label: str,
    planned_lines: Sequence[str],
    *,
    generated_at: datetime | None = None,
    max_chars: int = INDEX_MAX_CHARS,
) -> str:
    if not planned_lines:
        return current
    out: list[str] = []
    if current.strip():
        out.append(current.rstrip())
    else:
        stamp = format_timestamp(generated_at if generated_at is not None else utc_now())
        out.extend(
            [f"# {catalog.title}", "", f"Generated: {stamp}", "", f"## {catalog.section}"]
        )
        out.extend(["(No entries found)", ""])
    if f"## {catalog.planned_section}".casefold() not in current.casefold():
        out.append(f"## {catalog.planned_section}")
    if phase_label.strip():
        out.append(f"### {phase_label.strip()}")
    out.extend(f"- {line}" for line in planned_lines)
    return clamp_index("\n".join(out).rstrip() + "\n", max_chars)


def add_planned_sections(
    documents: Mapping[str, str],
    phases: Sequence[tuple[str, Sequence[FeatureRequest]]],
    *,
    root: str = PROJECT_ROOT,
    limits: IndexLimits | None = None,
    generated_at: datetime | None = None,
) -> dict[str, str]:
    """Append planned items per phase label to each catalog document."""
    resolved = limits or IndexLimits()
    updated = dict(documents)
    for catalog in CATALOGS:
        seen: set[str] = set()
        content = updated.get(catalog.filename, "")
        for label, requests in phases:
            lines = collect_planned_lines(requests, catalog, seen, root=root)
            content = append_planned_items(
                content,
                catalog,
                label,
                lines,
                generated_at=generated_at,
                max_chars=resolved.max_chars,
            )
        updated[catalog.filename] = content
    return updated


def write_indexes(plan_dir: PathLike, documents: Mapping[str, str]) -> list[Path]:
    directory = ensure_directory(plan_dir)
    written: list[Path] = []
    for filename in sorted(documents):
        target = directory / filename
        atomic_write(target, documents[filename])
        written.append(target)
    return written


def read_index(
    plan_dir: PathLike, catalog: IndexCatalog, *, max_chars: int = INDEX_MAX_CHARS
) -> str:
    return clamp_index(read_text_if_exists(Path(plan_dir) / catalog.filename) or "", max_chars)


def parse_index_name_path(content: str | None) -> dict[str, str]:
    """``name -> path`` from ``- name (path)`` lines; the first occurrence of a name wins."""
    results: dict[str, str] = {}
    seen: set[str] = set()
    if not content:
        return results
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line.startswith("- "):
            continue
        open_at = line.rfind("(")
        close_at = line.rfind(")")
        if open_at < 0 or close_at <= open_at:
            continue
        name = _TRAILING_TYPE_TAG.sub("", line[2:open_at]).strip()
        path = line[open_at + 1 : close_at].strip()
        if not name or not path or name.casefold() in seen:
            continue
        seen.add(name.casefold())
        results[name] = path
    return results


def index_contains_type(script_index: str | None, type_name: str | None) -> bool:
    if not script_index or not type_name or not type_name.strip():
        return False
    pattern = rf"^-\s+.*\b{re.escape(type_name.strip())}\b.*\("
    return re.search(pattern, script_index, re.IGNORECASE | re.MULTILINE) is not None


# ------------------------
# Internal helper routines
# ------------------------


def _planned_item(
    request: FeatureRequest, catalog: IndexCatalog, root: str
) -> tuple[str, str, str] | None:
    if catalog is SCRIPT_CATALOG:
        if not request.is_type("script"):
            return None
        name = request.name.strip() or extract_name_from_path(request.path)
        if not name:
            return None
        folder = normalize_folder_path(request.path, root=root)
        return name, f"{folder}/{name}{SCRIPT_EXTENSION}", ""

    if catalog is PREFAB_CATALOG:
        if not is_prefab_like(request):
            return None
        name = get_prefab_name(request.name, request.path)
        return name, build_planned_prefab_path(request.path, name, root=root), ""

    if catalog is SCENE_CATALOG:
        if not (request.is_type("scene") or (request.is_type("asset") and looks_like_scene(request))):
            return None
        name = get_scene_name(request.name, request.path)
        return name, build_planned_scene_path(request.path, name, root=root), ""

    is_material = request.is_type("material")
    if not is_material and not request.is_type("asset"):
        return None
    name = request.name.strip() or extract_name_from_path(request.path)
    if not name:
        return None
    if is_material:
        return name, build_planned_material_path(request.path, name, root=root), "material"
    return name, build_planned_asset_path(request.path, name, root=root), "asset"


__all__ = [
    "ASSET_CATALOG",
    "CATALOGS",
    "IndexCatalog",
    "IndexLimits",
    "PREFAB_CATALOG",
    "SCENE_CATALOG",
    "SCRIPT_CATALOG",
    "add_planned_sections",
    "append_planned_items",
    "build_catalog_lines",
    "build_index_markdown",
    "build_script_index_markdown",
    "build_world_indexes",
    "clamp_index",
    "collect_planned_lines",
    "format_entry_line",
    "index_contains_type",
    "parse_index_name_path",
    "read_index",
    "write_indexes",
]
