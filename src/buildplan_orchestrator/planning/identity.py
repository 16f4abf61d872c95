"""Request identity keys, deduplication and dependency rewriting.

Two requests with the same identity key describe the same object in the
project. The first one seen survives; later ones are recorded as duplicates
and every ``dependsOn`` reference to them is rewritten to the survivor.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

from buildplan_orchestrator.constants import PROJECT_ROOT
from buildplan_orchestrator.domain.classify import (
    is_prefab_like,
    looks_like_material,
    looks_like_prefab,
    looks_like_scene,
)
from buildplan_orchestrator.domain.models import FeatureRequest, RequestStatus, utc_now
from buildplan_orchestrator.domain.notes import parse_manager_names, parse_prefab_names
from buildplan_orchestrator.domain.paths import (
    FolderPredicate,
    build_planned_asset_path,
    build_planned_material_path,
    build_planned_prefab_path,
    build_planned_scene_path,
    ensure_project_path,
    get_material_name,
    get_prefab_name,
    get_scene_name,
)
from buildplan_orchestrator.planning.normalization import (
    normalize_request_for_execution,
    script_identity_name,
)

RequestSink = Callable[[FeatureRequest], object]

DUPLICATE_NOTE: Final[str] = "Skipped duplicate of {survivor}."


@dataclass(slots=True)
class DedupeResult:
    """Survivors in original order plus the ``duplicate id -> survivor id`` map."""

    survivors: list[FeatureRequest] = field(default_factory=list)
    duplicates: list[FeatureRequest] = field(default_factory=list)
    id_remap: dict[str, str] = field(default_factory=dict)

    def survivor_for(self, request_id: str) -> str | None:
        return _lookup_folded(self.id_remap, request_id)


@dataclass(slots=True)
class PreflightResult:
    requests: list[FeatureRequest]
    duplicates: list[FeatureRequest]
    changed: list[FeatureRequest]
    id_remap: dict[str, str]


def identity_key(request: FeatureRequest, *, root: str = PROJECT_ROOT) -> str:
    """Canonical ``<type>:<path or name>`` key; ``""`` means the request never deduplicates."""
    kind = request.type.strip().lower()
    if kind == "folder":
        return f"folder:{ensure_project_path(request.path, root=root).rstrip('/')}"
    if kind == "script":
        name = script_identity_name(request)
        return f"script:{name}" if name else ""
    if kind == "prefab":
        return _prefab_key(request, root)
    if kind == "scene":
        return _scene_key(request, root)
    if kind == "material":
        return _material_key(request, root)
    if kind == "asset":
        if looks_like_prefab(request):
            return _prefab_key(request, root)
        if looks_like_scene(request):
            return _scene_key(request, root)
        if looks_like_material(request):
            return _material_key(request, root)
        path = build_planned_asset_path(request.path, request.name, root=root)
        return f"asset:{path}" if path else ""
    return ""


def dedupe_requests(
    requests: Iterable[FeatureRequest], *, root: str = PROJECT_ROOT
) -> DedupeResult:
    result = DedupeResult()
    seen: dict[str, FeatureRequest] = {}
    for request in requests:
        key = identity_key(request, root=root)
        if not key:
            result.survivors.append(request)
            continue

        folded = key.casefold()
        existing = seen.get(folded)
        if existing is not None:
            result.duplicates.append(request)
            if request.id and existing.id:
                result.id_remap[request.id.casefold()] = existing.id
            continue

        seen[folded] = request
        result.survivors.append(request)
    return result


def remap_dependencies(
    requests: Iterable[FeatureRequest], id_remap: Mapping[str, str]
) -> list[FeatureRequest]:
    """Rewrite ``dependsOn`` through ``id_remap``; returns the requests that changed.

    Duplicate edges collapse to one and an edge that now points at the request
    itself is dropped.
    """
    changed: list[FeatureRequest] = []
    if not id_remap:
        return changed

    for request in requests:
        if not request.depends_on:
            continue

        updated: list[str] = []
        folded_seen: set[str] = set()
        touched = False
        own_id = request.id.casefold()
        for dep in request.depends_on:
            target = _lookup_folded(id_remap, dep)
            final_id = dep
            if target is not None:
                final_id = target
                touched = True
            folded = final_id.casefold()
            if folded == own_id and own_id:
                touched = True
                continue
            if folded in folded_seen:
                touched = True
                continue
            folded_seen.add(folded)
            updated.append(final_id)

        if touched:
            request.depends_on = updated
            changed.append(request)
    return changed


def mark_duplicates(
    duplicates: Iterable[FeatureRequest],
    id_remap: Mapping[str, str],
    *,
    now: datetime | None = None,
) -> list[FeatureRequest]:
    """Close out discarded duplicates as ``done`` with a pointer to the survivor."""
    stamp = now if now is not None else utc_now()
    marked: list[FeatureRequest] = []
    for request in duplicates:
        survivor = _lookup_folded(id_remap, request.id)
        if survivor is None:
            continue
        request.status = RequestStatus.DONE
        request.append_note(DUPLICATE_NOTE.format(survivor=survivor))
        request.touch(stamp)
        marked.append(request)
    return marked


def add_dependencies_from_notes(
    requests: Sequence[FeatureRequest],
) -> list[FeatureRequest]:
    """Link requests to prefabs and manager scripts their notes mention by name."""
    prefab_by_name: dict[str, FeatureRequest] = {}
    script_by_name: dict[str, FeatureRequest] = {}
    for request in requests:
        if is_prefab_like(request):
            prefab_name = get_prefab_name(request.name, request.path)
            if prefab_name:
                prefab_by_name[prefab_name.casefold()] = request
            continue
        if request.is_type("script"):
            script_name = request.name.strip()
            if script_name:
                script_by_name[script_name.casefold()] = request

    changed: list[FeatureRequest] = []
    for request in requests:
        if not request.notes.strip():
            continue
        touched = False
        for prefab_name in parse_prefab_names(request.notes):
            target = prefab_by_name.get(prefab_name.casefold())
            if target is not None and target is not request:
                touched = request.add_dependency(target.id) or touched
        for manager_name in parse_manager_names(request.notes):
            target = script_by_name.get(manager_name.casefold())
            if target is not None and target is not request:
                touched = request.add_dependency(target.id) or touched
        if touched:
            changed.append(request)
    return changed


def build_request_lookup(requests: Iterable[FeatureRequest]) -> dict[str, FeatureRequest]:
    """``casefolded id -> request``; a later request with the same id replaces an earlier one."""
    lookup: dict[str, FeatureRequest] = {}
    for request in requests:
        if request.id:
            lookup[request.id.casefold()] = request
    return lookup


def resolve_dependencies(
    request: FeatureRequest, lookup: Mapping[str, FeatureRequest]
) -> list[FeatureRequest]:
    """Requests named in ``request.depends_on`` that exist in ``lookup``, in edge order."""
    resolved: list[FeatureRequest] = []
    for dep in request.depends_on:
        target = lookup.get(dep.strip().casefold())
        if target is not None and target is not request:
            resolved.append(target)
    return resolved


def preflight_for_write(
    requests: Sequence[FeatureRequest], *, root: str = PROJECT_ROOT
) -> list[FeatureRequest]:
    """Dedupe a freshly parsed plan before its records are first written."""
    if not requests:
        return list(requests)
    deduped = dedupe_requests(requests, root=root)
    remap_dependencies(deduped.survivors, deduped.id_remap)
    add_dependencies_from_notes(deduped.survivors)
    return deduped.survivors


def preflight_for_execution(
    requests: Sequence[FeatureRequest],
    *,
    root: str = PROJECT_ROOT,
    is_folder: FolderPredicate | None = None,
    persist: RequestSink | None = None,
    now: datetime | None = None,
) -> PreflightResult:
    """Normalize, dedupe and link a stored working set before it is executed.

    Every request whose fields changed is handed to ``persist``, and so is every
    duplicate after it has been marked ``done``.
    """
    stamp = now if now is not None else utc_now()
    changed: dict[int, FeatureRequest] = {}

    for request in requests:
        if normalize_request_for_execution(request, root=root, is_folder=is_folder):
            changed[id(request)] = request

    deduped = dedupe_requests(requests, root=root)
    for request in remap_dependencies(deduped.survivors, deduped.id_remap):
        changed[id(request)] = request
    for request in add_dependencies_from_notes(deduped.survivors):
        changed[id(request)] = request

    ordered_changed = [request for request in requests if id(request) in changed]
    for request in ordered_changed:
        request.touch(stamp)
        if persist is not None:
            persist(request)

    for request in mark_duplicates(deduped.duplicates, deduped.id_remap, now=stamp):
        if persist is not None:
            persist(request)

    return PreflightResult(
        requests=deduped.survivors,
        duplicates=deduped.duplicates,
        changed=ordered_changed,
        id_remap=dict(deduped.id_remap),
    )


# ------------------------
# Internal helper routines
# ------------------------


def _prefab_key(request: FeatureRequest, root: str) -> str:
    name = get_prefab_name(request.name, request.path)
    path = build_planned_prefab_path(request.path, name, root=root)
    return f"prefab:{path}" if path else ""


def _scene_key(request: FeatureRequest, root: str) -> str:
    name = get_scene_name(request.name, request.path)
    path = build_planned_scene_path(request.path, name, root=root)
    return f"scene:{path}" if path else ""


def _material_key(request: FeatureRequest, root: str) -> str:
    name = get_material_name(request.name, request.path)
    path = build_planned_material_path(request.path, name, root=root)
    return f"material:{path}" if path else ""


def _lookup_folded(mapping: Mapping[str, str], key: str) -> str | None:
    if not key:
        return None
    value = mapping.get(key)
    if value is not None:
        return value
    return mapping.get(key.casefold())


__all__ = [
    "DUPLICATE_NOTE",
    "DedupeResult",
    "PreflightResult",
    "RequestSink",
    "add_dependencies_from_notes",
    "build_request_lookup",
    "dedupe_requests",
    "identity_key",
    "mark_duplicates",
    "preflight_for_execution",
    "preflight_for_write",
    "remap_dependencies",
    "resolve_dependencies",
]
