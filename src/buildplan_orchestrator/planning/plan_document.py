"""
buildplan-orchestrator — plan document parsing

File: src/buildplan_orchestrator/planning/plan_document.py
Last updated: 2026-10-17

Purpose
- Parse language-model plan responses into feature requests, flat or phased.
- Turn a parsed plan into a working set ready to be written as request records.

What should be included in this file
- Tolerant JSON extraction (fences, trailing commas, bare arrays).
- Fenced YAML fallback via ``yaml.safe_load``.
- Phase selection, labels and the one-line plan summary.
- Working-set construction: ids, paths, statuses, implied folder requests.

Functional requirements
- Malformed documents raise ``PlanParseError`` with a precise reason.
- Building a working set never touches storage; the on-disk probe for existing
  scripts is injected.

Non-functional requirements
- Deterministic: the same text always yields the same requests in the same order.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

import yaml

from buildplan_orchestrator.constants import PROJECT_ROOT, SCRIPT_EXTENSION
from buildplan_orchestrator.domain.ids import UsedIds
from buildplan_orchestrator.domain.models import (
    FeatureRequest,
    JSONValue,
    PlanPhase,
    RequestStatus,
    RequestType,
    utc_now,
)
from buildplan_orchestrator.domain.paths import normalize_folder_path, normalize_path_for_type
from buildplan_orchestrator.planning.normalization import (
    ensure_request_id,
    normalize_request_type,
    normalize_script_request_name,
)

ScriptExistsProbe = Callable[[str], bool]

ALL_PHASES_LABEL: Final[str] = "All phases"
SCRIPT_EXISTS_NOTE: Final[str] = "Skipped: script already exists."

_FENCED_BLOCK_RE: Final[re.Pattern[str]] = re.compile(
    r"(?P<fence>`{3,})(?P<lang>[^\n`]*)\n(?P<body>.*?)(?:\n(?P=fence))",
    flags=re.DOTALL,
)
_TRAILING_COMMA_RE: Final[re.Pattern[str]] = re.compile(r",\s*([}\]])")
_YAML_LANGUAGES: Final[frozenset[str]] = frozenset({"yaml", "yml"})

_SUMMARY_ORDER: Final[tuple[tuple[str, RequestType], ...]] = (
    ("Folders", RequestType.FOLDER),
    ("Scripts", RequestType.SCRIPT),
    ("Scenes", RequestType.SCENE),
    ("Materials", RequestType.MATERIAL),
    ("Assets", RequestType.ASSET),
    ("Prefabs", RequestType.PREFAB),
)


class PlanParseError(ValueError):
    """Raised when plan text cannot be turned into a plan document."""


@dataclass(slots=True)
class PlanDocument:
    """A parsed plan: either a flat request list or a list of phases."""

    feature_requests: list[FeatureRequest] = field(default_factory=list)
    phases: list[PlanPhase] = field(default_factory=list)

    @property
    def is_phased(self) -> bool:
        return bool(self.phases)

    def phase_labels(self) -> list[str]:
        if not self.phases:
            return []
        return [ALL_PHASES_LABEL, *(phase_title(i, p) for i, p in enumerate(self.phases))]

    def select(self, selector: int = 0) -> list[FeatureRequest]:
        """Requests for phase ``selector`` (1-based); ``0`` flattens every phase in order."""
        if not self.phases:
            return list(self.feature_requests)
        return collect_phase_requests(self.phases, selector)

    def to_dict(self) -> dict[str, JSONValue]:
        if self.phases:
            return {"phases": [phase.to_dict() for phase in self.phases]}
        return {"featureRequests": [request.to_dict() for request in self.feature_requests]}


def extract_json(text: str | None) -> str:
    """Pull the JSON payload out of free text.

    The first fenced block (if any) is unwrapped, then the span from the first
    ``{`` to the last ``}`` is returned. A text whose first bracket is ``[``
    yields the array span instead. Returns ``""`` when nothing looks like JSON.
    """
    if text is None or not text.strip():
        return ""

    trimmed = text.strip()
    fence = _FENCED_BLOCK_RE.search(trimmed)
    if fence is not None:
        trimmed = fence.group("body").strip()

    object_start = trimmed.find("{")
    array_start = trimmed.find("[")
    if array_start >= 0 and (object_start < 0 or array_start < object_start):
        array_end = trimmed.rfind("]")
        if array_end > array_start:
            return trimmed[array_start : array_end + 1].strip()

    object_end = trimmed.rfind("}")
    if object_start >= 0 and object_end > object_start:
        return trimmed[object_start : object_end + 1].strip()
    return ""


def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def normalize_plan_json(text: str) -> str:
    """Wrap a bare array as ``{"featureRequests": [...]}`` and drop trailing commas."""
    if not text.strip():
        return ""
    trimmed = text.strip()
    if trimmed.startswith("["):
        trimmed = '{"featureRequests":' + trimmed + "}"
    return strip_trailing_commas(trimmed)


def parse_plan(text: str) -> PlanDocument:
    """Parse a plan response into a :class:`PlanDocument`.

    JSON is tried first; a fenced ``yaml`` block is used when the text carries
    no JSON payload or the payload does not decode.
    """
    if not isinstance(text, str):
        raise PlanParseError(f"plan text must be a string, got {type(text).__name__}")
    if not text.strip():
        raise PlanParseError("plan text is empty")

    yaml_body = _first_yaml_fence(text)
    payload: object
    json_text = "" if yaml_body is not None and _first_fence_is_yaml(text) else extract_json(text)
    if json_text:
        try:
            payload = json.loads(normalize_plan_json(json_text))
        except json.JSONDecodeError as exc:
            if yaml_body is None:
                raise PlanParseError(f"plan JSON could not be parsed: {exc}") from exc
            payload = _load_yaml(yaml_body)
    elif yaml_body is not None:
        payload = _load_yaml(yaml_body)
    else:
        raise PlanParseError("no JSON object or YAML block found in plan text")

    return plan_from_payload(payload)


def plan_from_payload(payload: object) -> PlanDocument:
    if isinstance(payload, list):
        payload = {"featureRequests": payload}
    if not isinstance(payload, Mapping):
        raise PlanParseError(f"plan root must be an object, got {type(payload).__name__}")

    raw_phases = payload.get("phases")
    if isinstance(raw_phases, list) and raw_phases:
        return PlanDocument(phases=_parse_phases(raw_phases))

    raw_requests = payload.get("featureRequests")
    if raw_requests is None:
        raise PlanParseError("plan has neither 'featureRequests' nor 'phases'")
    if not isinstance(raw_requests, list):
        raise PlanParseError("'featureRequests' must be an array")
    return PlanDocument(feature_requests=_parse_requests(raw_requests, "featureRequests"))


def phase_title(index: int, phase: PlanPhase | None) -> str:
    """``Phase <n>: <name>`` with ``index`` 0-based; just ``Phase <n>`` when unnamed."""
    name = phase.name.strip() if phase is not None else ""
    return f"Phase {index + 1}: {name}" if name else f"Phase {index + 1}"


def collect_phase_requests(phases: Sequence[PlanPhase], selector: int) -> list[FeatureRequest]:
    if selector <= 0:
        return [request for phase in phases for request in phase.feature_requests]
    position = selector - 1
    if position >= len(phases):
        return []
    return list(phases[position].feature_requests)


def summarize_plan(requests: Iterable[FeatureRequest]) -> str:
    counts = dict.fromkeys(RequestType, 0)
    total = 0
    for request in requests:
        total += 1
        kind = request.kind
        if kind is not None:
            counts[kind] += 1
    parts = [f"Total: {total}"]
    parts.extend(f"{label}: {counts[kind]}" for label, kind in _SUMMARY_ORDER)
    return "  ".join(parts)


def build_feature_request_list(
    requests: Iterable[FeatureRequest],
    *,
    root: str = PROJECT_ROOT,
    now: datetime | None = None,
) -> list[FeatureRequest]:
    """Prepare freshly parsed requests for writing.

    Types are lower-cased, script names made valid, ids assigned, paths
    normalized and every status reset to ``todo``. A script whose folder has no
    folder request gets one (appended at the end) and depends on it.
    """
    stamp = now if now is not None else utc_now()
    used = UsedIds()
    results: list[FeatureRequest] = []
    folder_map: dict[str, FeatureRequest] = {}

    for request in requests:
        request.type = normalize_request_type(request.type)
        normalize_script_request_name(request, add_notes=True)
        ensure_request_id(request, used)
        request.path = normalize_path_for_type(request.type, request.path, root=root)
        request.status = RequestStatus.TODO
        request.created_at = stamp
        request.updated_at = stamp
        results.append(request)

        if request.is_type(RequestType.FOLDER) and request.path.strip():
            folder_map[request.path.strip().casefold()] = request

    pending_folders: list[FeatureRequest] = []
    for request in results:
        if not request.is_type(RequestType.SCRIPT):
            continue
        folder_path = normalize_folder_path(request.path, root=root)
        if not folder_path:
            continue

        folder_request = folder_map.get(folder_path.casefold())
        if folder_request is None:
            folder_name = folder_path.rstrip("/").rsplit("/", 1)[-1]
            folder_request = FeatureRequest(
                type=RequestType.FOLDER.value,
                name=folder_name,
                path=folder_path,
                status=RequestStatus.TODO,
                created_at=stamp,
                updated_at=stamp,
            )
            ensure_request_id(folder_request, used)
            folder_map[folder_path.casefold()] = folder_request
            pending_folders.append(folder_request)

        request.add_dependency(folder_request.id)

    results.extend(pending_folders)
    return results


def filter_existing_scripts(
    requests: Iterable[FeatureRequest],
    script_exists: ScriptExistsProbe,
    *,
    root: str = PROJECT_ROOT,
) -> list[FeatureRequest]:
    """Drop script requests whose ``<folder>/<name>.cs`` is already on disk."""
    filtered: list[FeatureRequest] = []
    for request in requests:
        if not request.is_type(RequestType.SCRIPT) or not request.name.strip():
            filtered.append(request)
            continue
        folder = normalize_folder_path(request.path, root=root)
        script_path = f"{folder}/{request.name.strip()}{SCRIPT_EXTENSION}"
        if script_exists(script_path):
            request.append_note(SCRIPT_EXISTS_NOTE)
            continue
        filtered.append(request)
    return filtered


# ------------------------
# Internal helper routines
# ------------------------


def _first_yaml_fence(text: str) -> str | None:
    for match in _FENCED_BLOCK_RE.finditer(text):
        if match.group("lang").strip().lower() in _YAML_LANGUAGES:
            return match.group("body")
    return None


def _first_fence_is_yaml(text: str) -> bool:
    match = _FENCED_BLOCK_RE.search(text)
    return match is not None and match.group("lang").strip().lower() in _YAML_LANGUAGES


def _load_yaml(body: str) -> object:
    if not body.strip():
        raise PlanParseError("YAML plan block is empty")
    try:
        return yaml.safe_load(body)
    except yaml.YAMLError as exc:
        raise PlanParseError(f"plan YAML could not be parsed: {exc}") from exc


def _parse_requests(raw_requests: Sequence[object], label: str) -> list[FeatureRequest]:
    parsed: list[FeatureRequest] = []
    for index, item in enumerate(raw_requests):
        if item is None:
            continue
        if not isinstance(item, Mapping):
            raise PlanParseError(f"{label}[{index}] must be an object")
        try:
            parsed.append(FeatureRequest.from_dict(item))
        except ValueError as exc:
            raise PlanParseError(f"{label}[{index}]: {exc}") from exc
    return parsed


def _parse_phases(raw_phases: Sequence[object]) -> list[PlanPhase]:
    phases: list[PlanPhase] = []
    for index, item in enumerate(raw_phases):
        if item is None:
            continue
        if not isinstance(item, Mapping):
            raise PlanParseError(f"phases[{index}] must be an object")
        raw_requests = item.get("featureRequests") or []
        if not isinstance(raw_requests, list):
            raise PlanParseError(f"phases[{index}].featureRequests must be an array")
        requests = _parse_requests(raw_requests, f"phases[{index}].featureRequests")
        header = {key: value for key, value in item.items() if key != "featureRequests"}
        try:
            phase = PlanPhase.from_dict(header)
        except ValueError as exc:
            raise PlanParseError(f"phases[{index}]: {exc}") from exc
        for request in requests:
            if not request.phase_id:
                request.phase_id = phase.id
            if not request.phase_name:
                request.phase_name = phase.name
        phase.feature_requests = requests
        phases.append(phase)
    return phases


__all__ = [
    "ALL_PHASES_LABEL",
    "PlanDocument",
    "PlanParseError",
    "SCRIPT_EXISTS_NOTE",
    "ScriptExistsProbe",
    "build_feature_request_list",
    "collect_phase_requests",
    "extract_json",
    "filter_existing_scripts",
    "normalize_plan_json",
    "parse_plan",
    "phase_title",
    "plan_from_payload",
    "strip_trailing_commas",
    "summarize_plan",
]
