"""
buildplan-orchestrator — module skeleton

File: src/buildplan_orchestrator/planning/__init__.py
Last updated: 2026-10-17

Purpose
- Planning layer: plan parsing, request normalization, identity/deduplication and
  dependency ordering.

What should be included in this file
- Planner entrypoints that turn plan text into an ordered working set.

Functional requirements
- Must output requests ordered after everything they depend on.

Non-functional requirements
- Must produce repeatable working sets given the same plan text and config.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from buildplan_orchestrator.planning.identity import (
    DedupeResult,
    PreflightResult,
    add_dependencies_from_notes,
    build_request_lookup,
    dedupe_requests,
    identity_key,
    mark_duplicates,
    preflight_for_execution,
    preflight_for_write,
    remap_dependencies,
    resolve_dependencies,
)
from buildplan_orchestrator.planning.normalization import (
    ensure_request_id,
    normalize_request_for_execution,
    normalize_script_request_name,
    sanitize_script_name,
)
from buildplan_orchestrator.planning.plan_document import (
    PlanDocument,
    PlanParseError,
    build_feature_request_list,
    extract_json,
    filter_existing_scripts,
    parse_plan,
    phase_title,
    strip_trailing_commas,
    summarize_plan,
)
from buildplan_orchestrator.planning.task_graph import (
    CyclicDependencyError,
    RequestGraph,
    order_requests,
    select_replay,
)

if TYPE_CHECKING:
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.planning.plan_document import ScriptExistsProbe


def plan_working_set(
    text: str,
    *,
    selector: int = 0,
    root: str = "Assets/Project",
    script_exists: ScriptExistsProbe | None = None,
) -> list[FeatureRequest]:
    """Parse plan text and return the deduplicated working set ready to be written."""

    document = parse_plan(text)
    requests = build_feature_request_list(document.select(selector), root=root)
    if script_exists is not None:
        requests = filter_existing_scripts(requests, script_exists, root=root)
    return preflight_for_write(requests, root=root)


__all__ = [
    "CyclicDependencyError",
    "DedupeResult",
    "PlanDocument",
    "PlanParseError",
    "PreflightResult",
    "RequestGraph",
    "add_dependencies_from_notes",
    "build_feature_request_list",
    "build_request_lookup",
    "dedupe_requests",
    "ensure_request_id",
    "extract_json",
    "filter_existing_scripts",
    "identity_key",
    "mark_duplicates",
    "normalize_request_for_execution",
    "normalize_script_request_name",
    "order_requests",
    "parse_plan",
    "phase_title",
    "plan_working_set",
    "preflight_for_execution",
    "preflight_for_write",
    "remap_dependencies",
    "resolve_dependencies",
    "sanitize_script_name",
    "select_replay",
    "strip_trailing_commas",
    "summarize_plan",
]
