"""
buildplan-orchestrator — module skeleton

File: src/buildplan_orchestrator/domain/__init__.py
Last updated: 2026-10-17

Purpose
- Domain types shared across planning, execution and hydration: FeatureRequest,
  PlanPhase, request types and statuses, path rules, notes parsers.

What should be included in this file
- Re-export of core domain entities for convenience.
- Keep domain layer free of IO side effects.

Functional requirements
- Domain objects must round-trip through their JSON record form.

Non-functional requirements
- Domain layer should have minimal dependencies.
"""

from buildplan_orchestrator.domain.models import (
    FeatureRequest,
    PlanPhase,
    RequestStatus,
    RequestType,
    append_note,
)

__all__ = [
    "FeatureRequest",
    "PlanPhase",
    "RequestStatus",
    "RequestType",
    "append_note",
]
