"""Attach script components to prefabs once their types are compiled.

Scripts generated in the same batch may not be usable yet when the prefab is
created, so attachment runs after the batch as a polling pass: wait while the
world is compiling, retry plans whose script types are still unknown, and give
up after a bounded number of attempts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from buildplan_orchestrator.constants import PREFAB_ATTACH_MAX_ATTEMPTS, PROJECT_ROOT
from buildplan_orchestrator.domain.classify import is_prefab_like
from buildplan_orchestrator.domain.notes import parse_component_names, unique_names
from buildplan_orchestrator.domain.paths import build_prefab_path, get_prefab_name
from buildplan_orchestrator.planning.identity import resolve_dependencies

if TYPE_CHECKING:
    from buildplan_orchestrator.backends.base import AssetWorld
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.hydration.object_graph import Prefab

SleepFn = Callable[[float], Awaitable[None]]
RequestSink = Callable[["FeatureRequest"], object]
PrefabHook = Callable[["FeatureRequest", "Prefab"], object]

PENDING_COMPILE_NOTE: Final[str] = "Prefab components pending compile."


@dataclass(frozen=True, slots=True)
class PrefabAttachmentPlan:
    request: FeatureRequest
    prefab_path: str
    component_names: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AttachmentResult:
    error: str = ""
    should_retry: bool = False
    prefab: Prefab | None = None

    @property
    def ok(self) -> bool:
        return not self.error


def collect_prefab_component_names(
    request: FeatureRequest, lookup: Mapping[str, FeatureRequest]
) -> list[str]:
    script_names = [
        dependency.name.strip()
        for dependency in resolve_dependencies(request, lookup)
        if dependency.is_type("script")
    ]
    return unique_names(script_names, parse_component_names(request.notes))


def build_attachment_plans(
    requests: Sequence[FeatureRequest],
    lookup: Mapping[str, FeatureRequest],
    *,
    root: str = PROJECT_ROOT,
) -> list[PrefabAttachmentPlan]:
    plans: list[PrefabAttachmentPlan] = []
    for request in requests:
        if not is_prefab_like(request):
            continue
        names = collect_prefab_component_names(request, lookup)
        if not names:
            continue
        prefab_name = get_prefab_name(request.name, request.path)
        prefab_path, _ = build_prefab_path(request.path, prefab_name, root=root)
        plans.append(PrefabAttachmentPlan(request, prefab_path, tuple(names)))
    return plans


def attach_components_to_prefab(
    world: AssetWorld, prefab_path: str, component_names: Sequence[str]
) -> AttachmentResult:
    if not prefab_path.strip():
        return AttachmentResult(error="Prefab path is missing.")

    prefab = world.load_prefab(prefab_path)
    if prefab is None:
        return AttachmentResult(error=f"Prefab not found at {prefab_path}.")
    if not component_names:
        return AttachmentResult(prefab=prefab)

    missing: list[str] = []
    added_any = False
    for raw_name in component_names:
        name = raw_name.strip()
        if not name:
            continue
        type_name = world.find_script_type(name)
        if type_name is None:
            missing.append(name)
            continue
        if prefab.root.get_component(type_name) is not None:
            continue
        prefab.root.add_component(type_name)
        added_any = True

    world.save_prefab(prefab)

    if missing:
        return AttachmentResult(
            error=f"Missing script types: {', '.join(missing)}.", should_retry=True, prefab=prefab
        )
    if not added_any:
        return AttachmentResult(error="No prefab components added.", prefab=prefab)
    return AttachmentResult(prefab=prefab)


async def run_prefab_attachment(
    world: AssetWorld,
    plans: Sequence[PrefabAttachmentPlan],
    *,
    max_attempts: int = PREFAB_ATTACH_MAX_ATTEMPTS,
    delay_seconds: float = 0.0,
    persist: RequestSink | None = None,
    on_attached: PrefabHook | None = None,
    sleep: SleepFn = asyncio.sleep,
    logger: Any | None = None,
) -> list[FeatureRequest]:
    """Attach components for every plan; returns the requests that ended with an error note."""
    log = logger if logger is not None else structlog.get_logger(__name__)
    failed: list[FeatureRequest] = []
    pending = list(plans)
    attempt = 0

    while pending:
        if world.is_compiling():
            if attempt < max_attempts:
                attempt += 1
                await _wait(world, sleep, delay_seconds)
                continue
            for plan in pending:
                plan.request.append_note(PENDING_COMPILE_NOTE)
                _persist(persist, plan.request)
                failed.append(plan.request)
            log.warning("prefab_attachment_timed_out", pending=len(pending), attempts=attempt)
            break

        retry: list[PrefabAttachmentPlan] = []
        for plan in pending:
            result = attach_components_to_prefab(world, plan.prefab_path, plan.component_names)
            if result.ok:
                if on_attached is not None and result.prefab is not None:
                    on_attached(plan.request, result.prefab)
                _persist(persist, plan.request)
                log.info(
                    "prefab_components_attached",
                    request_id=plan.request.id,
                    prefab_path=plan.prefab_path,
                    components=list(plan.component_names),
                )
                continue
            if result.should_retry and attempt < max_attempts:
                retry.append(plan)
                continue
            plan.request.append_note(result.error)
            _persist(persist, plan.request)
            failed.append(plan.request)
            log.warning(
                "prefab_attachment_failed",
                request_id=plan.request.id,
                prefab_path=plan.prefab_path,
                error=result.error,
            )

        pending = retry
        if pending:
            attempt += 1
            await _wait(world, sleep, delay_seconds)

    return failed


async def _wait(world: AssetWorld, sleep: SleepFn, delay_seconds: float) -> None:
    await sleep(delay_seconds)
    world.refresh()


def _persist(persist: RequestSink | None, request: FeatureRequest) -> None:
    if persist is not None:
        persist(request)


__all__ = [
    "AttachmentResult",
    "PENDING_COMPILE_NOTE",
    "PrefabAttachmentPlan",
    "attach_components_to_prefab",
    "build_attachment_plans",
    "collect_prefab_component_names",
    "run_prefab_attachment",
]
