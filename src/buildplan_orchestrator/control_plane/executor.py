"""
buildplan-orchestrator — batch executor

File: src/buildplan_orchestrator/control_plane/executor.py
Last updated: 2026-10-17

Purpose
- Drive a working set of feature requests through the execution state machine.

What should be included in this file
- Preflight (normalize, dedupe, link) and scheduling of the stored working set.
- The main pass, one retry pass over blocked requests, and stage filtering.
- Prefab component attachment after stages that create prefabs.

Functional requirements
- todo -> in_progress -> done | blocked; every transition is persisted before the
  next request starts.
- done requests are never dispatched again; blocked requests are retried at most
  once per batch, in their original relative order.
- Cancellation is checked before each request and abandons the rest of the batch;
  a request cancelled mid-dispatch keeps in_progress and the batch still returns
  a summary.

Non-functional requirements
- Deterministic for a given world, working set and configuration.
- Collaborator failures block a single request and never abort the batch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

import structlog

from buildplan_orchestrator.constants import (
    EXECUTION_STAGES,
    PREFAB_ATTACH_MAX_ATTEMPTS,
    PROJECT_ROOT,
)
from buildplan_orchestrator.control_plane.dispatch import DispatchOptions, RequestDispatcher
from buildplan_orchestrator.domain.ids import generate_run_id
from buildplan_orchestrator.domain.models import RequestStatus, utc_now
from buildplan_orchestrator.hydration.attachment import build_attachment_plans, run_prefab_attachment
from buildplan_orchestrator.hydration.binding_report import append_report_entry
from buildplan_orchestrator.observability.logging import correlation_scope
from buildplan_orchestrator.planning.identity import build_request_lookup, preflight_for_execution
from buildplan_orchestrator.planning.task_graph import CyclePolicy, order_requests, select_replay
from buildplan_orchestrator.utils.concurrency import CancellationToken, MutationLock

if TYPE_CHECKING:
    from buildplan_orchestrator.backends.base import AssetWorld, ScriptGenerator
    from buildplan_orchestrator.domain.models import FeatureRequest
    from buildplan_orchestrator.hydration.resolver import HydrationResult
    from buildplan_orchestrator.persistence.request_store import RequestStore

ProgressCallback = Callable[[str], object]

ATTACHMENT_TYPES: Final[frozenset[str]] = frozenset({"prefab", "asset"})
DISPATCH_EXCEPTION_PREFIX: Final[str] = "Execution failed:"


class UnknownStageError(ValueError):
    """Raised when a stage name is not one of the configured stages."""

    def __init__(self, stage: str, known: Iterable[str]) -> None:
        self.stage = stage
        self.known = tuple(known)
        super().__init__(f"unknown stage {stage!r}; expected one of: {', '.join(self.known)}")


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    root: str = PROJECT_ROOT
    on_cycle: CyclePolicy = "raise"
    retry_passes: int = 1
    stages: tuple[str, ...] = tuple(EXECUTION_STAGES)
    prefab_attach_attempts: int = PREFAB_ATTACH_MAX_ATTEMPTS
    prefab_attach_delay_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.retry_passes not in (0, 1):
            raise ValueError("retry_passes must be 0 or 1")


@dataclass(slots=True)
class BatchSummary:
    """Outcome of one batch, counted over the requests it scheduled."""

    run_id: str
    scheduled: int = 0
    done: int = 0
    blocked: int = 0
    skipped: int = 0
    cancelled: bool = False
    retried: list[str] = field(default_factory=list)
    attachment_failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.cancelled and self.blocked == 0

    def to_dict(self) -> dict[str, object]:
        return {
            "runId": self.run_id,
            "scheduled": self.scheduled,
            "done": self.done,
            "blocked": self.blocked,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "retried": list(self.retried),
            "attachmentFailures": list(self.attachment_failures),
        }


def options_from_config(config: Mapping[str, Any]) -> tuple[ExecutionOptions, DispatchOptions]:
    """Executor and dispatcher options from an effective configuration mapping."""
    project = config.get("project", {})
    scheduler = config.get("scheduler", {})
    execution = config.get("execution", {})
    generator = config.get("generator", {})
    hydration = config.get("hydration", {})
    root = str(project.get("root", PROJECT_ROOT))

    execution_options = ExecutionOptions(
        root=root,
        on_cycle=scheduler.get("on_cycle", "raise"),
        retry_passes=int(scheduler.get("retry_passes", 1)),
        stages=tuple(execution.get("stages", EXECUTION_STAGES)),
        prefab_attach_attempts=int(
            execution.get("prefab_attach_attempts", PREFAB_ATTACH_MAX_ATTEMPTS)
        ),
        prefab_attach_delay_seconds=float(execution.get("prefab_attach_delay_seconds", 0.0)),
    )
    defaults = DispatchOptions()
    dispatch_options = DispatchOptions(
        root=root,
        hydrate=bool(hydration.get("enabled", True)),
        managers_node=str(hydration.get("managers_node", defaults.managers_node)),
        report_name=str(hydration.get("report_name", defaults.report_name)),
        overwrite_scripts=bool(execution.get("overwrite_scripts", False)),
        generator_timeout_seconds=float(
            generator.get("timeout_seconds", defaults.generator_timeout_seconds)
        ),
    )
    return execution_options, dispatch_options


def stage_types(stage: str, known: Sequence[str] = tuple(EXECUTION_STAGES)) -> frozenset[str]:
    """Request types a named stage runs."""
    key = stage.strip().casefold()
    if key not in known or key not in EXECUTION_STAGES:
        raise UnknownStageError(stage, known)
    return frozenset(EXECUTION_STAGES[key])


class BatchExecutor:
    """Runs stored feature requests against one asset world, holding the mutation lock."""

    def __init__(
        self,
        world: AssetWorld,
        store: RequestStore,
        *,
        generator: ScriptGenerator | None = None,
        options: ExecutionOptions | None = None,
        dispatch_options: DispatchOptions | None = None,
        lock: MutationLock | None = None,
        progress: ProgressCallback | None = None,
        logger: Any | None = None,
    ) -> None:
        self._world = world
        self._store = store
        self._options = options or ExecutionOptions()
        self._lock = lock or MutationLock()
        self._progress = progress
        self._log = logger if logger is not None else structlog.get_logger(__name__)
        resolved_dispatch = dispatch_options or DispatchOptions(root=self._options.root)
        self._dispatch_options = resolved_dispatch
        self._dispatcher = RequestDispatcher(
            world,
            generator=generator,
            options=resolved_dispatch,
            report_sink=self._write_binding_report,
            logger=self._log,
        )

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    @property
    def lock(self) -> MutationLock:
        return self._lock

    async def run(
        self,
        *,
        stage: str | None = None,
        phase: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BatchSummary:
        """Execute the stored working set, optionally limited to one stage or one phase."""
        types = stage_types(stage, self._options.stages) if stage else None
        return await self.execute(
            self._store.load_all(), types=types, phase=phase, cancel_token=cancel_token
        )

    async def replay(
        self,
        request_id: str,
        *,
        force: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> BatchSummary:
        """Re-run a single stored request by id.

        blocked and in-progress requests are reset to todo first; a done request
        only runs again with ``force``.
        """
        requests = self._store.load_all()
        selected = select_replay(requests, request_id)
        run_id = generate_run_id()
        if not selected:
            self._log.warning("replay_request_not_found", run_id=run_id, request_id=request_id)
            return BatchSummary(run_id=run_id)

        target = selected[0]
        if target.status in (RequestStatus.BLOCKED, RequestStatus.IN_PROGRESS) or (
            force and target.status is RequestStatus.DONE
        ):
            target.status = RequestStatus.TODO
            target.touch()
            self._store.save(target)

        lookup = build_request_lookup(requests)
        async with self._lock.hold(f"replay:{target.id}"):
            with correlation_scope(run_id=run_id):
                summary = await self._run_schedule(
                    run_id, selected, lookup, types=None, cancel_token=cancel_token
                )
        return summary

    async def execute(
        self,
        requests: Sequence[FeatureRequest],
        *,
        types: frozenset[str] | None = None,
        phase: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BatchSummary:
        """Preflight, order and run ``requests``.

        The whole working set is deduplicated and linked; ``types`` (one stage) and
        ``phase`` (a phase id or name) only narrow what is dispatched.
        """
        run_id = generate_run_id()
        async with self._lock.hold(f"batch:{run_id}"):
            with correlation_scope(run_id=run_id):
                preflight = preflight_for_execution(
                    requests,
                    root=self._options.root,
                    is_folder=self._world.folder_exists,
                    persist=self._store.save,
                )
                working_set = preflight.requests
                lookup = build_request_lookup(working_set)
                ordered = order_requests(
                    working_set, on_cycle=self._options.on_cycle, logger=self._log
                )
                if types is not None:
                    ordered = [request for request in ordered if request.type in types]
                if phase:
                    ordered = [request for request in ordered if _phase_matches(request, phase)]
                self._log.info(
                    "batch_started",
                    run_id=run_id,
                    scheduled=len(ordered),
                    duplicates=len(preflight.duplicates),
                    stage_types=sorted(types) if types is not None else None,
                )
                summary = await self._run_schedule(
                    run_id, ordered, lookup, types=types, cancel_token=cancel_token
                )
        return summary

    async def _run_schedule(
        self,
        run_id: str,
        ordered: Sequence[FeatureRequest],
        lookup: Mapping[str, FeatureRequest],
        *,
        types: frozenset[str] | None,
        cancel_token: CancellationToken | None,
    ) -> BatchSummary:
        token = cancel_token or CancellationToken()
        summary = BatchSummary(run_id=run_id, scheduled=len(ordered))
        total = len(ordered)
        applied = 0
        blocked: list[FeatureRequest] = []

        for request in ordered:
            if token.is_cancelled:
                summary.cancelled = True
                break
            if request.status is RequestStatus.DONE:
                summary.skipped += 1
                continue
            outcome = await self._apply(request, lookup, token)
            if outcome is None:
                summary.cancelled = True
                break
            if not outcome:
                blocked.append(request)
            applied += 1
            self._report_progress(applied, total)

        if blocked and self._options.retry_passes > 0 and not summary.cancelled:
            for request in blocked:
                if token.is_cancelled:
                    summary.cancelled = True
                    break
                summary.retried.append(request.id)
                self._log.info("request_retry", run_id=run_id, request_id=request.id)
                if await self._apply(request, lookup, token) is None:
                    summary.cancelled = True
                    break

        if not summary.cancelled and (types is None or types & ATTACHMENT_TYPES):
            failures = await self._attach_prefab_components(ordered, lookup)
            summary.attachment_failures.extend(request.id for request in failures)

        summary.done = sum(1 for request in ordered if request.status is RequestStatus.DONE)
        summary.done -= summary.skipped
        summary.blocked = sum(
            1 for request in ordered if request.status is RequestStatus.BLOCKED
        )
        self._log.info(
            "batch_finished",
            run_id=run_id,
            done=summary.done,
            blocked=summary.blocked,
            skipped=summary.skipped,
            cancelled=summary.cancelled,
        )
        return summary

    async def _apply(
        self,
        request: FeatureRequest,
        lookup: Mapping[str, FeatureRequest],
        token: CancellationToken,
    ) -> bool | None:
        """Dispatch one request; ``None`` when the batch token cancelled it mid-flight."""
        with correlation_scope(request_id=request.id):
            request.status = RequestStatus.IN_PROGRESS
            request.touch()
            self._store.save(request)

            try:
                ok = await self._dispatcher.dispatch(request, lookup, cancel_token=token)
            except asyncio.CancelledError:
                if not token.is_cancelled:
                    raise
                self._log.info("request_cancelled", request_id=request.id)
                return None
            except Exception as exc:  # noqa: BLE001 - a failing collaborator blocks one request
                request.append_note(f"{DISPATCH_EXCEPTION_PREFIX} {exc}")
                self._log.warning(
                    "request_dispatch_raised",
                    request_id=request.id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                ok = False

            request.status = RequestStatus.DONE if ok else RequestStatus.BLOCKED
            request.touch()
            self._store.save(request)
            self._log.info(
                "request_finished",
                request_id=request.id,
                request_type=request.type,
                status=request.status.value,
            )
        return ok

    async def _attach_prefab_components(
        self,
        ordered: Sequence[FeatureRequest],
        lookup: Mapping[str, FeatureRequest],
    ) -> list[FeatureRequest]:
        plans = build_attachment_plans(ordered, lookup, root=self._options.root)
        if not plans:
            return []
        return await run_prefab_attachment(
            self._world,
            plans,
            max_attempts=self._options.prefab_attach_attempts,
            delay_seconds=self._options.prefab_attach_delay_seconds,
            persist=self._store.save,
            on_attached=self._dispatcher.hydrate_prefab_request,
            logger=self._log,
        )

    def _report_progress(self, applied: int, total: int) -> None:
        if self._progress is not None:
            self._progress(f"{applied} of {total} applied")

    def _write_binding_report(self, asset_path: str, result: HydrationResult) -> object:
        return append_report_entry(
            self._store.directory,
            asset_path,
            result.assigned,
            result.missing,
            report_name=self._dispatch_options.report_name,
            generated_at=utc_now(),
            logger=self._log,
        )


# ------------------------
# Internal helper routines
# ------------------------


def _phase_matches(request: FeatureRequest, phase: str) -> bool:
    key = phase.strip().casefold()
    return key in (request.phase_id.strip().casefold(), request.phase_name.strip().casefold())


__all__ = [
    "ATTACHMENT_TYPES",
    "BatchExecutor",
    "BatchSummary",
    "DISPATCH_EXCEPTION_PREFIX",
    "ExecutionOptions",
    "ProgressCallback",
    "UnknownStageError",
    "options_from_config",
    "stage_types",
]
