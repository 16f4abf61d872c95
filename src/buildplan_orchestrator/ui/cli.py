"""Command-line interface router for buildplan-orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from collections.abc import Awaitable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from buildplan_orchestrator.backends import MemoryWorld, TemplateScriptGenerator
from buildplan_orchestrator.config import (
    ConfigLoadError,
    ConfigValidationError,
    assert_valid_config,
    dump_effective_config,
    load_config,
)
from buildplan_orchestrator.control_plane import (
    BatchExecutor,
    BatchSummary,
    UnknownStageError,
    options_from_config,
)
from buildplan_orchestrator.domain.ids import generate_run_id
from buildplan_orchestrator.hydration import RegistryLoadError, load_registry, read_report
from buildplan_orchestrator.hydration.registry import CapabilityRegistry
from buildplan_orchestrator.knowledge_plane import (
    CATALOGS,
    IndexLimits,
    add_planned_sections,
    build_world_indexes,
    read_index,
    write_indexes,
)
from buildplan_orchestrator.main import ExitCode
from buildplan_orchestrator.observability.logging import setup_logging, shutdown_logging
from buildplan_orchestrator.persistence import RequestStore, RequestStoreError
from buildplan_orchestrator.planning import (
    CyclicDependencyError,
    PlanParseError,
    order_requests,
    plan_working_set,
    preflight_for_execution,
    summarize_plan,
)
from buildplan_orchestrator.planning.prompt_templates import (
    render_phase_outline_prompt,
    render_plan_prompt,
)
from buildplan_orchestrator.ui.render import CLIRenderer, create_renderer
from buildplan_orchestrator.utils.concurrency import CancellationToken

if TYPE_CHECKING:
    from buildplan_orchestrator.domain.models import FeatureRequest


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = ExitCode.FAILURE

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="buildplan",
        description=(
            "buildplan-orchestrator — ordered, resumable execution of generated build plans.\n\n"
            "Common workflows:\n"
            "  buildplan import plan.json     Store a plan as feature request records\n"
            "  buildplan order                Show the execution order\n"
            "  buildplan execute              Apply every pending request\n"
            "  buildplan status               Count requests per status\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to the TOML config (default: ./buildplan.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument("--json", action="store_true", help="Emit deterministic JSON output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # import --------------------------------------------------------------
    import_parser = subparsers.add_parser(
        "import",
        parents=[common],
        help="Parse a plan document and write its feature request records",
        description=(
            "Parse a plan (JSON, fenced JSON or a fenced YAML block), normalize and\n"
            "deduplicate its requests, and write one record per request.\n\n"
            "Examples:\n"
            "  buildplan import plan.json\n"
            "  buildplan import phased.json --phase 2 --replace\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    import_parser.add_argument("plan_path", help="Path to the plan document")
    import_parser.add_argument(
        "--phase",
        type=int,
        default=0,
        help="Phase to import from a phased plan (1-based; 0 imports every phase).",
    )
    import_parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete existing request records before writing the new ones.",
    )
    import_parser.set_defaults(handler=_cmd_import)

    # order ---------------------------------------------------------------
    order_parser = subparsers.add_parser(
        "order",
        parents=[common],
        help="Show the dependency order of the stored requests",
    )
    order_parser.set_defaults(handler=_cmd_order)

    # execute -------------------------------------------------------------
    execute_parser = subparsers.add_parser(
        "execute",
        parents=[common],
        help="Run stored requests against the in-memory asset world",
        description=(
            "Run every request that is not done, in dependency order, with one retry\n"
            "pass over blocked requests.\n\n"
            "Examples:\n"
            "  buildplan execute\n"
            "  buildplan execute --stage scripts\n"
            "  buildplan execute --replay script_spawner --force\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    execute_parser.add_argument("--stage", default=None, help="Run only one named stage.")
    execute_parser.add_argument(
        "--phase", default=None, help="Run only requests of one phase (id or name)."
    )
    execute_parser.add_argument("--replay", default=None, help="Re-run a single request by id.")
    execute_parser.add_argument(
        "--force",
        action="store_true",
        help="With --replay, re-run the request even when it is done.",
    )
    execute_parser.set_defaults(handler=_cmd_execute)

    # status --------------------------------------------------------------
    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Count stored requests per status",
    )
    status_parser.add_argument(
        "--list", action="store_true", help="List every request with its status."
    )
    status_parser.set_defaults(handler=_cmd_status)

    # summary -------------------------------------------------------------
    summary_parser = subparsers.add_parser(
        "summary",
        parents=[common],
        help="Count stored requests per type",
    )
    summary_parser.set_defaults(handler=_cmd_summary)

    # report --------------------------------------------------------------
    report_parser = subparsers.add_parser(
        "report",
        parents=[common],
        help="Print the scene binding report",
    )
    report_parser.set_defaults(handler=_cmd_report)

    # index ---------------------------------------------------------------
    index_parser = subparsers.add_parser(
        "index",
        parents=[common],
        help="Write the asset index documents with planned sections",
    )
    index_parser.set_defaults(handler=_cmd_index)

    # prompt --------------------------------------------------------------
    prompt_parser = subparsers.add_parser(
        "prompt",
        parents=[common],
        help="Render the plan-generation prompt",
    )
    prompt_parser.add_argument("intent", nargs="+", help="What the plan should build")
    prompt_parser.add_argument(
        "--phases",
        action="store_true",
        help="Render the phase outline prompt instead of the flat plan prompt.",
    )
    prompt_parser.set_defaults(handler=_cmd_prompt)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, file, env, and profile.\n\n"
            "Examples:\n"
            "  buildplan config\n"
            "  buildplan config --profile lenient\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return int(exc.exit_code)
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_import(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    workspace = _workspace(config)
    root = _project_root(config)
    plan_path = Path(args.plan_path).expanduser()
    try:
        text = plan_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"cannot read plan: {exc}", exit_code=ExitCode.PLAN_ERROR) from exc

    try:
        requests = plan_working_set(
            text,
            selector=max(int(args.phase), 0),
            root=root,
            script_exists=lambda path: (workspace / path).is_file(),
        )
    except PlanParseError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.PLAN_ERROR) from exc

    removed = store.delete_all() if args.replace else 0
    store.save_raw_plan(text)
    try:
        store.save_all(requests)
    except RequestStoreError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.PLAN_ERROR) from exc

    summary = summarize_plan(requests)
    if _flag(args, "json"):
        _emit_json(
            {
                "command": "import",
                "imported": [request.id for request in requests],
                "removed": removed,
                "summary": summary,
            }
        )
        return int(ExitCode.OK)

    renderer = _get_renderer(args)
    renderer.kv("Plan", str(plan_path))
    renderer.kv("Records", str(store.directory))
    if removed:
        renderer.kv("Removed", removed)
    renderer.text(summary)
    renderer.next_steps(["buildplan order", "buildplan execute"])
    return int(ExitCode.OK)


def _cmd_order(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    root = _project_root(config)
    requests = store.load_all()
    preflight = preflight_for_execution(requests, root=root)
    try:
        ordered = order_requests(
            preflight.requests, on_cycle=config["scheduler"]["on_cycle"]
        )
    except CyclicDependencyError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.PLAN_ERROR) from exc

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "order",
                "order": [
                    {
                        "id": request.id,
                        "type": request.type,
                        "name": request.name,
                        "status": request.status.value,
                    }
                    for request in ordered
                ],
                "duplicates": [request.id for request in preflight.duplicates],
            }
        )
        return int(ExitCode.OK)

    renderer = _get_renderer(args)
    if not ordered:
        renderer.text("No feature requests found.")
        return int(ExitCode.OK)
    rows = [
        [str(position), request.type, request.name, request.id, renderer.status(request.status.value)]
        for position, request in enumerate(ordered, start=1)
    ]
    renderer.table(["#", "type", "name", "id", "status"], rows, title="Execution order:")
    if preflight.duplicates:
        renderer.section("Duplicates (skipped):")
        renderer.items([request.id for request in preflight.duplicates])
    return int(ExitCode.OK)


def _cmd_execute(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    execution_options, dispatch_options = options_from_config(config)
    registry = _load_registry(config)
    world = MemoryWorld(registry=registry)
    generator = (
        TemplateScriptGenerator(registry)
        if config["generator"]["backend"] == "template"
        else None
    )
    renderer = _get_renderer(args)

    run_id = generate_run_id()
    setup_logging(
        config["observability"],
        run_id=run_id,
        log_dir=_resolve_log_dir(config),
    )
    executor = BatchExecutor(
        world,
        store,
        generator=generator,
        options=execution_options,
        dispatch_options=dispatch_options,
        progress=renderer.detail,
    )
    token = CancellationToken()
    try:
        if args.replay:
            summary = asyncio.run(
                _run_interruptible(
                    executor.replay(args.replay, force=bool(args.force), cancel_token=token), token
                )
            )
        else:
            summary = asyncio.run(
                _run_interruptible(
                    executor.run(stage=args.stage, phase=args.phase, cancel_token=token), token
                )
            )
    except UnknownStageError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc
    except CyclicDependencyError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.PLAN_ERROR) from exc
    finally:
        shutdown_logging()

    indexes = build_world_indexes(world, limits=IndexLimits.from_config(config))
    write_indexes(store.directory, indexes)
    exit_code = _summary_exit_code(summary)

    if _flag(args, "json"):
        _emit_json({"command": "execute", "summary": summary.to_dict()})
        return exit_code

    _render_summary(renderer, summary)
    blocked = [request for request in store.load_all() if request.status.value == "blocked"]
    if blocked:
        renderer.section("Blocked:")
        renderer.items([f"{request.id}: {_last_note(request.notes)}" for request in blocked])
    return exit_code


def _cmd_status(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    requests = store.load_all()
    counts = {status: 0 for status in ("todo", "in_progress", "done", "blocked")}
    for request in requests:
        counts[request.status.value] += 1

    if _flag(args, "json"):
        payload: dict[str, object] = {"command": "status", "counts": counts, "total": len(requests)}
        if _flag(args, "list"):
            payload["requests"] = [
                {"id": request.id, "type": request.type, "status": request.status.value}
                for request in requests
            ]
        _emit_json(payload)
        return int(ExitCode.OK)

    renderer = _get_renderer(args)
    renderer.kv("Total", len(requests))
    for status, count in counts.items():
        renderer.kv(renderer.status(status), count)
    if _flag(args, "list") and requests:
        rows = [
            [request.id, request.type, request.name, renderer.status(request.status.value)]
            for request in requests
        ]
        renderer.table(["id", "type", "name", "status"], rows, title="Requests:")
    return int(ExitCode.OK)


def _cmd_summary(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    summary = summarize_plan(_store(config).load_all())
    if _flag(args, "json"):
        _emit_json({"command": "summary", "summary": summary})
        return int(ExitCode.OK)
    _get_renderer(args).text(summary)
    return int(ExitCode.OK)


def _cmd_report(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    content = read_report(store.directory, report_name=config["hydration"]["report_name"])
    if _flag(args, "json"):
        _emit_json({"command": "report", "report": content})
        return int(ExitCode.OK)
    _get_renderer(args).text(content.rstrip() if content else "(no binding report yet)")
    return int(ExitCode.OK)


def _cmd_index(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    limits = IndexLimits.from_config(config)
    documents = {
        catalog.filename: read_index(store.directory, catalog, max_chars=limits.max_chars)
        for catalog in CATALOGS
    }
    if not any(documents.values()):
        documents = build_world_indexes(MemoryWorld(registry=_load_registry(config)), limits=limits)
    phases = _phase_groups(store)
    documents = add_planned_sections(
        documents, phases, root=_project_root(config), limits=limits
    )
    written = write_indexes(store.directory, documents)

    if _flag(args, "json"):
        _emit_json({"command": "index", "written": [str(path) for path in written]})
        return int(ExitCode.OK)
    renderer = _get_renderer(args)
    renderer.section("Index documents:")
    renderer.items([str(path) for path in written])
    return int(ExitCode.OK)


def _cmd_prompt(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    store = _store(config)
    limits = IndexLimits.from_config(config)
    indexes = {
        catalog.title: read_index(store.directory, catalog, max_chars=limits.max_chars)
        for catalog in CATALOGS
    }
    intent = " ".join(args.intent)
    if _flag(args, "phases"):
        rendered = render_phase_outline_prompt(intent, indexes=indexes)
    else:
        rendered = render_plan_prompt(intent, indexes=indexes, project_root=_project_root(config))

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "prompt",
                "prompt": rendered.prompt,
                "prompt_hash": rendered.prompt_hash,
            }
        )
        return int(ExitCode.OK)
    _get_renderer(args).text(rendered.prompt)
    return int(ExitCode.OK)


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    if _flag(args, "json"):
        _emit_json({"command": "config", "active_profile": profile, "config": config})
        return int(ExitCode.OK)

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(dump_effective_config(config))
    return int(ExitCode.OK)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _render_summary(renderer: CLIRenderer, summary: BatchSummary) -> None:
    renderer.kv("Run ID", summary.run_id)
    renderer.kv("Scheduled", summary.scheduled)
    renderer.kv(renderer.status("done"), summary.done)
    renderer.kv(renderer.status("blocked"), summary.blocked)
    renderer.kv("skipped", summary.skipped)
    if summary.retried:
        renderer.kv("Retried", ", ".join(summary.retried))
    if summary.attachment_failures:
        renderer.warning("prefab components not attached: " + ", ".join(summary.attachment_failures))
    if summary.cancelled:
        renderer.warning("batch cancelled before every request ran")


async def _run_interruptible(
    batch: Awaitable[BatchSummary], token: CancellationToken
) -> BatchSummary:
    with _cancel_on_interrupt(token):
        return await batch


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Route SIGINT to ``token`` on the running loop; the previous handler is restored on exit."""
    loop = asyncio.get_running_loop()
    previous = signal.getsignal(signal.SIGINT)
    installed = True
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        # No loop signal support (Windows, worker threads): Ctrl+C stays KeyboardInterrupt.
        installed = False
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
            if previous is not None:
                signal.signal(signal.SIGINT, previous)


def _summary_exit_code(summary: BatchSummary) -> int:
    if summary.cancelled:
        return int(ExitCode.CANCELLED)
    if summary.blocked:
        return int(ExitCode.FAILURE)
    return int(ExitCode.OK)


def _last_note(notes: str) -> str:
    lines = [line for line in notes.splitlines() if line.strip()]
    return lines[-1].strip() if lines else "(no notes)"


# ---------------------------------------------------------------------------
# Config and path helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))

    try:
        loaded = load_config(config_path, profile=profile)
        validated = assert_valid_config(loaded, active_profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc

    return {key: value for key, value in validated.items()}


def _workspace(config: Mapping[str, Any]) -> Path:
    return Path(str(config["project"]["workspace"])).expanduser()


def _project_root(config: Mapping[str, Any]) -> str:
    return str(config["project"]["root"])


def _store(config: Mapping[str, Any]) -> RequestStore:
    return RequestStore(_workspace(config), plan_dir=str(config["project"]["plan_dir"]))


def _resolve_log_dir(config: Mapping[str, Any]) -> Path:
    raw = Path(str(config["observability"]["log_dir"])).expanduser()
    return raw if raw.is_absolute() else _workspace(config) / raw


def _load_registry(config: Mapping[str, Any]) -> CapabilityRegistry | None:
    raw = config["hydration"].get("registry_path")
    if not raw:
        return None
    try:
        return load_registry(raw)
    except RegistryLoadError as exc:
        raise CLIError(str(exc), exit_code=ExitCode.CONFIG_ERROR) from exc


def _phase_groups(store: RequestStore) -> list[tuple[str, list[FeatureRequest]]]:
    """Stored requests grouped by phase label, in first-seen order."""
    groups: dict[str, list[FeatureRequest]] = {}
    for request in store.load_all():
        label = request.phase_name.strip() or request.phase_id.strip()
        groups.setdefault(label, []).append(request)
    return list(groups.items())


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
