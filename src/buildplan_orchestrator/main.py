"""Executable CLI entrypoint for ``buildplan_orchestrator``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    OK = 0
    FAILURE = 1
    CONFIG_ERROR = 2
    PLAN_ERROR = 3
    CANCELLED = 130


_KNOWN_EXIT_CODES = frozenset(int(code) for code in ExitCode)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m buildplan_orchestrator`` and script shims."""

    try:
        from buildplan_orchestrator.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except KeyboardInterrupt:
        _write_stderr("cancelled")
        return int(ExitCode.CANCELLED)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in _KNOWN_EXIT_CODES:
        return raw_code
    if raw_code is None:
        return int(ExitCode.OK)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.FAILURE)


def _route_exception(exc: BaseException) -> ExitCode:
    config_error_types = _load_config_error_types()
    plan_error_types = _load_plan_error_types()

    for item in _iter_exception_chain(exc):
        if isinstance(item, config_error_types):
            return ExitCode.CONFIG_ERROR
        if isinstance(item, plan_error_types):
            return ExitCode.PLAN_ERROR
    return ExitCode.FAILURE


def _load_config_error_types() -> tuple[type[BaseException], ...]:
    from buildplan_orchestrator.config.loader import ConfigLoadError
    from buildplan_orchestrator.config.schema import ConfigValidationError

    return (ConfigLoadError, ConfigValidationError)


def _load_plan_error_types() -> tuple[type[BaseException], ...]:
    from buildplan_orchestrator.persistence.request_store import RequestStoreError
    from buildplan_orchestrator.planning.plan_document import PlanParseError
    from buildplan_orchestrator.planning.task_graph import CyclicDependencyError

    return (PlanParseError, CyclicDependencyError, RequestStoreError)


def _iter_exception_chain(exc: BaseException) -> list[BaseException]:
    seen: set[int] = set()
    items: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None:
        marker = id(current)
        if marker in seen:
            break
        seen.add(marker)
        items.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
            continue
        if current.__context__ is not None and not current.__suppress_context__:
            current = current.__context__
            continue
        break
    return items


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.FAILURE:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    _write_stderr(str(exc).strip() or exc.__class__.__name__)


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
