"""
buildplan-orchestrator — run logging

File: src/buildplan_orchestrator/observability/logging.py
Last updated: 2026-10-18

Purpose
- Write one JSON-lines log per batch run under ``<log_dir>/<run_id>/buildplan.jsonl``.

What should be included in this file
- structlog configuration that hands component events to the stdlib logging tree.
- A queue-backed handler so event emission never waits on file IO.
- Correlation fields (``run_id``, ``request_id``, ``scene``) bound through structlog
  context variables.

Functional requirements
- Component events keep their keyword fields as top-level JSON keys.
- Plain stdlib records from the same logger tree land in the same file.
- Shutdown drains the queue before closing the sinks.
"""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import queue
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import structlog

LOG_FILENAME: Final[str] = "buildplan.jsonl"
ROOT_LOGGER_NAME: Final[str] = "buildplan_orchestrator"

_SHARED_PROCESSORS: Final[tuple[Any, ...]] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.format_exc_info,
)

_active: RunLog | None = None
_atexit_registered = False


@dataclass(frozen=True, slots=True)
class RunLogConfig:
    run_id: str
    log_dir: Path | str = Path("logs")
    level: int | str = "INFO"
    log_to_stdout: bool = False
    logger_name: str = ROOT_LOGGER_NAME


class RunLog:
    """An installed run log; ``close`` detaches it and drains pending records."""

    def __init__(
        self,
        *,
        run_id: str,
        logger: logging.Logger,
        log_path: Path,
        queue_handler: logging.handlers.QueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
    ) -> None:
        self.run_id = run_id
        self.logger = logger
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks = sinks
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.logger.removeHandler(self._queue_handler)
        self._listener.stop()
        for sink in self._sinks:
            sink.close()
        self.closed = True


def configure_event_logging() -> None:
    """Send ``structlog.get_logger(__name__)`` events through stdlib logging.

    Rendering happens in the handler's ``ProcessorFormatter``, so an existing
    configuration that already ends in ``wrap_for_formatter`` is left alone.
    Loggers are not cached, which keeps ``structlog.testing.capture_logs`` usable.
    """
    if structlog.is_configured():
        processors = structlog.get_config().get("processors") or []
        if processors and processors[-1] is structlog.stdlib.ProcessorFormatter.wrap_for_formatter:
            return
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_structured_logging(config: RunLogConfig) -> RunLog:
    """Install a run log on ``config.logger_name``, replacing any active one."""
    global _active, _atexit_registered

    run_id = config.run_id.strip()
    if not run_id:
        raise ValueError("run_id must not be empty")
    level = _parse_level(config.level)

    if _active is not None:
        _active.close()
        _active = None

    run_dir = Path(config.log_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_dir / LOG_FILENAME

    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        # Records arrive already rendered by the queue handler's formatter.
        sink.setFormatter(logging.Formatter("%(message)s"))

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue()
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setFormatter(_json_formatter(run_id))
    listener = logging.handlers.QueueListener(log_queue, *sinks)

    logger = logging.getLogger(config.logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(queue_handler)
    listener.start()

    _active = RunLog(
        run_id=run_id,
        logger=logger,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    if not _atexit_registered:
        atexit.register(shutdown_logging)
        _atexit_registered = True
    return _active


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = ROOT_LOGGER_NAME,
) -> RunLog:
    """Install the run log described by an ``[observability]`` config section."""
    section = dict(observability_config or {})
    configured_dir = section.get("log_dir", "logs")
    level = section.get("log_level", "INFO")
    run_log = setup_structured_logging(
        RunLogConfig(
            run_id=run_id,
            log_dir=log_dir if log_dir is not None else str(configured_dir),
            level=level if isinstance(level, (int, str)) else "INFO",
            log_to_stdout=bool(section.get("log_to_stdout", False)),
            logger_name=logger_name,
        )
    )
    configure_event_logging()
    return run_log


def shutdown_logging(run_log: RunLog | None = None) -> None:
    """Close ``run_log``, or the active run log when none is given."""
    global _active
    target = run_log if run_log is not None else _active
    if target is None:
        return
    target.close()
    if target is _active:
        _active = None


def get_active_run_log() -> RunLog | None:
    return _active


def get_correlation_context() -> dict[str, Any]:
    return dict(structlog.contextvars.get_contextvars())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for events logged inside the block; ``None`` values are skipped."""
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def _json_formatter(run_id: str) -> structlog.stdlib.ProcessorFormatter:
    def add_run_id(
        _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("run_id", run_id)
        return event_dict

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=list(_SHARED_PROCESSORS),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            add_run_id,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if not isinstance(parsed, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return parsed


__all__ = [
    "LOG_FILENAME",
    "ROOT_LOGGER_NAME",
    "RunLog",
    "RunLogConfig",
    "configure_event_logging",
    "correlation_scope",
    "get_active_run_log",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
