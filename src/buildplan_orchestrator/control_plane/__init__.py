"""Request dispatch and batch execution."""

from buildplan_orchestrator.control_plane.dispatch import (
    DispatchOptions,
    RequestDispatcher,
)
from buildplan_orchestrator.control_plane.executor import (
    BatchExecutor,
    BatchSummary,
    ExecutionOptions,
    UnknownStageError,
    options_from_config,
    stage_types,
)

__all__ = [
    "BatchExecutor",
    "BatchSummary",
    "DispatchOptions",
    "ExecutionOptions",
    "RequestDispatcher",
    "UnknownStageError",
    "options_from_config",
    "stage_types",
]
