"""Utility exports for filesystem and concurrency helpers."""

from buildplan_orchestrator.utils.concurrency import (
    CancellationToken,
    MutationLock,
    run_with_timeout,
)
from buildplan_orchestrator.utils.fs import (
    atomic_write,
    ensure_directory,
    is_within,
    read_text_if_exists,
)

__all__ = [
    "CancellationToken",
    "MutationLock",
    "atomic_write",
    "ensure_directory",
    "is_within",
    "read_text_if_exists",
    "run_with_timeout",
]
