"""Public observability primitives: run logging and correlation scopes."""

from buildplan_orchestrator.observability.logging import (
    LOG_FILENAME,
    ROOT_LOGGER_NAME,
    RunLog,
    RunLogConfig,
    configure_event_logging,
    correlation_scope,
    get_active_run_log,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

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
