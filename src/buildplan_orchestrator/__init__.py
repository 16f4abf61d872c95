"""
buildplan-orchestrator — module skeleton

File: src/buildplan_orchestrator/__init__.py
Last updated: 2026-10-17

Purpose
- Package root. Turns generated build plans (typed feature requests with
  dependencies) into an ordered, resumable execution and binds references
  between the objects it creates.

What should be included in this file
- Package docstring and version export.
- Import boundary rules: avoid importing heavy submodules at import time.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
