"""
buildplan-orchestrator — integration test package

File: tests/integration/__init__.py
Last updated: 2026-10-17

Purpose
- Test package marker file.

What should be included in this file
- Keep this file lightweight; used to define test package boundaries and shared fixtures if needed.
- Optionally: shared pytest fixtures, test markers, or local helpers for this package.

Functional requirements
- Must not import heavy modules at import time; keep test collection fast.
- Subprocess tests run against temporary workspaces only.

Non-functional requirements
- Deterministic and side-effect free.
"""
