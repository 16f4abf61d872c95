"""
buildplan-orchestrator — feature request store

File: src/buildplan_orchestrator/persistence/request_store.py
Last updated: 2026-10-17

Purpose
- Durable per-request records under the plan directory, plus the raw plan text.

What should be included in this file
- One JSON document per request at ``<plan_dir>/<safe id>.json``.
- ``PlanRaw.json`` holding the plan text exactly as received.

Functional requirements
- Every save is atomic; a crash never leaves a half-written record.
- Loading skips malformed records and fills a missing id from the file stem.

Non-functional requirements
- Records stay human-readable (indented, key order stable).
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from buildplan_orchestrator.constants import BINDING_REPORT_FILENAME, PLAN_DIR, PLAN_RAW_FILENAME
from buildplan_orchestrator.domain.ids import safe_file_stem
from buildplan_orchestrator.domain.models import FeatureRequest, RequestStatus
from buildplan_orchestrator.utils.fs import (
    atomic_write,
    ensure_directory,
    is_within,
    read_text_if_exists,
)

PathLike = str | os.PathLike[str]


class RequestStoreError(ValueError):
    """Raised when a record cannot be written inside the plan directory."""


class RequestStore:
    """Reads and writes feature request records for one workspace."""

    def __init__(
        self,
        workspace: PathLike = ".",
        *,
        plan_dir: str = PLAN_DIR,
        logger: Any | None = None,
    ) -> None:
        self._workspace = Path(workspace)
        self._directory = self._workspace / plan_dir
        self._log = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def directory(self) -> Path:
        return self._directory

    def request_path(self, request_id: str) -> Path:
        path = self._directory / f"{safe_file_stem(request_id)}.json"
        if not is_within(path, self._directory):
            raise RequestStoreError(f"record path escapes the plan directory: {request_id!r}")
        return path

    def save(self, request: FeatureRequest) -> Path:
        ensure_directory(self._directory)
        path = self.request_path(request.id)
        payload = json.dumps(request.to_dict(), indent=2, ensure_ascii=False) + "\n"
        atomic_write(path, payload)
        self._log.debug(
            "request_saved",
            request_id=request.id,
            status=request.status.value,
            record_path=str(path),
        )
        return path

    def save_all(self, requests: Iterable[FeatureRequest]) -> list[Path]:
        return [self.save(request) for request in requests]

    def load_all(self) -> list[FeatureRequest]:
        """Every readable record, in file name order."""
        if not self._directory.is_dir():
            return []

        requests: list[FeatureRequest] = []
        for path in sorted(self._directory.glob("*.json"), key=lambda item: item.name):
            if path.name == PLAN_RAW_FILENAME:
                continue
            request = self._load_record(path)
            if request is not None:
                requests.append(request)
        return requests

    def load(self, request_id: str) -> FeatureRequest | None:
        path = self.request_path(request_id)
        return self._load_record(path) if path.is_file() else None

    def delete_all(self) -> int:
        """Remove every request record; the raw plan and the binding report stay."""
        if not self._directory.is_dir():
            return 0
        removed = 0
        for path in sorted(self._directory.glob("*.json")):
            if path.name in {PLAN_RAW_FILENAME, BINDING_REPORT_FILENAME}:
                continue
            path.unlink()
            removed += 1
        return removed

    def save_raw_plan(self, text: str) -> Path:
        ensure_directory(self._directory)
        path = self._directory / PLAN_RAW_FILENAME
        atomic_write(path, text)
        return path

    def load_raw_plan(self) -> str | None:
        return read_text_if_exists(self._directory / PLAN_RAW_FILENAME)

    def status_counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in RequestStatus}
        for request in self.load_all():
            counts[request.status.value] += 1
        return counts

    def _load_record(self, path: Path) -> FeatureRequest | None:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("record root must be an object")
            request = FeatureRequest.from_dict(raw)
        except (OSError, ValueError) as exc:
            self._log.warning("request_record_skipped", record_path=str(path), error=str(exc))
            return None
        if not request.id:
            request.id = path.stem
        return request


__all__ = [
    "RequestStore",
    "RequestStoreError",
]
