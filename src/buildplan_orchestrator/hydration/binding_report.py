"""Append-only markdown record of bound and missing reference fields."""

from __future__ import annotations

import os
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from buildplan_orchestrator.constants import BINDING_REPORT_FILENAME, BINDING_REPORT_HEADER
from buildplan_orchestrator.domain.models import format_timestamp, utc_now
from buildplan_orchestrator.domain.paths import file_stem
from buildplan_orchestrator.utils.fs import atomic_write, ensure_directory, read_text_if_exists

PathLike = str | os.PathLike[str]


def format_report_entry(
    scene_path: str,
    assigned: Sequence[str],
    missing: Sequence[str],
    *,
    generated_at: datetime | None = None,
) -> str:
    stamp = format_timestamp(generated_at if generated_at is not None else utc_now())
    title = file_stem(scene_path) or "Scene"
    lines = [
        "",
        f"## {title} ({scene_path})",
        f"Generated: {stamp}",
        "",
        "### Bound",
        *_bullets(assigned),
        "",
        "### Missing",
        *_bullets(missing),
    ]
    return "\n".join(lines) + "\n"


def append_report_entry(
    plan_dir: PathLike,
    scene_path: str,
    assigned: Sequence[str],
    missing: Sequence[str],
    *,
    report_name: str = BINDING_REPORT_FILENAME,
    generated_at: datetime | None = None,
    logger: Any | None = None,
) -> Path:
    """Append one entry to the report, creating it with its header when absent."""
    log = logger if logger is not None else structlog.get_logger(__name__)
    directory = ensure_directory(plan_dir)
    target = directory / report_name
    existing = read_text_if_exists(target)
    base = existing if existing and existing.strip() else BINDING_REPORT_HEADER
    entry = format_report_entry(scene_path, assigned, missing, generated_at=generated_at)
    atomic_write(target, base.rstrip() + "\n" + entry.rstrip() + "\n")
    log.info(
        "binding_report_appended",
        scene_path=scene_path,
        report_path=str(target),
        assigned=len(assigned),
        missing=len(missing),
    )
    return target


def read_report(plan_dir: PathLike, *, report_name: str = BINDING_REPORT_FILENAME) -> str | None:
    return read_text_if_exists(Path(plan_dir) / report_name)


def _bullets(items: Sequence[str]) -> list[str]:
    if not items:
        return ["- (none)"]
    return [f"- {item}" for item in items]


__all__ = [
    "append_report_entry",
    "format_report_entry",
    "read_report",
]
