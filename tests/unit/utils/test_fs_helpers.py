"""Tests for filesystem helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from buildplan_orchestrator.utils.fs import (
    atomic_write,
    ensure_directory,
    is_within,
    read_text_if_exists,
)


def test_atomic_write_replaces_content_without_temp_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "record.json"

    atomic_write(target, "first\n")
    atomic_write(target, b"second\n")

    assert target.read_text(encoding="utf-8") == "second\n"
    assert [path.name for path in tmp_path.iterdir()] == ["record.json"]


def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "record.json", "x")


def test_ensure_directory_and_optional_reads(tmp_path: Path) -> None:
    directory = ensure_directory(tmp_path / "Assets" / "Plan")

    assert directory.is_dir()
    assert read_text_if_exists(directory / "absent.md") is None
    (directory / "present.md").write_text("hello", encoding="utf-8")
    assert read_text_if_exists(directory / "present.md") == "hello"


def test_is_within(tmp_path: Path) -> None:
    assert is_within(tmp_path / "a" / "b.json", tmp_path)
    assert not is_within(tmp_path / ".." / "escape.json", tmp_path)
