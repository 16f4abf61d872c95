"""Unit tests for the append-only binding report."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from structlog.testing import capture_logs

from buildplan_orchestrator.hydration.binding_report import (
    append_report_entry,
    format_report_entry,
    read_report,
)

_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
_SCENE = "Assets/Project/Scenes/Main.unity"


def test_entry_lists_bound_and_missing_fields() -> None:
    entry = format_report_entry(
        _SCENE,
        ["Spawner.player -> Player (GameObject)"],
        [],
        generated_at=_AT,
    )

    assert entry.splitlines() == [
        "",
        "## Main (Assets/Project/Scenes/Main.unity)",
        "Generated: 2026-03-01T12:00:00.000000Z",
        "",
        "### Bound",
        "- Spawner.player -> Player (GameObject)",
        "",
        "### Missing",
        "- (none)",
    ]


def test_append_creates_report_with_header_once(tmp_path: Path) -> None:
    plan_dir = tmp_path / "Plan"

    with capture_logs() as logs:
        target = append_report_entry(plan_dir, _SCENE, ["A.b -> C (GameObject)"], [], generated_at=_AT)
        append_report_entry(
            plan_dir,
            "Assets/Project/Scenes/Boss.unity",
            [],
            ["Boss.arena (GameObject)"],
            generated_at=_AT,
        )

    text = target.read_text(encoding="utf-8")
    assert target == plan_dir / "SceneBindingIndex.md"
    assert text.startswith("# Scene Binding Index\n\n## Main (")
    assert text.count("# Scene Binding Index") == 1
    assert text.index("## Main") < text.index("## Boss")
    assert "- Boss.arena (GameObject)" in text
    assert text.endswith("\n")
    assert [entry["event"] for entry in logs] == ["binding_report_appended"] * 2
    assert logs[1]["missing"] == 1


def test_blank_existing_report_gets_header(tmp_path: Path) -> None:
    (tmp_path / "SceneBindingIndex.md").write_text("  \n", encoding="utf-8")

    append_report_entry(tmp_path, _SCENE, [], [], generated_at=_AT)

    assert (tmp_path / "SceneBindingIndex.md").read_text(encoding="utf-8").startswith(
        "# Scene Binding Index\n"
    )


def test_read_report_returns_none_when_absent(tmp_path: Path) -> None:
    assert read_report(tmp_path) is None

    append_report_entry(tmp_path, _SCENE, [], [], report_name="Bindings.md", generated_at=_AT)

    assert read_report(tmp_path, report_name="Bindings.md") is not None
    assert read_report(tmp_path) is None
