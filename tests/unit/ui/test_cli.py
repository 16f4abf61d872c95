"""In-process CLI routing tests against a temporary workspace."""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from pathlib import Path

import pytest

from buildplan_orchestrator.control_plane import BatchExecutor, BatchSummary
from buildplan_orchestrator.main import ExitCode
from buildplan_orchestrator.ui.cli import build_parser, run_cli
from buildplan_orchestrator.utils.concurrency import CancellationToken

PLAN = {
    "featureRequests": [
        {"id": "script_mover", "type": "Script", "name": "Mover", "notes": "Moves the player."},
        {"id": "prefab_player", "type": "prefab", "name": "Player", "dependsOn": ["script_mover"]},
        {
            "id": "scene_main",
            "type": "scene",
            "name": "Main",
            "path": "Scenes/Main.unity",
            "dependsOn": ["prefab_player"],
        },
    ]
}


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "buildplan.toml").write_text('[project]\nworkspace = "."\n', encoding="utf-8")
    (tmp_path / "plan.json").write_text(json.dumps(PLAN), encoding="utf-8")
    return tmp_path


def _cli(workspace: Path, *args: str) -> int:
    return run_cli([*args, "--config", str(workspace / "buildplan.toml")])


def _json_out(capsys: pytest.CaptureFixture[str]) -> dict[str, object]:
    lines = capsys.readouterr().out.strip().splitlines()
    return json.loads(lines[-1])


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_import_writes_records_and_appends_script_folder(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _cli(workspace, "import", str(workspace / "plan.json"), "--json")

    payload = _json_out(capsys)
    assert code == ExitCode.OK
    assert payload["command"] == "import"
    imported = payload["imported"]
    assert isinstance(imported, list)
    assert imported[:3] == ["script_mover", "prefab_player", "scene_main"]
    assert len(imported) == 4
    assert payload["summary"] == (
        "Total: 4  Folders: 1  Scripts: 1  Scenes: 1  Materials: 0  Assets: 0  Prefabs: 1"
    )
    assert (workspace / "Assets" / "Plan" / "script_mover.json").is_file()
    assert (workspace / "Assets" / "Plan" / "PlanRaw.json").is_file()


def test_order_lists_folder_before_dependents(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _cli(workspace, "import", str(workspace / "plan.json"), "--json")
    capsys.readouterr()

    code = _cli(workspace, "order", "--json")

    payload = _json_out(capsys)
    assert code == ExitCode.OK
    order = payload["order"]
    assert isinstance(order, list)
    assert [entry["type"] for entry in order] == ["folder", "script", "prefab", "scene"]
    assert [entry["id"] for entry in order][1:] == ["script_mover", "prefab_player", "scene_main"]
    assert payload["duplicates"] == []


def test_status_counts_every_record(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _cli(workspace, "import", str(workspace / "plan.json"))
    capsys.readouterr()

    code = _cli(workspace, "status", "--json", "--list")

    payload = _json_out(capsys)
    assert code == ExitCode.OK
    assert payload["total"] == 4
    assert payload["counts"] == {"todo": 4, "in_progress": 0, "done": 0, "blocked": 0}
    requests = payload["requests"]
    assert isinstance(requests, list)
    assert {entry["status"] for entry in requests} == {"todo"}


def test_import_replace_removes_previous_records(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _cli(workspace, "import", str(workspace / "plan.json"))
    capsys.readouterr()

    code = _cli(workspace, "import", str(workspace / "plan.json"), "--replace", "--json")

    assert code == ExitCode.OK
    assert _json_out(capsys)["removed"] == 4


def test_plain_status_output_is_human_readable(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _cli(workspace, "status", "--no-color")

    out = capsys.readouterr().out
    assert code == ExitCode.OK
    assert "Total: 0" in out
    assert "todo: 0" in out


def test_order_without_records_says_so(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = _cli(workspace, "order")

    assert code == ExitCode.OK
    assert "No feature requests found." in capsys.readouterr().out


def test_missing_plan_file_is_a_plan_error(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _cli(workspace, "import", str(workspace / "absent.json"))

    assert code == ExitCode.PLAN_ERROR
    assert "error: cannot read plan" in capsys.readouterr().err


def test_unparseable_plan_is_a_plan_error(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    bad = workspace / "bad.txt"
    bad.write_text("Sorry, I could not produce a plan.", encoding="utf-8")

    code = _cli(workspace, "import", str(bad))

    assert code == ExitCode.PLAN_ERROR
    assert "no JSON object or YAML block found" in capsys.readouterr().err


def test_missing_config_file_is_a_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = run_cli(["status", "--config", str(tmp_path / "missing.toml")])

    assert code == ExitCode.CONFIG_ERROR
    assert "config file not found" in capsys.readouterr().err


def test_config_command_reports_profile_overlay(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _cli(workspace, "config", "--profile", "lenient", "--json")

    payload = _json_out(capsys)
    assert code == ExitCode.OK
    assert payload["active_profile"] == "lenient"
    config = payload["config"]
    assert isinstance(config, dict)
    assert config["scheduler"]["on_cycle"] == "append"
    assert config["project"]["workspace"] == str(workspace.resolve())


def test_report_without_runs_prints_placeholder(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = _cli(workspace, "report")

    assert code == ExitCode.OK
    assert "(no binding report yet)" in capsys.readouterr().out


def test_index_writes_planned_sections(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _cli(workspace, "import", str(workspace / "plan.json"))
    capsys.readouterr()

    code = _cli(workspace, "index", "--json")

    payload = _json_out(capsys)
    assert code == ExitCode.OK
    written = payload["written"]
    assert isinstance(written, list)
    assert sorted(Path(path).name for path in written) == [
        "AssetIndex.md",
        "PrefabIndex.md",
        "SceneIndex.md",
        "ScriptIndex.md",
    ]
    prefab_index = (workspace / "Assets" / "Plan" / "PrefabIndex.md").read_text(encoding="utf-8")
    assert "## Planned Prefabs" in prefab_index
    assert "- Player (Assets/Project/Player.prefab)" in prefab_index


def test_prompt_embeds_intent(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = _cli(workspace, "prompt", "a", "wave", "shooter", "--json")

    payload = _json_out(capsys)
    assert code == ExitCode.OK
    prompt = payload["prompt"]
    assert isinstance(prompt, str)
    assert "a wave shooter" in prompt
    assert payload["prompt_hash"]


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need a POSIX event loop")
def test_interrupt_during_execute_cancels_the_batch(
    workspace: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(workspace)
    assert _cli(workspace, "import", "plan.json") == 0
    capsys.readouterr()
    handler_before = signal.getsignal(signal.SIGINT)

    async def _interrupted_run(
        self: BatchExecutor,
        *,
        stage: str | None = None,
        phase: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> BatchSummary:
        assert cancel_token is not None
        signal.raise_signal(signal.SIGINT)
        await asyncio.wait_for(cancel_token.wait(), timeout=5)
        return BatchSummary(run_id="run-interrupted", scheduled=4, cancelled=cancel_token.is_cancelled)

    monkeypatch.setattr(BatchExecutor, "run", _interrupted_run)

    exit_code = _cli(workspace, "execute", "--json")

    assert exit_code == ExitCode.CANCELLED
    summary = _json_out(capsys)["summary"]
    assert isinstance(summary, dict)
    assert summary["cancelled"] is True
    assert signal.getsignal(signal.SIGINT) is handler_before
