"""
buildplan-orchestrator — CLI subprocess smoke contracts

File: tests/integration/test_cli_smoke.py
Last updated: 2026-10-17

Purpose
- Run `python -m buildplan_orchestrator` import/execute/status/report end to end.
- Verify exit codes and the persistent side effects of a run: request records,
  the binding report and the asset index documents.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

REGISTRY_TEXT = """\
behaviours:
  GameManager:
    fields:
      - {name: playerPrefab, kind: game_object}
"""

PLAN_TEXT = """Here is the plan:

```json
{
  "featureRequests": [
    {"id": "script_mover", "type": "script", "name": "Mover", "path": "Scripts"},
    {"id": "prefab_player", "type": "prefab", "name": "Player", "path": "Prefabs",
     "dependsOn": ["script_mover"]},
    {"id": "script_manager", "type": "script", "name": "GameManager", "path": "Scripts"},
    {"id": "scene_main", "type": "scene", "name": "Main", "path": "Scenes/Main.unity",
     "dependsOn": ["prefab_player", "script_manager"]},
  ]
}
```
"""


def _run_cli(workspace: Path, *args: str) -> subprocess.CompletedProcess[str]:
    env = {key: value for key, value in os.environ.items() if not key.startswith("BUILDPLAN_")}
    existing_pythonpath = env.get("PYTHONPATH")
    src_pythonpath = str(SRC_PATH)
    env["PYTHONPATH"] = (
        src_pythonpath if not existing_pythonpath else f"{src_pythonpath}:{existing_pythonpath}"
    )
    return subprocess.run(
        [sys.executable, "-m", "buildplan_orchestrator", *args],
        cwd=workspace,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )


def _seed(workspace: Path) -> None:
    (workspace / "buildplan.toml").write_text(
        '[project]\nworkspace = "."\n\n[hydration]\nregistry_path = "registry.yaml"\n',
        encoding="utf-8",
    )
    (workspace / "registry.yaml").write_text(REGISTRY_TEXT, encoding="utf-8")
    (workspace / "plan.md").write_text(PLAN_TEXT, encoding="utf-8")


def _last_json(stdout: str) -> dict[str, object]:
    return json.loads(stdout.strip().splitlines()[-1])


def test_import_execute_status_report_round_trip(tmp_path: Path) -> None:
    _seed(tmp_path)

    imported = _run_cli(tmp_path, "import", "plan.md")
    assert imported.returncode == 0, imported.stderr
    assert "Total: 5" in imported.stdout

    executed = _run_cli(tmp_path, "execute", "--json")
    assert executed.returncode == 0, executed.stderr
    summary = _last_json(executed.stdout)["summary"]
    assert isinstance(summary, dict)
    assert summary["scheduled"] == 5
    assert summary["done"] == 5
    assert summary["blocked"] == 0

    status = _run_cli(tmp_path, "status", "--json")
    assert status.returncode == 0, status.stderr
    assert _last_json(status.stdout)["counts"] == {
        "todo": 0,
        "in_progress": 0,
        "done": 5,
        "blocked": 0,
    }

    plan_dir = tmp_path / "Assets" / "Plan"
    assert (plan_dir / "SceneBindingIndex.md").is_file()
    assert "Mover" in (plan_dir / "ScriptIndex.md").read_text(encoding="utf-8")

    report = _run_cli(tmp_path, "report")
    assert report.returncode == 0, report.stderr
    assert "## Main (Assets/Project/Scenes/Main.unity)" in report.stdout
    assert "GameManager.playerPrefab -> " in report.stdout


def test_execute_rerun_skips_done_requests(tmp_path: Path) -> None:
    _seed(tmp_path)
    assert _run_cli(tmp_path, "import", "plan.md").returncode == 0
    assert _run_cli(tmp_path, "execute").returncode == 0

    rerun = _run_cli(tmp_path, "execute", "--json")

    assert rerun.returncode == 0, rerun.stderr
    summary = _last_json(rerun.stdout)["summary"]
    assert isinstance(summary, dict)
    assert summary["scheduled"] == 5
    assert summary["skipped"] == 5
    assert summary["done"] == 0


def test_unknown_stage_is_a_config_error(tmp_path: Path) -> None:
    _seed(tmp_path)
    assert _run_cli(tmp_path, "import", "plan.md").returncode == 0

    result = _run_cli(tmp_path, "execute", "--stage", "audio")

    assert result.returncode == 2
    assert "audio" in result.stderr
