"""Exit-code routing at the process boundary."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from buildplan_orchestrator.config.loader import ConfigLoadError
from buildplan_orchestrator.main import ExitCode, cli_entrypoint
from buildplan_orchestrator.planning.plan_document import PlanParseError


def _raising(exc: BaseException):
    def _run(argv: Sequence[str] | None = None) -> int:
        raise exc

    return _run


def test_exit_code_values_are_stable() -> None:
    assert [int(code) for code in ExitCode] == [0, 1, 2, 3, 130]


def test_missing_config_maps_to_config_error(tmp_path: Path) -> None:
    assert cli_entrypoint(["status", "--config", str(tmp_path / "none.toml")]) == ExitCode.CONFIG_ERROR


def test_argparse_usage_error_keeps_its_code(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint([]) == ExitCode.CONFIG_ERROR
    assert "usage:" in capsys.readouterr().err


@pytest.mark.parametrize(
    ("exc", "expected", "message"),
    [
        (ConfigLoadError("bad toml"), ExitCode.CONFIG_ERROR, "bad toml"),
        (PlanParseError("plan text is empty"), ExitCode.PLAN_ERROR, "plan text is empty"),
        (KeyboardInterrupt(), ExitCode.CANCELLED, "cancelled"),
        (SystemExit("stopped"), ExitCode.FAILURE, "stopped"),
    ],
)
def test_exceptions_route_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    exc: BaseException,
    expected: ExitCode,
    message: str,
) -> None:
    monkeypatch.setattr("buildplan_orchestrator.ui.cli.run_cli", _raising(exc))

    assert cli_entrypoint(["status"]) == expected
    assert capsys.readouterr().err.strip() == message


def test_chained_plan_error_is_found_through_cause(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    try:
        try:
            raise PlanParseError("phases[0] must be an object")
        except PlanParseError as inner:
            raise RuntimeError("import failed") from inner
    except RuntimeError as outer:
        wrapped = outer
    monkeypatch.setattr("buildplan_orchestrator.ui.cli.run_cli", _raising(wrapped))

    assert cli_entrypoint(["status"]) == ExitCode.PLAN_ERROR
    assert capsys.readouterr().err.strip() == "import failed"


def test_unexpected_error_prints_traceback(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr("buildplan_orchestrator.ui.cli.run_cli", _raising(ValueError("boom")))

    assert cli_entrypoint(["status"]) == ExitCode.FAILURE
    err = capsys.readouterr().err
    assert "Traceback" in err
    assert "ValueError: boom" in err


def test_unknown_integer_codes_collapse_to_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("buildplan_orchestrator.ui.cli.run_cli", lambda argv=None: 42)

    assert cli_entrypoint(["status"]) == ExitCode.FAILURE
