"""Tests for the ``constellation apply`` command."""

from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger
from typer.testing import CliRunner

from constellation.apply.errors import ProvisionError
from constellation.apply.pipeline import Collaborators
from constellation.cli import app
from constellation.state.models import ClusterState
from constellation.state.store import FileStateStore

ALL_PHASES = "infrastructure,init,attestationconfig,certsans,helm,k8s,image"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger.remove()


def _apply(workspace: Path, *args: str, input: str | None = None):
    return runner.invoke(app, ["-C", str(workspace), "apply", *args], input=input)


def test_skip_all_phases_succeeds(workspace: Path, initialized_state: ClusterState):
    FileStateStore(workspace).save(initialized_state)

    result = _apply(workspace, "--skip-phases", ALL_PHASES, "--yes")

    assert result.exit_code == 0, result.output
    assert "Apply completed" in result.output


def test_workspace_option_overrides_cwd(
    workspace: Path,
    tmp_path_factory: pytest.TempPathFactory,
    monkeypatch: pytest.MonkeyPatch,
    initialized_state: ClusterState,
    collaborators: Collaborators,
):
    FileStateStore(workspace).save(initialized_state)
    monkeypatch.chdir(tmp_path_factory.mktemp("elsewhere"))

    with patch(
        "constellation.cli.commands.apply.build_collaborators",
        return_value=collaborators,
    ) as mock_build:
        result = _apply(
            workspace,
            "--skip-phases",
            "infrastructure,init,attestationconfig,helm,k8s,image",
            "--yes",
        )

    assert result.exit_code == 0, result.output
    assert mock_build.call_args[0][1] == workspace.resolve()
    collaborators.san_updater.update_sans.assert_called_once_with(
        initialized_state.infrastructure.api_server_cert_sans
    )


def test_unknown_phase_exits_with_error(workspace: Path):
    result = _apply(workspace, "--skip-phases", "infrastructure,bogus", "--yes")

    assert result.exit_code == 1
    assert "bogus" in result.output


def test_invalid_timeout_exits_with_error(workspace: Path):
    result = _apply(workspace, "--timeout", "soon", "--yes")

    assert result.exit_code == 1
    assert "Invalid timeout" in result.output


def test_missing_state_with_infrastructure_skipped(workspace: Path):
    result = _apply(workspace, "--skip-phases", ALL_PHASES, "--yes")

    assert result.exit_code == 1


def test_declined_confirmation_cancels(workspace: Path):
    with patch("constellation.cli.commands.apply.build_collaborators") as mock_build:
        result = _apply(workspace, input="n\n")

    assert result.exit_code == 0
    assert "Apply cancelled" in result.output
    mock_build.assert_not_called()


def test_upgrade_runs_helm_phase(
    workspace: Path, initialized_state: ClusterState, collaborators: Collaborators
):
    FileStateStore(workspace).save(initialized_state)

    with patch(
        "constellation.cli.commands.apply.build_collaborators",
        return_value=collaborators,
    ):
        result = _apply(
            workspace,
            "--skip-phases",
            "infrastructure,init,attestationconfig,k8s,image",
            "--skip-helm-wait",
            "--timeout",
            "10m",
            "--yes",
        )

    assert result.exit_code == 0, result.output
    collaborators.san_updater.update_sans.assert_called_once()
    collaborators.helm_applier.save_charts.assert_called_once()
    collaborators.helm_executor.upgrade.assert_called_once()


def test_phase_failure_exits_with_error(workspace: Path, collaborators: Collaborators):
    collaborators.provisioner.apply.side_effect = ProvisionError(
        "terraform apply failed", details="Error: quota exceeded"
    )

    with patch(
        "constellation.cli.commands.apply.build_collaborators",
        return_value=collaborators,
    ):
        result = _apply(
            workspace,
            "--skip-phases",
            "init,attestationconfig,certsans,helm,k8s,image",
            "--yes",
        )

    assert result.exit_code == 1
    assert "Phase 'infrastructure' failed" in result.output
    collaborators.initializer.init.assert_not_called()


def test_interrupt_exits_130(workspace: Path):
    with patch(
        "constellation.cli.commands.apply.load_config", side_effect=KeyboardInterrupt
    ):
        result = _apply(workspace, "--yes")

    assert result.exit_code == 130


def test_invalid_tf_log_is_a_usage_error(workspace: Path):
    result = runner.invoke(app, ["--tf-log", "verbose", "-C", str(workspace), "apply"])

    assert result.exit_code == 2
