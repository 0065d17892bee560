"""Tests for Terraform provisioning and endpoint validation."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from constellation.apply.errors import ProvisionError
from constellation.config.models import ClusterConfig
from constellation.deployment.infrastructure import TerraformProvisioner, validate_endpoint
from constellation.deployment.shell_commands.types import CommandResult

OK = CommandResult(success=True)

OUTPUTS = {
    "uid": "abc123",
    "name": "constell-abc123",
    "cluster_endpoint": "192.0.2.1",
    "in_cluster_endpoint": "10.9.0.1",
    "init_secret": "s3cr3t",
    "api_server_cert_sans": ["192.0.2.1"],
    "ip_cidr_node": "192.168.178.0/24",
    "gcp": {"project_id": "project", "ip_cidr_pod": "10.10.0.0/16"},
}


class TestValidateEndpoint:
    @pytest.mark.parametrize(
        ("endpoint", "expected"),
        [
            ("192.0.2.1", "192.0.2.1:6443"),
            ("192.0.2.1:443", "192.0.2.1:443"),
            ("constell.example.com", "constell.example.com:6443"),
            ("[2001:db8::1]", "[2001:db8::1]:6443"),
            ("[2001:db8::1]:443", "[2001:db8::1]:443"),
        ],
    )
    def test_valid(self, endpoint: str, expected: str) -> None:
        assert validate_endpoint(endpoint, 6443) == expected

    @pytest.mark.parametrize(
        "endpoint", ["", "2001:db8::1", "host:port", "[2001:db8::1", "[::1]x"]
    )
    def test_invalid(self, endpoint: str) -> None:
        with pytest.raises(ValueError):
            validate_endpoint(endpoint, 6443)


class TestTerraformProvisioner:
    @pytest.fixture
    def commands(self) -> MagicMock:
        commands = MagicMock()
        commands.terraform.init.return_value = OK
        commands.terraform.apply.return_value = OK
        commands.terraform.output.return_value = (OK, dict(OUTPUTS))
        return commands

    @pytest.fixture
    def terraform_workspace(self, workspace: Path) -> Path:
        (workspace / "constellation-terraform").mkdir()
        return workspace

    def test_apply_returns_infrastructure(
        self, commands: MagicMock, terraform_workspace: Path
    ) -> None:
        provisioner = TerraformProvisioner(commands, terraform_workspace, tf_log="DEBUG")

        infra = provisioner.apply(ClusterConfig())

        working_dir = terraform_workspace / "constellation-terraform"
        commands.terraform.init.assert_called_once_with(working_dir, tf_log="DEBUG")
        assert commands.terraform.apply.call_args[0][0] == working_dir
        assert infra.uid == "abc123"
        assert infra.cluster_endpoint == "192.0.2.1:6443"
        assert infra.in_cluster_endpoint == "10.9.0.1:6443"
        assert infra.init_secret == b"s3cr3t"
        assert infra.gcp is not None and infra.gcp.project_id == "project"
        assert infra.azure is None

    def test_missing_workspace(self, commands: MagicMock, workspace: Path) -> None:
        with pytest.raises(ProvisionError, match="workspace not found"):
            TerraformProvisioner(commands, workspace).apply(ClusterConfig())

        commands.terraform.init.assert_not_called()

    def test_apply_failure_stops_before_output(
        self, commands: MagicMock, terraform_workspace: Path
    ) -> None:
        commands.terraform.apply.return_value = CommandResult(
            success=False, stdout="Error: quota exceeded", returncode=1
        )

        with pytest.raises(ProvisionError) as excinfo:
            TerraformProvisioner(commands, terraform_workspace).apply(ClusterConfig())

        assert excinfo.value.details == "Error: quota exceeded"
        commands.terraform.output.assert_not_called()

    def test_missing_endpoint_output(
        self, commands: MagicMock, terraform_workspace: Path
    ) -> None:
        commands.terraform.output.return_value = (OK, {"uid": "abc"})

        with pytest.raises(ProvisionError, match="endpoint"):
            TerraformProvisioner(commands, terraform_workspace).apply(ClusterConfig())

    def test_name_falls_back_to_config(
        self, commands: MagicMock, terraform_workspace: Path
    ) -> None:
        outputs = dict(OUTPUTS)
        del outputs["name"]
        commands.terraform.output.return_value = (OK, outputs)

        infra = TerraformProvisioner(commands, terraform_workspace).apply(
            ClusterConfig(name="prod")
        )

        assert infra.name == "prod"
