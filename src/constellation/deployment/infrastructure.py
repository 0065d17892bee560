"""Infrastructure provisioning with Terraform."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import ValidationError

from constellation.apply.errors import ProvisionError
from constellation.apply.interfaces import InfrastructureProvisioner
from constellation.state.models import GCP, Azure, Infrastructure

from .constants import DeploymentConstants

if TYPE_CHECKING:
    from constellation.config.models import ClusterConfig

    from .shell_commands import ShellCommands


def validate_endpoint(endpoint: str, default_port: int) -> str:
    """Return ``endpoint`` as ``host:port``, adding ``default_port`` to a bare host.

    IPv6 hosts must be bracketed when they carry a port.

    Raises:
        ValueError: If the endpoint is empty or malformed
    """
    if not endpoint:
        raise ValueError("endpoint is empty")

    if endpoint.startswith("["):
        host, sep, rest = endpoint.partition("]")
        if not sep:
            raise ValueError(f"missing ']' in address {endpoint!r}")
        if not rest:
            return f"{host}]:{default_port}"
        if not rest.startswith(":") or not rest[1:].isdigit():
            raise ValueError(f"invalid port in address {endpoint!r}")
        return endpoint

    colons = endpoint.count(":")
    if colons == 0:
        return f"{endpoint}:{default_port}"
    if colons > 1:
        raise ValueError(f"too many colons in address {endpoint!r}")

    _, port = endpoint.split(":")
    if not port.isdigit():
        raise ValueError(f"invalid port in address {endpoint!r}")
    return endpoint


class TerraformProvisioner(InfrastructureProvisioner):
    """Creates or updates the cluster infrastructure from the Terraform workspace."""

    def __init__(
        self,
        commands: ShellCommands,
        workspace: Path,
        tf_log: str = "NONE",
        constants: DeploymentConstants | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> None:
        self.commands = commands
        self.constants = constants or DeploymentConstants()
        self.working_dir = Path(workspace) / self.constants.TERRAFORM_DIR
        self.tf_log = tf_log
        self.on_output = on_output

    def apply(self, config: ClusterConfig) -> Infrastructure:
        """Run ``terraform init`` and ``apply`` and read the resulting facts.

        Raises:
            ProvisionError: If Terraform failed or returned unusable outputs
        """
        if not self.working_dir.is_dir():
            raise ProvisionError(
                "Terraform workspace not found",
                details=f"Expected the Terraform configuration in {self.working_dir}",
            )

        tf = self.commands.terraform
        logger.info(f"Initializing Terraform in {self.working_dir}")
        result = tf.init(self.working_dir, tf_log=self.tf_log)
        if not result.success:
            raise ProvisionError("terraform init failed", details=result.output)

        logger.info("Applying Terraform configuration")
        result = tf.apply(self.working_dir, tf_log=self.tf_log, on_output=self.on_output)
        if not result.success:
            raise ProvisionError("terraform apply failed", details=result.output)

        result, outputs = tf.output(self.working_dir, tf_log=self.tf_log)
        if not result.success:
            raise ProvisionError("terraform output failed", details=result.output)

        return self.to_infrastructure(outputs, config)

    def to_infrastructure(
        self, outputs: Mapping[str, Any], config: ClusterConfig
    ) -> Infrastructure:
        """Convert Terraform outputs into infrastructure facts.

        Raises:
            ProvisionError: If a required output is missing or invalid
        """
        endpoint = outputs.get("cluster_endpoint")
        if not endpoint:
            raise ProvisionError(
                "Terraform did not output a cluster endpoint",
                details=f"Outputs found: {', '.join(sorted(outputs)) or 'none'}",
            )

        port = self.constants.DEFAULT_API_SERVER_PORT
        try:
            cluster_endpoint = validate_endpoint(str(endpoint), port)
            in_cluster = outputs.get("in_cluster_endpoint") or endpoint
            in_cluster_endpoint = validate_endpoint(str(in_cluster), port)
        except ValueError as e:
            raise ProvisionError("Invalid endpoint in Terraform outputs", details=str(e)) from e

        try:
            return Infrastructure(
                uid=outputs.get("uid", ""),
                name=outputs.get("name") or config.name,
                cluster_endpoint=cluster_endpoint,
                in_cluster_endpoint=in_cluster_endpoint,
                init_secret=str(outputs.get("init_secret", "")).encode(),
                api_server_cert_sans=outputs.get("api_server_cert_sans") or [],
                ip_cidr_node=outputs.get("ip_cidr_node", ""),
                azure=Azure(**outputs["azure"]) if outputs.get("azure") else None,
                gcp=GCP(**outputs["gcp"]) if outputs.get("gcp") else None,
            )
        except ValidationError as e:
            raise ProvisionError("Invalid Terraform outputs", details=str(e)) from e
