"""Adapters that drive the real tools during ``constellation apply``.

- shell_commands: Helm, kubectl and Terraform command wrappers
- infrastructure: Terraform provisioner
- bootstrap: Cluster initialization
- helm_release: Helm chart backup and upgrades
- cluster_upgrader: CRD/CR backup, attestation policy, SANs, NodeVersion
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from constellation.apply.pipeline import Collaborators
from constellation.config.models import ClusterConfig

from .bootstrap import BootstrapInitializer
from .cluster_upgrader import (
    ClusterResourceManager,
    KubernetesVersionUpgrader,
    NodeImageUpgrader,
)
from .constants import DeploymentConstants
from .helm_release import HelmReleaseManager
from .infrastructure import TerraformProvisioner, validate_endpoint
from .shell_commands import ShellCommands


def build_collaborators(
    commands: ShellCommands,
    workspace: Path,
    cluster_config: ClusterConfig,
    *,
    tf_log: str = "NONE",
    on_output: Callable[[str], None] | None = None,
) -> Collaborators:
    """Wire the real adapters for one workspace."""
    constants = DeploymentConstants()
    helm = HelmReleaseManager(
        commands, cluster_config.helm_releases, constants, on_output=on_output
    )
    resources = ClusterResourceManager(commands, constants)
    return Collaborators(
        provisioner=TerraformProvisioner(
            commands, workspace, tf_log=tf_log, constants=constants, on_output=on_output
        ),
        initializer=BootstrapInitializer(commands, cluster_config.bootstrap_command),
        attestation=resources,
        san_updater=resources,
        helm_applier=helm,
        helm_executor=helm,
        backup_client=resources,
        k8s_upgrader=KubernetesVersionUpgrader(commands, constants),
        image_upgrader=NodeImageUpgrader(commands, constants),
    )


__all__ = [
    "build_collaborators",
    "BootstrapInitializer",
    "ClusterResourceManager",
    "DeploymentConstants",
    "HelmReleaseManager",
    "KubernetesVersionUpgrader",
    "NodeImageUpgrader",
    "ShellCommands",
    "TerraformProvisioner",
    "validate_endpoint",
]
