"""Shell command abstractions for the tools driven by ``constellation apply``.

This package is organized into specialized modules for each tool:

- helm: Helm release management
- kubectl: Kubernetes resource management
- terraform: Infrastructure provisioning

Usage:
    from constellation.deployment.shell_commands import ShellCommands

    commands = ShellCommands(workspace=Path("."))
    commands.helm.upgrade_install("cilium", "charts/cilium", "kube-system")
"""

from pathlib import Path

from .helm import HelmCommands
from .kubectl import KubectlCommands
from .runner import CommandRunner
from .terraform import TerraformCommands
from .types import CommandResult


class ShellCommands:
    """Unified interface for all shell command operations.

    Attributes:
        helm: Helm-related commands
        kubectl: Kubernetes kubectl commands
        terraform: Terraform commands
    """

    def __init__(self, workspace: Path) -> None:
        """Initialize the shell commands executor.

        Args:
            workspace: Path to the workspace directory.
                       Commands will be executed from this directory by default.
        """
        self._workspace = Path(workspace)
        self.runner = CommandRunner(self._workspace)

        self.helm = HelmCommands(self.runner)
        self.kubectl = KubectlCommands(self.runner)
        self.terraform = TerraformCommands(self.runner)

    @property
    def workspace(self) -> Path:
        """Get the workspace path."""
        return self._workspace


__all__ = [
    "ShellCommands",
    "CommandResult",
    "HelmCommands",
    "KubectlCommands",
    "TerraformCommands",
    "CommandRunner",
]
