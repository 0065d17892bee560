"""Helm command abstractions.

This module provides commands for Helm release upgrades and for reading
the state of deployed releases.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class HelmCommands:
    """Helm-related shell commands.

    Provides operations for:
    - Release management (upgrade)
    - Release retrieval (get values, get manifest)
    """

    def __init__(self, runner: CommandRunner) -> None:
        """Initialize Helm commands.

        Args:
            runner: Command runner for executing shell commands
        """
        self._runner = runner

    # =========================================================================
    # Release Management
    # =========================================================================

    def upgrade_install(
        self,
        release_name: str,
        chart: str,
        namespace: str,
        *,
        value_files: Sequence[str | Path] | None = None,
        timeout: str = "300s",
        wait: bool = True,
        on_output: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Deploy or upgrade a Helm release.

        Uses `helm upgrade --install` to idempotently deploy a chart.
        When ``wait`` is set the release is atomic: Helm waits for the
        resources to become ready and rolls back if they do not within
        ``timeout``. Without ``wait`` Helm returns once the manifests are
        submitted.

        Args:
            release_name: Name for the Helm release (e.g., "cilium")
            chart: Chart reference or path to the chart directory
            namespace: Kubernetes namespace for deployment
            value_files: Optional list of values.yaml override files
            timeout: Maximum time to wait, as a Helm duration (e.g., "300s")
            wait: Whether to wait for resources and roll back on failure
            on_output: Optional callback for real-time output streaming.

        Returns:
            CommandResult with deployment status
        """
        cmd = [
            "helm",
            "upgrade",
            "--install",
            release_name,
            str(chart),
            "--namespace",
            namespace,
        ]

        if wait:
            cmd.append("--wait")
            cmd.append("--rollback-on-failure")
        cmd.extend(["--timeout", timeout])

        for vf in value_files or []:
            cmd.extend(["-f", str(vf)])

        if on_output:
            return self._runner.run_streaming(cmd, on_output=on_output)
        return self._runner.run(cmd, capture_output=True)

    # =========================================================================
    # Release Retrieval
    # =========================================================================

    def get_manifest(self, release_name: str, namespace: str) -> CommandResult:
        """Get the rendered manifest of a deployed release."""
        return self._runner.run(
            ["helm", "get", "manifest", release_name, "-n", namespace]
        )

    def get_values(self, release_name: str, namespace: str) -> CommandResult:
        """Get the user supplied values of a deployed release as YAML."""
        return self._runner.run(
            ["helm", "get", "values", release_name, "-n", namespace, "-o", "yaml"]
        )
