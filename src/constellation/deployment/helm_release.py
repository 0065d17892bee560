"""Helm release management.

This module saves the deployed state of the managed Helm releases before an
upgrade and installs or upgrades them under the requested wait mode.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from constellation.apply.errors import HelmApplyError, HelmTimeoutError
from constellation.apply.flags import WaitMode, format_duration
from constellation.apply.interfaces import HelmApplier, HelmUpgradeExecutor

from .constants import DeploymentConstants

if TYPE_CHECKING:
    from constellation.config.models import HelmReleaseSpec

    from .shell_commands import CommandResult, ShellCommands


class HelmReleaseManager(HelmApplier, HelmUpgradeExecutor):
    """Manages the Helm releases of the Helm phase.

    Handles:
    - Saving values and rendered manifests of deployed releases
    - Upgrades via upgrade --install, atomic or fire-and-forget
    - Classification of Helm failures into timeouts and other errors
    """

    def __init__(
        self,
        commands: ShellCommands,
        releases: Sequence[HelmReleaseSpec],
        constants: DeploymentConstants | None = None,
        on_output: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the Helm release manager.

        Args:
            commands: Shell command executor
            releases: Releases managed by the Helm phase
            constants: Optional deployment constants
            on_output: Optional callback receiving Helm output line by line
        """
        self.commands = commands
        self.releases = list(releases)
        self.constants = constants or DeploymentConstants()
        self.on_output = on_output

    def _is_not_found(self, result: CommandResult) -> bool:
        output = result.output.lower()
        return any(marker in output for marker in self.constants.HELM_NOT_FOUND_MARKERS)

    def is_timeout(self, result: CommandResult) -> bool:
        """Whether a failed Helm command ran out of time waiting for resources."""
        output = result.output.lower()
        return any(marker in output for marker in self.constants.HELM_TIMEOUT_MARKERS)

    # =========================================================================
    # Backup
    # =========================================================================

    def save_charts(self, dest: Path) -> None:
        """Save values and manifest of every deployed release below ``dest``.

        Releases that are not installed yet have nothing to save and are
        skipped.

        Raises:
            HelmApplyError: If Helm could not read a deployed release
        """
        dest.mkdir(parents=True, exist_ok=True)
        for release in self.releases:
            values = self.commands.helm.get_values(release.name, release.namespace)
            if not values.success:
                if self._is_not_found(values):
                    logger.debug(f"Release {release.name} not installed, nothing to save")
                    continue
                raise HelmApplyError(
                    f"Failed to read values of release '{release.name}'",
                    details=values.output,
                )

            manifest = self.commands.helm.get_manifest(release.name, release.namespace)
            if not manifest.success:
                raise HelmApplyError(
                    f"Failed to read manifest of release '{release.name}'",
                    details=manifest.output,
                )

            release_dir = dest / release.name
            release_dir.mkdir(parents=True, exist_ok=True)
            (release_dir / "values.yaml").write_text(values.stdout)
            (release_dir / "manifest.yaml").write_text(manifest.stdout)
            logger.debug(f"Saved release {release.name} to {release_dir}")

    # =========================================================================
    # Upgrade
    # =========================================================================

    def upgrade(
        self,
        releases: Sequence[HelmReleaseSpec],
        wait_mode: WaitMode,
        timeout: timedelta,
    ) -> None:
        """Install or upgrade ``releases`` in order, stopping at the first failure.

        Raises:
            HelmTimeoutError: If a release was not ready within ``timeout``
                under atomic wait mode. Helm rolled that release back.
            HelmApplyError: If Helm failed for any other reason
        """
        wait = wait_mode == WaitMode.ATOMIC
        helm_timeout = format_duration(timeout)

        for release in releases:
            logger.info(
                f"Applying release {release.name} "
                f"(wait={wait_mode.value}, timeout={helm_timeout})"
            )
            result = self.commands.helm.upgrade_install(
                release_name=release.name,
                chart=release.chart,
                namespace=release.namespace,
                value_files=release.values,
                timeout=helm_timeout,
                wait=wait,
                on_output=self.on_output,
            )
            if result.success:
                continue

            if wait and self.is_timeout(result):
                raise HelmTimeoutError(
                    f"Release '{release.name}' was not ready within {helm_timeout}",
                    details=(
                        f"{result.output}\n\n"
                        "Helm rolled the release back. Retry with a larger "
                        "--timeout, or with --skip-helm-wait to not wait for "
                        "the resources."
                    ),
                )
            raise HelmApplyError(
                f"Helm failed to apply release '{release.name}'",
                details=result.output,
            )
