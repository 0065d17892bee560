"""Pre-upgrade backup of Helm releases and custom resources.

Before the Helm phase mutates a running cluster, the current chart state is
saved and, for upgrades, every CRD and its custom resources are exported.
The artifact is left on disk so an operator can roll back by hand if the
upgrade goes wrong. A backup is only reported once every required step
succeeded; any failure aborts the Helm phase before the upgrade starts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from loguru import logger

from .errors import ChartBackupError, CRBackupError, CRDBackupError
from .interfaces import BackupClient, CustomResourceDefinition, HelmApplier

UPGRADE_DIR = "constellation-upgrade"
CHARTS_DIR = "helm-charts"
BACKUPS_DIR = "backups"


def new_upgrade_dir(workspace: Path, now: datetime | None = None) -> Path:
    """Return a fresh, timestamped backup location inside the workspace."""
    timestamp = (now or datetime.now()).strftime("%Y-%m-%d-%H-%M-%S")
    return Path(workspace) / UPGRADE_DIR / timestamp


@dataclass(frozen=True)
class BackupArtifact:
    """A completed backup on disk.

    Attributes:
        path: Root directory of the backup
        charts_dir: Saved Helm release state
        crd_dir: Exported CRDs and CRs, None if this was not an upgrade
        crds: The CRDs that were exported
    """

    path: Path
    charts_dir: Path
    crd_dir: Path | None = None
    crds: tuple[CustomResourceDefinition, ...] = field(default_factory=tuple)


class BackupCoordinator:
    """Runs the backup steps in order, stopping at the first failure."""

    def __init__(self, helm_applier: HelmApplier, backup_client: BackupClient) -> None:
        self.helm_applier = helm_applier
        self.backup_client = backup_client

    def backup(self, includes_upgrades: bool, upgrade_dir: Path) -> BackupArtifact:
        """Back up the cluster before a Helm upgrade.

        Args:
            includes_upgrades: Whether an already running cluster is being
                upgraded. Only then are CRDs and CRs exported.
            upgrade_dir: Directory that receives the backup

        Returns:
            The completed backup

        Raises:
            ChartBackupError: Saving the charts failed, nothing else was tried
            CRDBackupError: Exporting CRDs failed, CRs were not exported
            CRBackupError: Exporting CRs failed
        """
        charts_dir = upgrade_dir / CHARTS_DIR
        logger.debug(f"Saving Helm charts to {charts_dir}")
        try:
            self.helm_applier.save_charts(charts_dir)
        except Exception as e:
            raise ChartBackupError(
                f"Saving Helm charts failed: {e}", details=getattr(e, "details", None)
            ) from e

        if not includes_upgrades:
            return BackupArtifact(path=upgrade_dir, charts_dir=charts_dir)

        crd_dir = upgrade_dir / BACKUPS_DIR
        logger.debug(f"Backing up CRDs to {crd_dir}")
        try:
            crds = self.backup_client.backup_crds(crd_dir)
        except Exception as e:
            raise CRDBackupError(
                f"Backing up CRDs failed: {e}", details=getattr(e, "details", None)
            ) from e

        logger.debug(f"Backing up custom resources of {len(crds)} CRD(s)")
        try:
            self.backup_client.backup_crs(crds, crd_dir)
        except Exception as e:
            raise CRBackupError(
                f"Backing up CRs failed: {e}", details=getattr(e, "details", None)
            ) from e

        logger.info(f"Backup of Helm charts and custom resources written to {upgrade_dir}")
        return BackupArtifact(
            path=upgrade_dir,
            charts_dir=charts_dir,
            crd_dir=crd_dir,
            crds=tuple(crds),
        )
