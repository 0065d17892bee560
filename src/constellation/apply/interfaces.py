"""Collaborator interfaces consumed by the apply pipeline.

The pipeline depends only on these abstract classes. Each has one
implementation backed by the real tool (see ``constellation.deployment``)
and can be replaced by a test double.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from constellation.config.models import ClusterConfig, HelmReleaseSpec
    from constellation.state.models import ClusterState, Infrastructure

    from .flags import WaitMode


@dataclass(frozen=True)
class CustomResourceDefinition:
    """A CRD found in the cluster during backup."""

    name: str
    group: str
    plural: str
    storage_version: str


# =============================================================================
# State
# =============================================================================


class StateStore(ABC):
    """Persistence of the ClusterState between invocations."""

    @abstractmethod
    def load(self) -> ClusterState:
        """Load the state.

        Raises:
            StateNotFoundError: If no state was saved yet
        """
        ...

    @abstractmethod
    def save(self, state: ClusterState) -> None:
        """Persist the state.

        Raises:
            StateWriteError: If the state could not be written
        """
        ...


# =============================================================================
# Phase collaborators
# =============================================================================


class InfrastructureProvisioner(ABC):
    """Creates or updates the cloud resources (Infrastructure phase)."""

    @abstractmethod
    def apply(self, config: ClusterConfig) -> Infrastructure:
        """Provision infrastructure and return the resulting facts.

        Raises:
            ProvisionError: If provisioning failed
        """
        ...


class ClusterInitializer(ABC):
    """Bootstraps the first control plane node (Init phase)."""

    @abstractmethod
    def init(self, state: ClusterState) -> ClusterState:
        """Initialize the cluster and return the state with its identity.

        Raises:
            InitError: If initialization failed
        """
        ...


class AttestationReconciler(ABC):
    """Keeps the in-cluster attestation policy in sync (AttestationConfig phase)."""

    @abstractmethod
    def reconcile(self, policy: Mapping[str, Any]) -> None:
        """Raises PolicyError on failure."""
        ...


class CertSANUpdater(ABC):
    """Extends the API server certificate SANs (CertSANs phase)."""

    @abstractmethod
    def update_sans(self, sans: Sequence[str]) -> None:
        """Raises UpdateError on failure."""
        ...


class HelmApplier(ABC):
    """Access to the Helm releases managed by the Helm phase."""

    @abstractmethod
    def save_charts(self, dest: Path) -> None:
        """Save the current state of every managed release below ``dest``."""
        ...


class HelmUpgradeExecutor(ABC):
    """Installs or upgrades the Helm releases.

    Under ``WaitMode.ATOMIC`` the call blocks until every resource is ready
    and rolls the release back if that does not happen within ``timeout``;
    a timeout raises ``HelmTimeoutError``, any other failure
    ``HelmApplyError``. Under ``WaitMode.NONE`` the call returns as soon as
    the release was accepted, without waiting or rolling back.
    """

    @abstractmethod
    def upgrade(
        self,
        releases: Sequence[HelmReleaseSpec],
        wait_mode: WaitMode,
        timeout: timedelta,
    ) -> None: ...


class BackupClient(ABC):
    """Exports custom resources before an upgrade."""

    @abstractmethod
    def backup_crds(self, dest: Path) -> list[CustomResourceDefinition]:
        """Save all CRDs below ``dest`` and return them."""
        ...

    @abstractmethod
    def backup_crs(self, crds: Sequence[CustomResourceDefinition], dest: Path) -> None:
        """Save every custom resource of ``crds`` below ``dest``."""
        ...


class KubernetesUpgrader(ABC):
    """Upgrades the Kubernetes components (K8s phase)."""

    @abstractmethod
    def upgrade(self, version: str, force: bool = False) -> None:
        """Raises UpgradeError on failure."""
        ...


class ImageUpgrader(ABC):
    """Upgrades the node OS image (Image phase)."""

    @abstractmethod
    def upgrade(self, image: str, force: bool = False) -> None:
        """Raises UpgradeError on failure."""
        ...
