"""Wiring of the phase collaborators into the apply pipeline.

ApplyOrchestrator turns the collaborators into one handler per phase, loads
the ClusterState, decides whether this invocation upgrades an already
running cluster and hands everything to the PhaseRunner.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from constellation.config.models import ClusterConfig
from constellation.state.models import ClusterState

from .backup import BackupCoordinator, new_upgrade_dir
from .errors import PolicyError, StateNotFoundError, UpgradeError
from .flags import ApplyConfig
from .interfaces import (
    AttestationReconciler,
    BackupClient,
    CertSANUpdater,
    ClusterInitializer,
    HelmApplier,
    HelmUpgradeExecutor,
    ImageUpgrader,
    InfrastructureProvisioner,
    KubernetesUpgrader,
    StateStore,
)
from .phases import Phase
from .runner import PhaseHandler, PhaseObserver, PhaseRunner, RunReport


@dataclass(frozen=True)
class Collaborators:
    """The external systems driven by the phases."""

    provisioner: InfrastructureProvisioner
    initializer: ClusterInitializer
    attestation: AttestationReconciler
    san_updater: CertSANUpdater
    helm_applier: HelmApplier
    helm_executor: HelmUpgradeExecutor
    backup_client: BackupClient
    k8s_upgrader: KubernetesUpgrader
    image_upgrader: ImageUpgrader


class ApplyOrchestrator:
    """Runs ``constellation apply`` against one workspace."""

    def __init__(
        self,
        workspace: Path,
        store: StateStore,
        collaborators: Collaborators,
        cluster_config: ClusterConfig,
        observers: Iterable[PhaseObserver] = (),
    ) -> None:
        self.workspace = Path(workspace)
        self.store = store
        self.collaborators = collaborators
        self.cluster_config = cluster_config
        self.observers = list(observers)
        self.backup = BackupCoordinator(
            collaborators.helm_applier, collaborators.backup_client
        )
        self.last_report: RunReport | None = None

    def load_state(self, config: ApplyConfig) -> ClusterState:
        """Load the state, starting from scratch when infrastructure will be created.

        Raises:
            StateNotFoundError: If there is no state and the infrastructure
                phase is skipped
        """
        try:
            return self.store.load()
        except StateNotFoundError:
            if config.skip_phases.contains(Phase.INFRASTRUCTURE):
                raise
            logger.info("No state file found, starting a new cluster")
            return ClusterState()

    def apply(self, config: ApplyConfig) -> RunReport:
        """Run every phase of the pipeline.

        Raises:
            PhaseFailedError: If a phase failed
            StateError: If the initial state could not be loaded
        """
        state = self.load_state(config)
        includes_upgrades = state.is_initialized
        if includes_upgrades:
            logger.info(
                f"Cluster {state.cluster_values.cluster_id} is already initialized, "
                "applying as an upgrade"
            )

        runner = PhaseRunner(
            self.handlers(includes_upgrades),
            store=self.store,
            observers=self.observers,
        )
        try:
            return runner.run(state, config)
        finally:
            # Also kept when the run aborted, for reporting
            self.last_report = runner.report

    def handlers(self, includes_upgrades: bool) -> dict[Phase, PhaseHandler]:
        """Build the handler of every phase."""

        def helm(state: ClusterState, config: ApplyConfig) -> None:
            self.run_helm_phase(config, includes_upgrades)

        return {
            Phase.INFRASTRUCTURE: self.run_infrastructure_phase,
            Phase.INIT: self.run_init_phase,
            Phase.ATTESTATION_CONFIG: self.run_attestation_config_phase,
            Phase.CERT_SANS: self.run_cert_sans_phase,
            Phase.HELM: helm,
            Phase.K8S: self.run_k8s_phase,
            Phase.IMAGE: self.run_image_phase,
        }

    # =========================================================================
    # Phases
    # =========================================================================

    def run_infrastructure_phase(
        self, state: ClusterState, config: ApplyConfig
    ) -> ClusterState:
        facts = self.collaborators.provisioner.apply(self.cluster_config)
        return state.merge_infrastructure(facts)

    def run_init_phase(self, state: ClusterState, config: ApplyConfig) -> ClusterState:
        return self.collaborators.initializer.init(state)

    def run_attestation_config_phase(
        self, state: ClusterState, config: ApplyConfig
    ) -> None:
        if not self.cluster_config.attestation:
            raise PolicyError(
                "No attestation policy configured",
                details="Set 'attestation' in the configuration file or skip "
                "the attestationconfig phase.",
            )
        self.collaborators.attestation.reconcile(self.cluster_config.attestation)

    def run_cert_sans_phase(self, state: ClusterState, config: ApplyConfig) -> None:
        sans: list[str] = []
        for san in [
            *state.infrastructure.api_server_cert_sans,
            *self.cluster_config.api_server_cert_sans,
        ]:
            if san and san not in sans:
                sans.append(san)
        self.collaborators.san_updater.update_sans(sans)

    def run_helm_phase(self, config: ApplyConfig, includes_upgrades: bool) -> None:
        """Back up, then upgrade the Helm releases.

        The upgrade only starts after the backup fully succeeded.
        """
        artifact = self.backup.backup(includes_upgrades, new_upgrade_dir(self.workspace))
        logger.info(f"Pre-upgrade backup stored in {artifact.path}")
        self.collaborators.helm_executor.upgrade(
            self.cluster_config.helm_releases,
            config.helm_wait_mode,
            config.upgrade_timeout,
        )

    def run_k8s_phase(self, state: ClusterState, config: ApplyConfig) -> None:
        version = self.cluster_config.kubernetes_version
        if not version:
            raise UpgradeError("No target Kubernetes version configured")
        self.collaborators.k8s_upgrader.upgrade(version, force=config.force)

    def run_image_phase(self, state: ClusterState, config: ApplyConfig) -> None:
        image = self.cluster_config.image
        if not image:
            raise UpgradeError("No target node image configured")
        self.collaborators.image_upgrader.upgrade(image, force=config.force)
