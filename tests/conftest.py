from pathlib import Path
from unittest.mock import MagicMock

import pytest

from constellation.apply.interfaces import (
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
from constellation.apply.pipeline import Collaborators
from constellation.state.models import GCP, ClusterState, ClusterValues, Infrastructure


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace directory."""
    return tmp_path


@pytest.fixture
def initialized_state() -> ClusterState:
    """State of a running GCP cluster."""
    return ClusterState(
        infrastructure=Infrastructure(
            uid="uid",
            name="constell-uid",
            cluster_endpoint="192.0.2.1:6443",
            in_cluster_endpoint="10.9.0.1:6443",
            init_secret=b"secret",
            api_server_cert_sans=["192.0.2.1", "constell.example.com"],
            ip_cidr_node="192.168.178.0/24",
            gcp=GCP(project_id="project", ip_cidr_pod="10.10.0.0/16"),
        ),
        cluster_values=ClusterValues(
            cluster_id="cluster-id",
            owner_id="owner-id",
            measurement_salt=b"salt",
        ),
    )


@pytest.fixture
def mock_store() -> MagicMock:
    return MagicMock(spec=StateStore)


@pytest.fixture
def collaborators() -> Collaborators:
    """One spec'd MagicMock per phase collaborator."""
    backup_client = MagicMock(spec=BackupClient)
    backup_client.backup_crds.return_value = []
    return Collaborators(
        provisioner=MagicMock(spec=InfrastructureProvisioner),
        initializer=MagicMock(spec=ClusterInitializer),
        attestation=MagicMock(spec=AttestationReconciler),
        san_updater=MagicMock(spec=CertSANUpdater),
        helm_applier=MagicMock(spec=HelmApplier),
        helm_executor=MagicMock(spec=HelmUpgradeExecutor),
        backup_client=backup_client,
        k8s_upgrader=MagicMock(spec=KubernetesUpgrader),
        image_upgrader=MagicMock(spec=ImageUpgrader),
    )
