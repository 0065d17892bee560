"""Cluster facing adapters driven through kubectl.

- ClusterResourceManager: CRD/CR backup, the attestation policy in the
  join-config ConfigMap and the API server certificate SANs
- KubernetesVersionUpgrader, NodeImageUpgrader: update the NodeVersion
  resource that the in-cluster operator reconciles
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml  # type: ignore[import-untyped]
from loguru import logger

from constellation.apply.errors import BackupError, PolicyError, UpdateError, UpgradeError
from constellation.apply.interfaces import (
    AttestationReconciler,
    BackupClient,
    CertSANUpdater,
    CustomResourceDefinition,
    ImageUpgrader,
    KubernetesUpgrader,
)

from .constants import DeploymentConstants

if TYPE_CHECKING:
    from .shell_commands import ShellCommands

_VERSION_PATTERN = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")

# Fields populated by the API server, dropped so a backup can be re-applied
_SERVER_METADATA = ("managedFields", "resourceVersion", "uid", "creationTimestamp", "generation")


def parse_version(value: str) -> tuple[int, int, int] | None:
    """Extract the last ``major.minor.patch`` triple from a version or image reference."""
    matches = _VERSION_PATTERN.findall(value)
    if not matches:
        return None
    major, minor, patch = matches[-1]
    return int(major), int(minor), int(patch)


def _strip_server_metadata(obj: dict[str, Any]) -> dict[str, Any]:
    metadata = obj.get("metadata", {})
    for key in _SERVER_METADATA:
        metadata.pop(key, None)
    return obj


class ClusterResourceManager(BackupClient, AttestationReconciler, CertSANUpdater):
    """Reads and writes cluster resources that are not managed by Helm."""

    def __init__(
        self,
        commands: ShellCommands,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.commands = commands
        self.constants = constants or DeploymentConstants()

    # =========================================================================
    # Backup
    # =========================================================================

    def backup_crds(self, dest: Path) -> list[CustomResourceDefinition]:
        """Write every CRD to ``dest/crds/<name>.yaml``.

        Raises:
            BackupError: If the CRDs could not be listed
        """
        result, crd_list = self.commands.kubectl.get_json("customresourcedefinitions")
        if not result.success:
            raise BackupError("Failed to list CRDs", details=result.output)

        crd_dir = dest / "crds"
        crd_dir.mkdir(parents=True, exist_ok=True)

        crds: list[CustomResourceDefinition] = []
        for item in crd_list.get("items", []):
            spec = item.get("spec", {})
            storage_version = next(
                (v["name"] for v in spec.get("versions", []) if v.get("storage")),
                "",
            )
            crd = CustomResourceDefinition(
                name=item["metadata"]["name"],
                group=spec.get("group", ""),
                plural=spec.get("names", {}).get("plural", ""),
                storage_version=storage_version,
            )
            item.pop("status", None)
            with open(crd_dir / f"{crd.name}.yaml", "w") as f:
                yaml.safe_dump(_strip_server_metadata(item), f, sort_keys=False)
            crds.append(crd)

        logger.debug(f"Backed up {len(crds)} CRD(s) to {crd_dir}")
        return crds

    def backup_crs(self, crds: Sequence[CustomResourceDefinition], dest: Path) -> None:
        """Write every custom resource of ``crds`` below ``dest``.

        Resources land in ``<group>/<version>/<namespace>/<plural>/<name>.yaml``,
        cluster scoped ones use the namespace directory ``_cluster``.

        Raises:
            BackupError: If the resources of a CRD could not be listed
        """
        for crd in crds:
            resource = f"{crd.plural}.{crd.group}"
            result, cr_list = self.commands.kubectl.get_json(
                resource, all_namespaces=True
            )
            if not result.success:
                raise BackupError(
                    f"Failed to list custom resources of {crd.name}",
                    details=result.output,
                )

            items = cr_list.get("items", [])
            for item in items:
                metadata = item.get("metadata", {})
                namespace = metadata.get("namespace") or "_cluster"
                target = dest / crd.group / crd.storage_version / namespace / crd.plural
                target.mkdir(parents=True, exist_ok=True)
                with open(target / f"{metadata['name']}.yaml", "w") as f:
                    yaml.safe_dump(_strip_server_metadata(item), f, sort_keys=False)
            logger.debug(f"Backed up {len(items)} resource(s) of {crd.name}")

    # =========================================================================
    # Attestation
    # =========================================================================

    def reconcile(self, policy: Mapping[str, Any]) -> None:
        """Write ``policy`` to the join-config ConfigMap if it differs.

        Raises:
            PolicyError: If the ConfigMap could not be written
        """
        c = self.constants
        encoded = json.dumps(dict(policy), sort_keys=True)
        current = self.commands.kubectl.get_configmap(c.JOIN_CONFIG_MAP, c.SYSTEM_NAMESPACE)
        if current is not None and current.get(c.JOIN_CONFIG_KEY) == encoded:
            logger.info("Attestation policy is up to date")
            return

        data = dict(current or {})
        data[c.JOIN_CONFIG_KEY] = encoded
        result = self.commands.kubectl.apply_manifest(
            self._configmap_manifest(c.JOIN_CONFIG_MAP, c.SYSTEM_NAMESPACE, data)
        )
        if not result.success:
            raise PolicyError("Failed to update the attestation policy", details=result.output)
        logger.info("Attestation policy updated")

    # =========================================================================
    # Certificate SANs
    # =========================================================================

    def update_sans(self, sans: Sequence[str]) -> None:
        """Add ``sans`` to the API server certificate SANs of the kubeadm config.

        Existing SANs are kept.

        Raises:
            UpdateError: If the kubeadm config could not be read or written
        """
        c = self.constants
        current = self.commands.kubectl.get_configmap(
            c.KUBEADM_CONFIG_MAP, c.SYSTEM_NAMESPACE
        )
        if current is None or c.KUBEADM_CLUSTER_CONFIG_KEY not in current:
            raise UpdateError(
                "Failed to read the kubeadm ClusterConfiguration",
                details=f"ConfigMap {c.SYSTEM_NAMESPACE}/{c.KUBEADM_CONFIG_MAP} is "
                "missing or unreadable.",
            )

        try:
            cluster_config = yaml.safe_load(current[c.KUBEADM_CLUSTER_CONFIG_KEY]) or {}
        except yaml.YAMLError as e:
            raise UpdateError("Invalid kubeadm ClusterConfiguration", details=str(e)) from e

        api_server = cluster_config.setdefault("apiServer", {})
        existing: list[str] = list(api_server.get("certSANs") or [])
        missing = [san for san in sans if san not in existing]
        if not missing:
            logger.info("API server certificate SANs are up to date")
            return

        api_server["certSANs"] = existing + missing
        data = dict(current)
        data[c.KUBEADM_CLUSTER_CONFIG_KEY] = yaml.safe_dump(cluster_config, sort_keys=False)
        result = self.commands.kubectl.apply_manifest(
            self._configmap_manifest(c.KUBEADM_CONFIG_MAP, c.SYSTEM_NAMESPACE, data)
        )
        if not result.success:
            raise UpdateError("Failed to update certificate SANs", details=result.output)
        logger.info(f"Added certificate SANs: {', '.join(missing)}")

    @staticmethod
    def _configmap_manifest(name: str, namespace: str, data: Mapping[str, str]) -> str:
        manifest = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "namespace": namespace},
            "data": dict(data),
        }
        return yaml.safe_dump(manifest, sort_keys=False)


class NodeVersionUpgrader:
    """Shared access to the NodeVersion resource."""

    def __init__(
        self,
        commands: ShellCommands,
        constants: DeploymentConstants | None = None,
    ) -> None:
        self.commands = commands
        self.constants = constants or DeploymentConstants()

    def get_spec(self) -> dict[str, Any]:
        """Read the spec of the NodeVersion resource.

        Raises:
            UpgradeError: If the resource could not be read
        """
        c = self.constants
        result, obj = self.commands.kubectl.get_json(
            c.NODE_VERSION_RESOURCE, c.NODE_VERSION_NAME
        )
        if not result.success or not obj:
            raise UpgradeError(
                f"Failed to read NodeVersion '{c.NODE_VERSION_NAME}'",
                details=result.output,
            )
        spec: dict[str, Any] = obj.get("spec", {})
        return spec

    def patch_spec(self, spec: dict[str, Any]) -> None:
        c = self.constants
        result = self.commands.kubectl.patch(
            c.NODE_VERSION_RESOURCE, c.NODE_VERSION_NAME, {"spec": spec}
        )
        if not result.success:
            raise UpgradeError(
                f"Failed to update NodeVersion '{c.NODE_VERSION_NAME}'",
                details=result.output,
            )

    def check_target(self, kind: str, current: str, target: str, force: bool) -> bool:
        """Validate an upgrade from ``current`` to ``target``.

        Returns:
            False if the cluster already runs ``target``

        Raises:
            UpgradeError: On a downgrade, unless ``force`` is set
        """
        if current == target:
            logger.info(f"{kind} is already at {target}")
            return False

        current_version = parse_version(current)
        target_version = parse_version(target)
        if current_version is None or target_version is None:
            logger.warning(f"Cannot compare {kind} versions {current!r} and {target!r}")
            return True

        if target_version < current_version and not force:
            raise UpgradeError(
                f"Refusing to downgrade {kind} from {current} to {target}",
                details="Use --force to skip this check.",
            )
        return True


class KubernetesVersionUpgrader(NodeVersionUpgrader, KubernetesUpgrader):
    """Upgrades the Kubernetes version of the cluster.

    A single invocation may only raise the minor version by one.
    """

    def upgrade(self, version: str, force: bool = False) -> None:
        spec = self.get_spec()
        current = spec.get("kubernetesClusterVersion", "")
        if not self.check_target("Kubernetes", current, version, force):
            return

        current_version = parse_version(current)
        target_version = parse_version(version)
        if (
            not force
            and current_version is not None
            and target_version is not None
            and target_version[0] == current_version[0]
            and target_version[1] > current_version[1] + 1
        ):
            raise UpgradeError(
                f"Kubernetes can only be upgraded by one minor version at a time, "
                f"from {current} to {version}",
                details="Use --force to skip this check.",
            )

        self.patch_spec({"kubernetesClusterVersion": version})
        logger.info(f"Kubernetes upgrade to {version} scheduled")


class NodeImageUpgrader(NodeVersionUpgrader, ImageUpgrader):
    """Upgrades the OS image of the nodes."""

    def upgrade(self, image: str, force: bool = False) -> None:
        spec = self.get_spec()
        current = spec.get("imageReference", "")
        if not self.check_target("Node image", current, image, force):
            return

        patch: dict[str, Any] = {"imageReference": image}
        version = parse_version(image)
        if version is not None:
            patch["imageVersion"] = "v{}.{}.{}".format(*version)
        self.patch_spec(patch)
        logger.info(f"Node image upgrade to {image} scheduled")
