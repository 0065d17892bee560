"""Deployment constants and configuration.

This module centralizes the magic strings used by the adapters that drive
Terraform, Helm and kubectl during ``constellation apply``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DeploymentConstants:
    """Constants for the cluster facing adapters.

    All attributes are class-level and immutable.
    """

    # Kubernetes identifiers
    SYSTEM_NAMESPACE: str = "kube-system"
    NODE_VERSION_RESOURCE: str = "nodeversions.update.edgeless.systems"
    NODE_VERSION_NAME: str = "constellation-version"
    JOIN_CONFIG_MAP: str = "join-config"
    JOIN_CONFIG_KEY: str = "attestationConfig"
    KUBEADM_CONFIG_MAP: str = "kubeadm-config"
    KUBEADM_CLUSTER_CONFIG_KEY: str = "ClusterConfiguration"

    # Terraform
    TERRAFORM_DIR: str = "constellation-terraform"

    # Ports
    DEFAULT_API_SERVER_PORT: int = 6443

    # Helm error output that means the wait deadline expired
    HELM_TIMEOUT_MARKERS: tuple[str, ...] = (
        "timed out waiting for the condition",
        "context deadline exceeded",
    )

    # Helm error output of a release that was never installed
    HELM_NOT_FOUND_MARKERS: tuple[str, ...] = ("release: not found",)
