"""Workspace configuration consumed by the apply phases."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HelmReleaseSpec(BaseModel):
    """A Helm release managed by the Helm phase."""

    name: str
    chart: str
    namespace: str = "kube-system"
    values: list[str] = Field(default_factory=list)


class ClusterConfig(BaseModel):
    """Contents of ``constellation-conf.yaml``.

    Attributes:
        kubernetes_version: Target Kubernetes version for the K8s phase
        image: Target node image for the Image phase
        attestation: Expected attestation policy (e.g. measurements)
        helm_releases: Releases installed or upgraded by the Helm phase
        api_server_cert_sans: SANs added on top of those in the state file
        bootstrap_command: External program that initializes the cluster
    """

    name: str = "constell"
    kubernetes_version: str = ""
    image: str = ""
    attestation: dict[str, Any] = Field(default_factory=dict)
    helm_releases: list[HelmReleaseSpec] = Field(default_factory=list)
    api_server_cert_sans: list[str] = Field(default_factory=list)
    bootstrap_command: list[str] = Field(
        default_factory=lambda: ["constellation-bootstrap", "init"]
    )
