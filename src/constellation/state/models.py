"""Cluster state persisted between apply invocations."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

STATE_VERSION = "v1"


def _decode_hex(value: Any) -> Any:
    """Accept hex strings for byte fields (the on-disk representation)."""
    if isinstance(value, str):
        try:
            return bytes.fromhex(value)
        except ValueError as e:
            raise ValueError(f"expected hex encoded bytes: {e}") from e
    return value


class Azure(BaseModel):
    """Azure specific infrastructure facts."""

    resource_group: str = ""
    subscription_id: str = ""
    network_security_group_name: str = ""
    load_balancer_name: str = ""
    user_assigned_identity: str = ""
    attestation_url: str = ""


class GCP(BaseModel):
    """GCP specific infrastructure facts."""

    project_id: str = ""
    ip_cidr_pod: str = ""


class Infrastructure(BaseModel):
    """Facts about the provisioned cloud resources."""

    uid: str = ""
    name: str = ""
    cluster_endpoint: str = ""
    in_cluster_endpoint: str = ""
    init_secret: bytes = b""
    api_server_cert_sans: list[str] = Field(default_factory=list)
    ip_cidr_node: str = ""
    azure: Azure | None = None
    gcp: GCP | None = None

    @field_validator("init_secret", mode="before")
    @classmethod
    def decode_init_secret(cls, value: Any) -> Any:
        return _decode_hex(value)

    @field_serializer("init_secret")
    def encode_init_secret(self, value: bytes) -> str:
        return value.hex()

    @model_validator(mode="after")
    def check_single_provider(self) -> Infrastructure:
        if self.azure is not None and self.gcp is not None:
            raise ValueError(
                "infrastructure may describe only one cloud provider, "
                "found both azure and gcp"
            )
        return self


class ClusterValues(BaseModel):
    """Identity values assigned to the cluster during init."""

    cluster_id: str = ""
    owner_id: str = ""
    measurement_salt: bytes = b""

    @field_validator("measurement_salt", mode="before")
    @classmethod
    def decode_salt(cls, value: Any) -> Any:
        return _decode_hex(value)

    @field_serializer("measurement_salt")
    def encode_salt(self, value: bytes) -> str:
        return value.hex()


class ClusterState(BaseModel):
    """The persisted record of a cluster.

    Read at the start of ``apply`` and written back after every phase that
    changes infrastructure or cluster identity.
    """

    version: Literal["v1"] = STATE_VERSION
    infrastructure: Infrastructure = Field(default_factory=Infrastructure)
    cluster_values: ClusterValues = Field(default_factory=ClusterValues)

    @property
    def provider(self) -> str | None:
        """Name of the cloud provider described by the state, if any."""
        if self.infrastructure.azure is not None:
            return "azure"
        if self.infrastructure.gcp is not None:
            return "gcp"
        return None

    @property
    def is_initialized(self) -> bool:
        """Whether the cluster has been initialized (it has an ID)."""
        return bool(self.cluster_values.cluster_id)

    def merge_infrastructure(self, infrastructure: Infrastructure) -> ClusterState:
        """Return a copy of the state with new infrastructure facts."""
        return self.model_copy(update={"infrastructure": infrastructure})

    def with_cluster_values(self, values: ClusterValues) -> ClusterState:
        """Return a copy of the state with new cluster identity values."""
        return self.model_copy(update={"cluster_values": values})
