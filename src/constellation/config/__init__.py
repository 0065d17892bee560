"""Workspace configuration."""

from .loader import CONFIG_FILENAME, load_config, substitute_env_vars
from .models import ClusterConfig, HelmReleaseSpec

__all__ = [
    "ClusterConfig",
    "HelmReleaseSpec",
    "CONFIG_FILENAME",
    "load_config",
    "substitute_env_vars",
]
