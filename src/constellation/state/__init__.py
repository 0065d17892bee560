"""Cluster state model and persistence."""

from .models import GCP, Azure, ClusterState, ClusterValues, Infrastructure
from .store import STATE_FILENAME, FileStateStore

__all__ = [
    "Azure",
    "GCP",
    "Infrastructure",
    "ClusterValues",
    "ClusterState",
    "FileStateStore",
    "STATE_FILENAME",
]
