"""YAML backed cluster state store."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from loguru import logger
from pydantic import ValidationError

from constellation.apply.errors import StateError, StateNotFoundError, StateWriteError
from constellation.apply.interfaces import StateStore

from .models import ClusterState

STATE_FILENAME = "constellation-state.yaml"


class FileStateStore(StateStore):
    """Persists the ClusterState as a YAML file in the workspace.

    Writes are transactional: the state is written to a temporary file which
    then replaces the state file, so a failed write leaves the previous state
    intact.
    """

    def __init__(self, workspace: Path, filename: str = STATE_FILENAME) -> None:
        self.path = Path(workspace) / filename

    def load(self) -> ClusterState:
        """Read the state file.

        Raises:
            StateNotFoundError: If the workspace has no state file
            StateError: If the file is not a valid state document
        """
        if not self.path.is_file():
            raise StateNotFoundError(
                f"State file {self.path} not found",
                details="Run 'constellation apply' without skipping the "
                "infrastructure phase to create a cluster.",
            )

        try:
            loaded = yaml.safe_load(self.path.read_text()) or {}
        except yaml.YAMLError as e:
            raise StateError(f"Error parsing state file {self.path}: {e}") from e

        try:
            state = ClusterState.model_validate(loaded)
        except ValidationError as e:
            raise StateError(
                f"Invalid state file {self.path}", details=str(e)
            ) from e

        logger.debug(f"Loaded cluster state from {self.path}")
        return state

    def save(self, state: ClusterState) -> None:
        """Write the state file atomically.

        Raises:
            StateWriteError: If the file could not be written
        """
        temp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w") as f:
                yaml.safe_dump(
                    state.model_dump(mode="json"),
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    indent=2,
                )
            temp_path.replace(self.path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StateWriteError(f"Failed to write state file {self.path}: {e}") from e

        logger.debug(f"Saved cluster state to {self.path}")
