"""Cluster initialization through an external bootstrap program."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import ValidationError

from constellation.apply.errors import InitError
from constellation.apply.interfaces import ClusterInitializer
from constellation.state.models import ClusterState, ClusterValues

if TYPE_CHECKING:
    from .shell_commands import ShellCommands


class BootstrapInitializer(ClusterInitializer):
    """Initializes the first control plane node.

    The bootstrap command receives the ClusterState as JSON on stdin and
    prints the assigned cluster identity as a JSON object with the keys
    ``cluster_id``, ``owner_id`` and optionally ``measurement_salt`` (hex).
    """

    def __init__(self, commands: ShellCommands, command: Sequence[str]) -> None:
        self.commands = commands
        self.command = list(command)

    def init(self, state: ClusterState) -> ClusterState:
        if not self.command:
            raise InitError("No bootstrap command configured")
        if not state.infrastructure.cluster_endpoint:
            raise InitError(
                "Cannot initialize a cluster without an endpoint",
                details="Run the infrastructure phase first.",
            )

        logger.info(f"Initializing cluster at {state.infrastructure.cluster_endpoint}")
        try:
            result = self.commands.runner.run(
                self.command, input_data=state.model_dump_json()
            )
        except FileNotFoundError as e:
            raise InitError(
                f"Bootstrap command not found: {self.command[0]}", details=str(e)
            ) from e

        if not result.success:
            raise InitError("Cluster initialization failed", details=result.output)

        try:
            values = ClusterValues.model_validate(json.loads(result.stdout))
        except (json.JSONDecodeError, ValidationError) as e:
            raise InitError(
                "Bootstrap command returned invalid output", details=str(e)
            ) from e
        if not values.cluster_id:
            raise InitError("Bootstrap command returned no cluster ID")

        logger.info(f"Cluster {values.cluster_id} initialized")
        return state.with_cluster_values(values)
