"""Terraform command abstractions."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class TerraformCommands:
    """Terraform-related shell commands.

    Every command runs inside the Terraform working directory and honors
    the log level given by ``tf_log`` (Terraform's ``TF_LOG``).
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def _env(self, tf_log: str) -> dict[str, str]:
        env = {"TF_IN_AUTOMATION": "1"}
        if tf_log and tf_log.upper() != "NONE":
            env["TF_LOG"] = tf_log.upper()
        return env

    def init(self, working_dir: Path, *, tf_log: str = "NONE") -> CommandResult:
        """Initialize the working directory (providers and modules)."""
        return self._runner.run(
            ["terraform", "init", "-input=false"],
            cwd=working_dir,
            env=self._env(tf_log),
        )

    def apply(
        self,
        working_dir: Path,
        *,
        tf_log: str = "NONE",
        on_output: Callable[[str], None] | None = None,
    ) -> CommandResult:
        """Create or update the infrastructure without prompting."""
        cmd = ["terraform", "apply", "-auto-approve", "-input=false"]
        if on_output:
            return self._runner.run_streaming(
                cmd, cwd=working_dir, on_output=on_output, env=self._env(tf_log)
            )
        return self._runner.run(cmd, cwd=working_dir, env=self._env(tf_log))

    def output(
        self, working_dir: Path, *, tf_log: str = "NONE"
    ) -> tuple[CommandResult, dict[str, Any]]:
        """Read the root module outputs.

        Returns:
            The command result and a mapping of output name to value. The
            mapping is empty when the command failed or printed no valid JSON.
        """
        result = self._runner.run(
            ["terraform", "output", "-json"],
            cwd=working_dir,
            env=self._env(tf_log),
        )
        if not result.success or not result.stdout:
            return result, {}
        try:
            raw = json.loads(result.stdout)
        except json.JSONDecodeError:
            return result, {}
        return result, {key: entry.get("value") for key, entry in raw.items()}
