"""Command runner for executing shell commands.

This module provides the base command execution functionality used by
all specialized command modules.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from loguru import logger

from .types import CommandResult


class CommandRunner:
    """Low-level command executor with consistent result handling.

    All specialized command modules (Helm, kubectl, Terraform) use this
    runner for actual command execution.
    """

    def __init__(self, workspace: Path) -> None:
        """Initialize the command runner.

        Args:
            workspace: Path to the workspace directory.
                       Commands will be executed from this directory by default.
        """
        self.workspace = workspace

    def _environment(self, env: Mapping[str, str] | None) -> dict[str, str] | None:
        if not env:
            return None
        return {**os.environ, **env}

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        capture_output: bool = True,
        check: bool = False,
        input_data: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Execute a shell command and return structured result.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to workspace)
            capture_output: Whether to capture stdout/stderr
            check: Whether to raise exception on non-zero exit code
            input_data: Optional text sent to stdin
            env: Extra environment variables

        Returns:
            CommandResult with success status, output, and return code

        Raises:
            subprocess.CalledProcessError: If check=True and command fails
        """
        logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(
            list(cmd),
            cwd=cwd or self.workspace,
            capture_output=capture_output,
            text=True,
            check=check,
            input=input_data,
            env=self._environment(env),
        )
        return CommandResult(
            success=result.returncode == 0,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            returncode=result.returncode,
        )

    def run_streaming(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        on_output: Callable[[str], None] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Execute a shell command with real-time output streaming.

        This method runs a command and calls the on_output callback for each
        line of output, allowing real-time progress display.

        Args:
            cmd: Command and arguments as a sequence
            cwd: Working directory (defaults to workspace)
            on_output: Callback function called with each line of output.
                      If None, output is collected but not streamed.
            env: Extra environment variables

        Returns:
            CommandResult with success status, collected output, and return code
        """
        logger.debug(f"Running (streaming): {' '.join(cmd)}")
        process = subprocess.Popen(
            list(cmd),
            cwd=cwd or self.workspace,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,  # Merge stderr into stdout
            text=True,
            bufsize=1,
            env=self._environment(env),
        )

        stdout_lines: list[str] = []

        try:
            if process.stdout:
                for line in iter(process.stdout.readline, ""):
                    line = line.rstrip("\n")
                    if line:
                        stdout_lines.append(line)
                        if on_output:
                            on_output(line)
            process.wait()
        except KeyboardInterrupt:
            # Forward the interrupt to the tool so it can clean up
            process.terminate()
            process.wait()
            raise

        return CommandResult(
            success=process.returncode == 0,
            stdout="\n".join(stdout_lines),
            stderr="",  # stderr is merged into stdout
            returncode=process.returncode or 0,
        )

