"""CLI context and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import click
import typer

from constellation.deployment.shell_commands import ShellCommands
from constellation.utils.paths import resolve_workspace

from .shared.console import CLIConsole, console


@dataclass(frozen=True)
class CLIContext:
    """Runtime dependencies for CLI commands."""

    console: CLIConsole
    workspace: Path
    commands: ShellCommands
    tf_log: str = "NONE"
    debug: bool = False


def build_cli_context(
    workspace: Path | str | None = None,
    tf_log: str = "NONE",
    debug: bool = False,
) -> CLIContext:
    """Build a fresh CLIContext."""
    root = resolve_workspace(workspace)
    return CLIContext(
        console=console,
        workspace=root,
        commands=ShellCommands(root),
        tf_log=tf_log,
        debug=debug,
    )


def get_cli_context(ctx: typer.Context | None = None) -> CLIContext:
    """Return the CLIContext from Typer, falling back to a new instance."""
    context = ctx or click.get_current_context(silent=True)
    if context and isinstance(context.obj, CLIContext):
        return context.obj
    return build_cli_context()
