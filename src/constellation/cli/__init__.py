"""Main CLI application module.

This module provides the main entry point for the Constellation CLI.

Commands:
- apply: Create, initialize or upgrade the cluster described by the workspace
"""

from pathlib import Path
from typing import Annotated

import typer

from constellation.utils.log import configure_logging

from .commands import apply_command
from .context import CLIContext, build_cli_context, get_cli_context

TF_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARN", "ERROR", "JSON", "NONE")

# Create the main CLI application
app = typer.Typer(
    help="✨ Constellation CLI - Confidential Kubernetes cluster management",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _validate_tf_log(value: str) -> str:
    level = value.upper()
    if level not in TF_LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(TF_LOG_LEVELS)}")
    return level


@app.callback()
def root(
    ctx: typer.Context,
    workspace: Annotated[
        Path | None,
        typer.Option(
            "--workspace",
            "-C",
            help="Workspace directory (default: current directory)",
        ),
    ] = None,
    tf_log: Annotated[
        str,
        typer.Option(
            "--tf-log",
            help="Terraform log level: " + ", ".join(TF_LOG_LEVELS),
            callback=_validate_tf_log,
        ),
    ] = "NONE",
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Print debug output and write it to constellation-debug.log",
        ),
    ] = False,
) -> None:
    """Manage confidential Kubernetes clusters."""
    try:
        cli = build_cli_context(workspace, tf_log=tf_log, debug=debug)
    except NotADirectoryError as e:
        raise typer.BadParameter(str(e), param_hint="--workspace") from e

    configure_logging(cli.workspace, debug=debug)
    ctx.obj = cli


app.command(name="apply")(apply_command)


def main() -> None:
    """Main entry point for the CLI."""
    app()


__all__ = ["app", "main", "CLIContext", "build_cli_context", "get_cli_context"]


if __name__ == "__main__":
    main()
