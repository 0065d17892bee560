"""The ``constellation apply`` command.

Brings the cluster in line with the configuration in the workspace: creates
or updates the infrastructure, initializes the cluster and upgrades its
attestation policy, certificate SANs, Helm releases, Kubernetes version
and node image.
"""

from typing import Annotated

import typer
from rich.table import Table

from constellation.apply.errors import PhaseFailedError
from constellation.apply.flags import ApplyConfig, format_duration, resolve_apply_config
from constellation.apply.phases import all_phases
from constellation.apply.pipeline import ApplyOrchestrator
from constellation.apply.runner import (
    PhaseEvent,
    PhaseEventKind,
    PhaseObserver,
    PhaseStatus,
    RunReport,
)
from constellation.config.loader import load_config
from constellation.deployment import build_collaborators
from constellation.state.store import FileStateStore

from ..context import get_cli_context
from ..shared import CLIConsole, with_error_handling


def _print_plan(console: CLIConsole, config: ApplyConfig) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Phase")
    table.add_column("Action")
    for phase in all_phases():
        if config.skip_phases.contains(phase):
            table.add_row(phase.value, "[dim]skip[/dim]")
        else:
            table.add_row(phase.value, "[cyan]run[/cyan]")
    console.print(table)
    console.print(
        f"[dim]Helm wait mode: {config.helm_wait_mode.value}, "
        f"timeout: {format_duration(config.upgrade_timeout)}"
        f"{', force' if config.force else ''}[/dim]\n"
    )


def _print_report(console: CLIConsole, report: RunReport) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Phase")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    for outcome in report.outcomes:
        if outcome.status == PhaseStatus.SUCCEEDED:
            status = "[green]succeeded[/green]"
        elif outcome.status == PhaseStatus.FAILED:
            status = "[red]failed[/red]"
        else:
            status = "[dim]skipped[/dim]"
        duration = f"{outcome.duration_ms / 1000:.1f}s" if outcome.duration_ms else ""
        table.add_row(outcome.phase.value, status, duration)
    console.print(table)


def console_observer(console: CLIConsole) -> PhaseObserver:
    """Build a phase observer that reports progress on the console."""

    def observe(event: PhaseEvent) -> None:
        name = event.phase.value
        if event.kind == PhaseEventKind.STARTED:
            console.info(f"Running phase [bold]{name}[/bold]...")
        elif event.kind == PhaseEventKind.SUCCEEDED:
            console.ok(f"Phase {name} done ({event.duration_ms / 1000:.1f}s)")
        elif event.kind == PhaseEventKind.FAILED:
            console.error(f"Phase {name} failed")

    return observe


@with_error_handling
def apply_command(
    ctx: typer.Context,
    skip_phases: Annotated[
        list[str] | None,
        typer.Option(
            "--skip-phases",
            help="Comma separated phases to skip: "
            + ", ".join(phase.value for phase in all_phases()),
        ),
    ] = None,
    skip_helm_wait: Annotated[
        bool,
        typer.Option(
            "--skip-helm-wait",
            help="Do not wait for Helm releases to become ready (no rollback)",
        ),
    ] = False,
    timeout: Annotated[
        str | None,
        typer.Option(
            "--timeout",
            help="Deadline of the Helm upgrade, e.g. 5m or 90s",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Skip version compatibility checks",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt",
        ),
    ] = False,
) -> None:
    """Apply the configuration to the cluster.

    Runs the phases infrastructure, init, attestationconfig, certsans, helm,
    k8s and image in order. Each phase can be skipped. Before Helm releases
    are upgraded, their current state and all custom resources are backed
    up below constellation-upgrade/ in the workspace.

    Examples:
        constellation apply
        constellation apply --skip-phases infrastructure,init
        constellation apply --skip-helm-wait --timeout 10m
    """
    cli = get_cli_context(ctx)
    console = cli.console

    config = resolve_apply_config(
        skip_phases=skip_phases,
        skip_helm_wait=skip_helm_wait,
        timeout=timeout,
        force=force,
    )
    cluster_config = load_config(cli.workspace)

    console.print_header(f"Applying configuration to {cluster_config.name}")
    _print_plan(console, config)

    if not console.confirm_action(
        "Apply configuration",
        details=f"Workspace: {cli.workspace}",
        force=yes,
    ):
        console.warn("Apply cancelled")
        return

    collaborators = build_collaborators(
        cli.commands,
        cli.workspace,
        cluster_config,
        tf_log=cli.tf_log,
        on_output=lambda line: console.print(f"  [dim]{line}[/dim]"),
    )
    orchestrator = ApplyOrchestrator(
        workspace=cli.workspace,
        store=FileStateStore(cli.workspace),
        collaborators=collaborators,
        cluster_config=cluster_config,
        observers=[console_observer(console)],
    )

    try:
        report = orchestrator.apply(config)
    except PhaseFailedError:
        console.print_subheader("Summary")
        runner_report = orchestrator.last_report
        if runner_report is not None:
            _print_report(console, runner_report)
        raise

    console.print_subheader("Summary")
    _print_report(console, report)
    console.ok("Apply completed")
