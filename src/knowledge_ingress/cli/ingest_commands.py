"""Ingest command: process the inbox once, one file, or poll forever."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich import box
from rich.panel import Panel
from rich.table import Table

from knowledge_ingress.cli.main import console, project_root
from knowledge_ingress.core.config import PipelineSettings, load_settings
from knowledge_ingress.core.errors import ConfigError, RegistryError
from knowledge_ingress.core.logging import IngressLogger, Verbosity
from knowledge_ingress.pipeline import WatchDriver, build_pipeline
from knowledge_ingress.pipeline.runs import RunOutcome
from knowledge_ingress.remote import build_client
from knowledge_ingress.repos import RepoRegistry


def _with_registry_repo(settings: PipelineSettings, root: Path) -> PipelineSettings:
    """Fill KnowledgeRepoPath from the registry when only KnowledgeRepo is given."""
    if settings.knowledge_repo_path is not None or not settings.knowledge_repo:
        return settings
    registry = RepoRegistry(root)
    repo = registry.get(settings.knowledge_repo)
    return settings.model_copy(
        update={"knowledge_repo_path": registry.resolve_path(repo.path)}
    )


def _summary_table(outcomes: list[RunOutcome]) -> Table:
    table = Table(title="Ingest Summary", box=box.ROUNDED)
    table.add_column("Source", style="bold", no_wrap=True)
    table.add_column("Run", style="dim", no_wrap=True)
    table.add_column("Status")
    table.add_column("Detail", max_width=60)

    for outcome in outcomes:
        if outcome.succeeded:
            status = "[green]success[/green]"
            detail = ", ".join(p.name for p in outcome.artifact_paths.values())
            if outcome.output_path is not None:
                detail = outcome.output_path.name
        else:
            status = f"[red]{outcome.status}[/red]"
            detail = outcome.error or "; ".join(outcome.validation_errors)
        table.add_row(outcome.source.name, outcome.run_id, status, detail)
    return table


@click.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Settings file (default: config/settings.json)")
@click.option("--file", "single_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Process a single file and exit")
@click.option("--once", is_flag=True, default=False, help="Process all pending inbox files and exit")
@click.pass_context
def ingest(ctx: click.Context, config_path: str | None, single_file: str | None, once: bool):
    """Forward inbox transcripts to the remote endpoint and store the results.

    Without --file or --once, polls the inbox until interrupted.
    """
    try:
        settings = load_settings(Path(config_path) if config_path else None)
        settings = _with_registry_repo(settings, project_root(ctx))
        settings.check_required()
    except (ConfigError, RegistryError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    verbosity = Verbosity(min(ctx.obj.get("verbose", 0), Verbosity.DEBUG))
    logger = IngressLogger(settings.logs_dir, verbosity=verbosity, console=console)
    pipeline = build_pipeline(settings, build_client(settings), logger)
    driver = WatchDriver(
        pipeline,
        settings.inbox_dir,
        patterns=settings.file_filter,
        interval=settings.poll_interval_seconds,
    )

    if single_file:
        outcome = driver.run_file(Path(single_file))
        if outcome is not None:
            console.print(_summary_table([outcome]))
        return

    if once:
        outcomes = driver.run_once()
        if not outcomes:
            console.print("[dim]No pending files in inbox.[/dim]")
            return
        console.print(_summary_table(outcomes))
        return

    console.print(
        Panel(
            f"[bold]Inbox:[/bold] {settings.inbox_dir}\n"
            f"[bold]Filter:[/bold] {', '.join(settings.file_filter)}\n"
            f"[bold]Endpoint:[/bold] {settings.endpoint}\n"
            f"[bold]Interval:[/bold] {settings.poll_interval_seconds:g}s",
            title="[bold cyan]knowledge-ingress watch[/bold cyan]",
            border_style="cyan",
        )
    )
    try:
        driver.watch()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
