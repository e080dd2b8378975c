"""Artifact repo commands: init-repo, list-repos, validate-repos."""

from __future__ import annotations

import sys

import click

from knowledge_ingress.cli.main import console, project_root
from knowledge_ingress.core.errors import GitError, RegistryError
from knowledge_ingress.repos import ArtifactRepoConfig, RepoRegistry


@click.command("init-repo")
@click.argument("name")
@click.argument("path")
@click.argument("description")
@click.argument("remote", required=False)
@click.option("--pattern", "patterns", multiple=True, help="Glob pattern the repo manages (repeatable)")
@click.pass_context
def init_repo(
    ctx: click.Context,
    name: str,
    path: str,
    description: str,
    remote: str | None,
    patterns: tuple[str, ...],
):
    """Create and register an artifact repo.

    NAME is the registry key, PATH is relative to the project root or
    absolute, REMOTE is an optional git remote URL added as origin.
    """
    registry = RepoRegistry(project_root(ctx))
    repo = ArtifactRepoConfig(
        path=path,
        description=description,
        remote=remote or None,
        file_patterns=list(patterns) or None,
    )
    try:
        resolved = registry.init(name, repo)
    except (GitError, RegistryError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    console.print(f'[green]Initialized artifact repo[/green] "{name}" at {resolved}')


@click.command("list-repos")
@click.pass_context
def list_repos(ctx: click.Context):
    """List all configured artifact repos."""
    registry = RepoRegistry(project_root(ctx))
    try:
        config = registry.load()
    except RegistryError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not config.artifacts:
        console.print("No artifact repos configured.")
        console.print("[dim]Run [bold]knowledge-ingress init-repo[/bold] to create one.[/dim]")
        return

    console.print("[bold]Configured artifact repos:[/bold]\n")
    for name, repo in config.artifacts.items():
        console.print(f"  [bold]{name}[/bold]")
        console.print(f"    path:        {registry.resolve_path(repo.path)}")
        console.print(f"    description: {repo.description}")
        if repo.remote:
            console.print(f"    remote:      {repo.remote}")
        if repo.file_patterns:
            console.print(f"    patterns:    {', '.join(repo.file_patterns)}")
        console.print()


@click.command("validate-repos")
@click.pass_context
def validate_repos(ctx: click.Context):
    """Check that all repos exist and are git repositories.

    Exits with status 1 when any repo is missing or invalid.
    """
    registry = RepoRegistry(project_root(ctx))
    try:
        statuses = registry.status_all()
    except RegistryError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not statuses:
        console.print("No artifact repos configured.")
        return

    all_valid = True
    for status in statuses:
        if status.is_valid:
            console.print(f"[green]\\[ok][/green] {status.name}")
        else:
            console.print(f"[red]\\[MISSING][/red] {status.name}")
        console.print(f"       path: {status.resolved_path}")

        if not status.exists:
            console.print("       [red]ERROR:[/red] directory does not exist")
            all_valid = False
        elif not status.is_git_repo:
            console.print("       [red]ERROR:[/red] exists but is not a git repository")
            all_valid = False
        else:
            console.print(f"       branch: {status.current_branch or 'unknown'}")
            if status.has_uncommitted_changes:
                console.print("       [yellow]WARNING:[/yellow] has uncommitted changes")
        console.print()

    if not all_valid:
        console.print("[red]Some artifact repos are missing or invalid.[/red]")
        sys.exit(1)
    console.print("[green]All artifact repos are valid.[/green]")
