"""knowledge-ingress CLI: main entry point and shared utilities."""

from __future__ import annotations

import os
from pathlib import Path

import click
from rich.console import Console

from knowledge_ingress import __version__
from knowledge_ingress.core.logging import setup_logging

console = Console()


def project_root(ctx: click.Context) -> Path:
    """Project root chosen with --root (or KINGRESS_ROOT), defaulting to CWD."""
    root = (ctx.obj or {}).get("root")
    return Path(root) if root else Path.cwd()


@click.group()
@click.option(
    "--root",
    type=click.Path(file_okay=False),
    default=lambda: os.environ.get("KINGRESS_ROOT"),
    help="Project root holding config/repos.json (default: current directory)",
)
@click.option("-v", "--verbose", count=True, help="-v progress, -vv debug logging")
@click.version_option(__version__, prog_name="knowledge-ingress")
@click.pass_context
def main(ctx: click.Context, root: str | None, verbose: int) -> None:
    """knowledge-ingress: inbox-to-repository transcript ingestion."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


def cli():
    """Entrypoint that loads .env before running the CLI."""
    from dotenv import load_dotenv

    load_dotenv()
    main()


# Import subcommand modules to register commands
from knowledge_ingress.cli.ingest_commands import ingest  # noqa: E402
from knowledge_ingress.cli.repo_commands import init_repo, list_repos, validate_repos  # noqa: E402


@click.command("version")
def version_cmd() -> None:
    """Show the installed knowledge-ingress version."""
    click.echo(f"knowledge-ingress {__version__}")


# Register commands
main.add_command(init_repo)
main.add_command(list_repos)
main.add_command(validate_repos)
main.add_command(ingest)
main.add_command(version_cmd)
