"""knowledge-ingress command-line interface."""

from knowledge_ingress.cli.main import cli, main

__all__ = ["cli", "main"]
