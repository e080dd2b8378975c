"""Structured run logging and console output for the ingestion pipeline."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

from rich.console import Console

INGRESS_LOG = "ingress.log"
ERRORS_LOG = "errors.log"

ERROR_STATUSES = frozenset({"failed", "validation_failed"})

logger = logging.getLogger(__name__)


class Verbosity(IntEnum):
    """Verbosity levels for console output."""

    DEFAULT = 0   # One line per run outcome
    VERBOSE = 1   # + per-step progress
    DEBUG = 2     # + request/response details


def setup_logging(verbose: int) -> None:
    """Configure stdlib logging based on verbosity."""
    if verbose >= Verbosity.DEBUG:
        level = logging.DEBUG
    elif verbose == Verbosity.VERBOSE:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class IngressLogger:
    """Append-only JSON-lines log of pipeline run outcomes.

    Every outcome goes to ``logs/ingress.log``; failed and
    validation_failed outcomes are also written to ``logs/errors.log``.
    Each line is one compact object::

        {"timestamp": ..., "run_id": ..., "thread_id": ..., "status": ..., "message": ...}
    """

    def __init__(
        self,
        logs_dir: Path,
        verbosity: Verbosity = Verbosity.DEFAULT,
        console: Console | None = None,
    ) -> None:
        self.logs_dir = Path(logs_dir)
        self.verbosity = verbosity
        self.console = console or Console()

    @property
    def ingress_path(self) -> Path:
        return self.logs_dir / INGRESS_LOG

    @property
    def errors_path(self) -> Path:
        return self.logs_dir / ERRORS_LOG

    def _append(self, path: Path, event: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(json.dumps(event, separators=(",", ":"), ensure_ascii=False) + "\n")

    def record(
        self,
        run_id: str,
        thread_id: str,
        status: str,
        message: str,
        **extra: Any,
    ) -> dict[str, Any]:
        """Write one outcome line and echo it to the console."""
        event: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "run_id": run_id,
            "thread_id": thread_id,
            "status": status,
            "message": message,
        }
        event.update(extra)

        self._append(self.ingress_path, event)
        if status in ERROR_STATUSES:
            self._append(self.errors_path, event)

        if status in ERROR_STATUSES:
            self.console.print(f"[red]{status}[/red] {run_id}: {message}")
        else:
            self.console.print(f"[green]{status}[/green] {run_id}: {message}")
        return event

    def step(self, message: str) -> None:
        """Per-step progress, shown at -v."""
        logger.debug(message)
        if self.verbosity >= Verbosity.VERBOSE:
            self.console.print(f"  [dim]{message}[/dim]")

    def warning(self, message: str) -> None:
        logger.warning(message)
        self.console.print(f"[yellow]Warning:[/yellow] {message}")
