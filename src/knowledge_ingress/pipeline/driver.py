"""Watch/batch driver: single file, run once, or poll the inbox forever."""

from __future__ import annotations

import fnmatch
import logging
import time
from pathlib import Path
from typing import Callable, Sequence

from knowledge_ingress.pipeline.ingest import FileProcessor
from knowledge_ingress.pipeline.runs import RunOutcome

logger = logging.getLogger(__name__)


class WatchDriver:
    """Feeds inbox files to a processor one at a time.

    In watch mode, paths that already succeeded in this process are skipped.
    A failed run leaves its file in the inbox and out of the handled set, so
    the next poll cycle picks it up again.
    """

    def __init__(
        self,
        processor: FileProcessor,
        inbox: Path,
        patterns: Sequence[str] = ("*.txt", "*.md"),
        interval: float = 10.0,
    ) -> None:
        self.processor = processor
        self.inbox = Path(inbox)
        self.patterns = list(patterns)
        self.interval = interval
        self.handled: set[Path] = set()

    def _matches(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.patterns)

    def pending_files(self) -> list[Path]:
        """Inbox files (not recursive) matching any pattern, sorted by name."""
        if not self.inbox.is_dir():
            return []
        return sorted(
            p for p in self.inbox.iterdir() if p.is_file() and self._matches(p.name)
        )

    def run_file(self, path: Path) -> RunOutcome | None:
        """Process one file; an unexpected error is logged and yields None."""
        try:
            return self.processor.process_file(path)
        except Exception:
            logger.exception("Processing %s failed", path)
            return None

    def run_once(self) -> list[RunOutcome]:
        """Process every pending file in order, each to completion."""
        outcomes = []
        for path in self.pending_files():
            outcome = self.run_file(path)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def poll(self) -> list[RunOutcome]:
        """One watch cycle: process pending files not yet handled successfully."""
        outcomes = []
        for path in self.pending_files():
            if path in self.handled:
                continue
            outcome = self.run_file(path)
            if outcome is None:
                continue
            if outcome.succeeded:
                self.handled.add(path)
            outcomes.append(outcome)
        return outcomes

    def watch(
        self,
        max_cycles: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Poll every ``interval`` seconds. ``max_cycles=None`` runs until killed."""
        logger.info("Watching %s every %.1fs for %s", self.inbox, self.interval, self.patterns)
        cycle = 0
        while max_cycles is None or cycle < max_cycles:
            self.poll()
            cycle += 1
            if max_cycles is not None and cycle >= max_cycles:
                break
            sleep(self.interval)
