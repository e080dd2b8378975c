"""Thin wrappers over the git executable.

All calls run ``git`` directly (no shell) with a fixed working directory.
Query helpers are best effort and return ``None`` when git cannot answer;
mutating helpers raise GitError.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from enum import Enum
from pathlib import Path
from typing import Iterable

from knowledge_ingress.core.errors import GitError

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 60


class GitProbe(Enum):
    """Result of asking whether a directory is a git repository."""

    YES = "yes"
    NO = "no"
    UNAVAILABLE = "unavailable"  # git executable not installed


def git_available() -> bool:
    return shutil.which("git") is not None


def git(cwd: Path, *args: str) -> str:
    """Run ``git <args>`` in *cwd* and return stripped stdout.

    Raises:
        GitError: If git is missing, times out, or exits non-zero.
    """
    cmd = ["git", *args]
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitError(f"git {' '.join(args)} timed out") from exc

    if result.returncode != 0:
        detail = (result.stderr or result.stdout).strip()
        raise GitError(f"git {' '.join(args)} failed (exit {result.returncode}): {detail}")
    return result.stdout.strip()


def probe_repo(path: Path) -> GitProbe:
    """Tell whether *path* is inside a git working tree."""
    if not git_available():
        return GitProbe.UNAVAILABLE
    try:
        git(path, "rev-parse", "--git-dir")
    except GitError:
        return GitProbe.NO
    return GitProbe.YES


def current_branch(path: Path) -> str | None:
    """Branch name of HEAD, or None when it cannot be determined."""
    try:
        return git(path, "rev-parse", "--abbrev-ref", "HEAD") or None
    except GitError:
        return None


def has_uncommitted_changes(path: Path) -> bool | None:
    """True when ``git status --porcelain`` reports anything, None on failure."""
    try:
        return bool(git(path, "status", "--porcelain"))
    except GitError:
        return None


def commit_paths(repo: Path, paths: Iterable[Path], message: str) -> None:
    """Stage exactly *paths* and commit them in *repo*.

    Raises:
        GitError: If a path lies outside *repo*, or staging or committing fails.
    """
    root = repo.resolve()
    rel = []
    for p in paths:
        try:
            rel.append(str(Path(p).resolve().relative_to(root)))
        except ValueError as exc:
            raise GitError(f"{p} is outside the repository {root}") from exc
    if not rel:
        return
    git(repo, "add", "--", *rel)
    git(repo, "commit", "-m", message, "--", *rel)
