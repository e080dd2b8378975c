"""Artifact repository registry: CRUD over config/repos.json plus git setup."""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from knowledge_ingress.core.errors import (
    PathEscape,
    RegistryConflict,
    RegistryError,
    RegistryParseError,
    RepoNotFound,
    atomic_write,
)
from knowledge_ingress.repos import git as gitops
from knowledge_ingress.repos.models import ArtifactRepoConfig, ReposConfig, RepoStatus

logger = logging.getLogger(__name__)

REGISTRY_RELPATH = Path("config") / "repos.json"
MAX_STATUS_WORKERS = 8

GITIGNORE_TEMPLATE = ".DS_Store\n*.tmp\n__pycache__/\n"


def readme_for(name: str, description: str) -> str:
    return (
        f"# {name}\n\n{description}\n\n"
        "This is an artifact repository managed by knowledge-ingress.\n"
    )


def is_within(path: Path, root: Path) -> bool:
    """True when *path* is *root* or lies beneath it (both already resolved)."""
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class RepoRegistry:
    """Registry of artifact repositories, persisted as one JSON file.

    Every mutating call loads the file, changes it in memory and rewrites
    the whole file. Concurrent writers are not coordinated (last write wins).
    """

    def __init__(self, project_root: str | Path, config_path: str | Path | None = None):
        self.project_root = Path(project_root).resolve()
        self.config_path = (
            Path(config_path) if config_path is not None else self.project_root / REGISTRY_RELPATH
        )

    # -- Persistence --

    def load(self) -> ReposConfig:
        """Load the registry. A missing file is an empty registry.

        Raises:
            RegistryParseError: If the file is not valid JSON or has the wrong shape.
        """
        if not self.config_path.exists():
            return ReposConfig()
        raw = self.config_path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RegistryParseError(f"Malformed registry file '{self.config_path}': {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("artifacts", {}), dict):
            raise RegistryParseError(
                f"Registry file '{self.config_path}' must be an object with an 'artifacts' mapping"
            )
        try:
            return ReposConfig.from_dict(data)
        except (KeyError, TypeError, AttributeError) as exc:
            raise RegistryParseError(f"Invalid entry in '{self.config_path}': {exc}") from exc

    def save(self, config: ReposConfig) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(self.config_path, json.dumps(config.to_dict(), indent=2) + "\n")

    # -- Lookup --

    def resolve_path(self, repo_path: str | Path) -> Path:
        """Resolve a repo path against the project root; absolute paths pass through.

        The result is normalized but symlinks are not followed.
        """
        path = Path(repo_path).expanduser()
        if not path.is_absolute():
            path = self.project_root / path
        return Path(os.path.normpath(path))

    def get(self, name: str) -> ArtifactRepoConfig:
        repo = self.load().artifacts.get(name)
        if repo is None:
            raise RepoNotFound(f'Artifact repo "{name}" not found in configuration')
        return repo

    def register(self, name: str, repo: ArtifactRepoConfig) -> None:
        """Add *repo* under *name* and persist.

        Raises:
            RegistryConflict: If *name* is already registered.
        """
        config = self.load()
        if name in config.artifacts:
            raise RegistryConflict(f'Artifact repo "{name}" is already registered')
        config.artifacts[name] = repo
        self.save(config)
        logger.info("Registered artifact repo %s -> %s", name, repo.path)

    # -- Status --

    def status(self, name: str, repo: ArtifactRepoConfig) -> RepoStatus:
        resolved = self.resolve_path(repo.path)
        if not resolved.is_dir():
            return RepoStatus(
                name=name, config=repo, exists=resolved.exists(),
                is_git_repo=False, resolved_path=resolved,
            )

        probe = gitops.probe_repo(resolved)
        if probe is not gitops.GitProbe.YES:
            if probe is gitops.GitProbe.UNAVAILABLE:
                logger.debug("git not available; reporting %s as not a repository", name)
            return RepoStatus(
                name=name, config=repo, exists=True,
                is_git_repo=False, resolved_path=resolved,
            )

        return RepoStatus(
            name=name,
            config=repo,
            exists=True,
            is_git_repo=True,
            resolved_path=resolved,
            current_branch=gitops.current_branch(resolved),
            has_uncommitted_changes=gitops.has_uncommitted_changes(resolved),
        )

    def status_all(self) -> list[RepoStatus]:
        """Status of every registered repo, probed concurrently, in registry order."""
        entries = list(self.load().artifacts.items())
        if not entries:
            return []
        workers = min(MAX_STATUS_WORKERS, len(entries))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda item: self.status(*item), entries))

    # -- Creation --

    def init(self, name: str, repo: ArtifactRepoConfig) -> Path:
        """Create a git repository on disk for *repo* and register it.

        Partially created directories are left in place on failure.

        Raises:
            GitError: If any git step fails.
            RegistryConflict: If *name* is already registered.
        """
        resolved = self.resolve_path(repo.path)
        resolved.mkdir(parents=True, exist_ok=True)
        gitops.git(resolved, "init")

        (resolved / "README.md").write_text(readme_for(name, repo.description), encoding="utf-8")
        (resolved / ".gitignore").write_text(GITIGNORE_TEMPLATE, encoding="utf-8")

        gitops.git(resolved, "add", ".")
        gitops.git(resolved, "commit", "-m", "Initial commit")

        if repo.remote:
            gitops.git(resolved, "remote", "add", "origin", repo.remote)

        self.register(name, repo)
        return resolved

    # -- Scoped file I/O --

    def _scoped_path(self, repo_name: str, file_path: str | Path) -> Path:
        repo = self.get(repo_name)
        base = self.resolve_path(repo.path).resolve()
        full = (base / file_path).resolve()
        if not is_within(full, base):
            raise PathEscape(
                f"File path '{file_path}' escapes the artifact repo directory '{base}'"
            )
        if full == base:
            raise RegistryError(f"File path '{file_path}' names the repo directory, not a file")
        return full

    def write_artifact(self, repo_name: str, file_path: str | Path, content: str) -> Path:
        """Write *content* to *file_path* inside the named repo, creating parents."""
        full = self._scoped_path(repo_name, file_path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(content, encoding="utf-8")
        return full

    def read_artifact(self, repo_name: str, file_path: str | Path) -> str:
        return self._scoped_path(repo_name, file_path).read_text(encoding="utf-8")
