"""Artifact repository registry data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ArtifactRepoConfig:
    """Configuration for a single artifact repository.

    Attributes:
        path: Filesystem path to the repo, relative to the project root or absolute.
        description: Human-readable description of what the repo contains.
        remote: Git remote URL.
        file_patterns: Glob patterns for files the repo manages.
    """

    path: str
    description: str
    remote: str | None = None
    file_patterns: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path}
        if self.remote:
            data["remote"] = self.remote
        data["description"] = self.description
        if self.file_patterns:
            data["filePatterns"] = list(self.file_patterns)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArtifactRepoConfig:
        patterns = data.get("filePatterns")
        return cls(
            path=str(data["path"]),
            description=str(data.get("description", "")),
            remote=data.get("remote") or None,
            file_patterns=[str(p) for p in patterns] if patterns else None,
        )


@dataclass
class ReposConfig:
    """Top-level registry: repository name -> config, in insertion order."""

    artifacts: dict[str, ArtifactRepoConfig] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifacts": {
                name: repo.to_dict() for name, repo in self.artifacts.items()
            }
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReposConfig:
        raw = data.get("artifacts") or {}
        return cls(
            artifacts={
                name: ArtifactRepoConfig.from_dict(entry) for name, entry in raw.items()
            }
        )


@dataclass
class RepoStatus:
    """Point-in-time status of an artifact repository on disk. Never persisted."""

    name: str
    config: ArtifactRepoConfig
    exists: bool
    is_git_repo: bool
    resolved_path: Path
    current_branch: str | None = None
    has_uncommitted_changes: bool | None = None

    @property
    def is_valid(self) -> bool:
        return self.exists and self.is_git_repo
