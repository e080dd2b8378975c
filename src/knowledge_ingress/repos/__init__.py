"""Artifact repository registry."""

from knowledge_ingress.repos.models import ArtifactRepoConfig, ReposConfig, RepoStatus
from knowledge_ingress.repos.registry import RepoRegistry

__all__ = [
    "ArtifactRepoConfig",
    "RepoRegistry",
    "RepoStatus",
    "ReposConfig",
]
