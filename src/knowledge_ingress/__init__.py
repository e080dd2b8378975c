"""knowledge-ingress - inbox-to-repository transcript ingestion.

Usage:
    from knowledge_ingress import RepoRegistry, IngestionPipeline, WatchDriver

    registry = RepoRegistry(".")
    registry.init("notes", ArtifactRepoConfig(path="../notes", description="Meeting notes"))

    settings = load_settings(Path("config/settings.json"))
    pipeline = IngestionPipeline(settings, build_client(settings), IngressLogger(settings.logs_dir))
    WatchDriver(pipeline, settings.inbox_dir).run_once()
"""

__version__ = "0.1.0"

from knowledge_ingress.core.config import PipelineSettings, load_settings  # noqa: E402
from knowledge_ingress.core.logging import IngressLogger  # noqa: E402
from knowledge_ingress.pipeline import (  # noqa: E402
    IngestionPipeline,
    RunOutcome,
    SimplePipeline,
    WatchDriver,
)
from knowledge_ingress.remote import build_client  # noqa: E402
from knowledge_ingress.repos import (  # noqa: E402
    ArtifactRepoConfig,
    RepoRegistry,
    ReposConfig,
    RepoStatus,
)

__all__ = [
    "ArtifactRepoConfig",
    "IngestionPipeline",
    "IngressLogger",
    "PipelineSettings",
    "RepoRegistry",
    "RepoStatus",
    "ReposConfig",
    "RunOutcome",
    "SimplePipeline",
    "WatchDriver",
    "build_client",
    "load_settings",
]
