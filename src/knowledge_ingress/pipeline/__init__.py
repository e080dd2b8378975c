"""Inbox ingestion pipeline."""

from knowledge_ingress.pipeline.driver import WatchDriver
from knowledge_ingress.pipeline.ingest import IngestionPipeline, SimplePipeline, build_pipeline
from knowledge_ingress.pipeline.runs import RunOutcome

__all__ = [
    "IngestionPipeline",
    "RunOutcome",
    "SimplePipeline",
    "WatchDriver",
    "build_pipeline",
]
