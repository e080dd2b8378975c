"""Per-file ingestion pipelines.

IngestionPipeline is the structured variant. Its stages run strictly in order:

    read -> envelope persisted -> remote call -> (failed | validated)
         -> (validation_failed | artifacts written) -> [commit] -> archive

SimplePipeline skips validation and writes the result text to one markdown
file. Both leave the source file in the inbox unless the run succeeds.
"""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Protocol

from knowledge_ingress.core.config import PipelineSettings
from knowledge_ingress.core.errors import ConfigMissing, GitError, RemoteError, atomic_write
from knowledge_ingress.core.logging import IngressLogger
from knowledge_ingress.pipeline.envelope import (
    build_envelope,
    content_sha12,
    make_run_id,
    run_folder_name,
    utc_stamp,
)
from knowledge_ingress.pipeline.runs import (
    STATUS_FAILED,
    STATUS_SUCCESS,
    STATUS_VALIDATION_FAILED,
    RunOutcome,
    RunRecord,
    archive_file,
)
from knowledge_ingress.pipeline.validation import ARTIFACT_KINDS, validate_response
from knowledge_ingress.remote.base import RemoteClient
from knowledge_ingress.repos import git as gitops


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FileProcessor(Protocol):
    def process_file(self, path: Path) -> RunOutcome: ...


def _read_transcript(path: Path) -> str:
    return path.read_text(encoding="utf-8-sig")


def _unreadable(
    logger: IngressLogger, settings: PipelineSettings, path: Path, run_id: str, exc: Exception
) -> RunOutcome:
    """Record a transcript that cannot be decoded; the file stays in the inbox."""
    message = f"{path.name}: cannot read transcript: {exc}"
    logger.record(run_id, settings.thread_id, STATUS_FAILED, message)
    return RunOutcome(source=path, status=STATUS_FAILED, run_id=run_id, error=message)


def _repo_relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


class IngestionPipeline:
    """Structured pipeline: envelope in, norm/tac/sig artifacts out."""

    def __init__(
        self,
        settings: PipelineSettings,
        client: RemoteClient,
        logger: IngressLogger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.client = client
        self.logger = logger
        self.clock = clock

    def _meta(self, run_id: str, sha12: str, source: Path, status: str, now: datetime) -> dict:
        return {
            "run_id": run_id,
            "thread_id": self.settings.thread_id,
            "sha12": sha12,
            "source": source.name,
            "status": status,
            "created_at": now.isoformat(),
        }

    def process_file(self, path: Path) -> RunOutcome:
        settings = self.settings
        now = self.clock()
        run_id = make_run_id(now)
        try:
            transcript = _read_transcript(path)
        except UnicodeDecodeError as exc:
            return _unreadable(self.logger, settings, path, run_id, exc)
        sha12 = content_sha12(transcript)

        envelope = build_envelope(settings, path, transcript, run_id, now)
        record = RunRecord(settings.runs_dir, run_folder_name(now, sha12))
        record.write_raw(transcript)
        record.write_request(envelope)
        self.logger.step(f"{path.name}: envelope written to {record.path}")

        started = time.monotonic()
        try:
            response = self.client.process_envelope(envelope)
        except RemoteError as exc:
            duration_ms = int((time.monotonic() - started) * 1000)
            meta = self._meta(run_id, sha12, path, STATUS_FAILED, now)
            meta.update({"error": str(exc), "duration_ms": duration_ms})
            record.write_meta(meta)
            self.logger.record(run_id, settings.thread_id, STATUS_FAILED, f"{path.name}: {exc}")
            return RunOutcome(
                source=path, status=STATUS_FAILED, run_id=run_id, run_dir=record.path,
                error=str(exc), duration_ms=duration_ms,
            )
        duration_ms = int((time.monotonic() - started) * 1000)
        record.write_response(response)

        violations = validate_response(response)
        if violations:
            meta = self._meta(run_id, sha12, path, STATUS_VALIDATION_FAILED, now)
            meta.update({"validation_errors": violations, "duration_ms": duration_ms})
            record.write_meta(meta)
            self.logger.record(
                run_id, settings.thread_id, STATUS_VALIDATION_FAILED,
                f"{path.name}: " + "; ".join(violations),
            )
            return RunOutcome(
                source=path, status=STATUS_VALIDATION_FAILED, run_id=run_id,
                run_dir=record.path, validation_errors=violations, duration_ms=duration_ms,
            )

        artifact_paths: dict[str, Path] = {}
        for kind in ARTIFACT_KINDS:
            section = response[kind]
            target = settings.artifacts_dir / kind / f"{section['artifact']['id']}.json"
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(target, json.dumps(section, indent=2, ensure_ascii=False) + "\n")
            artifact_paths[kind] = target

        meta = self._meta(run_id, sha12, path, STATUS_SUCCESS, now)
        meta.update({
            "artifacts": {
                kind: _repo_relative(p, settings.repo_dir) for kind, p in artifact_paths.items()
            },
            "run_dir": _repo_relative(record.path, settings.repo_dir),
            "duration_ms": duration_ms,
        })
        record.write_meta(meta)

        if settings.auto_commit:
            try:
                gitops.commit_paths(
                    settings.repo_dir,
                    [*artifact_paths.values(), record.path],
                    f"ingest: {path.name} ({run_id})",
                )
                self.logger.step(f"{path.name}: committed to {settings.repo_dir}")
            except GitError as exc:
                self.logger.warning(f"Commit failed for {run_id}; artifacts are on disk: {exc}")

        archived_to = archive_file(path, settings.archive_dir)
        self.logger.record(
            run_id, settings.thread_id, STATUS_SUCCESS,
            f"{path.name}: wrote {', '.join(f'{k}/{p.name}' for k, p in artifact_paths.items())}",
            duration_ms=duration_ms,
        )
        return RunOutcome(
            source=path, status=STATUS_SUCCESS, run_id=run_id, run_dir=record.path,
            artifact_paths=artifact_paths, archived_to=archived_to, duration_ms=duration_ms,
        )


class SimplePipeline:
    """Unstructured pipeline: result text written to ``{OutputPath}/{stamp}_{stem}.md``."""

    def __init__(
        self,
        settings: PipelineSettings,
        client: RemoteClient,
        logger: IngressLogger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.client = client
        self.logger = logger
        self.clock = clock

    def process_file(self, path: Path) -> RunOutcome:
        settings = self.settings
        now = self.clock()
        run_id = make_run_id(now)
        try:
            transcript = _read_transcript(path)
        except UnicodeDecodeError as exc:
            return _unreadable(self.logger, settings, path, run_id, exc)

        started = time.monotonic()
        try:
            result = self.client.process(transcript, path.name)
        except RemoteError as exc:
            self.logger.record(run_id, settings.thread_id, STATUS_FAILED, f"{path.name}: {exc}")
            return RunOutcome(source=path, status=STATUS_FAILED, run_id=run_id, error=str(exc))
        duration_ms = int((time.monotonic() - started) * 1000)

        if not result.strip():
            message = "endpoint returned an empty result"
            self.logger.record(run_id, settings.thread_id, STATUS_FAILED, f"{path.name}: {message}")
            return RunOutcome(
                source=path, status=STATUS_FAILED, run_id=run_id,
                error=message, duration_ms=duration_ms,
            )

        output_dir = settings.output_path
        if output_dir is None:
            raise ConfigMissing("OutputPath", "required in simple mode")
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / f"{utc_stamp(now)}_{path.stem}.md"
        atomic_write(target, result if result.endswith("\n") else result + "\n")

        archived_to = archive_file(path, settings.archive_dir)
        self.logger.record(
            run_id, settings.thread_id, STATUS_SUCCESS, f"{path.name}: wrote {target.name}",
            duration_ms=duration_ms,
        )
        return RunOutcome(
            source=path, status=STATUS_SUCCESS, run_id=run_id, output_path=target,
            archived_to=archived_to, duration_ms=duration_ms,
        )


def build_pipeline(
    settings: PipelineSettings, client: RemoteClient, logger: IngressLogger
) -> FileProcessor:
    if settings.pipeline_mode == "simple":
        return SimplePipeline(settings, client, logger)
    return IngestionPipeline(settings, client, logger)
