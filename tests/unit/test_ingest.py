"""Tests for the per-file ingestion pipelines."""

from __future__ import annotations

import json
import shutil
import subprocess
from datetime import datetime, timezone

import pytest

from knowledge_ingress.core.config import PipelineSettings
from knowledge_ingress.core.errors import RemoteError
from knowledge_ingress.pipeline.ingest import IngestionPipeline, SimplePipeline, build_pipeline
from knowledge_ingress.pipeline.runs import archive_file
from knowledge_ingress.repos import git as gitops

FIXED_NOW = datetime(2024, 3, 15, 9, 30, 0, tzinfo=timezone.utc)


def _pipeline(settings, client, logger):
    return IngestionPipeline(settings, client, logger, clock=lambda: FIXED_NOW)


def _artifact_files(settings):
    root = settings.artifacts_dir
    if not root.exists():
        return []
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*.json"))


def _meta(outcome):
    return json.loads((outcome.run_dir / "meta.json").read_text())


@pytest.fixture
def transcript(workspace):
    path = workspace["inbox"] / "notes.txt"
    path.write_text("alice: ship friday\nbob: agreed")
    return path


class TestSuccess:
    def test_writes_three_artifacts(self, settings, stub_client, ingress_logger, transcript):
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)

        assert outcome.succeeded
        assert _artifact_files(settings) == ["norm/n1.json", "sig/s1.json", "tac/t1.json"]
        norm = json.loads((settings.artifacts_dir / "norm" / "n1.json").read_text())
        assert norm == {"artifact": {"type": "norm", "id": "n1"}, "rules": ["be on time"]}

    def test_run_folder_contents(self, settings, stub_client, ingress_logger, transcript):
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)

        assert outcome.run_dir.parent == settings.runs_dir
        assert outcome.run_dir.name.startswith("20240315T093000Z_")
        assert sorted(p.name for p in outcome.run_dir.iterdir()) == [
            "meta.json", "raw.txt", "request.json", "response.json",
        ]
        assert (outcome.run_dir / "raw.txt").read_text() == "alice: ship friday\nbob: agreed"
        request = json.loads((outcome.run_dir / "request.json").read_text())
        assert request["raw"]["transcript_text"] == "alice: ship friday\nbob: agreed"

        meta = _meta(outcome)
        assert meta["status"] == "success"
        assert meta["run_id"] == "run_20240315T093000Z"
        assert meta["thread_id"] == "weekly-sync"
        assert meta["source"] == "notes.txt"
        assert meta["sha12"] == outcome.run_dir.name.split("_")[1]
        assert meta["artifacts"] == {
            "norm": "artifacts/norm/n1.json",
            "tac": "artifacts/tac/t1.json",
            "sig": "artifacts/sig/s1.json",
        }
        assert isinstance(meta["duration_ms"], int)

    def test_source_archived(self, settings, stub_client, ingress_logger, transcript):
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)
        assert not transcript.exists()
        assert outcome.archived_to == settings.archive_dir / "notes.txt"
        assert outcome.archived_to.read_text().startswith("alice:")

    def test_envelope_sent(self, settings, stub_client, ingress_logger, transcript):
        _pipeline(settings, stub_client, ingress_logger).process_file(transcript)
        [envelope] = stub_client.calls
        assert envelope["run_id"] == "run_20240315T093000Z"
        assert envelope["raw"]["source_ref"] == "notes.txt"

    def test_log_lines(self, settings, stub_client, ingress_logger, transcript):
        _pipeline(settings, stub_client, ingress_logger).process_file(transcript)
        [line] = (settings.logs_dir / "ingress.log").read_text().splitlines()
        event = json.loads(line)
        assert event["status"] == "success"
        assert event["run_id"] == "run_20240315T093000Z"
        assert event["thread_id"] == "weekly-sync"
        assert not (settings.logs_dir / "errors.log").exists()

    def test_same_second_same_content_gets_new_folder(
        self, settings, stub_client, ingress_logger, workspace
    ):
        pipeline = _pipeline(settings, stub_client, ingress_logger)
        first = workspace["inbox"] / "a.txt"
        second = workspace["inbox"] / "b.txt"
        first.write_text("same")
        second.write_text("same")
        one = pipeline.process_file(first)
        two = pipeline.process_file(second)
        assert one.run_dir != two.run_dir
        assert one.run_dir.exists() and two.run_dir.exists()


class TestRemoteFailure:
    def test_failed_meta_and_file_kept(self, settings, failing_client, ingress_logger, transcript):
        outcome = _pipeline(settings, failing_client, ingress_logger).process_file(transcript)

        assert outcome.status == "failed"
        assert transcript.exists()
        meta = _meta(outcome)
        assert meta["status"] == "failed"
        assert meta["error"] == "connection refused"
        assert (outcome.run_dir / "raw.txt").exists()
        assert (outcome.run_dir / "request.json").exists()
        assert not (outcome.run_dir / "response.json").exists()
        assert _artifact_files(settings) == []

    def test_error_log(self, settings, failing_client, ingress_logger, transcript):
        _pipeline(settings, failing_client, ingress_logger).process_file(transcript)
        [line] = (settings.logs_dir / "errors.log").read_text().splitlines()
        event = json.loads(line)
        assert event["status"] == "failed"
        assert "connection refused" in event["message"]
        assert set(event) == {"timestamp", "run_id", "thread_id", "status", "message"}



class TestUndecodableTranscript:
    @pytest.fixture
    def latin1(self, workspace):
        path = workspace["inbox"] / "cafe.txt"
        path.write_bytes(b"caf\xe9 meeting")
        return path

    def test_failed_and_file_kept(self, settings, stub_client, ingress_logger, latin1):
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(latin1)

        assert outcome.status == "failed"
        assert outcome.run_id == "run_20240315T093000Z"
        assert "cannot read transcript" in outcome.error
        assert latin1.exists()
        assert stub_client.calls == []
        assert not settings.runs_dir.exists()

    def test_error_log(self, settings, stub_client, ingress_logger, latin1):
        _pipeline(settings, stub_client, ingress_logger).process_file(latin1)
        [line] = (settings.logs_dir / "errors.log").read_text().splitlines()
        event = json.loads(line)
        assert event["status"] == "failed"
        assert event["message"].startswith("cafe.txt: cannot read transcript")


class TestValidationFailure:
    def test_missing_tac_writes_nothing(
        self, settings, stub_client, valid_response, ingress_logger, transcript
    ):
        del valid_response["tac"]
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)

        assert outcome.status == "validation_failed"
        assert _artifact_files(settings) == []
        assert transcript.exists()
        meta = _meta(outcome)
        assert meta["status"] == "validation_failed"
        assert meta["validation_errors"] == ["tac: missing"]
        assert (outcome.run_dir / "response.json").exists()

    def test_mis_tagged_writes_nothing(
        self, settings, stub_client, valid_response, ingress_logger, transcript
    ):
        valid_response["sig"]["artifact"]["type"] = "signal"
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)
        assert outcome.status == "validation_failed"
        assert _artifact_files(settings) == []
        assert "validation_failed" in (settings.logs_dir / "errors.log").read_text()


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@requires_git
class TestAutoCommit:
    def test_commits_artifacts_and_run(self, settings, stub_client, ingress_logger, transcript):
        repo = settings.repo_dir
        subprocess.run(["git", "init"], cwd=repo, check=True, capture_output=True)
        settings = settings.model_copy(update={"auto_commit": True})

        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)

        assert outcome.succeeded
        tracked = gitops.git(repo, "ls-files").splitlines()
        assert "artifacts/norm/n1.json" in tracked
        assert "artifacts/tac/t1.json" in tracked
        assert "artifacts/sig/s1.json" in tracked
        assert any(p.endswith("/meta.json") for p in tracked)
        assert not any(p.startswith("logs/") for p in tracked)
        assert "notes.txt" in gitops.git(repo, "log", "-1", "--format=%s")

    def test_commit_failure_is_warning(
        self, settings, stub_client, ingress_logger, console_buffer, transcript
    ):
        """Repo is not a git repository: commit fails, run still succeeds."""
        settings = settings.model_copy(update={"auto_commit": True})
        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)

        assert outcome.succeeded
        assert not transcript.exists()
        assert len(_artifact_files(settings)) == 3
        assert "Commit failed" in console_buffer.getvalue()

    def test_artifacts_outside_repo_commit_is_warning(
        self, settings, stub_client, ingress_logger, console_buffer, transcript, workspace
    ):
        """An ArtifactsFolder outside the repo cannot be committed; the run still succeeds."""
        repo = settings.repo_dir
        subprocess.run(["git", "init"], cwd=repo, check=True, capture_output=True)
        elsewhere = workspace["root"] / "elsewhere"
        settings = settings.model_copy(
            update={"auto_commit": True, "artifacts_folder": str(elsewhere)}
        )

        outcome = _pipeline(settings, stub_client, ingress_logger).process_file(transcript)

        assert outcome.succeeded
        assert (elsewhere / "norm" / "n1.json").exists()
        assert not transcript.exists()
        assert _meta(outcome)["status"] == "success"
        [line] = (settings.logs_dir / "ingress.log").read_text().splitlines()
        assert json.loads(line)["status"] == "success"
        assert "Commit failed" in console_buffer.getvalue()
        assert gitops.git(repo, "ls-files") == ""


class TestSimplePipeline:
    @pytest.fixture
    def simple_settings(self, workspace):
        return PipelineSettings(
            InboxPath=workspace["inbox"],
            OutputPath=workspace["root"] / "out",
            PipelineMode="simple",
            FlowUrl="https://flow.example.com",
        )

    def test_writes_markdown_and_archives(self, simple_settings, stub_client, ingress_logger, transcript):
        pipeline = SimplePipeline(simple_settings, stub_client, ingress_logger, clock=lambda: FIXED_NOW)
        outcome = pipeline.process_file(transcript)

        assert outcome.succeeded
        assert outcome.output_path == simple_settings.output_path / "20240315T093000Z_notes.md"
        assert outcome.output_path.read_text() == "# Summary\n\nA short summary.\n"
        assert not transcript.exists()
        assert stub_client.calls == [("alice: ship friday\nbob: agreed", "notes.txt")]

    def test_empty_result_keeps_file(self, simple_settings, stub_client, ingress_logger, transcript):
        stub_client.text_response = "   "
        pipeline = SimplePipeline(simple_settings, stub_client, ingress_logger)
        outcome = pipeline.process_file(transcript)
        assert outcome.status == "failed"
        assert transcript.exists()
        assert not simple_settings.output_path.exists()

    def test_remote_error_keeps_file(self, simple_settings, stub_client, ingress_logger, transcript):
        stub_client.error = RemoteError("timeout")
        outcome = SimplePipeline(simple_settings, stub_client, ingress_logger).process_file(transcript)
        assert outcome.status == "failed"
        assert outcome.error == "timeout"
        assert transcript.exists()

    def test_undecodable_keeps_file(self, simple_settings, stub_client, ingress_logger, workspace):
        path = workspace["inbox"] / "cafe.txt"
        path.write_bytes(b"caf\xe9")
        outcome = SimplePipeline(simple_settings, stub_client, ingress_logger).process_file(path)
        assert outcome.status == "failed"
        assert path.exists()
        assert stub_client.calls == []

    def test_build_pipeline_selects_mode(self, simple_settings, settings, stub_client, ingress_logger):
        assert isinstance(build_pipeline(simple_settings, stub_client, ingress_logger), SimplePipeline)
        assert isinstance(build_pipeline(settings, stub_client, ingress_logger), IngestionPipeline)


class TestArchiveFile:
    def test_moves_file(self, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("x")
        dest = archive_file(src, tmp_path / "archive")
        assert dest == tmp_path / "archive" / "a.txt"
        assert not src.exists()

    def test_name_clash_gets_suffix(self, tmp_path):
        archive = tmp_path / "archive"
        archive.mkdir()
        (archive / "a.txt").write_text("old")
        src = tmp_path / "a.txt"
        src.write_text("new")
        dest = archive_file(src, archive)
        assert dest != archive / "a.txt"
        assert dest.name.startswith("a_") and dest.suffix == ".txt"
        assert (archive / "a.txt").read_text() == "old"
        assert dest.read_text() == "new"
