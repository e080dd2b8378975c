"""Shared test fixtures for knowledge-ingress."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from knowledge_ingress.core.config import PipelineSettings
from knowledge_ingress.core.errors import RemoteError
from knowledge_ingress.core.logging import IngressLogger
from knowledge_ingress.repos import RepoRegistry


@pytest.fixture(autouse=True)
def git_identity(tmp_path_factory, monkeypatch):
    """Isolate git from the user's config and give commits an identity."""
    home = tmp_path_factory.mktemp("githome")
    gitconfig = home / ".gitconfig"
    gitconfig.write_text("[init]\n\tdefaultBranch = main\n")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")


@pytest.fixture
def project_root(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def registry(project_root):
    return RepoRegistry(project_root)


def make_response(norm_id: str = "n1", tac_id: str = "t1", sig_id: str = "s1") -> dict[str, Any]:
    return {
        "norm": {"artifact": {"type": "norm", "id": norm_id}, "rules": ["be on time"]},
        "tac": {"artifact": {"type": "tac", "id": tac_id}, "actions": ["ship it"]},
        "sig": {"artifact": {"type": "sig", "id": sig_id}, "signals": []},
    }


@pytest.fixture
def valid_response():
    return make_response()


@dataclass
class StubClient:
    """Deterministic remote client that records calls and returns canned output."""

    envelope_response: Any = None
    text_response: str = "# Summary\n\nA short summary."
    error: Exception | None = None
    calls: list[Any] = field(default_factory=list)

    def process(self, transcript: str, source_name: str) -> str:
        self.calls.append((transcript, source_name))
        if self.error is not None:
            raise self.error
        return self.text_response

    def process_envelope(self, envelope: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(envelope)
        if self.error is not None:
            raise self.error
        return self.envelope_response


@pytest.fixture
def stub_client(valid_response):
    return StubClient(envelope_response=valid_response)


@pytest.fixture
def failing_client():
    return StubClient(error=RemoteError("connection refused"))


@pytest.fixture
def workspace(tmp_path):
    """Inbox and knowledge repo directories."""
    inbox = tmp_path / "inbox"
    repo = tmp_path / "knowledge"
    inbox.mkdir()
    repo.mkdir()
    return {"inbox": inbox, "repo": repo, "root": tmp_path}


@pytest.fixture
def settings(workspace):
    return PipelineSettings(
        InboxPath=workspace["inbox"],
        KnowledgeRepoPath=workspace["repo"],
        ApiKey="sk-test-key-123456",
        thread_id="weekly-sync",
        project_id="acme",
    )


@pytest.fixture
def console_buffer():
    return io.StringIO()


@pytest.fixture
def ingress_logger(settings, console_buffer):
    return IngressLogger(
        settings.logs_dir,
        console=Console(file=console_buffer, force_terminal=False, width=200),
    )
