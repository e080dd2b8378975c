"""Tests for the JSON-lines run log."""

from __future__ import annotations

import io
import json
import logging

from rich.console import Console

from knowledge_ingress.core.logging import IngressLogger, Verbosity, setup_logging


def _logger(tmp_path, verbosity=Verbosity.DEFAULT):
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, width=200)
    return IngressLogger(tmp_path / "logs", verbosity=verbosity, console=console), buffer


def _lines(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestIngressLogger:
    def test_success_only_in_ingress_log(self, tmp_path):
        log, _ = _logger(tmp_path)
        log.record("run_1", "t", "success", "ok")
        assert len(_lines(log.ingress_path)) == 1
        assert not log.errors_path.exists()

    def test_failures_in_both_logs(self, tmp_path):
        log, _ = _logger(tmp_path)
        log.record("run_1", "t", "failed", "timeout")
        log.record("run_2", "t", "validation_failed", "tac: missing")
        assert [e["run_id"] for e in _lines(log.ingress_path)] == ["run_1", "run_2"]
        assert [e["status"] for e in _lines(log.errors_path)] == ["failed", "validation_failed"]

    def test_compact_single_line(self, tmp_path):
        log, _ = _logger(tmp_path)
        log.record("run_1", "thread", "success", "multi\nline")
        raw = log.ingress_path.read_text()
        assert raw.count("\n") == 1
        assert ": " not in raw.split('"message"')[0]
        event = json.loads(raw)
        assert list(event)[:5] == ["timestamp", "run_id", "thread_id", "status", "message"]
        assert event["message"] == "multi\nline"

    def test_extra_fields(self, tmp_path):
        log, _ = _logger(tmp_path)
        event = log.record("run_1", "t", "success", "ok", duration_ms=42)
        assert event["duration_ms"] == 42
        assert _lines(log.ingress_path)[0]["duration_ms"] == 42

    def test_appends(self, tmp_path):
        log, _ = _logger(tmp_path)
        log.record("run_1", "t", "success", "one")
        log.record("run_2", "t", "success", "two")
        assert len(_lines(log.ingress_path)) == 2

    def test_console_echo(self, tmp_path):
        log, buffer = _logger(tmp_path)
        log.record("run_9", "t", "failed", "bad gateway")
        assert "failed run_9: bad gateway" in buffer.getvalue()


class TestStepOutput:
    def test_step_hidden_by_default(self, tmp_path):
        log, buffer = _logger(tmp_path)
        log.step("envelope written")
        assert buffer.getvalue() == ""

    def test_step_shown_when_verbose(self, tmp_path):
        log, buffer = _logger(tmp_path, Verbosity.VERBOSE)
        log.step("envelope written")
        assert "envelope written" in buffer.getvalue()

    def test_warning(self, tmp_path, caplog):
        log, buffer = _logger(tmp_path)
        with caplog.at_level(logging.WARNING):
            log.warning("commit failed")
        assert "Warning: commit failed" in buffer.getvalue()
        assert "commit failed" in caplog.text


def test_setup_logging_levels(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw["level"]))
    setup_logging(0)
    setup_logging(1)
    setup_logging(3)
    assert calls == [logging.WARNING, logging.INFO, logging.DEBUG]
