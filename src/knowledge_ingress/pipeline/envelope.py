"""Run identifiers and the request envelope sent to the remote endpoint."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from knowledge_ingress.core.config import PipelineSettings

STAMP_FORMAT = "%Y%m%dT%H%M%SZ"


def content_sha12(text: str) -> str:
    """First 12 hex characters of the SHA-256 digest of *text*."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


def utc_stamp(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime(STAMP_FORMAT)


def make_run_id(now: datetime) -> str:
    return f"run_{utc_stamp(now)}"


def run_folder_name(now: datetime, sha12: str) -> str:
    return f"{utc_stamp(now)}_{sha12}"


def _captured_at(source: Path) -> str:
    try:
        mtime = source.stat().st_mtime
    except OSError:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()


def build_envelope(
    settings: PipelineSettings,
    source: Path,
    transcript: str,
    run_id: str,
    now: datetime,
) -> dict[str, Any]:
    """Assemble the request envelope for one transcript."""
    return {
        "project_id": settings.project_id,
        "thread_id": settings.thread_id,
        "run_id": run_id,
        "created_by": settings.created_by,
        "created_at": now.astimezone(timezone.utc).isoformat(),
        "raw": {
            "source_ref": source.name,
            "source_type": settings.source_type,
            "title": source.stem,
            "captured_at": _captured_at(source),
            "participants": list(settings.participants),
            "tags": list(settings.tags),
            "language": settings.language,
            "transcript_text": transcript,
        },
        "options": {
            "norm_schema_version": settings.norm_schema_version,
            "tac_schema_version": settings.tac_schema_version,
            "sig_schema_version": settings.sig_schema_version,
            "trend_window_days": settings.trend_window_days,
        },
    }
