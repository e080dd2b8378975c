"""On-disk run records and source archiving."""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from knowledge_ingress.core.errors import atomic_write
from knowledge_ingress.pipeline.envelope import utc_stamp

RAW_FILE = "raw.txt"
REQUEST_FILE = "request.json"
RESPONSE_FILE = "response.json"
META_FILE = "meta.json"

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_VALIDATION_FAILED = "validation_failed"


@dataclass
class RunOutcome:
    """Result of processing one inbox file."""

    source: Path
    status: str
    run_id: str
    run_dir: Path | None = None
    artifact_paths: dict[str, Path] = field(default_factory=dict)
    output_path: Path | None = None
    error: str | None = None
    validation_errors: list[str] = field(default_factory=list)
    archived_to: Path | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


class RunRecord:
    """One run folder, ``{runs_dir}/{timestamp}_{sha12}``. Created once, never revisited."""

    def __init__(self, runs_dir: Path, folder_name: str) -> None:
        runs_dir.mkdir(parents=True, exist_ok=True)
        path = runs_dir / folder_name
        n = 1
        while path.exists():
            n += 1
            path = runs_dir / f"{folder_name}-{n}"
        path.mkdir()
        self.path = path

    def write_raw(self, text: str) -> None:
        atomic_write(self.path / RAW_FILE, text)

    def write_request(self, envelope: dict[str, Any]) -> None:
        write_json(self.path / REQUEST_FILE, envelope)

    def write_response(self, response: Any) -> None:
        write_json(self.path / RESPONSE_FILE, response)

    def write_meta(self, meta: dict[str, Any]) -> None:
        write_json(self.path / META_FILE, meta)


def archive_file(source: Path, archive_dir: Path) -> Path:
    """Move *source* into *archive_dir*; a name clash gets a timestamp suffix."""
    archive_dir.mkdir(parents=True, exist_ok=True)
    dest = archive_dir / source.name
    if dest.exists():
        stamp = utc_stamp(datetime.now(timezone.utc))
        dest = archive_dir / f"{source.stem}_{stamp}{source.suffix}"
        n = 1
        while dest.exists():
            n += 1
            dest = archive_dir / f"{source.stem}_{stamp}-{n}{source.suffix}"
    shutil.move(str(source), str(dest))
    return dest
