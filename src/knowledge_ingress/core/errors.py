"""knowledge-ingress error types and utilities."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def atomic_write(path: Path, content: str) -> None:
    """Write content to a file atomically using temp file + rename.

    Writes to a temporary file in the same directory, fsyncs it,
    then atomically replaces the target path.
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        os.write(fd, content.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.close(fd)
        except OSError:
            pass
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class IngressError(Exception):
    """Base exception for knowledge-ingress."""

    pass


class ConfigError(IngressError):
    """The settings file is unreadable or holds an invalid value."""

    pass


class ConfigMissing(ConfigError):
    """A required settings field is absent or unusable."""

    def __init__(self, field: str, detail: str = "") -> None:
        self.field = field
        message = f"Missing required setting: {field}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RegistryError(IngressError):
    """Error reading or mutating the artifact repository registry."""

    pass


class RegistryParseError(RegistryError):
    """The registry file is not valid JSON or has the wrong shape."""

    pass


class RegistryConflict(RegistryError):
    """A repository with the same name is already registered."""

    pass


class RepoNotFound(RegistryError):
    """The named repository is not in the registry."""

    pass


class PathEscape(RegistryError):
    """A file path resolves outside its repository root."""

    pass


class GitError(IngressError):
    """A git invocation failed or git is not installed."""

    pass


class RemoteError(IngressError):
    """Calling the remote processing endpoint failed."""

    pass

