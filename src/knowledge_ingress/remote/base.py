"""Common interface for remote transcript processors."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from knowledge_ingress.core.errors import RemoteError

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


class RemoteClient(ABC):
    """Sends one transcript to a remote endpoint per call. No retries."""

    @abstractmethod
    def process(self, transcript: str, source_name: str) -> str:
        """Return the endpoint's plain-text result for *transcript*.

        Raises:
            RemoteError: On transport or HTTP failure.
        """

    @abstractmethod
    def process_envelope(self, envelope: dict[str, Any]) -> dict[str, Any]:
        """Return the structured response object for a run envelope.

        Raises:
            RemoteError: On transport or HTTP failure, or a non-object response.
        """


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse *text* as a JSON object, tolerating a surrounding code fence."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        stripped = match.group(1).strip()
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise RemoteError(f"Response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise RemoteError(f"Response must be a JSON object, got {type(data).__name__}")
    return data
