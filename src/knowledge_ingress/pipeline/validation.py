"""Shape checks on the structured response: norm, tac and sig artifacts."""

from __future__ import annotations

from typing import Any

ARTIFACT_KINDS: tuple[str, ...] = ("norm", "tac", "sig")


def _id_problem(artifact_id: Any) -> str | None:
    if not isinstance(artifact_id, str) or not artifact_id.strip():
        return "must be a non-empty string"
    if "/" in artifact_id or "\\" in artifact_id or artifact_id in (".", ".."):
        return "must be usable as a file name"
    return None


def validate_response(response: Any) -> list[str]:
    """Return every violation found; an empty list means the response is valid.

    Each of ``norm``, ``tac`` and ``sig`` must be an object whose
    ``artifact.type`` equals its own key and whose ``artifact.id`` can be
    used as a file name.
    """
    if not isinstance(response, dict):
        return [f"response must be an object, got {type(response).__name__}"]

    violations: list[str] = []
    for kind in ARTIFACT_KINDS:
        if kind not in response:
            violations.append(f"{kind}: missing")
            continue
        section = response[kind]
        if not isinstance(section, dict):
            violations.append(f"{kind}: must be an object")
            continue
        artifact = section.get("artifact")
        if not isinstance(artifact, dict):
            violations.append(f"{kind}.artifact: missing")
            continue
        if artifact.get("type") != kind:
            violations.append(
                f"{kind}.artifact.type: expected '{kind}', got {artifact.get('type')!r}"
            )
        problem = _id_problem(artifact.get("id"))
        if problem:
            violations.append(f"{kind}.artifact.id: {problem}")
    return violations
