"""API-key variant: Anthropic messages endpoint."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from knowledge_ingress.core.errors import RemoteError
from knowledge_ingress.remote.base import RemoteClient, parse_json_object

if TYPE_CHECKING:
    from anthropic import Anthropic

logger = logging.getLogger(__name__)

_MESSAGES_SUFFIX = "/v1/messages"


def render_prompt(template: str, transcript: str, filename: str) -> str:
    """Substitute ``{transcript}`` and ``{filename}`` into *template*.

    Any other braces in the template are left untouched.
    """
    return template.replace("{filename}", filename).replace("{transcript}", transcript)


def base_url_from(api_url: str | None) -> str | None:
    """Accept either a base URL or the full messages endpoint URL."""
    if not api_url:
        return None
    url = api_url.rstrip("/")
    if url.endswith(_MESSAGES_SUFFIX):
        url = url[: -len(_MESSAGES_SUFFIX)]
    return url


class MessagesClient(RemoteClient):
    """Sends the transcript as a single user message and returns the text blocks."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        api_url: str | None = None,
        max_tokens: int = 4096,
        system_prompt: str | None = None,
        user_prompt_template: str = "{transcript}",
        timeout: float = 120.0,
        client: Anthropic | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt
        self.user_prompt_template = user_prompt_template
        if client is None:
            import anthropic

            kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0, "timeout": timeout}
            base_url = base_url_from(api_url)
            if base_url:
                kwargs["base_url"] = base_url
            client = anthropic.Anthropic(**kwargs)
        self._client = client

    def _send(self, user_message: str, desc: str) -> str:
        import anthropic

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": user_message}],
        }
        if self.system_prompt:
            kwargs["system"] = self.system_prompt

        logger.debug("Messages request: model=%s, source=%s", self.model, desc)
        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise RemoteError(f"Messages API error processing {desc}: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug("Messages response: %d chars", len(text))
        return text

    def process(self, transcript: str, source_name: str) -> str:
        message = render_prompt(self.user_prompt_template, transcript, source_name)
        return self._send(message, source_name)

    def process_envelope(self, envelope: dict[str, Any]) -> dict[str, Any]:
        raw = envelope.get("raw", {})
        source_name = str(raw.get("source_ref", "transcript"))
        payload = json.dumps(envelope, ensure_ascii=False, indent=2)
        message = render_prompt(self.user_prompt_template, payload, source_name)
        return parse_json_object(self._send(message, source_name))
