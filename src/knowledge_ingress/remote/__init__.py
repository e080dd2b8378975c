"""Remote invocation clients."""

from __future__ import annotations

from knowledge_ingress.core.config import EnvSettings, PipelineSettings
from knowledge_ingress.remote.base import RemoteClient, parse_json_object
from knowledge_ingress.remote.flow import FlowClient, OAuthCredentials, TokenCache
from knowledge_ingress.remote.messages import MessagesClient


def build_client(settings: PipelineSettings, env: EnvSettings | None = None) -> RemoteClient:
    """Create the client selected by *settings*: flow when FlowUrl is set, else messages."""
    if settings.endpoint == "flow":
        credentials = None
        if settings.uses_oauth:
            credentials = OAuthCredentials(
                token_url=settings.resolved_token_url or "",
                client_id=settings.client_id or "",
                client_secret=settings.resolve_client_secret(env) or "",
                scope=settings.scope,
            )
        return FlowClient(
            settings.flow_url or "",
            credentials=credentials,
            response_field=settings.response_field,
            timeout=settings.timeout_seconds,
        )

    return MessagesClient(
        api_key=settings.resolve_api_key(env) or "",
        model=settings.model,
        api_url=settings.api_url,
        max_tokens=settings.max_tokens,
        system_prompt=settings.system_prompt,
        user_prompt_template=settings.user_prompt_template,
        timeout=settings.timeout_seconds,
    )


__all__ = [
    "FlowClient",
    "MessagesClient",
    "OAuthCredentials",
    "RemoteClient",
    "TokenCache",
    "build_client",
    "parse_json_object",
]
