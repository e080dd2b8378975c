"""Flow variant: HTTP automation-flow endpoint, optionally OAuth-secured."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from knowledge_ingress.core.errors import RemoteError
from knowledge_ingress.remote.base import RemoteClient, parse_json_object

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_MARGIN_SECONDS = 120.0


@dataclass
class TokenCache:
    """Bearer token plus its absolute expiry (epoch seconds)."""

    token: str | None = None
    expires_at: float = 0.0

    def is_valid(self, now: float, margin: float = TOKEN_EXPIRY_MARGIN_SECONDS) -> bool:
        return bool(self.token) and now < self.expires_at - margin


@dataclass
class OAuthCredentials:
    """client_credentials grant parameters."""

    token_url: str
    client_id: str
    client_secret: str
    scope: str


class FlowClient(RemoteClient):
    """POSTs transcripts to a flow URL and extracts a named response field.

    When *credentials* are given, a bearer token is acquired through the
    client_credentials grant and cached on this object until two minutes
    before it expires.
    """

    def __init__(
        self,
        flow_url: str,
        *,
        credentials: OAuthCredentials | None = None,
        response_field: str = "reply",
        timeout: float = 120.0,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.flow_url = flow_url
        self.credentials = credentials
        self.response_field = response_field
        self.token_cache = TokenCache()
        self._http = http_client or httpx.Client(timeout=timeout)
        self._clock = clock

    def close(self) -> None:
        self._http.close()

    # -- OAuth --

    def get_valid_token(self) -> str:
        """Return the cached token, acquiring a new one if empty or near expiry."""
        if self.credentials is None:
            raise RemoteError("No OAuth credentials configured")
        now = self._clock()
        if self.token_cache.is_valid(now):
            return self.token_cache.token  # type: ignore[return-value]

        creds = self.credentials
        logger.debug("Requesting access token from %s", creds.token_url)
        try:
            response = self._http.post(
                creds.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": creds.client_id,
                    "client_secret": creds.client_secret,
                    "scope": creds.scope,
                },
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteError(f"Token request failed: {exc}") from exc

        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise RemoteError("Token response did not include an access_token")
        expires_in = float(body.get("expires_in", 3600))
        self.token_cache = TokenCache(token=token, expires_at=now + expires_in)
        return token

    # -- Invocation --

    def _post(self, payload: dict[str, Any], desc: str) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.credentials is not None:
            headers["Authorization"] = f"Bearer {self.get_valid_token()}"

        logger.debug("Flow request: url=%s, source=%s", self.flow_url, desc)
        try:
            response = self._http.post(self.flow_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteError(
                f"Flow returned HTTP {exc.response.status_code} for {desc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteError(f"Flow request failed for {desc}: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"Flow response for {desc} is not JSON") from exc

    def process(self, transcript: str, source_name: str) -> str:
        body = self._post({"transcript": transcript, "filename": source_name}, source_name)
        if not isinstance(body, dict) or self.response_field not in body:
            logger.warning(
                "Flow response for %s has no '%s' field", source_name, self.response_field
            )
            return ""
        value = body[self.response_field]
        if value is None:
            return ""
        return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)

    def process_envelope(self, envelope: dict[str, Any]) -> dict[str, Any]:
        source_name = str(envelope.get("raw", {}).get("source_ref", "transcript"))
        body = self._post(envelope, source_name)
        if not isinstance(body, dict):
            raise RemoteError(f"Flow response for {source_name} must be a JSON object")

        value = body.get(self.response_field)
        if isinstance(value, dict):
            return value
        if isinstance(value, str) and value.strip():
            return parse_json_object(value)
        return body
