"""Pipeline settings: JSON settings file > env vars > defaults.

The settings file uses PascalCase keys (``InboxPath``, ``FlowUrl``, ...)
for endpoint and path settings and snake_case keys for the values copied
into every run envelope (``thread_id``, ``project_id``, ...).

Relative paths in the file are resolved against the file's directory.
Secrets may be left out of the file and supplied through the environment:

- KINGRESS_API_KEY / ANTHROPIC_API_KEY: messages endpoint key
- KINGRESS_CLIENT_SECRET: OAuth client secret for the flow endpoint
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knowledge_ingress.core.errors import ConfigError, ConfigMissing

DEFAULT_SETTINGS_PATH = Path("config") / "settings.json"
DEFAULT_USER_PROMPT_TEMPLATE = (
    "Process the following transcript from {filename}.\n\n{transcript}"
)
DEFAULT_FLOW_SCOPE = "https://service.flow.microsoft.com//.default"
PIPELINE_MODES = ("structured", "simple")


def redact_secret(value: str | None) -> str | None:
    """Redact a secret, showing only the first 4 and last 4 characters.

    Returns None if the value is None. Short values (8 chars or fewer)
    are fully redacted as '****'.
    """
    if value is None:
        return None
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


class EnvSettings(BaseSettings):
    """Secrets and overrides read from the environment (and .env)."""

    model_config = SettingsConfigDict(
        env_prefix="KINGRESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: str = ""
    client_secret: str = ""
    config: Path | None = None


class PipelineSettings(BaseModel):
    """Typed view of the pipeline settings file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Paths
    inbox_path: Path | None = Field(default=None, alias="InboxPath")
    archive_path: Path | None = Field(default=None, alias="ArchivePath")
    knowledge_repo_path: Path | None = Field(default=None, alias="KnowledgeRepoPath")
    knowledge_repo: str | None = Field(default=None, alias="KnowledgeRepo")
    artifacts_folder: str = Field(default="artifacts", alias="ArtifactsFolder")
    runs_folder: str = Field(default="runs", alias="RunsFolder")
    output_path: Path | None = Field(default=None, alias="OutputPath")

    # Polling
    poll_interval_seconds: float = Field(default=10.0, alias="PollIntervalSeconds")
    file_filter: list[str] = Field(
        default_factory=lambda: ["*.txt", "*.md"], alias="FileFilter"
    )
    pipeline_mode: str = Field(default="structured", alias="PipelineMode")
    auto_commit: bool = Field(default=False, alias="AutoCommit")

    # Messages endpoint (API key)
    api_url: str | None = Field(default=None, alias="ApiUrl")
    api_key: str | None = Field(default=None, alias="ApiKey")
    model: str = Field(default="claude-sonnet-4-20250514", alias="Model")
    max_tokens: int = Field(default=4096, alias="MaxTokens")
    system_prompt: str | None = Field(default=None, alias="SystemPrompt")
    user_prompt_template: str = Field(
        default=DEFAULT_USER_PROMPT_TEMPLATE, alias="UserPromptTemplate"
    )

    # Flow endpoint (optionally OAuth)
    flow_url: str | None = Field(default=None, alias="FlowUrl")
    tenant_id: str | None = Field(default=None, alias="TenantId")
    client_id: str | None = Field(default=None, alias="ClientId")
    client_secret: str | None = Field(default=None, alias="ClientSecret")
    token_url: str | None = Field(default=None, alias="TokenUrl")
    scope: str = Field(default=DEFAULT_FLOW_SCOPE, alias="Scope")
    response_field: str = Field(default="reply", alias="ResponseField")
    timeout_seconds: float = Field(default=120.0, alias="TimeoutSeconds")

    # Envelope defaults
    thread_id: str = "default"
    project_id: str = "default"
    created_by: str = "knowledge-ingress"
    source_type: str = "transcript"
    language: str = "en"
    participants: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    norm_schema_version: str = "1.0"
    tac_schema_version: str = "1.0"
    sig_schema_version: str = "1.0"
    trend_window_days: int = 30

    @field_validator("file_filter", mode="before")
    @classmethod
    def _split_filter(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    @field_validator("pipeline_mode")
    @classmethod
    def _check_mode(cls, value: str) -> str:
        if value not in PIPELINE_MODES:
            raise ValueError(f"must be one of {', '.join(PIPELINE_MODES)}")
        return value

    # -- Derived locations --

    @property
    def archive_dir(self) -> Path:
        if self.archive_path is not None:
            return self.archive_path
        return self.inbox_dir / "archive"

    @property
    def inbox_dir(self) -> Path:
        if self.inbox_path is None:
            raise ConfigMissing("InboxPath")
        return self.inbox_path

    @property
    def repo_dir(self) -> Path:
        if self.knowledge_repo_path is None:
            raise ConfigMissing("KnowledgeRepoPath")
        return self.knowledge_repo_path

    @property
    def artifacts_dir(self) -> Path:
        return self.repo_dir / self.artifacts_folder

    @property
    def runs_dir(self) -> Path:
        return self.repo_dir / self.runs_folder

    @property
    def logs_dir(self) -> Path:
        if self.pipeline_mode == "simple" and self.output_path is not None:
            return self.output_path / "logs"
        return self.repo_dir / "logs"

    # -- Endpoint selection --

    @property
    def endpoint(self) -> str:
        """'flow' when a FlowUrl is configured, otherwise 'messages'."""
        return "flow" if self.flow_url else "messages"

    @property
    def uses_oauth(self) -> bool:
        return bool(self.tenant_id or self.token_url)

    @property
    def resolved_token_url(self) -> str | None:
        if self.token_url:
            return self.token_url
        if self.tenant_id:
            return f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token"
        return None

    def resolve_api_key(self, env: EnvSettings | None = None) -> str | None:
        """Resolve the API key: settings file > KINGRESS_API_KEY > ANTHROPIC_API_KEY."""
        if self.api_key:
            return self.api_key
        env = env or EnvSettings()
        return env.api_key or os.environ.get("ANTHROPIC_API_KEY") or None

    def resolve_client_secret(self, env: EnvSettings | None = None) -> str | None:
        if self.client_secret:
            return self.client_secret
        env = env or EnvSettings()
        return env.client_secret or None

    def check_required(self, env: EnvSettings | None = None) -> None:
        """Raise ConfigMissing for the first required field that is absent."""
        if self.inbox_path is None:
            raise ConfigMissing("InboxPath")
        if self.pipeline_mode == "structured":
            if self.knowledge_repo_path is None:
                raise ConfigMissing("KnowledgeRepoPath", "or KnowledgeRepo")
        elif self.output_path is None:
            raise ConfigMissing("OutputPath", "required in simple mode")

        if self.endpoint == "flow":
            if self.uses_oauth:
                if not self.client_id:
                    raise ConfigMissing("ClientId", "required for OAuth")
                if not self.resolve_client_secret(env):
                    raise ConfigMissing("ClientSecret", "or KINGRESS_CLIENT_SECRET")
        elif not self.resolve_api_key(env):
            raise ConfigMissing("ApiKey", "or ANTHROPIC_API_KEY")

    def resolve_paths(self, base_dir: Path) -> PipelineSettings:
        """Return a copy with relative path settings anchored at *base_dir*."""
        updates: dict[str, Path] = {}
        for name in ("inbox_path", "archive_path", "knowledge_repo_path", "output_path"):
            value = getattr(self, name)
            if value is not None and not value.is_absolute():
                updates[name] = (base_dir / value).resolve()
        return self.model_copy(update=updates)


def settings_from_dict(data: dict[str, Any], base_dir: Path | None = None) -> PipelineSettings:
    """Build PipelineSettings from a parsed settings dict."""
    try:
        settings = PipelineSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
    if base_dir is not None:
        settings = settings.resolve_paths(base_dir)
    return settings


def load_settings(path: Path | None = None) -> PipelineSettings:
    """Load pipeline settings from a JSON file.

    Args:
        path: Settings file. Defaults to KINGRESS_CONFIG, then
            ``config/settings.json`` in the current directory.

    Raises:
        ConfigMissing: If the settings file does not exist.
        ConfigError: If the file is not a JSON object or a value is invalid.
    """
    if path is None:
        path = EnvSettings().config or DEFAULT_SETTINGS_PATH
    path = Path(path)
    if not path.exists():
        raise ConfigMissing("settings file", str(path))

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Settings file '{path}' is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file '{path}' must contain a JSON object")

    return settings_from_dict(data, base_dir=path.resolve().parent)
