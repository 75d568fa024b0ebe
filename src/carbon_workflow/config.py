"""Configuration for the workflow service.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing is required: with no configuration the service keeps its state under
`./workflow_state` and only logs notifications.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """Settings for the workflow engine, CLI and REST server.

    Environment variables:
    - WORKFLOW_STATE_PATH              (optional)
    - LOG_LEVEL                        (optional)
    - WORKFLOW_WEBHOOK_URL             (optional)
    - WORKFLOW_WEBHOOK_TOKEN           (optional)
    - WORKFLOW_WEBHOOK_TIMEOUT_SECONDS (optional)
    - WORKFLOW_TIMELINE_ENABLED        (optional)
    - WORKFLOW_CORS_ORIGINS            (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowSettings(_env_file=path_to_env)`.
    """

    state_path: Path = Field(
        default=Path("workflow_state"),
        validation_alias="WORKFLOW_STATE_PATH",
        description="Directory where project status, documents and the timeline are persisted",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    webhook_url: str = Field(
        default="",
        validation_alias="WORKFLOW_WEBHOOK_URL",
        description="If set, transition events are POSTed here as JSON",
    )
    webhook_token: str = Field(
        default="",
        validation_alias="WORKFLOW_WEBHOOK_TOKEN",
        description="Optional bearer token sent with webhook notifications",
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="WORKFLOW_WEBHOOK_TIMEOUT_SECONDS",
        gt=0,
    )

    timeline_enabled: bool = Field(
        default=True,
        validation_alias="WORKFLOW_TIMELINE_ENABLED",
        description="Append every transition event to timeline.json under the state path",
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="WORKFLOW_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    @property
    def projects_state_file(self) -> Path:
        """Path where project workflow status and history are persisted."""

        return self.state_path / "projects.json"

    @property
    def documents_state_file(self) -> Path:
        return self.state_path / "documents.json"

    @property
    def timeline_state_file(self) -> Path:
        return self.state_path / "timeline.json"

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
