"""Unit tests for configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from carbon_workflow.config import WorkflowSettings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for var in ("WORKFLOW_STATE_PATH", "LOG_LEVEL", "WORKFLOW_WEBHOOK_URL"):
        monkeypatch.delenv(var, raising=False)

    settings = WorkflowSettings()

    assert settings.state_path == Path("workflow_state")
    assert settings.log_level == "INFO"
    assert settings.webhook_url == ""
    assert settings.webhook_timeout_seconds == 10.0
    assert settings.timeline_enabled is True
    assert settings.projects_state_file == Path("workflow_state") / "projects.json"
    assert settings.documents_state_file == Path("workflow_state") / "documents.json"
    assert settings.timeline_state_file == Path("workflow_state") / "timeline.json"


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WORKFLOW_STATE_PATH", str(tmp_path / "state"))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("WORKFLOW_WEBHOOK_URL", "https://hooks.example.test")
    monkeypatch.setenv("WORKFLOW_CORS_ORIGINS", "https://a.example, ,https://b.example")

    settings = WorkflowSettings(_env_file=None)  # type: ignore[call-arg]

    assert settings.state_path == tmp_path / "state"
    assert settings.log_level == "DEBUG"
    assert settings.webhook_url == "https://hooks.example.test"
    assert settings.parsed_cors_origins() == ["https://a.example", "https://b.example"]


def test_settings_from_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("WORKFLOW_TIMELINE_ENABLED", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("WORKFLOW_TIMELINE_ENABLED=false\n", encoding="utf-8")

    settings = WorkflowSettings(_env_file=env_file)  # type: ignore[call-arg]

    assert settings.timeline_enabled is False


def test_webhook_timeout_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKFLOW_WEBHOOK_TIMEOUT_SECONDS", "0")
    with pytest.raises(ValidationError):
        WorkflowSettings(_env_file=None)  # type: ignore[call-arg]
