"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from carbon_workflow.storage import JsonDocumentStore, JsonProjectStatusStore
from carbon_workflow.workflow import (
    DocumentType,
    ProjectStatus,
    StatusChangeRecord,
    WorkflowEngine,
)
from carbon_workflow.workflow.events import TransitionEvent


class RecordingSink:
    """Notification sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[TransitionEvent] = []

    def emit(self, event: TransitionEvent) -> None:
        self.events.append(event)


class FailingSink:
    def emit(self, event: TransitionEvent) -> None:
        raise ConnectionError("sink unavailable")


class RacingStatusStore(JsonProjectStatusStore):
    """Lets another writer slip in between the engine's load and its first save."""

    raced = False

    def save_project_status(self, project_id, status, history_append, *, expected_version):
        if not self.raced:
            self.raced = True
            other = StatusChangeRecord(
                status=ProjectStatus.IN_PROGRESS,
                timestamp=history_append.timestamp,
                actor_id="other-writer",
            )
            super().save_project_status(
                project_id, other.status, other, expected_version=expected_version
            )
        return super().save_project_status(
            project_id, status, history_append, expected_version=expected_version
        )


class StepClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(minutes=1)
        return current


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / "workflow_state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def status_store(temp_state_dir: Path) -> JsonProjectStatusStore:
    return JsonProjectStatusStore(temp_state_dir / "projects.json")


@pytest.fixture
def document_store(temp_state_dir: Path) -> JsonDocumentStore:
    return JsonDocumentStore(temp_state_dir / "documents.json")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def racing_store(temp_state_dir: Path) -> RacingStatusStore:
    return RacingStatusStore(temp_state_dir / "projects.json")


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def engine(
    status_store: JsonProjectStatusStore,
    document_store: JsonDocumentStore,
    sink: RecordingSink,
    clock: StepClock,
) -> WorkflowEngine:
    return WorkflowEngine(
        store=status_store, documents=document_store, notifications=sink, clock=clock
    )


@pytest.fixture
def add_docs(document_store: JsonDocumentStore) -> Iterator[object]:
    """Register documents of the given types against a project."""

    def _add(project_id: str, *types: DocumentType) -> None:
        for doc_type in types:
            document_store.add_document(project_id, doc_type)

    yield _add
