"""Contracts for the engine's external collaborators.

The engine reads documents, persists status and emits notifications only
through these protocols. Concrete implementations live in
:mod:`carbon_workflow.storage` and :mod:`carbon_workflow.notifications`.
"""

from __future__ import annotations

from typing import Protocol

from .events import TransitionEvent
from .models import DocumentRef, ProjectWorkflow, StatusChangeRecord
from .state_machine import ProjectStatus


class PersistenceConflictError(RuntimeError):
    """The stored project changed between load and save.

    Callers retry the whole transition against freshly loaded state.
    """

    def __init__(self, project_id: str, expected_version: int, actual_version: int) -> None:
        self.project_id = project_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent modification of project {project_id!r}: "
            f"expected version {expected_version}, found {actual_version}"
        )


class DocumentStorage(Protocol):
    """Read-only view of the documents attached to a project."""

    def list_documents(self, project_id: str) -> list[DocumentRef]: ...


class NotificationSink(Protocol):
    """Fire-and-forget transition notifications. Failures are non-fatal."""

    def emit(self, event: TransitionEvent) -> None: ...


class ProjectStatusStore(Protocol):
    def load_project_status(self, project_id: str) -> ProjectWorkflow:
        """Return the stored workflow, or a fresh ``draft`` one for unknown ids."""
        ...

    def save_project_status(
        self,
        project_id: str,
        status: ProjectStatus,
        history_append: StatusChangeRecord,
        *,
        expected_version: int,
    ) -> ProjectWorkflow:
        """Atomically set ``status`` and append ``history_append``.

        Raises:
            PersistenceConflictError: the stored version is not ``expected_version``.
        """
        ...

    def list_project_statuses(self) -> list[ProjectWorkflow]: ...
