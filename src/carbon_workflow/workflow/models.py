"""Persisted workflow records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .state_machine import INITIAL_STATUS, ProjectStatus


class DocumentRef(BaseModel):
    """A document attached to a project, as reported by document storage.

    Only ``document_type`` matters to the workflow; the other fields are
    carried through for display.
    """

    document_type: str
    document_id: str | None = Field(default=None)
    name: str | None = Field(default=None)
    uploaded_at: str | None = Field(default=None)

    @field_validator("document_type", mode="before")
    @classmethod
    def _enum_to_value(cls, value: object) -> object:
        if isinstance(value, Enum):
            return value.value
        return value


class StatusChangeRecord(BaseModel):
    """One entry in a project's append-only status history."""

    model_config = ConfigDict(frozen=True)

    status: ProjectStatus
    timestamp: datetime
    actor_id: str
    comment: str | None = Field(default=None)


class ProjectWorkflow(BaseModel):
    """Workflow state of a single project.

    ``version`` counts applied transitions and backs the optimistic
    concurrency check in the status store.
    """

    project_id: str
    status: ProjectStatus = Field(default=INITIAL_STATUS)
    status_history: list[StatusChangeRecord] = Field(default_factory=list)
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _status_matches_history(self) -> ProjectWorkflow:
        expected = self.status_history[-1].status if self.status_history else INITIAL_STATUS
        if self.status != expected:
            raise ValueError(
                f"status {self.status.value!r} does not match last history entry "
                f"{expected.value!r}"
            )
        return self

    def appended(self, record: StatusChangeRecord) -> ProjectWorkflow:
        """Return a copy with ``record`` applied and the version bumped."""

        return ProjectWorkflow(
            project_id=self.project_id,
            status=record.status,
            status_history=[*self.status_history, record],
            version=self.version + 1,
        )
