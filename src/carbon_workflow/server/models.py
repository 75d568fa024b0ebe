"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from carbon_workflow.workflow import DocumentRef, ProjectWorkflow, StatusChangeRecord
from carbon_workflow.workflow.state_machine import DocumentType, ProjectStatus


class ApiStatusChange(BaseModel):
    status: ProjectStatus
    timestamp: datetime
    actorId: str
    comment: str | None = None

    @classmethod
    def from_record(cls, record: StatusChangeRecord) -> ApiStatusChange:
        return cls(
            status=record.status,
            timestamp=record.timestamp,
            actorId=record.actor_id,
            comment=record.comment,
        )


class ApiWorkflow(BaseModel):
    projectId: str
    status: ProjectStatus
    statusLabel: str
    statusHistory: list[ApiStatusChange]
    allowedTransitions: list[ProjectStatus]
    version: int

    @classmethod
    def from_workflow(
        cls, workflow: ProjectWorkflow, allowed: frozenset[ProjectStatus]
    ) -> ApiWorkflow:
        return cls(
            projectId=workflow.project_id,
            status=workflow.status,
            statusLabel=workflow.status.label,
            statusHistory=[ApiStatusChange.from_record(r) for r in workflow.status_history],
            allowedTransitions=sorted(allowed, key=_state_order),
            version=workflow.version,
        )


class ApiProjectSummary(BaseModel):
    projectId: str
    status: ProjectStatus
    statusLabel: str
    updatedAt: datetime | None = None

    @classmethod
    def from_workflow(cls, workflow: ProjectWorkflow) -> ApiProjectSummary:
        last = workflow.status_history[-1] if workflow.status_history else None
        return cls(
            projectId=workflow.project_id,
            status=workflow.status,
            statusLabel=workflow.status.label,
            updatedAt=last.timestamp if last else None,
        )


class ApiStateRule(BaseModel):
    state: ProjectStatus
    label: str
    reachable: list[ProjectStatus]
    requiredDocuments: list[DocumentType]


class ApiMissingDocuments(BaseModel):
    projectId: str
    targetState: ProjectStatus
    missingDocuments: list[DocumentType]


class TransitionRequest(BaseModel):
    targetState: str = Field(min_length=1)
    actorId: str = Field(min_length=1)
    comment: str | None = None


class ApiTransitionResult(BaseModel):
    projectId: str
    previousStatus: ProjectStatus
    status: ProjectStatus
    statusHistory: list[ApiStatusChange]
    warnings: list[str] = Field(default_factory=list)


class ApiDocument(BaseModel):
    documentId: str | None
    documentType: str
    name: str | None = None
    uploadedAt: str | None = None

    @classmethod
    def from_ref(cls, ref: DocumentRef) -> ApiDocument:
        return cls(
            documentId=ref.document_id,
            documentType=ref.document_type,
            name=ref.name,
            uploadedAt=ref.uploaded_at,
        )


class AddDocumentRequest(BaseModel):
    documentType: DocumentType
    name: str | None = None


def _state_order(status: ProjectStatus) -> int:
    return list(ProjectStatus).index(status)
