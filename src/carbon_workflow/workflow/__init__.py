"""Project verification workflow.

This package introduces first-class types for:
- The fixed project status lifecycle and its document-gated transitions
- The append-only status history
- Transition events handed to notification sinks
- The engine that serialises and applies transitions per project
"""

from carbon_workflow.workflow.collaborators import PersistenceConflictError
from carbon_workflow.workflow.engine import TransitionResult, WorkflowEngine
from carbon_workflow.workflow.models import DocumentRef, ProjectWorkflow, StatusChangeRecord
from carbon_workflow.workflow.state_machine import (
    DocumentType,
    InvalidTransitionError,
    MissingDocumentsError,
    ProjectStatus,
    TransitionRejected,
    UnknownStatusError,
)

__all__ = [
    "DocumentRef",
    "DocumentType",
    "InvalidTransitionError",
    "MissingDocumentsError",
    "PersistenceConflictError",
    "ProjectStatus",
    "ProjectWorkflow",
    "StatusChangeRecord",
    "TransitionRejected",
    "TransitionResult",
    "UnknownStatusError",
    "WorkflowEngine",
]
