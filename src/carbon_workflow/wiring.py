"""Assemble a :class:`WorkflowEngine` from settings."""

from __future__ import annotations

from dataclasses import dataclass

from carbon_workflow.config import WorkflowSettings
from carbon_workflow.notifications import FanoutNotificationSink, build_notification_sink
from carbon_workflow.storage import JsonDocumentStore, JsonProjectStatusStore
from carbon_workflow.workflow import WorkflowEngine


@dataclass(frozen=True, slots=True)
class WorkflowServices:
    engine: WorkflowEngine
    status_store: JsonProjectStatusStore
    document_store: JsonDocumentStore
    notifications: FanoutNotificationSink | None = None

    def close(self) -> None:
        """Release network sessions held by notification sinks."""
        if self.notifications is not None:
            self.notifications.close()


def build_services(settings: WorkflowSettings) -> WorkflowServices:
    status_store = JsonProjectStatusStore(settings.projects_state_file)
    document_store = JsonDocumentStore(settings.documents_state_file)
    notifications = build_notification_sink(settings)
    engine = WorkflowEngine(
        store=status_store,
        documents=document_store,
        notifications=notifications,
    )
    return WorkflowServices(
        engine=engine,
        status_store=status_store,
        document_store=document_store,
        notifications=notifications,
    )
