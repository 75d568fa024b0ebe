"""Workflow engine: load -> validate -> atomically persist -> notify.

Transitions on the same project are serialised by a per-project lock so the
reachability check, the document check and the write all see one snapshot.
Different projects never contend.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from .collaborators import DocumentStorage, NotificationSink, ProjectStatusStore
from .events import TransitionEvent
from .models import ProjectWorkflow, StatusChangeRecord
from .state_machine import (
    DocumentType,
    ProjectStatus,
    TransitionRejected,
    coerce_status,
    missing_documents,
    validate_transition,
)
from .state_machine import allowed_transitions as _allowed_transitions

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of :meth:`WorkflowEngine.request_transition`.

    On rejection ``error`` is set and ``status``/``status_history`` are the
    unchanged stored values.
    """

    ok: bool
    project_id: str
    status: ProjectStatus
    status_history: tuple[StatusChangeRecord, ...]
    previous_status: ProjectStatus
    error: TransitionRejected | None = None
    warnings: tuple[str, ...] = ()


class _ProjectLocks:
    """One lock per project id, alive only while some caller holds a reference."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def for_project(self, project_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[project_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class WorkflowEngine:
    """Owns the authoritative status of each project."""

    def __init__(
        self,
        *,
        store: ProjectStatusStore,
        documents: DocumentStorage,
        notifications: NotificationSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._documents = documents
        self._notifications = notifications
        self._clock = clock or _utc_now
        self._locks = _ProjectLocks()

    @staticmethod
    def allowed_transitions(state: ProjectStatus | str) -> frozenset[ProjectStatus]:
        return _allowed_transitions(coerce_status(state))

    def get_workflow(self, project_id: str) -> ProjectWorkflow:
        return self._store.load_project_status(project_id)

    def missing_documents_for(
        self, project_id: str, target: ProjectStatus | str
    ) -> list[DocumentType]:
        """Required document types still absent for a hypothetical transition.

        Does not check reachability and never mutates anything.
        """

        current = self._store.load_project_status(project_id).status
        to = coerce_status(target, current=current)
        return missing_documents(self._documents.list_documents(project_id), to)

    def list_workflows(self) -> list[ProjectWorkflow]:
        """Every stored project, ordered by id."""
        return sorted(self._store.list_project_statuses(), key=lambda w: w.project_id)

    def status_summary(self) -> dict[ProjectStatus, int]:
        counts = {status: 0 for status in ProjectStatus}
        for workflow in self._store.list_project_statuses():
            counts[workflow.status] += 1
        return counts

    def request_transition(
        self,
        project_id: str,
        target: ProjectStatus | str,
        *,
        actor_id: str,
        comment: str | None = None,
    ) -> TransitionResult:
        """Validate and apply a status change for ``project_id``.

        Validation failures come back as ``TransitionResult(ok=False)``.

        Raises:
            PersistenceConflictError: another writer changed the project between
                load and save. Nothing was written; retry from the start.
        """

        lock = self._locks.for_project(project_id)
        with lock:
            current = self._store.load_project_status(project_id)
            documents = self._documents.list_documents(project_id)

            try:
                to = validate_transition(current.status, target, documents)
            except TransitionRejected as e:
                logger.info(
                    "Transition rejected",
                    extra={
                        "project_id": project_id,
                        "current": current.status.value,
                        "target": str(getattr(target, "value", target)),
                        "reason": type(e).__name__,
                    },
                )
                return TransitionResult(
                    ok=False,
                    project_id=project_id,
                    status=current.status,
                    status_history=tuple(current.status_history),
                    previous_status=current.status,
                    error=e,
                )

            record = StatusChangeRecord(
                status=to,
                timestamp=self._next_timestamp(current),
                actor_id=actor_id,
                comment=comment,
            )
            updated = self._store.save_project_status(
                project_id, to, record, expected_version=current.version
            )

        logger.info(
            "Transition applied",
            extra={
                "project_id": project_id,
                "previous": current.status.value,
                "status": to.value,
                "actor_id": actor_id,
            },
        )

        warnings = self._notify(
            TransitionEvent(
                project_id=project_id,
                previous_state=current.status,
                new_state=to,
                actor_id=actor_id,
                timestamp=record.timestamp,
                comment=comment,
            )
        )
        return TransitionResult(
            ok=True,
            project_id=project_id,
            status=updated.status,
            status_history=tuple(updated.status_history),
            previous_status=current.status,
            warnings=warnings,
        )

    def _next_timestamp(self, current: ProjectWorkflow) -> datetime:
        # History timestamps must never decrease, even if the wall clock does.
        now = self._clock()
        if current.status_history:
            return max(now, current.status_history[-1].timestamp)
        return now

    def _notify(self, event: TransitionEvent) -> tuple[str, ...]:
        if self._notifications is None:
            return ()
        try:
            self._notifications.emit(event)
        except Exception as e:
            logger.warning(
                "Transition notification failed",
                extra={"project_id": event.project_id, "error": str(e)},
            )
            return (f"Notification delivery failed: {e}",)
        return ()
