"""JSON-file backed persistence for project workflow status.

All projects live in one JSON object keyed by project id. Saves hold an
exclusive file lock across load, version check and replace, so the optimistic
``version`` check also holds between processes sharing the file.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from carbon_workflow.storage.jsonfile import (
    StateFileError,
    exclusive_lock,
    read_json,
    write_json_atomic,
)
from carbon_workflow.workflow.collaborators import PersistenceConflictError
from carbon_workflow.workflow.models import ProjectWorkflow, StatusChangeRecord
from carbon_workflow.workflow.state_machine import ProjectStatus

logger = logging.getLogger(__name__)


class JsonProjectStatusStore:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> tuple[dict[str, ProjectWorkflow], list[str]]:
        raw, problems = read_json(self._path)
        if raw is None:
            return {}, problems
        if not isinstance(raw, dict):
            logger.warning(
                "Project state file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}, [f"expected an object, got {type(raw).__name__}"]

        projects: dict[str, ProjectWorkflow] = {}
        for project_id, item in raw.items():
            try:
                projects[project_id] = ProjectWorkflow.model_validate(item)
            except ValidationError:
                logger.warning(
                    "Skipping invalid project record",
                    extra={"path": str(self._path), "project_id": project_id},
                )
                problems.append(f"project {project_id!r}")
        return projects, problems

    def load_project_status(self, project_id: str) -> ProjectWorkflow:
        with self._lock:
            projects, _ = self._load_unlocked()
        return projects.get(project_id) or ProjectWorkflow(project_id=project_id)

    def list_project_statuses(self) -> list[ProjectWorkflow]:
        with self._lock:
            projects, _ = self._load_unlocked()
        return list(projects.values())

    def save_project_status(
        self,
        project_id: str,
        status: ProjectStatus,
        history_append: StatusChangeRecord,
        *,
        expected_version: int,
    ) -> ProjectWorkflow:
        """Append ``history_append`` if the stored version is ``expected_version``.

        Raises:
            PersistenceConflictError: another writer got there first.
            StateFileError: the file holds records that failed to load; nothing
                is written so they are not lost.
        """

        if history_append.status != status:
            raise ValueError("history_append.status must equal the new status")

        with self._lock, exclusive_lock(self._path):
            projects, problems = self._load_unlocked()
            if problems:
                raise StateFileError(self._path, problems)

            current = projects.get(project_id) or ProjectWorkflow(project_id=project_id)
            if current.version != expected_version:
                raise PersistenceConflictError(project_id, expected_version, current.version)

            updated = current.appended(history_append)
            projects[project_id] = updated
            write_json_atomic(
                self._path,
                {pid: p.model_dump(mode="json") for pid, p in sorted(projects.items())},
            )
            return updated
