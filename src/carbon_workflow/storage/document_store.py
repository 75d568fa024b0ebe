"""Local registry of documents attached to projects.

File contents are owned by an external document service; this store only
records which typed documents a project has, which is all the workflow needs.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from carbon_workflow.storage.jsonfile import (
    StateFileError,
    exclusive_lock,
    read_json,
    write_json_atomic,
)
from carbon_workflow.workflow.models import DocumentRef
from carbon_workflow.workflow.state_machine import DocumentType

logger = logging.getLogger(__name__)

_Registry = dict[str, list[DocumentRef]]


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


class DocumentNotFound(KeyError):
    pass


class JsonDocumentStore:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def _load_unlocked(self) -> tuple[_Registry, list[str]]:
        raw, problems = read_json(self._path)
        if raw is None:
            return {}, problems
        if not isinstance(raw, dict):
            logger.warning(
                "Document registry has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}, [f"expected an object, got {type(raw).__name__}"]

        out: dict[str, list[DocumentRef]] = {}
        for project_id, items in raw.items():
            if not isinstance(items, list):
                logger.warning(
                    "Skipping invalid document list",
                    extra={"path": str(self._path), "project_id": project_id},
                )
                problems.append(f"project {project_id!r}")
                continue
            docs: list[DocumentRef] = []
            for index, item in enumerate(items):
                try:
                    docs.append(DocumentRef.model_validate(item))
                except ValidationError:
                    logger.warning(
                        "Skipping invalid document entry",
                        extra={"path": str(self._path), "project_id": project_id, "index": index},
                    )
                    problems.append(f"project {project_id!r} entry {index}")
            out[project_id] = docs
        return out, problems

    def _update(self, change: Callable[[_Registry], DocumentRef | None]) -> DocumentRef | None:
        with self._lock, exclusive_lock(self._path):
            documents, problems = self._load_unlocked()
            if problems:
                raise StateFileError(self._path, problems)
            result = change(documents)
            write_json_atomic(
                self._path,
                {
                    pid: [d.model_dump(mode="json") for d in docs]
                    for pid, docs in sorted(documents.items())
                },
            )
            return result

    def list_documents(self, project_id: str) -> list[DocumentRef]:
        with self._lock:
            documents, _ = self._load_unlocked()
        return list(documents.get(project_id, []))

    def add_document(
        self,
        project_id: str,
        document_type: DocumentType,
        *,
        name: str | None = None,
    ) -> DocumentRef:
        ref = DocumentRef(
            document_type=document_type.value,
            document_id=uuid.uuid4().hex,
            name=name,
            uploaded_at=_utc_now_iso(),
        )

        def _add(documents: _Registry) -> DocumentRef:
            documents.setdefault(project_id, []).append(ref)
            return ref

        self._update(_add)
        return ref

    def remove_document(self, project_id: str, document_id: str) -> None:
        def _remove(documents: _Registry) -> None:
            existing = documents.get(project_id, [])
            kept = [d for d in existing if d.document_id != document_id]
            if len(kept) == len(existing):
                raise DocumentNotFound(document_id)
            documents[project_id] = kept

        self._update(_remove)
