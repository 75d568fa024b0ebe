"""Unit tests for local JSON persistence."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from carbon_workflow.storage import (
    DocumentNotFound,
    JsonDocumentStore,
    JsonProjectStatusStore,
    StateFileError,
)
from carbon_workflow.workflow import (
    DocumentType,
    PersistenceConflictError,
    ProjectStatus,
    ProjectWorkflow,
    StatusChangeRecord,
)


def _record(status: ProjectStatus, actor: str = "alice") -> StatusChangeRecord:
    return StatusChangeRecord(
        status=status, timestamp=datetime(2025, 1, 1, tzinfo=UTC), actor_id=actor
    )


def test_status_store_roundtrip(tmp_path: Path) -> None:
    store = JsonProjectStatusStore(tmp_path / "workflow_state" / "projects.json")

    fresh = store.load_project_status("p1")
    assert fresh.status == ProjectStatus.DRAFT
    assert fresh.status_history == []
    assert fresh.version == 0

    saved = store.save_project_status(
        "p1", ProjectStatus.IN_PROGRESS, _record(ProjectStatus.IN_PROGRESS), expected_version=0
    )
    assert saved.version == 1

    loaded = JsonProjectStatusStore(store.path).load_project_status("p1")
    assert loaded.status == ProjectStatus.IN_PROGRESS
    assert loaded.version == 1
    assert loaded.status_history[0].actor_id == "alice"
    assert loaded.status_history[0].timestamp == datetime(2025, 1, 1, tzinfo=UTC)
    assert not [p for p in store.path.parent.iterdir() if p.name.endswith(".tmp")]


def test_status_store_rejects_stale_version(tmp_path: Path) -> None:
    store = JsonProjectStatusStore(tmp_path / "projects.json")
    store.save_project_status(
        "p1", ProjectStatus.IN_PROGRESS, _record(ProjectStatus.IN_PROGRESS), expected_version=0
    )
    raw_before = store.path.read_bytes()

    with pytest.raises(PersistenceConflictError):
        store.save_project_status(
            "p1", ProjectStatus.SUBMITTED, _record(ProjectStatus.SUBMITTED), expected_version=0
        )

    assert store.path.read_bytes() == raw_before


def test_status_store_requires_matching_record(tmp_path: Path) -> None:
    store = JsonProjectStatusStore(tmp_path / "projects.json")
    with pytest.raises(ValueError):
        store.save_project_status(
            "p1", ProjectStatus.IN_PROGRESS, _record(ProjectStatus.SUBMITTED), expected_version=0
        )
    assert not store.path.exists()


def test_status_store_reads_corrupt_file_as_empty_but_will_not_overwrite_it(
    tmp_path: Path,
) -> None:
    path = tmp_path / "projects.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonProjectStatusStore(path)

    assert store.list_project_statuses() == []
    assert store.load_project_status("p1").status == ProjectStatus.DRAFT

    with pytest.raises(StateFileError):
        store.save_project_status(
            "p1", ProjectStatus.IN_PROGRESS, _record(ProjectStatus.IN_PROGRESS), expected_version=0
        )
    assert path.read_text(encoding="utf-8") == "{not json"


def test_workflow_status_must_match_history() -> None:
    with pytest.raises(ValidationError):
        ProjectWorkflow(project_id="p1", status=ProjectStatus.ISSUED)
    with pytest.raises(ValidationError):
        ProjectWorkflow(
            project_id="p1",
            status=ProjectStatus.DRAFT,
            status_history=[_record(ProjectStatus.IN_PROGRESS)],
        )


def test_document_store_add_list_remove(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path / "documents.json")
    assert store.list_documents("p1") == []

    pdd = store.add_document("p1", DocumentType.PROJECT_DESIGN_DOCUMENT, name="PDD v1")
    store.add_document("p2", DocumentType.MONITORING_REPORT)

    docs = JsonDocumentStore(tmp_path / "documents.json").list_documents("p1")
    assert [d.document_type for d in docs] == ["project-design-document"]
    assert docs[0].name == "PDD v1"
    assert docs[0].document_id == pdd.document_id

    assert pdd.document_id is not None
    store.remove_document("p1", pdd.document_id)
    assert store.list_documents("p1") == []
    assert len(store.list_documents("p2")) == 1

    with pytest.raises(DocumentNotFound):
        store.remove_document("p1", pdd.document_id)


def test_status_store_instances_sharing_a_file_never_both_win(tmp_path: Path) -> None:
    path = tmp_path / "projects.json"
    stores = [JsonProjectStatusStore(path), JsonProjectStatusStore(path)]
    project_ids = [f"p{n}" for n in range(40)]
    outcomes: dict[str, list[str]] = {pid: [] for pid in project_ids}
    errors: list[BaseException] = []
    barrier = threading.Barrier(len(stores))

    def writer(store: JsonProjectStatusStore, actor: str) -> None:
        for pid in project_ids:
            barrier.wait()
            try:
                store.save_project_status(
                    pid,
                    ProjectStatus.IN_PROGRESS,
                    _record(ProjectStatus.IN_PROGRESS, actor),
                    expected_version=0,
                )
                outcomes[pid].append("saved")
            except PersistenceConflictError:
                outcomes[pid].append("conflict")
            except BaseException as e:
                errors.append(e)

    threads = [
        threading.Thread(target=writer, args=(store, f"writer-{n}"))
        for n, store in enumerate(stores)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    for pid in project_ids:
        assert sorted(outcomes[pid]) == ["conflict", "saved"]
        loaded = JsonProjectStatusStore(path).load_project_status(pid)
        assert loaded.version == 1
        assert len(loaded.status_history) == 1
    assert not [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")]


def test_status_store_refuses_to_drop_invalid_records(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "projects.json"
    path.write_text(
        json.dumps(
            {
                "p1": {"project_id": "p1", "status": "draft", "status_history": [], "version": 0},
                "p2": {"project_id": "p2", "status": "issued", "status_history": []},
            }
        ),
        encoding="utf-8",
    )
    raw_before = path.read_bytes()
    store = JsonProjectStatusStore(path)

    with caplog.at_level("WARNING"):
        assert [w.project_id for w in store.list_project_statuses()] == ["p1"]
    assert any(getattr(r, "project_id", None) == "p2" for r in caplog.records)

    with pytest.raises(StateFileError) as exc_info:
        store.save_project_status(
            "p2", ProjectStatus.IN_PROGRESS, _record(ProjectStatus.IN_PROGRESS), expected_version=0
        )
    assert exc_info.value.problems == ["project 'p2'"]
    assert path.read_bytes() == raw_before


def test_document_store_refuses_to_drop_invalid_entries(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "documents.json"
    path.write_text(
        json.dumps(
            {
                "p1": [
                    {"document_type": "project-design-document", "document_id": "a"},
                    {"document_id": "b"},
                ],
                "p2": {"not": "a list"},
            }
        ),
        encoding="utf-8",
    )
    raw_before = path.read_bytes()
    store = JsonDocumentStore(path)

    with caplog.at_level("WARNING"):
        assert [d.document_id for d in store.list_documents("p1")] == ["a"]
        assert store.list_documents("p2") == []
    warned = {getattr(r, "project_id", None) for r in caplog.records}
    assert {"p1", "p2"} <= warned

    with pytest.raises(StateFileError) as exc_info:
        store.add_document("p3", DocumentType.PROJECT_DESIGN_DOCUMENT)
    assert len(exc_info.value.problems) == 2
    with pytest.raises(StateFileError):
        store.remove_document("p1", "a")
    assert path.read_bytes() == raw_before


def test_document_store_instances_sharing_a_file_keep_every_add(tmp_path: Path) -> None:
    path = tmp_path / "documents.json"
    stores = [JsonDocumentStore(path), JsonDocumentStore(path)]
    barrier = threading.Barrier(len(stores))
    errors: list[BaseException] = []

    def writer(store: JsonDocumentStore) -> None:
        barrier.wait()
        try:
            for _ in range(20):
                store.add_document("p1", DocumentType.MONITORING_REPORT)
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(store,)) for store in stores]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    docs = JsonDocumentStore(path).list_documents("p1")
    assert len(docs) == 40
    assert len({d.document_id for d in docs}) == 40
