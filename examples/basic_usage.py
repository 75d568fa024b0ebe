#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the workflow components directly:

* load settings from `.env`
* register the documents a project needs
* walk a project from draft to submitted
* print the status history persisted under `workflow_state/`
"""

from __future__ import annotations

import argparse
from typing import Sequence

from carbon_workflow.config import WorkflowSettings
from carbon_workflow.logging import configure_logging
from carbon_workflow.wiring import build_services
from carbon_workflow.workflow import DocumentType, ProjectStatus


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a project through the first states.")
    parser.add_argument("--project", required=True, help="Project identifier")
    parser.add_argument("--actor", default="example-user", help="Actor recorded in history")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings()
    configure_logging(settings.log_level)

    services = build_services(settings)
    engine = services.engine

    # Show the gap before uploading anything.
    missing = engine.missing_documents_for(args.project, ProjectStatus.SUBMITTED)
    print(f"Missing before submission: {[d.value for d in missing]}")

    for doc_type in (
        DocumentType.PROJECT_DESIGN_DOCUMENT,
        DocumentType.SUPPORTING_DOCUMENTATION,
    ):
        services.document_store.add_document(args.project, doc_type)

    for target in (ProjectStatus.IN_PROGRESS, ProjectStatus.SUBMITTED):
        result = engine.request_transition(args.project, target, actor_id=args.actor)
        if not result.ok:
            print(f"Rejected: {result.error}")
            return 3
        print(f"{result.previous_status.value} -> {result.status.value}")

    for record in engine.get_workflow(args.project).status_history:
        print(f"{record.timestamp.isoformat()}  {record.status.value:<12} {record.actor_id}")
    print(f"Persisted to: {settings.projects_state_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
