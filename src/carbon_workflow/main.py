"""CLI entrypoint for the project verification workflow."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from carbon_workflow import __version__
from carbon_workflow.config import WorkflowSettings
from carbon_workflow.logging import configure_logging
from carbon_workflow.storage import StateFileError
from carbon_workflow.wiring import WorkflowServices, build_services
from carbon_workflow.workflow import (
    DocumentType,
    MissingDocumentsError,
    PersistenceConflictError,
    ProjectStatus,
    UnknownStatusError,
    WorkflowEngine,
)
from carbon_workflow.workflow.state_machine import WORKFLOW_RULES

logger = logging.getLogger(__name__)

EXIT_REJECTED = 3
EXIT_CONFLICT = 4
EXIT_STATE_FILE = 5


def _status_choices() -> list[str]:
    return [s.value for s in ProjectStatus]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="carbon-workflow",
        description="Carbon credit project verification workflow",
    )
    parser.add_argument(
        "--version", action="version", version=f"carbon-verification-workflow {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("states", help="Print the workflow state table")

    status = subparsers.add_parser("status", help="Show a project's status and history")
    status.add_argument("--project", required=True, help="Project identifier")

    allowed = subparsers.add_parser(
        "allowed", help="List the states reachable from a given state"
    )
    allowed.add_argument("--state", required=True, choices=_status_choices())

    missing = subparsers.add_parser(
        "missing",
        help="List documents a project still needs before entering a target state",
    )
    missing.add_argument("--project", required=True, help="Project identifier")
    missing.add_argument("--to", dest="target", required=True, choices=_status_choices())

    transition = subparsers.add_parser("transition", help="Request a status transition")
    transition.add_argument("--project", required=True, help="Project identifier")
    transition.add_argument("--to", dest="target", required=True, help="Target state")
    transition.add_argument("--actor", required=True, help="Identifier of the requesting user")
    transition.add_argument("--comment", default=None, help="Optional comment for the history")

    add_document = subparsers.add_parser(
        "add-document", help="Register a typed document against a project"
    )
    add_document.add_argument("--project", required=True, help="Project identifier")
    add_document.add_argument(
        "--type",
        dest="document_type",
        required=True,
        choices=[d.value for d in DocumentType],
    )
    add_document.add_argument("--name", default=None, help="Optional display name")

    subparsers.add_parser("projects", help="List stored projects with their status")

    subparsers.add_parser("summary", help="Count projects per status")

    serve = subparsers.add_parser("serve", help="Run the REST API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "states":
            for state, rule in WORKFLOW_RULES.items():
                reachable = ", ".join(sorted(s.value for s in rule.reachable))
                required = ", ".join(d.value for d in rule.required_documents) or "-"
                print(f"{state.value:<14} -> {reachable:<28} requires: {required}")
            return 0

        if args.command == "allowed":
            for value in sorted(s.value for s in WorkflowEngine.allowed_transitions(args.state)):
                print(value)
            return 0

        if args.command == "serve":
            import uvicorn

            from carbon_workflow.server import create_app

            uvicorn.run(create_app(settings), host=args.host, port=args.port)
            return 0

        services = build_services(settings)
        try:
            return _run_project_command(args, services)
        finally:
            services.close()

    except UnknownStatusError as e:
        print(str(e), file=sys.stderr)
        return EXIT_REJECTED

    except PersistenceConflictError as e:
        logger.warning(str(e), extra={"project_id": e.project_id})
        print(f"{e}. Retry the command.", file=sys.stderr)
        return EXIT_CONFLICT

    except StateFileError as e:
        logger.error(str(e), extra={"path": str(e.path)})
        print(str(e), file=sys.stderr)
        return EXIT_STATE_FILE

    except Exception:
        logger.exception("Command failed")
        return 1


def _run_project_command(args: argparse.Namespace, services: WorkflowServices) -> int:
    engine = services.engine

    if args.command == "status":
        workflow = engine.get_workflow(args.project)
        print(json.dumps(workflow.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return 0

    if args.command == "projects":
        for workflow in engine.list_workflows():
            print(f"{workflow.project_id:<24} {workflow.status.label}")
        return 0

    if args.command == "missing":
        missing = engine.missing_documents_for(args.project, args.target)
        if not missing:
            print(f"No documents missing for {args.target}")
        for doc in missing:
            print(doc.value)
        return 0

    if args.command == "add-document":
        ref = services.document_store.add_document(
            args.project, DocumentType(args.document_type), name=args.name
        )
        print(f"Registered {ref.document_type} document {ref.document_id}")
        return 0

    if args.command == "summary":
        for status, count in engine.status_summary().items():
            print(f"{status.value:<14} {count}")
        return 0

    if args.command == "transition":
        result = engine.request_transition(
            args.project, args.target, actor_id=args.actor, comment=args.comment
        )
        if result.error is not None:
            print(str(result.error), file=sys.stderr)
            if isinstance(result.error, MissingDocumentsError):
                for doc in result.error.missing:
                    print(f"  missing: {doc.value}", file=sys.stderr)
            return EXIT_REJECTED
        for warning in result.warnings:
            print(f"warning: {warning}", file=sys.stderr)
        print(f"{args.project}: {result.previous_status.value} -> {result.status.value}")
        return 0

    logger.error("Unknown command", extra={"command": args.command})
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
