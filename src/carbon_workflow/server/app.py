"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the workflow engine; every
rule lives in :mod:`carbon_workflow.workflow`.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carbon_workflow import __version__
from carbon_workflow.config import WorkflowSettings
from carbon_workflow.server.models import (
    AddDocumentRequest,
    ApiDocument,
    ApiMissingDocuments,
    ApiProjectSummary,
    ApiStateRule,
    ApiStatusChange,
    ApiTransitionResult,
    ApiWorkflow,
    TransitionRequest,
)
from carbon_workflow.storage import DocumentNotFound, StateFileError
from carbon_workflow.wiring import WorkflowServices, build_services
from carbon_workflow.workflow import (
    InvalidTransitionError,
    MissingDocumentsError,
    PersistenceConflictError,
    UnknownStatusError,
)
from carbon_workflow.workflow.state_machine import WORKFLOW_RULES, ProjectStatus, coerce_status

logger = logging.getLogger(__name__)


def create_app(
    settings: WorkflowSettings | None = None, services: WorkflowServices | None = None
) -> FastAPI:
    settings = settings or WorkflowSettings()
    services = services or build_services(settings)
    engine = services.engine
    documents = services.document_store

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        services.close()

    app = FastAPI(
        title="Carbon Verification Workflow",
        version=__version__,
        description="REST API over the project verification workflow engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PersistenceConflictError)
    def _conflict(_request: Request, exc: PersistenceConflictError) -> JSONResponse:
        logger.warning(str(exc), extra={"project_id": exc.project_id})
        return JSONResponse(status_code=409, content={"detail": str(exc), "retry": True})

    @app.exception_handler(StateFileError)
    def _state_file(_request: Request, exc: StateFileError) -> JSONResponse:
        logger.error(str(exc), extra={"path": str(exc.path)})
        return JSONResponse(
            status_code=503, content={"detail": str(exc), "problems": exc.problems}
        )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "ok": True, "version": __version__}

    @app.get("/api/workflow/states", response_model=list[ApiStateRule])
    def list_states() -> list[ApiStateRule]:
        return [
            ApiStateRule(
                state=state,
                label=state.label,
                reachable=sorted(rule.reachable, key=list(ProjectStatus).index),
                requiredDocuments=list(rule.required_documents),
            )
            for state, rule in WORKFLOW_RULES.items()
        ]

    @app.get("/api/workflow/summary")
    def summary() -> dict[str, int]:
        return {status.value: count for status, count in engine.status_summary().items()}

    @app.get("/api/projects", response_model=list[ApiProjectSummary])
    def list_projects(status: str | None = None) -> list[ApiProjectSummary]:
        workflows = engine.list_workflows()
        if status is not None:
            try:
                wanted = coerce_status(status)
            except UnknownStatusError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e
            workflows = [w for w in workflows if w.status == wanted]
        return [ApiProjectSummary.from_workflow(w) for w in workflows]

    @app.get("/api/projects/{project_id}/workflow", response_model=ApiWorkflow)
    def get_workflow(project_id: str) -> ApiWorkflow:
        workflow = engine.get_workflow(project_id)
        return ApiWorkflow.from_workflow(workflow, engine.allowed_transitions(workflow.status))

    @app.get(
        "/api/projects/{project_id}/workflow/missing-documents",
        response_model=ApiMissingDocuments,
    )
    def missing_documents(project_id: str, target: str = Query(...)) -> ApiMissingDocuments:
        try:
            to = coerce_status(target)
        except UnknownStatusError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return ApiMissingDocuments(
            projectId=project_id,
            targetState=to,
            missingDocuments=engine.missing_documents_for(project_id, to),
        )

    @app.post("/api/projects/{project_id}/workflow/transitions", response_model=None)
    def request_transition(
        project_id: str, req: TransitionRequest
    ) -> ApiTransitionResult | JSONResponse:
        result = engine.request_transition(
            project_id, req.targetState, actor_id=req.actorId, comment=req.comment
        )
        error = result.error
        if isinstance(error, UnknownStatusError):
            return JSONResponse(status_code=400, content={"detail": str(error)})
        if isinstance(error, InvalidTransitionError):
            return JSONResponse(
                status_code=409,
                content={
                    "detail": str(error),
                    "currentState": result.status.value,
                    "requestedState": req.targetState,
                    "allowedTransitions": sorted(
                        s.value for s in engine.allowed_transitions(result.status)
                    ),
                },
            )
        if isinstance(error, MissingDocumentsError):
            return JSONResponse(
                status_code=422,
                content={
                    "detail": str(error),
                    "currentState": result.status.value,
                    "requestedState": error.target.value,
                    "missingDocuments": [d.value for d in error.missing],
                },
            )

        return ApiTransitionResult(
            projectId=result.project_id,
            previousStatus=result.previous_status,
            status=result.status,
            statusHistory=[ApiStatusChange.from_record(r) for r in result.status_history],
            warnings=list(result.warnings),
        )

    @app.get("/api/projects/{project_id}/documents", response_model=list[ApiDocument])
    def list_documents(project_id: str) -> list[ApiDocument]:
        return [ApiDocument.from_ref(d) for d in documents.list_documents(project_id)]

    @app.post(
        "/api/projects/{project_id}/documents", response_model=ApiDocument, status_code=201
    )
    def add_document(project_id: str, req: AddDocumentRequest) -> ApiDocument:
        ref = documents.add_document(project_id, req.documentType, name=req.name)
        return ApiDocument.from_ref(ref)

    @app.delete("/api/projects/{project_id}/documents/{document_id}", status_code=204)
    def remove_document(project_id: str, document_id: str) -> None:
        try:
            documents.remove_document(project_id, document_id)
        except DocumentNotFound as e:
            raise HTTPException(status_code=404, detail="Document not found") from e

    return app
