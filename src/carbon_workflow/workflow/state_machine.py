"""Project verification workflow: states, transition table and validation.

Everything in this module is pure. Loading project state, locking and
persistence live in :mod:`carbon_workflow.workflow.engine`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import DocumentRef


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    VALIDATED = "validated"
    REGISTERED = "registered"
    MONITORING = "monitoring"
    VERIFICATION = "verification"
    VERIFIED = "verified"
    ISSUANCE = "issuance"
    ISSUED = "issued"

    @property
    def label(self) -> str:
        """Human readable form, e.g. ``"In progress"``."""

        return self.value.replace("-", " ").capitalize()


class DocumentType(str, Enum):
    PROJECT_DESIGN_DOCUMENT = "project-design-document"
    SUPPORTING_DOCUMENTATION = "supporting-documentation"
    VALIDATION_REPORT = "validation-report"
    REGISTRATION_PROOF = "registration-proof"
    MONITORING_REPORT = "monitoring-report"
    VERIFICATION_REPORT = "verification-report"
    VERIFICATION_STATEMENT = "verification-statement"
    ISSUANCE_REQUEST = "issuance-request"
    ISSUANCE_CONFIRMATION = "issuance-confirmation"


INITIAL_STATUS = ProjectStatus.DRAFT


@dataclass(frozen=True, slots=True)
class TransitionRule:
    """Outgoing edges of a state and the documents needed to enter it."""

    reachable: frozenset[ProjectStatus]
    required_documents: tuple[DocumentType, ...] = ()


WORKFLOW_RULES: dict[ProjectStatus, TransitionRule] = {
    ProjectStatus.DRAFT: TransitionRule(
        reachable=frozenset({ProjectStatus.IN_PROGRESS}),
    ),
    ProjectStatus.IN_PROGRESS: TransitionRule(
        reachable=frozenset({ProjectStatus.SUBMITTED, ProjectStatus.DRAFT}),
        required_documents=(DocumentType.PROJECT_DESIGN_DOCUMENT,),
    ),
    ProjectStatus.SUBMITTED: TransitionRule(
        reachable=frozenset({ProjectStatus.IN_PROGRESS, ProjectStatus.VALIDATED}),
        required_documents=(
            DocumentType.PROJECT_DESIGN_DOCUMENT,
            DocumentType.SUPPORTING_DOCUMENTATION,
        ),
    ),
    ProjectStatus.VALIDATED: TransitionRule(
        reachable=frozenset({ProjectStatus.REGISTERED}),
        required_documents=(DocumentType.VALIDATION_REPORT,),
    ),
    ProjectStatus.REGISTERED: TransitionRule(
        reachable=frozenset({ProjectStatus.MONITORING}),
        required_documents=(DocumentType.REGISTRATION_PROOF,),
    ),
    ProjectStatus.MONITORING: TransitionRule(
        reachable=frozenset({ProjectStatus.VERIFICATION}),
        required_documents=(DocumentType.MONITORING_REPORT,),
    ),
    ProjectStatus.VERIFICATION: TransitionRule(
        reachable=frozenset({ProjectStatus.VERIFIED, ProjectStatus.MONITORING}),
        required_documents=(DocumentType.VERIFICATION_REPORT,),
    ),
    ProjectStatus.VERIFIED: TransitionRule(
        reachable=frozenset({ProjectStatus.ISSUANCE, ProjectStatus.MONITORING}),
        required_documents=(DocumentType.VERIFICATION_STATEMENT,),
    ),
    ProjectStatus.ISSUANCE: TransitionRule(
        reachable=frozenset({ProjectStatus.ISSUED, ProjectStatus.VERIFIED}),
        required_documents=(DocumentType.ISSUANCE_REQUEST,),
    ),
    # Crediting periods repeat: issued projects go back to monitoring.
    ProjectStatus.ISSUED: TransitionRule(
        reachable=frozenset({ProjectStatus.MONITORING}),
        required_documents=(DocumentType.ISSUANCE_CONFIRMATION,),
    ),
}


class TransitionRejected(ValueError):
    """Base class for user-correctable transition failures."""


class InvalidTransitionError(TransitionRejected):
    """Raised when the target state is not reachable from the current state."""

    def __init__(self, current: ProjectStatus, requested: ProjectStatus | str) -> None:
        self.current = current
        self.requested = requested
        requested_value = requested.value if isinstance(requested, ProjectStatus) else requested
        valid = sorted(s.value for s in allowed_transitions(current))
        super().__init__(
            f"Invalid transition: {current.value} -> {requested_value}. "
            f"Valid transitions from {current.value!r}: {valid}"
        )


class UnknownStatusError(InvalidTransitionError):
    """Raised when the requested target is not a workflow state at all."""

    def __init__(self, current: ProjectStatus, requested: str) -> None:
        self.current = current
        self.requested = requested
        TransitionRejected.__init__(
            self,
            f"Unknown project status: {requested!r}. "
            f"Valid statuses: {[s.value for s in ProjectStatus]}",
        )


class MissingDocumentsError(TransitionRejected):
    """Raised when required documents are absent. Lists every missing type."""

    def __init__(self, target: ProjectStatus, missing: list[DocumentType]) -> None:
        self.target = target
        self.missing = list(missing)
        super().__init__(
            f"Cannot enter {target.value!r}: missing documents "
            f"{[d.value for d in self.missing]}"
        )


def parse_status(value: ProjectStatus | str) -> ProjectStatus | None:
    if isinstance(value, ProjectStatus):
        return value
    try:
        return ProjectStatus(value)
    except ValueError:
        return None


def coerce_status(
    value: ProjectStatus | str, *, current: ProjectStatus = INITIAL_STATUS
) -> ProjectStatus:
    """Return ``value`` as a :class:`ProjectStatus` or raise :class:`UnknownStatusError`."""

    status = parse_status(value)
    if status is None:
        raise UnknownStatusError(current, str(value))
    return status


def allowed_transitions(state: ProjectStatus) -> frozenset[ProjectStatus]:
    rule = WORKFLOW_RULES.get(state)
    return rule.reachable if rule is not None else frozenset()


def required_documents(target: ProjectStatus) -> tuple[DocumentType, ...]:
    rule = WORKFLOW_RULES.get(target)
    return rule.required_documents if rule is not None else ()


def missing_documents(
    documents: Iterable[DocumentRef], target: ProjectStatus
) -> list[DocumentType]:
    """Required document types for ``target`` with no matching document.

    Order follows the transition table so messages are stable.
    """

    # External documents may carry tags outside the vocabulary; compare raw values.
    present = {_tag(doc.document_type) for doc in documents}
    return [d for d in required_documents(target) if d.value not in present]


def _tag(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def validate_transition(
    current: ProjectStatus,
    target: ProjectStatus | str,
    documents: Iterable[DocumentRef],
) -> ProjectStatus:
    """Check reachability, then document prerequisites.

    Returns the coerced target on success.

    Raises:
        UnknownStatusError: ``target`` is not a workflow state.
        InvalidTransitionError: ``target`` is not reachable from ``current``.
        MissingDocumentsError: one or more required documents are absent.
    """

    to = coerce_status(target, current=current)
    if to not in allowed_transitions(current):
        raise InvalidTransitionError(current, to)

    missing = missing_documents(documents, to)
    if missing:
        raise MissingDocumentsError(to, missing)
    return to
