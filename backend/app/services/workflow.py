"""Job status policy and document resolution.

Statuses form a closed set. Every status write goes through
:func:`validate_transition`; anything outside ``ALLOWED_TRANSITIONS`` is
rejected rather than written.
"""
from dataclasses import dataclass, field
from enum import Enum

from app.errors import InvalidTransitionError


class JobStatus(str, Enum):
    PENDING = "pending"
    CORRECTED = "corrected"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.APPROVED, JobStatus.REJECTED, JobStatus.CANCELLED}),
    JobStatus.REJECTED: frozenset({JobStatus.CORRECTED, JobStatus.CANCELLED}),
    JobStatus.CORRECTED: frozenset({JobStatus.APPROVED, JobStatus.REJECTED, JobStatus.CANCELLED}),
    JobStatus.APPROVED: frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset({JobStatus.CANCELLED}),
    JobStatus.CANCELLED: frozenset(),
}


def validate_transition(current: str, target: JobStatus, *, document_id: str | None = None) -> JobStatus:
    """Check that a job in ``current`` may move to ``target``.

    ``document_id`` is the ID document URL currently on file; approval
    is refused without one.
    """
    try:
        source = JobStatus(current)
    except ValueError:
        raise InvalidTransitionError(current, target.value, f"Unknown job status '{current}'")
    if target not in ALLOWED_TRANSITIONS[source]:
        raise InvalidTransitionError(source.value, target.value)
    if target is JobStatus.APPROVED and not document_id:
        raise InvalidTransitionError(
            source.value, target.value, "An ID document is required before a job can be approved"
        )
    return target


def initial_status(existing_client: bool) -> JobStatus:
    # Jobs for known clients skip compliance screening.
    return JobStatus.APPROVED if existing_client else JobStatus.PENDING


@dataclass(frozen=True)
class CurrentDocuments:
    document_passport: str | None
    document_id: str | None
    other_documents: list[str] = field(default_factory=list)


def current_documents(job) -> CurrentDocuments:
    """Resolve the document URLs a reviewer should see for ``job``.

    Only the most recent resubmission is consulted. A slot it leaves empty
    falls back to the job's original value, never to an earlier resubmission.
    """
    if not job.resubmissions:
        return CurrentDocuments(
            document_passport=job.document_passport,
            document_id=job.document_id,
            other_documents=list(job.other_documents or []),
        )
    latest = job.resubmissions[-1]
    others = latest.new_other_documents
    return CurrentDocuments(
        document_passport=latest.new_document_passport or job.document_passport,
        document_id=latest.new_document_id or job.document_id,
        other_documents=list(others if others is not None else (job.other_documents or [])),
    )
