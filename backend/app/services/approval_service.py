"""KYC and BRA sign-off on completed jobs.

Both chains run the same three stages, LMRO then DLMRO then CEO, and every
approval carries a supporting document. A CEO sign-off on KYC opens the BRA
chain for the same job. The job itself stays ``completed`` throughout; chain
progress is recorded in its timeline.
"""
import logging
import uuid

from fastapi import UploadFile
from sqlalchemy.orm import Session

from app.errors import ConflictError, IntakeError, NotFoundError, PermissionDeniedError
from app.models.approval import ApprovalProcess
from app.models.job import Job
from app.models.user import User
from app.schemas.approval import StageApproval, StageDocument
from app.services import notification_service as notifications
from app.services.job_service import add_timeline_entry
from app.services.permissions import role_allows
from app.services.storage_service import has_file, read_upload, store_bytes
from app.services.workflow import JobStatus
from app.utils.dates import utc_now

logger = logging.getLogger("app.approvals")

KINDS = ("kyc", "bra")
STAGES = ("lmro", "dlmro", "ceo")
PROCESS_STATUSES = ("pending", "in_progress", "completed", "rejected")

_LABELS = {"kyc": "KYC", "bra": "BRA"}


def label(kind: str) -> str:
    return _LABELS[kind]


def permission(kind: str, stage: str) -> str:
    return f"{kind}_management.{stage}"


def holds_any(user: User, kind: str) -> bool:
    return any(role_allows(user.role, permission(kind, stage)) for stage in STAGES)


def get_process(db: Session, job_id: str, kind: str) -> ApprovalProcess | None:
    return (
        db.query(ApprovalProcess)
        .filter(ApprovalProcess.job_id == job_id, ApprovalProcess.kind == kind)
        .first()
    )


def list_processes(db: Session, kind: str, statuses: list[str] | None = None) -> list[ApprovalProcess]:
    query = db.query(ApprovalProcess).filter(ApprovalProcess.kind == kind)
    if statuses:
        query = query.filter(ApprovalProcess.status.in_(statuses))
    return query.order_by(ApprovalProcess.created_at.desc()).all()


def _start_problem(db: Session, job: Job, kind: str) -> str | None:
    if job.status != JobStatus.COMPLETED.value:
        return f"Job must be completed to start {label(kind)}. Current status: {job.status}"
    if kind == "bra":
        kyc = get_process(db, job.id, "kyc")
        if kyc is None or kyc.status != "completed":
            return "KYC must be completed before BRA can start"
    return None


def can_initialize(db: Session, job: Job, kind: str) -> bool:
    return get_process(db, job.id, kind) is None and _start_problem(db, job, kind) is None


def _open(db: Session, job: Job, user: User, kind: str, description: str) -> ApprovalProcess:
    now = utc_now()
    blank = StageApproval().model_dump()
    process = ApprovalProcess(
        id=str(uuid.uuid4()),
        job_id=job.id,
        kind=kind,
        status="in_progress",
        current_stage="lmro",
        lmro_approval=blank,
        dlmro_approval=blank,
        ceo_approval=blank,
        created_at=now,
        updated_at=now,
    )
    db.add(process)
    job.updated_at = now
    add_timeline_entry(job, f"{kind}_pending", description, user.id)
    notifications.notify(
        db,
        title=f"New {label(kind)} Review Required",
        description=f"{label(kind)} review required for {job.client_name}'s {job.service_type} job.",
        recipients=notifications.ids_with_permission(db, permission(kind, "lmro")),
        sub_type=kind,
        job_id=job.id,
    )
    return process


def initialize(db: Session, job: Job, user: User, kind: str) -> ApprovalProcess:
    problem = _start_problem(db, job, kind)
    if problem:
        raise IntakeError(problem)
    if get_process(db, job.id, kind) is not None:
        raise ConflictError(f"{label(kind)} process already initialized for this job")

    process = _open(db, job, user, kind, f"{label(kind)} process initialized")
    db.commit()
    db.refresh(process)
    logger.info("%s process started on job %s by %s", label(kind), job.id, user.id)
    return process


def _open_process(db: Session, job: Job, kind: str) -> ApprovalProcess:
    process = get_process(db, job.id, kind)
    if process is None:
        raise NotFoundError(f"{label(kind)} process not found for this job")
    if process.status in ("completed", "rejected"):
        raise ConflictError(f"{label(kind)} process is already {process.status}")
    if job.status == JobStatus.CANCELLED.value:
        raise ConflictError("Job has been cancelled")
    return process


async def approve(
    db: Session,
    job: Job,
    user: User,
    kind: str,
    stage: str,
    *,
    notes: str | None = None,
    document: UploadFile | None = None,
) -> ApprovalProcess:
    """Sign off ``stage`` and hand the process to the next stage.

    The CEO stage completes the process; completing KYC opens BRA unless the
    job already has a BRA process.
    """
    name = stage.upper()
    if not role_allows(user.role, permission(kind, stage)):
        raise PermissionDeniedError(f"Insufficient permissions. {name} role required.")
    if not has_file(document):
        raise IntakeError(f"Document upload is required for {name} approval")
    process = _open_process(db, job, kind)
    if process.current_stage != stage:
        raise ConflictError(f"Current approval stage is {process.current_stage}, not {name}")
    content = await read_upload(document)

    now = utc_now()
    url = store_bytes(f"approvals/{job.id}/{kind}/{stage}", document.filename, content)
    record = StageApproval(
        approved=True,
        approved_by=user.id,
        approved_at=now,
        notes=notes or None,
        document=StageDocument(
            file_url=url,
            file_name=document.filename,
            file_type=document.content_type,
            uploaded_at=now,
            uploaded_by=user.id,
        ),
    )
    setattr(process, f"{stage}_approval", record.model_dump())
    process.updated_at = now
    job.updated_at = now

    if stage != "ceo":
        next_stage = STAGES[STAGES.index(stage) + 1]
        process.current_stage = next_stage
        add_timeline_entry(
            job, f"{kind}_{stage}_approved", f"{label(kind)} approved by {name}", user.id
        )
        notifications.notify(
            db,
            title=f"{label(kind)} Approval Required",
            description=(
                f"{name} has approved {job.client_name}'s {label(kind)}. "
                f"{next_stage.upper()} review required."
            ),
            recipients=notifications.ids_with_permission(db, permission(kind, next_stage)),
            sub_type=kind,
            job_id=job.id,
        )
    else:
        process.status = "completed"
        process.current_stage = "completed"
        process.completed_at = now
        add_timeline_entry(job, f"{kind}_completed", f"{label(kind)} process completed", user.id)
        notifications.notify(
            db,
            title=f"{label(kind)} Process Completed",
            description=f"{label(kind)} process for {job.client_name}'s job has been completed.",
            recipients=[job.assigned_person, *notifications.admin_ids(db)],
            sub_type=kind,
            job_id=job.id,
        )
        if kind == "kyc" and get_process(db, job.id, "bra") is None:
            _open(db, job, user, "bra", "BRA process initialized after KYC completion")

    db.commit()
    db.refresh(process)
    logger.info("%s stage %s approved on job %s by %s", label(kind), stage, job.id, user.id)
    return process


def reject(db: Session, job: Job, user: User, kind: str, reason: str) -> ApprovalProcess:
    """Reject the process at its current stage; only that stage's holders may."""
    if not reason or not reason.strip():
        raise IntakeError("Rejection reason is required")
    process = _open_process(db, job, kind)
    stage = process.current_stage
    if not role_allows(user.role, permission(kind, stage)):
        raise PermissionDeniedError(f"Insufficient permissions for current stage: {stage}")

    now = utc_now()
    process.status = "rejected"
    process.current_stage = "rejected"
    process.rejection_reason = reason
    process.rejected_by = user.id
    process.rejected_at = now
    process.updated_at = now
    job.updated_at = now
    add_timeline_entry(job, f"{kind}_rejected", f"{label(kind)} rejected: {reason}", user.id)
    notifications.notify(
        db,
        title=f"{label(kind)} Rejected",
        description=f"{label(kind)} for {job.client_name}'s job was rejected by {user.name}: {reason}",
        recipients=[job.assigned_person, *notifications.admin_ids(db)],
        sub_type=kind,
        job_id=job.id,
    )
    db.commit()
    db.refresh(process)
    logger.info("%s rejected at %s on job %s by %s", label(kind), stage, job.id, user.id)
    return process
