import logging
import uuid

from fastapi import UploadFile
from sqlalchemy.orm import Session

from app.errors import IntakeError, NotFoundError, PermissionDeniedError
from app.models.client import Client, Service
from app.models.job import Job, Resubmission
from app.models.timeline import TimelineEntry
from app.models.user import User
from app.schemas.job import JobIntakeForm
from app.services import notification_service as notifications
from app.services.permissions import role_allows
from app.services.storage_service import has_file, read_upload, store_bytes, store_upload
from app.services.workflow import JobStatus, current_documents, initial_status, validate_transition
from app.utils.dates import utc_now

logger = logging.getLogger("app.jobs")


def get_job(db: Session, job_id: str) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise NotFoundError("Job not found")
    return job


def can_access_job(user: User, job: Job) -> bool:
    return (
        role_allows(user.role, "compliance_management")
        or role_allows(user.role, "operation_management")
        or job.assigned_person == user.id
    )


def ensure_job_access(user: User, job: Job):
    if not can_access_job(user, job):
        raise PermissionDeniedError("You are not authorized to access this job")


def add_timeline_entry(job: Job, status: str, description: str, user_id: str | None) -> TimelineEntry:
    entry = TimelineEntry(
        id=str(uuid.uuid4()),
        position=len(job.timeline),
        status=status,
        description=description,
        updated_by=user_id,
        timestamp=utc_now(),
    )
    job.timeline.append(entry)
    return entry


def _summary(job: Job) -> str:
    return f"The {job.service_type} job for {job.client_name}"


async def create_job(
    db: Session,
    form: JobIntakeForm,
    creator: User,
    *,
    document_id: UploadFile | None,
    document_passport: UploadFile | None = None,
    other_documents: list[UploadFile] | None = None,
    pre_approved: bool = False,
) -> Job:
    """Create a job from the intake form.

    Nothing is stored until every check has passed and every upload has been
    read, so a rejected request leaves neither rows nor files behind.
    """
    if not has_file(document_id):
        raise IntakeError("Required documents are missing: document_id")

    assignee = db.query(User).filter(User.id == form.assigned_person).first()
    if assignee is None:
        raise IntakeError("Assigned person not found")

    client = db.query(Client).filter(Client.gmail == form.gmail).first()
    existing_client = client is not None
    client_name = form.client_name or (client.name if client else None)
    starting_point = form.starting_point or (client.starting_point if client else None)
    missing = [
        name for name, value in (("client_name", client_name), ("starting_point", starting_point))
        if not value
    ]
    if missing:
        raise IntakeError(f"Missing required fields: {', '.join(missing)}")

    id_content = await read_upload(document_id)
    passport_content = await read_upload(document_passport) if has_file(document_passport) else None
    other_contents = [
        (upload.filename, await read_upload(upload))
        for upload in other_documents or []
        if has_file(upload)
    ]

    now = utc_now()
    if client is None:
        client = Client(
            id=str(uuid.uuid4()),
            name=client_name,
            gmail=form.gmail,
            starting_point=starting_point,
            created_at=now,
            updated_at=now,
        )
        db.add(client)

    job_id = str(uuid.uuid4())
    folder = f"jobs/{job_id}/documents"
    status = JobStatus.APPROVED if pre_approved else initial_status(existing_client)
    job = Job(
        id=job_id,
        client=client,
        created_by=creator.id,
        assigned_person=assignee.id,
        service_type=form.service_type,
        job_details=form.job_details,
        special_description=form.special_description,
        client_name=client_name,
        gmail=form.gmail,
        starting_point=starting_point,
        document_id=store_bytes(folder, document_id.filename, id_content),
        document_passport=(
            store_bytes(folder, document_passport.filename, passport_content)
            if passport_content is not None else None
        ),
        other_documents=[store_bytes(folder, name, content) for name, content in other_contents],
        status=status.value,
        created_at=now,
        updated_at=now,
    )
    add_timeline_entry(job, "created", "Job created", creator.id)
    if status is JobStatus.APPROVED:
        reason = "Pre-approved by operations" if pre_approved else "Auto-approved for existing client"
        add_timeline_entry(job, "screening_done", f"Screening Done ({reason})", creator.id)
    db.add(job)
    db.flush()

    service = db.query(Service).filter(Service.name == form.service_type).first()
    if service is not None:
        service.usage_count += 1

    notifications.notify(
        db,
        title="New Job Created",
        description=f"A new {job.service_type} job has been created for {job.client_name}.",
        recipients=[
            creator.id,
            *notifications.admin_ids(db),
            *notifications.ids_with_permission(db, "compliance_management"),
        ],
        job_id=job.id,
    )
    notifications.notify(
        db,
        title="New Job Assigned",
        description=f"You have been assigned to a new {job.service_type} job for {job.client_name}.",
        recipients=[assignee.id],
        sub_type="assignment",
        job_id=job.id,
    )
    if status is JobStatus.APPROVED:
        notifications.notify(
            db,
            title="Job Ready for Processing",
            description=f"{_summary(job)} has been approved and is ready for processing.",
            recipients=[assignee.id, *notifications.admin_ids(db)],
            sub_type="approval",
            job_id=job.id,
        )

    db.commit()
    db.refresh(job)
    logger.info(
        "Job %s created for %s (%s, existing client: %s)",
        job.id, job.gmail, job.status, existing_client,
    )
    return job


def approve_job(db: Session, job: Job, user: User) -> Job:
    target = validate_transition(
        job.status, JobStatus.APPROVED, document_id=current_documents(job).document_id
    )
    job.status = target.value
    job.updated_at = utc_now()
    add_timeline_entry(job, "screening_done", "Screening Done", user.id)
    notifications.notify(
        db,
        title="Job Approved",
        description=f"{_summary(job)} has been approved by {user.name}.",
        recipients=[user.id, job.assigned_person, *notifications.admin_ids(db)],
        sub_type="approval",
        job_id=job.id,
    )
    db.commit()
    db.refresh(job)
    logger.info("Job %s approved by %s", job.id, user.id)
    return job


async def reject_job(
    db: Session,
    job: Job,
    user: User,
    rejection_reason: str,
    rejection_document: UploadFile | None = None,
) -> Job:
    if not rejection_reason or not rejection_reason.strip():
        raise IntakeError("Rejection reason is required")
    target = validate_transition(job.status, JobStatus.REJECTED)

    document_url = await store_upload(f"jobs/{job.id}/rejections", rejection_document)
    job.status = target.value
    job.rejection_reason = rejection_reason
    job.rejection_document = document_url
    job.updated_at = utc_now()
    add_timeline_entry(job, "rejected", f"Job rejected: {rejection_reason}", user.id)
    notifications.notify(
        db,
        title="Job Rejected",
        description=f"{_summary(job)} has been rejected by {user.name}: {rejection_reason}",
        recipients=[user.id, job.assigned_person, *notifications.admin_ids(db)],
        job_id=job.id,
    )
    db.commit()
    db.refresh(job)
    logger.info("Job %s rejected by %s", job.id, user.id)
    return job


async def resubmit_job(
    db: Session,
    job: Job,
    user: User,
    *,
    resubmit_notes: str | None = None,
    new_document_passport: UploadFile | None = None,
    new_document_id: UploadFile | None = None,
    new_other_documents: list[UploadFile] | None = None,
) -> Job:
    """Append a correction to a rejected job and move it to ``corrected``.

    Slots without a replacement file are recorded as null.
    """
    target = validate_transition(job.status, JobStatus.CORRECTED)

    # Read every replacement before storing any, so a bad file leaves nothing behind.
    passport_content = await read_upload(new_document_passport) if has_file(new_document_passport) else None
    id_content = await read_upload(new_document_id) if has_file(new_document_id) else None
    other_contents = [
        (upload.filename, await read_upload(upload))
        for upload in new_other_documents or []
        if has_file(upload)
    ]

    folder = f"jobs/{job.id}/resubmissions/{len(job.resubmissions) + 1}"
    passport_url = (
        store_bytes(folder, new_document_passport.filename, passport_content)
        if passport_content is not None else None
    )
    id_url = store_bytes(folder, new_document_id.filename, id_content) if id_content is not None else None
    other_urls = [store_bytes(folder, name, content) for name, content in other_contents]

    now = utc_now()
    job.resubmissions.append(
        Resubmission(
            id=str(uuid.uuid4()),
            position=len(job.resubmissions),
            resubmit_notes=resubmit_notes,
            new_document_passport=passport_url,
            new_document_id=id_url,
            new_other_documents=other_urls or None,
            resubmitted_at=now,
        )
    )
    job.status = target.value
    job.rejection_reason = None
    job.rejection_document = None
    job.updated_at = now
    add_timeline_entry(
        job,
        "corrected",
        f"Job resubmitted: {resubmit_notes}" if resubmit_notes else "Job resubmitted",
        user.id,
    )
    notifications.notify(
        db,
        title="Job Resubmitted",
        description=f"{_summary(job)} has been resubmitted by {user.name} with corrections.",
        recipients=[
            user.id,
            *notifications.ids_with_permission(db, "compliance_management"),
        ],
        job_id=job.id,
    )
    db.commit()
    db.refresh(job)
    logger.info("Job %s resubmitted (%d corrections so far)", job.id, len(job.resubmissions))
    return job


def cancel_job(db: Session, job: Job, user: User, cancellation_reason: str) -> Job:
    if not cancellation_reason or not cancellation_reason.strip():
        raise IntakeError("Cancellation reason is required")
    target = validate_transition(job.status, JobStatus.CANCELLED)

    job.status = target.value
    job.cancellation_reason = cancellation_reason
    job.updated_at = utc_now()
    add_timeline_entry(job, "cancelled", f"Job cancelled: {cancellation_reason}", user.id)
    notifications.notify(
        db,
        title="Job Cancelled",
        description=f"{_summary(job)} has been cancelled. Reason: {cancellation_reason}",
        recipients=[
            user.id,
            job.assigned_person,
            *notifications.ids_with_permission(db, "compliance_management"),
        ],
        job_id=job.id,
    )
    db.commit()
    db.refresh(job)
    logger.info("Job %s cancelled by %s", job.id, user.id)
    return job


def complete_job(db: Session, job: Job, user: User) -> Job:
    target = validate_transition(job.status, JobStatus.COMPLETED)
    company = job.company_details
    if company is None or not company.engagement_letters:
        raise IntakeError(
            "An engagement letter must be uploaded before marking operation as complete"
        )

    job.status = target.value
    job.updated_at = utc_now()
    add_timeline_entry(job, "completed", "Operation completed", user.id)
    notifications.notify(
        db,
        title="Operation Completed",
        description=f"Operation for {job.client_name}'s {job.service_type} job has been completed by {user.name}.",
        recipients=[user.id, *notifications.admin_ids(db)],
        job_id=job.id,
    )
    notifications.notify(
        db,
        title="Operation Completed - Ready for KYC",
        description=f"The operation for {job.client_name}'s {job.service_type} job has been completed. Please initialize the KYC process.",
        recipients=notifications.ids_with_permission(db, "kyc_management.lmro"),
        sub_type="kyc",
        job_id=job.id,
    )
    db.commit()
    db.refresh(job)
    logger.info("Job %s completed by %s", job.id, user.id)
    return job
