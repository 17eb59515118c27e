from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_admin, require_permission
from app.models.job import Job
from app.models.user import User
from app.schemas.job import (
    CurrentDocumentsResponse,
    JobCancelRequest,
    JobIntakeForm,
    JobListResponse,
    JobResponse,
    JobUpdate,
    ResubmissionResponse,
    TimelineEntryResponse,
)
from app.services import job_service
from app.services.workflow import JobStatus, current_documents
from app.utils.dates import utc_now

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _documents_to_response(job: Job) -> CurrentDocumentsResponse:
    docs = current_documents(job)
    return CurrentDocumentsResponse(
        document_passport=docs.document_passport,
        document_id=docs.document_id,
        other_documents=docs.other_documents,
    )


def job_to_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        client_id=job.client_id,
        client_name=job.client_name,
        gmail=job.gmail,
        starting_point=job.starting_point,
        service_type=job.service_type,
        assigned_person=job.assigned_person,
        assigned_person_name=job.assignee.name if job.assignee else None,
        created_by=job.created_by,
        job_details=job.job_details,
        special_description=job.special_description,
        document_passport=job.document_passport,
        document_id=job.document_id,
        other_documents=list(job.other_documents or []),
        status=job.status,
        rejection_reason=job.rejection_reason,
        rejection_document=job.rejection_document,
        cancellation_reason=job.cancellation_reason,
        resubmissions=[
            ResubmissionResponse(
                id=r.id,
                resubmit_notes=r.resubmit_notes,
                new_document_passport=r.new_document_passport,
                new_document_id=r.new_document_id,
                new_other_documents=r.new_other_documents,
                resubmitted_at=r.resubmitted_at,
            )
            for r in job.resubmissions
        ],
        current_documents=_documents_to_response(job),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def intake_form(
    gmail: str = Form(...),
    service_type: str = Form(...),
    assigned_person: str = Form(...),
    job_details: str = Form(...),
    client_name: str | None = Form(None),
    starting_point: str | None = Form(None),
    special_description: str | None = Form(None),
) -> JobIntakeForm:
    try:
        return JobIntakeForm(
            gmail=gmail,
            service_type=service_type,
            assigned_person=assigned_person,
            job_details=job_details,
            client_name=client_name or None,
            starting_point=starting_point or None,
            special_description=special_description or None,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(
    form: JobIntakeForm = Depends(intake_form),
    document_id: UploadFile | None = File(None),
    document_passport: UploadFile | None = File(None),
    other_documents: list[UploadFile] | None = File(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    job = await job_service.create_job(
        db,
        form,
        user,
        document_id=document_id,
        document_passport=document_passport,
        other_documents=other_documents,
    )
    return job_to_response(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    status: list[JobStatus] | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    _user: User = Depends(require_permission("compliance_management")),
    db: Session = Depends(get_db),
):
    query = db.query(Job)
    if status:
        query = query.filter(Job.status.in_([s.value for s in status]))

    total = query.count()
    jobs = query.order_by(Job.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return JobListResponse(
        jobs=[job_to_response(j) for j in jobs],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/assigned", response_model=JobListResponse)
async def list_assigned_jobs(
    status: list[JobStatus] | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Job).filter(Job.assigned_person == user.id)
    if status:
        query = query.filter(Job.status.in_([s.value for s in status]))

    total = query.count()
    jobs = query.order_by(Job.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return JobListResponse(
        jobs=[job_to_response(j) for j in jobs],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    job_service.ensure_job_access(user, job)
    return job_to_response(job)


@router.put("/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: str,
    req: JobUpdate,
    _user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    job = job_service.get_job(db, job_id)
    update_data = req.model_dump(exclude_unset=True, exclude_none=True)
    if "assigned_person" in update_data:
        if db.query(User).filter(User.id == update_data["assigned_person"]).first() is None:
            raise HTTPException(status_code=400, detail="Assigned person not found")
    for key, value in update_data.items():
        setattr(job, key, value)
    job.updated_at = utc_now()

    db.commit()
    db.refresh(job)
    return job_to_response(job)


@router.get("/{job_id}/timeline", response_model=list[TimelineEntryResponse])
async def get_timeline(job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    job_service.ensure_job_access(user, job)
    return [
        TimelineEntryResponse(
            id=e.id,
            status=e.status,
            description=e.description,
            updated_by=e.updated_by,
            updated_by_name=e.author.name if e.author else None,
            timestamp=e.timestamp,
        )
        for e in job.timeline
    ]


@router.get("/{job_id}/documents/current", response_model=CurrentDocumentsResponse)
async def get_current_documents(
    job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    job = job_service.get_job(db, job_id)
    job_service.ensure_job_access(user, job)
    return _documents_to_response(job)


@router.put("/{job_id}/approve", response_model=JobResponse)
async def approve_job(
    job_id: str,
    user: User = Depends(require_permission("compliance_management")),
    db: Session = Depends(get_db),
):
    job = job_service.get_job(db, job_id)
    return job_to_response(job_service.approve_job(db, job, user))


@router.put("/{job_id}/reject", response_model=JobResponse)
async def reject_job(
    job_id: str,
    rejection_reason: str = Form(...),
    rejection_document: UploadFile | None = File(None),
    user: User = Depends(require_permission("compliance_management")),
    db: Session = Depends(get_db),
):
    job = job_service.get_job(db, job_id)
    job = await job_service.reject_job(db, job, user, rejection_reason, rejection_document)
    return job_to_response(job)


@router.put("/{job_id}/resubmit", response_model=JobResponse)
async def resubmit_job(
    job_id: str,
    resubmit_notes: str | None = Form(None),
    new_document_passport: UploadFile | None = File(None),
    new_document_id: UploadFile | None = File(None),
    new_other_documents: list[UploadFile] | None = File(None),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    job = job_service.get_job(db, job_id)
    job = await job_service.resubmit_job(
        db,
        job,
        user,
        resubmit_notes=resubmit_notes or None,
        new_document_passport=new_document_passport,
        new_document_id=new_document_id,
        new_other_documents=new_other_documents,
    )
    return job_to_response(job)


@router.put("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: str,
    req: JobCancelRequest,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    job = job_service.get_job(db, job_id)
    return job_to_response(job_service.cancel_job(db, job, user, req.cancellation_reason))
