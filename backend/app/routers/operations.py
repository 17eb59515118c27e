from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_permission
from app.models.user import User
from app.routers.jobs import intake_form, job_to_response
from app.schemas.job import JobIntakeForm, JobResponse
from app.schemas.operation import (
    CompanyDetailsResponse,
    EngagementLetterResponse,
    KycDocumentsResponse,
    PersonDetailsResponse,
    RenewExpiryRequest,
    RenewExpiryResponse,
)
from app.services import job_service, operation_service

router = APIRouter(prefix="/operations", tags=["operations"])


def _kyc_to_response(kyc) -> KycDocumentsResponse:
    return KycDocumentsResponse(
        id=kyc.id,
        job_id=kyc.job_id,
        active_status=kyc.active_status,
        documents=kyc.documents or [],
        updated_by=kyc.updated_by,
        updated_at=kyc.updated_at,
    )


def _accessible_job(db: Session, job_id: str, user: User):
    job = job_service.get_job(db, job_id)
    job_service.ensure_job_access(user, job)
    return job


@router.post("/pre-approved-job", response_model=JobResponse, status_code=201)
async def create_pre_approved_job(
    form: JobIntakeForm = Depends(intake_form),
    document_id: UploadFile | None = File(None),
    document_passport: UploadFile | None = File(None),
    other_documents: list[UploadFile] | None = File(None),
    user: User = Depends(require_permission("operation_management")),
    db: Session = Depends(get_db),
):
    job = await job_service.create_job(
        db,
        form,
        user,
        document_id=document_id,
        document_passport=document_passport,
        other_documents=other_documents,
        pre_approved=True,
    )
    return job_to_response(job)


@router.get("/jobs/{job_id}/company-details", response_model=CompanyDetailsResponse)
async def get_company_details(job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    job = _accessible_job(db, job_id, user)
    return operation_service.get_or_create_company_details(db, job, user)


@router.put("/jobs/{job_id}/company-details", response_model=CompanyDetailsResponse)
async def update_company_details(
    job_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _accessible_job(db, job_id, user)
    form = await request.form()
    return await operation_service.update_company_details(db, job, user, form)


@router.get("/jobs/{job_id}/person-details/{person_type}", response_model=list[PersonDetailsResponse])
async def list_person_details(
    job_id: str,
    person_type: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    operation_service.check_person_type(person_type)
    job = _accessible_job(db, job_id, user)
    return operation_service.list_person_details(db, job, person_type, user)


@router.post(
    "/jobs/{job_id}/person-details/{person_type}",
    response_model=PersonDetailsResponse,
    status_code=201,
)
async def add_person_details(
    job_id: str,
    person_type: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    operation_service.check_person_type(person_type)
    job = _accessible_job(db, job_id, user)
    form = await request.form()
    return await operation_service.add_person_details(db, job, person_type, user, form)


@router.put(
    "/jobs/{job_id}/person-details/{person_type}/{person_id}",
    response_model=PersonDetailsResponse,
)
async def update_person_details(
    job_id: str,
    person_type: str,
    person_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    operation_service.check_person_type(person_type)
    job = _accessible_job(db, job_id, user)
    form = await request.form()
    return await operation_service.update_person_details(db, job, person_type, person_id, user, form)


@router.delete("/jobs/{job_id}/person-details/{person_type}/{person_id}")
async def delete_person_details(
    job_id: str,
    person_type: str,
    person_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    operation_service.check_person_type(person_type)
    job = _accessible_job(db, job_id, user)
    operation_service.delete_person_details(db, job, person_type, person_id, user)
    return {"message": "Person details removed"}


@router.get("/jobs/{job_id}/kyc-documents", response_model=KycDocumentsResponse)
async def get_kyc_documents(job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    job = _accessible_job(db, job_id, user)
    return _kyc_to_response(operation_service.get_or_create_kyc_documents(db, job, user))


@router.put("/jobs/{job_id}/kyc-documents", response_model=KycDocumentsResponse)
async def update_kyc_documents(
    job_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _accessible_job(db, job_id, user)
    form = await request.form()
    return _kyc_to_response(await operation_service.update_kyc_documents(db, job, user, form))


@router.api_route(
    "/jobs/{job_id}/engagement-letter",
    methods=["POST", "PUT"],
    response_model=EngagementLetterResponse,
)
async def upload_engagement_letter(
    job_id: str,
    engagement_letter: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _accessible_job(db, job_id, user)
    details = await operation_service.upload_engagement_letter(db, job, user, engagement_letter)
    return EngagementLetterResponse(
        message="Engagement letter uploaded",
        engagement_letter=details.engagement_letters,
    )


@router.put("/jobs/{job_id}/renew-expiry", response_model=RenewExpiryResponse)
async def renew_expiry(
    job_id: str,
    req: RenewExpiryRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    job = _accessible_job(db, job_id, user)
    renewed = operation_service.renew_expiry(db, job, user, req.field, req.person_id)
    return RenewExpiryResponse(field=req.field, expiry=renewed)


@router.put("/jobs/{job_id}/complete", response_model=JobResponse)
async def complete_operation(job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    operation_service.ensure_can_complete(user, job)
    return job_to_response(job_service.complete_job(db, job, user))
