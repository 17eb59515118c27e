from pydantic import BaseModel, EmailStr

from app.services.workflow import JobStatus


class JobIntakeForm(BaseModel):
    gmail: EmailStr
    service_type: str
    assigned_person: str
    job_details: str
    # Optional when the email belongs to a known client; filled from the client record.
    client_name: str | None = None
    starting_point: str | None = None
    special_description: str | None = None


class JobUpdate(BaseModel):
    client_name: str | None = None
    starting_point: str | None = None
    service_type: str | None = None
    assigned_person: str | None = None
    job_details: str | None = None
    special_description: str | None = None


class JobCancelRequest(BaseModel):
    cancellation_reason: str


class ResubmissionResponse(BaseModel):
    id: str
    resubmit_notes: str | None
    new_document_passport: str | None
    new_document_id: str | None
    new_other_documents: list[str] | None
    resubmitted_at: str


class CurrentDocumentsResponse(BaseModel):
    document_passport: str | None
    document_id: str | None
    other_documents: list[str]


class TimelineEntryResponse(BaseModel):
    id: str
    status: str
    description: str
    updated_by: str | None
    updated_by_name: str | None = None
    timestamp: str


class JobResponse(BaseModel):
    id: str
    client_id: str
    client_name: str
    gmail: str
    starting_point: str
    service_type: str
    assigned_person: str
    assigned_person_name: str | None = None
    created_by: str
    job_details: str
    special_description: str | None
    document_passport: str | None
    document_id: str | None
    other_documents: list[str]
    status: JobStatus
    rejection_reason: str | None
    rejection_document: str | None
    cancellation_reason: str | None
    resubmissions: list[ResubmissionResponse] = []
    current_documents: CurrentDocumentsResponse
    created_at: str
    updated_at: str


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    per_page: int
