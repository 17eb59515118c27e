from typing import Literal

from pydantic import BaseModel


class StageDocument(BaseModel):
    file_url: str
    file_name: str
    file_type: str | None = None
    uploaded_at: str
    uploaded_by: str


class StageApproval(BaseModel):
    approved: bool = False
    approved_by: str | None = None
    approved_at: str | None = None
    notes: str | None = None
    document: StageDocument | None = None


class ApprovalProcessResponse(BaseModel):
    id: str
    job_id: str
    kind: Literal["kyc", "bra"]
    client_name: str
    service_type: str
    status: Literal["pending", "in_progress", "completed", "rejected"]
    current_stage: Literal["lmro", "dlmro", "ceo", "completed", "rejected"]
    lmro_approval: StageApproval
    dlmro_approval: StageApproval
    ceo_approval: StageApproval
    rejection_reason: str | None
    rejected_by: str | None
    rejected_at: str | None
    completed_at: str | None
    created_at: str
    updated_at: str


class ApprovalStatusResponse(BaseModel):
    exists: bool
    job_id: str
    job_status: str
    can_initialize: bool
    process: ApprovalProcessResponse | None = None


class ApprovalRejectRequest(BaseModel):
    rejection_reason: str
