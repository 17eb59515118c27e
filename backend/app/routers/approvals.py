from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_permission
from app.models.approval import ApprovalProcess
from app.models.user import User
from app.schemas.approval import (
    ApprovalProcessResponse,
    ApprovalRejectRequest,
    ApprovalStatusResponse,
)
from app.services import approval_service, job_service

Stage = Literal["lmro", "dlmro", "ceo"]
ProcessStatus = Literal["pending", "in_progress", "completed", "rejected"]


def process_to_response(process: ApprovalProcess) -> ApprovalProcessResponse:
    return ApprovalProcessResponse(
        id=process.id,
        job_id=process.job_id,
        kind=process.kind,
        client_name=process.job.client_name,
        service_type=process.job.service_type,
        status=process.status,
        current_stage=process.current_stage,
        lmro_approval=process.lmro_approval or {},
        dlmro_approval=process.dlmro_approval or {},
        ceo_approval=process.ceo_approval or {},
        rejection_reason=process.rejection_reason,
        rejected_by=process.rejected_by,
        rejected_at=process.rejected_at,
        completed_at=process.completed_at,
        created_at=process.created_at,
        updated_at=process.updated_at,
    )


def build_router(kind: str) -> APIRouter:
    """Routes for one approval chain, mounted under ``/kyc`` or ``/bra``."""
    router = APIRouter(prefix=f"/{kind}", tags=[kind])
    name = approval_service.label(kind)

    async def require_chain_member(user: User = Depends(get_current_user)) -> User:
        if not approval_service.holds_any(user, kind):
            raise HTTPException(status_code=403, detail=f"{name} management access required")
        return user

    @router.post("/jobs/{job_id}/initialize", response_model=ApprovalProcessResponse, status_code=201)
    async def initialize(
        job_id: str,
        user: User = Depends(require_permission("operation_management")),
        db: Session = Depends(get_db),
    ):
        job = job_service.get_job(db, job_id)
        return process_to_response(approval_service.initialize(db, job, user, kind))

    @router.get("/jobs/{job_id}/status", response_model=ApprovalStatusResponse)
    async def get_status(
        job_id: str,
        _user: User = Depends(require_chain_member),
        db: Session = Depends(get_db),
    ):
        job = job_service.get_job(db, job_id)
        process = approval_service.get_process(db, job.id, kind)
        return ApprovalStatusResponse(
            exists=process is not None,
            job_id=job.id,
            job_status=job.status,
            can_initialize=approval_service.can_initialize(db, job, kind),
            process=process_to_response(process) if process is not None else None,
        )

    @router.get("/jobs", response_model=list[ApprovalProcessResponse])
    async def list_processes(
        status: list[ProcessStatus] | None = Query(None),
        _user: User = Depends(require_chain_member),
        db: Session = Depends(get_db),
    ):
        return [process_to_response(p) for p in approval_service.list_processes(db, kind, status)]

    @router.put("/jobs/{job_id}/{stage}-approve", response_model=ApprovalProcessResponse)
    async def approve(
        job_id: str,
        stage: Stage,
        notes: str | None = Form(None),
        document: UploadFile | None = File(None),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        job = job_service.get_job(db, job_id)
        process = await approval_service.approve(
            db, job, user, kind, stage, notes=notes, document=document
        )
        return process_to_response(process)

    @router.put("/jobs/{job_id}/reject", response_model=ApprovalProcessResponse)
    async def reject(
        job_id: str,
        req: ApprovalRejectRequest,
        user: User = Depends(require_chain_member),
        db: Session = Depends(get_db),
    ):
        job = job_service.get_job(db, job_id)
        return process_to_response(approval_service.reject(db, job, user, kind, req.rejection_reason))

    return router


kyc_router = build_router("kyc")
bra_router = build_router("bra")
