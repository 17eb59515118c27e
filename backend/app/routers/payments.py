from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_permission
from app.models.payment import MonthlyPayment
from app.models.user import User
from app.schemas.payment import MonthlyPaymentResponse
from app.services import job_service, payment_service
from app.services.permissions import role_allows

router = APIRouter(prefix="/monthlypayment", tags=["payments"])


def _payment_to_response(payment: MonthlyPayment) -> MonthlyPaymentResponse:
    return MonthlyPaymentResponse(
        id=payment.id,
        job_id=payment.job_id,
        job_type=payment.job_type,
        year=payment.year,
        month=payment.month,
        status=payment.status,
        total_amount=payment.total_amount,
        invoices=payment.invoices or [],
        has_incorrect_invoices=payment.has_incorrect_invoices,
        notes=payment.notes,
        created_by=payment.created_by,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


@router.post("/add", response_model=MonthlyPaymentResponse, status_code=201)
async def add_monthly_payment(
    job_id: str = Form(...),
    job_type: str = Form(...),
    year: int = Form(..., ge=2000, le=2100),
    month: int = Form(..., ge=0, le=11),
    invoices: str = Form(...),
    status: str = Form("Paid"),
    notes: str | None = Form(None),
    invoice_files: list[UploadFile] | None = File(None),
    user: User = Depends(require_permission("account_management")),
    db: Session = Depends(get_db),
):
    job = job_service.get_job(db, job_id)
    payment = await payment_service.add_monthly_payment(
        db,
        job,
        user,
        job_type=job_type,
        year=year,
        month=month,
        invoices=invoices,
        status=status,
        notes=notes or None,
        invoice_files=invoice_files,
    )
    return _payment_to_response(payment)


@router.get("/history/{job_id}", response_model=list[MonthlyPaymentResponse])
async def payment_history(job_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    if not role_allows(user.role, "account_management"):
        job_service.ensure_job_access(user, job)
    return [_payment_to_response(p) for p in payment_service.payment_history(db, job.id)]
