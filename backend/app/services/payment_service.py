import json
import logging
import uuid

from fastapi import UploadFile
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, IntakeError
from app.models.job import Job
from app.models.payment import MonthlyPayment
from app.models.user import User
from app.schemas.payment import InvoiceIn
from app.services import notification_service as notifications
from app.services.storage_service import has_file, read_upload, store_bytes
from app.utils.dates import utc_now

logger = logging.getLogger("app.payments")

PAYMENT_STATUSES = ("Paid", "Pending", "Overdue")
DUPLICATE_MONTH = "A payment record for this month and year already exists"

_invoice_list = TypeAdapter(list[InvoiceIn])


def _existing_payment(db: Session, job_id: str, year: int, month: int) -> MonthlyPayment | None:
    return db.query(MonthlyPayment).filter(
        MonthlyPayment.job_id == job_id,
        MonthlyPayment.year == year,
        MonthlyPayment.month == month,
    ).first()


def parse_invoices(raw: str) -> list[InvoiceIn]:
    try:
        return _invoice_list.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise IntakeError(f"Failed to parse invoice data: {exc}")


async def add_monthly_payment(
    db: Session,
    job: Job,
    user: User,
    *,
    job_type: str,
    year: int,
    month: int,
    invoices: str,
    status: str = "Paid",
    notes: str | None = None,
    invoice_files: list[UploadFile] | None = None,
) -> MonthlyPayment:
    if not 0 <= month <= 11:
        raise IntakeError("month must be between 0 and 11")
    if status not in PAYMENT_STATUSES:
        raise IntakeError(f"status must be one of {', '.join(PAYMENT_STATUSES)}")
    parsed = parse_invoices(invoices)

    existing = _existing_payment(db, job.id, year, month)
    if existing:
        raise ConflictError(DUPLICATE_MONTH)

    uploads = [u for u in invoice_files or [] if has_file(u)]
    contents = [(u.filename, await read_upload(u)) for u in uploads]
    folder = f"monthly-payments/{job.id}/{year}/{month}"
    stored = [(name, store_bytes(folder, name, content)) for name, content in contents]

    records = []
    for index, invoice in enumerate(parsed):
        file_index = invoice.file_index if invoice.file_index is not None else index
        file_name, file_url = stored[file_index] if 0 <= file_index < len(stored) else (None, None)
        records.append({
            "invoice_date": invoice.invoice_date,
            "description": invoice.description,
            "amount": invoice.amount,
            "option": invoice.option,
            "payment_method": invoice.payment_method,
            "file_url": file_url,
            "file_name": file_name,
            "is_incorrect_invoice": invoice.is_incorrect_invoice,
            "incorrect_reason": invoice.incorrect_reason,
        })

    now = utc_now()
    payment = MonthlyPayment(
        id=str(uuid.uuid4()),
        job_id=job.id,
        job_type=job_type,
        year=year,
        month=month,
        status=status,
        total_amount=sum(r["amount"] for r in records),
        invoices=records,
        has_incorrect_invoices=any(r["is_incorrect_invoice"] for r in records),
        notes=notes,
        created_by=user.id,
        created_at=now,
        updated_at=now,
    )
    db.add(payment)
    notifications.notify(
        db,
        title="Monthly Payment Added",
        description=f"A payment record for {month + 1}/{year} was added to {job.client_name}'s {job.service_type} job.",
        recipients=[user.id, *notifications.admin_ids(db)],
        sub_type="payment",
        job_id=job.id,
    )
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request recorded the same month first.
        db.rollback()
        raise ConflictError(DUPLICATE_MONTH)
    db.refresh(payment)
    logger.info("Payment %s recorded for job %s (%d/%d)", payment.id, job.id, month + 1, year)
    return payment


def payment_history(db: Session, job_id: str) -> list[MonthlyPayment]:
    return (
        db.query(MonthlyPayment)
        .filter(MonthlyPayment.job_id == job_id)
        .order_by(MonthlyPayment.year.desc(), MonthlyPayment.month.desc())
        .all()
    )
