from typing import Literal

from pydantic import BaseModel, Field


class InvoiceIn(BaseModel):
    invoice_date: str
    description: str = ""
    amount: float = Field(ge=0)
    option: str | None = None
    payment_method: str | None = None
    # Index into the uploaded invoice_files list.
    file_index: int | None = None
    is_incorrect_invoice: bool = False
    incorrect_reason: str | None = None


class Invoice(BaseModel):
    invoice_date: str
    description: str
    amount: float
    option: str | None
    payment_method: str | None
    file_url: str | None
    file_name: str | None
    is_incorrect_invoice: bool
    incorrect_reason: str | None


class MonthlyPaymentResponse(BaseModel):
    id: str
    job_id: str
    job_type: str
    year: int
    month: int
    status: Literal["Paid", "Pending", "Overdue"]
    total_amount: float
    invoices: list[Invoice]
    has_incorrect_invoices: bool
    notes: str | None
    created_by: str | None
    created_at: str
    updated_at: str
