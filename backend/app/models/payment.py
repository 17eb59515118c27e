from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Integer, Text
from app.database import Base


class MonthlyPayment(Base):
    __tablename__ = "monthly_payments"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    job_type = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="Paid")
    total_amount = Column(Float, nullable=False, default=0)
    invoices = Column(JSON, nullable=False)
    has_incorrect_invoices = Column(Boolean, nullable=False, default=False)
    notes = Column(Text)
    created_by = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
